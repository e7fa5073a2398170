"""RoadSession Engine - Session core wiring and lifecycle.

Builds the store, token codec, manager and cleanup scheduler explicitly
from configuration and owns their start/shutdown lifecycle. There is no
module-level session table: every process constructs its own engine.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Optional

from roadsession_core.cleanup import CleanupScheduler
from roadsession_core.clock import Clock, SystemClock
from roadsession_core.config import DEFAULT_CONFIG_PATH, EngineConfig
from roadsession_core.manager import SessionManager
from roadsession_core.store import InMemorySessionRecordStore, SessionRecordStore
from roadsession_core.tokens.codec import HMACTokenCodec, TokenCodec

# Configure logging
logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "roadsession_core"


class SessionEngine:
    """Session core for one process.

    Usage:
        with SessionEngine(config_path=Path("session.yaml")) as engine:
            record, token = engine.manager.create("u1", "alice", "admin", ["orders:read"])
            result = engine.manager.validate(token)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        config_path: Optional[Path] = None,
        store: Optional[SessionRecordStore] = None,
        codec: Optional[TokenCodec] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize engine.

        Args:
            config: Engine configuration
            config_path: Path to YAML config file (used when ``config`` is None)
            store: Record store (defaults to in-memory)
            codec: Token codec (defaults to HMACTokenCodec from config)
            clock: Time source (defaults to the system clock)
        """
        # Load configuration
        if config:
            self.config = config
        elif config_path:
            self.config = EngineConfig.from_file(config_path)
        else:
            self.config = EngineConfig.from_file(DEFAULT_CONFIG_PATH)

        self.config.session.validate()
        logging.getLogger(PACKAGE_LOGGER).setLevel(self.config.log_level.upper())

        self.clock = clock or SystemClock()
        self.store = store if store is not None else InMemorySessionRecordStore()

        if codec is None:
            # Generate secret if not set
            if not self.config.token_secret:
                logger.warning("No token secret configured; generated an ephemeral one")
                self.config.token_secret = secrets.token_urlsafe(32)
            codec = HMACTokenCodec(
                secret_key=self.config.token_secret,
                algorithm=self.config.token_algorithm,
                issuer=self.config.token_issuer,
                clock=self.clock.now,
            )
        self.codec = codec

        self.manager = SessionManager(
            store=self.store,
            codec=self.codec,
            config=self.config.session,
            clock=self.clock,
        )
        self.scheduler = CleanupScheduler(self.manager)

        logger.info(
            f"Session engine initialized (storage={type(self.store).__name__}, "
            f"max_sessions={self.config.session.max_concurrent_sessions})"
        )

    @property
    def is_running(self) -> bool:
        return self.scheduler.is_running

    def start(self) -> SessionEngine:
        """Start background cleanup."""
        self.scheduler.start()
        return self

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop background cleanup and reclaim dead records."""
        self.scheduler.stop(timeout=timeout)
        try:
            removed = self.manager.sweep()
        except Exception as e:
            logger.error(f"Final session sweep failed: {e}")
        else:
            logger.info(f"Session engine shut down ({removed} records reclaimed)")

    def __enter__(self) -> SessionEngine:
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


__all__ = [
    "SessionEngine",
]
