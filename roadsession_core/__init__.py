"""RoadSession - Session management core for BlackRoad OS services.

RoadSession issues, tracks, validates, refreshes, limits and revokes the
user sessions behind short-lived bearer tokens:
- Session creation with a per-user concurrent session limit
- Validation with a sliding refresh window and token rotation
- Point, by-token and bulk revocation
- Background sweeping of expired and revoked sessions
- Only a one-way correlation of each token is ever stored

Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                     Session Engine                       │
    ├──────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐       │
    │  │   Session   │  │   Record    │  │   Cleanup   │       │
    │  │   Manager   │──│    Store    │──│  Scheduler  │       │
    │  └─────────────┘  └─────────────┘  └─────────────┘       │
    │         │                                                │
    │  ┌─────────────┐  ┌─────────────┐                        │
    │  │   Token     │  │    Clock    │                        │
    │  │   Codec     │  │             │                        │
    │  └─────────────┘  └─────────────┘                        │
    └──────────────────────────────────────────────────────────┘

Usage:
    from roadsession_core import SessionEngine, EngineConfig

    engine = SessionEngine(EngineConfig(token_secret="change-me")).start()

    # After the login flow has checked credentials
    record, token = engine.manager.create("u1", "alice", "manager", ["orders:read"])

    # On every protected request
    result = engine.manager.validate(token)
    if result.is_valid and result.should_refresh:
        token = result.new_token

    engine.shutdown()

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

__version__ = "1.0.0"
__author__ = "BlackRoad OS, Inc."
__email__ = "engineering@blackroad.io"

# Core exports
from roadsession_core.engine import SessionEngine
from roadsession_core.config import EngineConfig, SessionConfig
from roadsession_core.manager import SessionManager
from roadsession_core.cleanup import CleanupScheduler
from roadsession_core.clock import Clock, ManualClock, SystemClock

# Storage exports
from roadsession_core.store import InMemorySessionRecordStore, SessionRecordStore

# Model exports
from roadsession_core.models import (
    InvalidSession,
    RevocationResult,
    SessionEvent,
    SessionRecord,
    SessionStats,
    SessionStatus,
    SessionSummary,
    ValidationResult,
    ValidSession,
)

# Error exports
from roadsession_core.errors import (
    InvalidTokenError,
    SessionError,
    SessionErrorCode,
    SessionExpiredError,
    SessionNotFoundError,
    SessionRevokedError,
    StorageUnavailableError,
    TokenMintError,
    error_for,
)

# Token exports
from roadsession_core.tokens.codec import HMACTokenCodec, TokenCodec, correlate_token

__all__ = [
    # Version
    "__version__",

    # Core
    "SessionEngine",
    "EngineConfig",
    "SessionConfig",
    "SessionManager",
    "CleanupScheduler",
    "Clock",
    "ManualClock",
    "SystemClock",

    # Storage
    "SessionRecordStore",
    "InMemorySessionRecordStore",

    # Models
    "SessionRecord",
    "SessionSummary",
    "SessionStats",
    "SessionStatus",
    "SessionEvent",
    "ValidSession",
    "InvalidSession",
    "ValidationResult",
    "RevocationResult",

    # Errors
    "SessionError",
    "SessionErrorCode",
    "InvalidTokenError",
    "SessionNotFoundError",
    "SessionExpiredError",
    "SessionRevokedError",
    "TokenMintError",
    "StorageUnavailableError",
    "error_for",

    # Tokens
    "TokenCodec",
    "HMACTokenCodec",
    "correlate_token",
]
