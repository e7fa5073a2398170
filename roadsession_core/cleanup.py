"""RoadSession Cleanup - Background expiry sweeping.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Union

from roadsession_core.manager import SessionManager

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """Calls SessionManager.sweep() every cleanup interval on a daemon thread."""

    def __init__(
        self,
        manager: SessionManager,
        interval: Optional[Union[timedelta, float]] = None,
    ):
        """Initialize scheduler.

        Args:
            manager: Session manager to sweep
            interval: Sweep period (defaults to the manager's cleanup interval)
        """
        if interval is None:
            interval = manager.config.cleanup_interval
        if isinstance(interval, timedelta):
            interval = interval.total_seconds()
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.manager = manager
        self.interval = float(interval)

        self.last_run: Optional[datetime] = None
        self.last_removed = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start background cleanup thread."""
        with self._lock:
            if self.is_running:
                return

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._cleanup_loop,
                name="roadsession-cleanup",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"Session cleanup thread started (interval {self.interval:g}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """Stop background cleanup thread.

        Returns:
            True if the thread has exited
        """
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            if thread is None:
                return True
            thread.join(timeout=timeout)
            stopped = not thread.is_alive()
            if stopped:
                self._thread = None

        if stopped:
            logger.info("Session cleanup thread stopped")
        else:
            logger.warning("Session cleanup thread did not stop in time")
        return stopped

    def run_once(self) -> int:
        """Sweep now, on the calling thread.

        Returns:
            Number of records removed
        """
        removed = self.manager.sweep()
        self.last_run = self.manager.clock.now()
        self.last_removed = removed
        return removed

    def _cleanup_loop(self) -> None:
        """Background cleanup loop."""
        while not self._stop_event.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("Session cleanup error")

    def __enter__(self) -> CleanupScheduler:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


__all__ = [
    "CleanupScheduler",
]
