"""RoadSession Manager - Session lifecycle orchestration.

Provides session handling on top of a record store and a token codec:
- Session creation with per-user concurrency limit (oldest is evicted)
- Validation with sliding-window token rotation
- Point, by-token and bulk revocation
- Per-user listing, statistics and expiry sweeping
- Session events and hooks

The manager keeps no mutable state besides event handlers; all shared
state lives in the store, which owns synchronization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from roadsession_core.clock import Clock, SystemClock
from roadsession_core.config import SessionConfig
from roadsession_core.errors import (
    InvalidTokenError,
    SessionErrorCode,
    StorageUnavailableError,
    TokenMintError,
)
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
from roadsession_core.store import SessionRecordStore
from roadsession_core.tokens.codec import TokenCodec, correlate_token

logger = logging.getLogger(__name__)


class _Rejected(Exception):
    """Aborts a store mutation whose precondition no longer holds."""

    def __init__(self, code: SessionErrorCode):
        super().__init__(code.value)
        self.code = code


def _check(record: Optional[SessionRecord], token_correlation: str, now: datetime) -> Optional[SessionErrorCode]:
    """Return the failure code for presenting a token, or None if usable."""
    if record is None:
        return SessionErrorCode.SESSION_NOT_FOUND
    if not record.is_active:
        return SessionErrorCode.SESSION_REVOKED
    if record.is_expired(now):
        return SessionErrorCode.SESSION_EXPIRED
    if record.token_correlation != token_correlation:
        return SessionErrorCode.INVALID_TOKEN
    return None


class SessionManager:
    """Manages user sessions backed by short-lived bearer tokens."""

    def __init__(
        self,
        store: SessionRecordStore,
        codec: TokenCodec,
        config: Optional[SessionConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize session manager.

        Args:
            store: Session record store
            codec: Token codec used to mint and parse bearer tokens
            config: Session policy
            clock: Time source
        """
        self.config = config or SessionConfig()
        self.config.validate()
        self.store = store
        self.codec = codec
        self.clock = clock or SystemClock()

        self._event_handlers: Dict[SessionEvent, List[Callable[[SessionRecord], None]]] = {
            event: [] for event in SessionEvent
        }

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create(
        self,
        user_id: str,
        username: str,
        role_name: str,
        permissions: Iterable[str] = (),
        remember_me: bool = False,
        expires_at: Optional[datetime] = None,
    ) -> Tuple[SessionRecord, str]:
        """Create a session for an already authenticated user.

        If the user is at the concurrent session limit, the oldest active
        session is revoked in the same critical section that inserts the
        new one.

        Args:
            user_id: User ID
            username: Username snapshot
            role_name: Role snapshot
            permissions: Permission snapshot
            remember_me: Use the long-lived expiration
            expires_at: Absolute expiry overriding the configured duration

        Returns:
            (record, token)

        Raises:
            TokenMintError: If the codec fails
            StorageUnavailableError: If the store fails
            ValueError: If ``expires_at`` is not in the future
        """
        now = self.clock.now()
        if expires_at is None:
            expires_at = now + self.config.expiration_for(remember_me)
        elif expires_at <= now:
            raise ValueError("expires_at must be in the future")

        permissions = frozenset(permissions)
        session_id = self._generate_session_id()
        token = self._mint(session_id, user_id, username, role_name, permissions, expires_at)

        record = SessionRecord.create(
            session_id=session_id,
            user_id=user_id,
            username=username,
            role_name=role_name,
            permissions=permissions,
            token_correlation=correlate_token(token),
            now=now,
            expires_at=expires_at,
            remember_me=remember_me,
        )

        with self.store.user_guard(user_id):
            evicted = self._enforce_session_limit(user_id)
            self.store.put(record)

        for old in evicted:
            logger.info(f"Evicted oldest session {old.session_id} for user {user_id}")
            self._fire_event(SessionEvent.EVICTED, old)
        self._fire_event(SessionEvent.CREATED, record)

        logger.info(
            f"Session created: {session_id} for user {user_id} "
            f"(expires {expires_at.isoformat()}, remember_me={remember_me})"
        )
        return record, token

    def _enforce_session_limit(self, user_id: str) -> List[SessionRecord]:
        """Revoke oldest active sessions until one more fits.

        Caller must hold the user guard.
        """
        now = self.clock.now()
        active = [r for r in self.store.list_by_user(user_id) if r.is_usable(now)]

        evicted: List[SessionRecord] = []
        while active and len(active) >= self.config.max_concurrent_sessions:
            # min() keeps the first of equal created_at, i.e. insertion order
            oldest = min(active, key=lambda r: r.created_at)
            active.remove(oldest)
            revoked = self._deactivate(oldest.session_id)
            if revoked is not None:
                evicted.append(revoked)
        return evicted

    # ------------------------------------------------------------------
    # Validation and refresh
    # ------------------------------------------------------------------

    def validate(self, token: str) -> ValidationResult:
        """Validate a bearer token.

        On success, bumps last activity and, inside the refresh window,
        rotates the token. On failure nothing is changed.

        Args:
            token: Bearer token

        Returns:
            ValidSession or InvalidSession
        """
        return self._validate(token, force_refresh=False)

    def refresh(self, token: str) -> ValidationResult:
        """Rotate the token of a valid session regardless of the window.

        Args:
            token: Current bearer token

        Returns:
            ValidSession carrying the new token, or InvalidSession

        Raises:
            TokenMintError: If the codec fails
        """
        return self._validate(token, force_refresh=True)

    def _validate(self, token: str, force_refresh: bool) -> ValidationResult:
        if not token:
            return InvalidSession(SessionErrorCode.MISSING_TOKEN)

        try:
            session_id = self.codec.parse(token)
        except InvalidTokenError as e:
            logger.debug(f"Token rejected by codec: {e}")
            return InvalidSession(SessionErrorCode.INVALID_TOKEN)

        correlation = correlate_token(token)
        try:
            return self._validate_session(session_id, correlation, force_refresh)
        except StorageUnavailableError as e:
            logger.warning(f"Session storage unavailable during validation of {session_id}: {e}")
            return InvalidSession(SessionErrorCode.STORAGE_UNAVAILABLE)

    def _validate_session(self, session_id: str, correlation: str, force_refresh: bool) -> ValidationResult:
        now = self.clock.now()
        record = self.store.get_by_id(session_id)
        code = _check(record, correlation, now)
        if code is not None:
            logger.debug(f"Session {session_id} rejected: {code.value}")
            return InvalidSession(code)

        if force_refresh or record.expires_at - now <= self.config.refresh_threshold:
            new_expires_at = now + self.config.expiration_for(record.remember_me)
            try:
                new_token = self._mint(
                    record.session_id,
                    record.user_id,
                    record.username,
                    record.role_name,
                    record.permissions,
                    new_expires_at,
                )
            except TokenMintError as e:
                if force_refresh:
                    raise
                logger.warning(f"Failed to refresh token for session {session_id}: {e}")
            else:
                return self._commit_rotation(session_id, correlation, new_token, new_expires_at, now)

        def touch(current: SessionRecord) -> SessionRecord:
            failure = _check(current, correlation, now)
            if failure is not None:
                raise _Rejected(failure)
            return current.touched(now)

        try:
            updated = self.store.update(session_id, touch)
        except _Rejected as r:
            return InvalidSession(r.code)
        if updated is None:
            return InvalidSession(SessionErrorCode.SESSION_NOT_FOUND)
        return ValidSession(record=updated)

    def _commit_rotation(
        self,
        session_id: str,
        correlation: str,
        new_token: str,
        new_expires_at: datetime,
        now: datetime,
    ) -> ValidationResult:
        """Install a freshly minted token if the presented one is still live.

        The correlation check runs under the store lock, so of two racing
        refreshes from the same token exactly one wins; the other sees a
        stale correlation.
        """
        new_correlation = correlate_token(new_token)

        def rotate(current: SessionRecord) -> SessionRecord:
            failure = _check(current, correlation, now)
            if failure is not None:
                raise _Rejected(failure)
            return current.rotated(new_correlation, new_expires_at, now)

        try:
            updated = self.store.update(session_id, rotate)
        except _Rejected as r:
            logger.debug(f"Refresh of session {session_id} lost: {r.code.value}")
            return InvalidSession(r.code)
        if updated is None:
            return InvalidSession(SessionErrorCode.SESSION_NOT_FOUND)

        self._fire_event(SessionEvent.REFRESHED, updated)
        logger.info(f"Token refreshed for session {session_id} (expires {new_expires_at.isoformat()})")
        return ValidSession(record=updated, new_token=new_token)

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def revoke_by_session_id(self, session_id: str) -> bool:
        """Revoke a session.

        Idempotent: an unknown or already inactive session is not an error.

        Returns:
            True if this call deactivated the session
        """
        record = self.store.get_by_id(session_id)
        if record is None:
            return False

        with self.store.user_guard(record.user_id):
            revoked = self._deactivate(session_id)

        if revoked is None:
            return False
        self._fire_event(SessionEvent.REVOKED, revoked)
        logger.info(f"Session revoked: {session_id}")
        return True

    def revoke_by_token(self, token: str) -> bool:
        """Revoke the session whose live token is ``token``.

        A superseded token matches nothing and revokes nothing.

        Returns:
            True if this call deactivated the session
        """
        if not token:
            return False
        record = self.store.get_by_correlation(correlate_token(token))
        if record is None:
            return False
        return self.revoke_by_session_id(record.session_id)

    def revoke_all_for_user(self, user_id: str, except_session_id: Optional[str] = None) -> RevocationResult:
        """Revoke all sessions for user.

        Args:
            user_id: User ID
            except_session_id: Session ID to keep ("log out everywhere else")

        Returns:
            Requested versus actually revoked counts
        """
        revoked: List[SessionRecord] = []
        with self.store.user_guard(user_id):
            targets = [r for r in self.store.list_by_user(user_id) if r.session_id != except_session_id]
            for record in targets:
                result = self._deactivate(record.session_id)
                if result is not None:
                    revoked.append(result)

        for record in revoked:
            self._fire_event(SessionEvent.REVOKED, record)

        logger.info(f"Revoked {len(revoked)} of {len(targets)} sessions for user {user_id}")
        return RevocationResult(
            requested=len(targets),
            revoked=len(revoked),
            session_ids=frozenset(r.session_id for r in revoked),
        )

    def _deactivate(self, session_id: str) -> Optional[SessionRecord]:
        """Flip a session to inactive.

        Returns:
            The deactivated record, or None if it was absent or already inactive
        """
        flipped: List[SessionRecord] = []

        def deactivate(current: SessionRecord) -> Optional[SessionRecord]:
            if not current.is_active:
                return None
            replacement = current.deactivated()
            flipped.append(replacement)
            return replacement

        self.store.update(session_id, deactivate)
        return flipped[0] if flipped else None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        """Get session by ID without touching it."""
        return self.store.get_by_id(session_id)

    def list_user_sessions(self, user_id: str, current_session_id: Optional[str] = None) -> List[SessionSummary]:
        """Redacted view of a user's usable sessions, newest first.

        Args:
            user_id: User ID
            current_session_id: Caller's own session, flagged ``is_current``
        """
        now = self.clock.now()
        records = [r for r in self.store.list_by_user(user_id) if r.is_usable(now)]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [SessionSummary.from_record(r, current_session_id) for r in records]

    def stats(self) -> SessionStats:
        """Count sessions by status in a single read-only scan."""
        now = self.clock.now()
        counts = {status: 0 for status in SessionStatus}
        records = self.store.records()
        for record in records:
            counts[record.status(now)] += 1

        return SessionStats(
            total_sessions=len(records),
            active_sessions=counts[SessionStatus.ACTIVE],
            expired_sessions=counts[SessionStatus.EXPIRED],
            revoked_sessions=counts[SessionStatus.REVOKED],
        )

    # ------------------------------------------------------------------
    # Reclamation
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Delete every inactive or expired record.

        Returns:
            Number of records removed
        """
        now = self.clock.now()
        removed: List[SessionRecord] = []

        def is_dead(record: SessionRecord) -> bool:
            return not record.is_usable(now)

        def remove(record: SessionRecord) -> None:
            if self.store.delete(record.session_id):
                removed.append(record)

        self.store.for_each(is_dead, remove)

        for record in removed:
            self._fire_event(SessionEvent.SWEPT, record)
        if removed:
            logger.info(f"Swept {len(removed)} dead sessions")
        return len(removed)

    def sweep_user(self, user_id: str) -> int:
        """Delete one user's inactive or expired records.

        Returns:
            Number of records removed
        """
        now = self.clock.now()
        removed = 0
        with self.store.user_guard(user_id):
            for record in self.store.list_by_user(user_id):
                if not record.is_usable(now) and self.store.delete(record.session_id):
                    removed += 1
                    self._fire_event(SessionEvent.SWEPT, record)
        if removed:
            logger.debug(f"Swept {removed} dead sessions for user {user_id}")
        return removed

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: SessionEvent, handler: Callable[[SessionRecord], None]) -> None:
        """Register event handler.

        Args:
            event: Event type
            handler: Handler function
        """
        self._event_handlers[event].append(handler)

    def _fire_event(self, event: SessionEvent, record: SessionRecord) -> None:
        """Fire event to handlers."""
        for handler in self._event_handlers[event]:
            try:
                handler(record)
            except Exception as e:
                logger.error(f"Event handler error for {event.name}: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _generate_session_id(self) -> str:
        while True:
            session_id = secrets.token_hex(32)
            if self.store.get_by_id(session_id) is None:
                return session_id

    def _mint(
        self,
        session_id: str,
        user_id: str,
        username: str,
        role_name: str,
        permissions: Iterable[str],
        expires_at: datetime,
    ) -> str:
        try:
            return self.codec.mint(session_id, user_id, username, role_name, permissions, expires_at)
        except TokenMintError:
            raise
        except Exception as e:
            raise TokenMintError(f"Failed to generate token: {e}") from e


__all__ = [
    "SessionManager",
]
