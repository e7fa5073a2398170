"""RoadSession Models - Session data model.

Provides the records and result types exchanged with the session core:
- SessionRecord: one per login, immutable snapshot
- SessionSummary: redacted per-session view for self-service listing
- SessionStats: on-demand aggregate over the store
- ValidSession / InvalidSession: validation outcome
- RevocationResult: bulk revocation report

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from roadsession_core.errors import SessionErrorCode, error_for


class SessionStatus(Enum):
    """Derived session status."""

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class SessionEvent(Enum):
    """Session lifecycle events."""

    CREATED = auto()
    REFRESHED = auto()
    REVOKED = auto()
    EVICTED = auto()
    SWEPT = auto()


@dataclass(frozen=True)
class SessionRecord:
    """Stored session.

    The authorization context (user, role, permissions) is a snapshot taken
    at creation; it is not re-read on validation. Only a one-way correlation
    value of the live token is kept, never the token itself.
    """

    session_id: str
    user_id: str
    username: str
    role_name: str
    permissions: FrozenSet[str]
    token_correlation: str

    # Timestamps (aware UTC)
    created_at: datetime
    expires_at: datetime
    last_activity: datetime

    is_active: bool = True
    remember_me: bool = False

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions))

    @classmethod
    def create(
        cls,
        session_id: str,
        user_id: str,
        username: str,
        role_name: str,
        permissions: Iterable[str],
        token_correlation: str,
        now: datetime,
        expires_at: datetime,
        remember_me: bool = False,
    ) -> SessionRecord:
        """Create a new active record stamped at ``now``."""
        return cls(
            session_id=session_id,
            user_id=user_id,
            username=username,
            role_name=role_name,
            permissions=frozenset(permissions),
            token_correlation=token_correlation,
            created_at=now,
            expires_at=expires_at,
            last_activity=now,
            is_active=True,
            remember_me=remember_me,
        )

    def is_expired(self, now: datetime) -> bool:
        """Check if the record is at or past its expiry."""
        return now >= self.expires_at

    def is_usable(self, now: datetime) -> bool:
        """Check if the record is active and not expired."""
        return self.is_active and not self.is_expired(now)

    def status(self, now: datetime) -> SessionStatus:
        """Get derived status; expiry wins over revocation."""
        if self.is_expired(now):
            return SessionStatus.EXPIRED
        if not self.is_active:
            return SessionStatus.REVOKED
        return SessionStatus.ACTIVE

    def touched(self, now: datetime) -> SessionRecord:
        """Copy with last_activity moved forward to ``now``."""
        if now <= self.last_activity:
            return self
        return replace(self, last_activity=now)

    def deactivated(self) -> SessionRecord:
        """Copy marked inactive."""
        return replace(self, is_active=False)

    def rotated(self, token_correlation: str, expires_at: datetime, now: datetime) -> SessionRecord:
        """Copy carrying a new token correlation and expiry."""
        return replace(
            self,
            token_correlation=token_correlation,
            expires_at=expires_at,
            last_activity=max(now, self.last_activity),
        )

    def to_dict(self, include_correlation: bool = False) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "username": self.username,
            "role_name": self.role_name,
            "permissions": sorted(self.permissions),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "is_active": self.is_active,
            "remember_me": self.remember_me,
        }
        if include_correlation:
            data["token_correlation"] = self.token_correlation
        return data


@dataclass(frozen=True)
class SessionSummary:
    """Redacted session view: no token correlation, no permissions."""

    session_id: str
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_active: bool
    is_current: bool

    @classmethod
    def from_record(cls, record: SessionRecord, current_session_id: Optional[str] = None) -> SessionSummary:
        return cls(
            session_id=record.session_id,
            created_at=record.created_at,
            last_activity=record.last_activity,
            expires_at=record.expires_at,
            is_active=record.is_active,
            is_current=current_session_id is not None and record.session_id == current_session_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "is_active": self.is_active,
            "is_current": self.is_current,
        }


@dataclass(frozen=True)
class SessionStats:
    """Aggregate counts computed from one scan of the store."""

    total_sessions: int = 0
    active_sessions: int = 0
    expired_sessions: int = 0
    revoked_sessions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_sessions": self.total_sessions,
            "active_sessions": self.active_sessions,
            "expired_sessions": self.expired_sessions,
            "revoked_sessions": self.revoked_sessions,
        }


@dataclass(frozen=True)
class ValidSession:
    """Successful validation.

    ``new_token`` is set exactly when ``should_refresh`` is true; the caller
    must hand it to the client, since the presented token is now stale.
    """

    record: SessionRecord
    new_token: Optional[str] = None

    is_valid = True
    error_code = None

    @property
    def should_refresh(self) -> bool:
        return self.new_token is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "is_valid": True,
            "session": self.record.to_dict(),
            "should_refresh": self.should_refresh,
        }
        if self.new_token is not None:
            data["new_token"] = self.new_token
        return data


@dataclass(frozen=True)
class InvalidSession:
    """Failed validation. No record state was changed."""

    code: SessionErrorCode

    is_valid = False
    record = None
    new_token = None
    should_refresh = False

    @property
    def error_code(self) -> SessionErrorCode:
        return self.code

    @property
    def error_message(self) -> str:
        return self.code.message

    def raise_error(self) -> None:
        """Raise the exception matching the failure code."""
        raise error_for(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": False,
            "should_refresh": False,
            "error_code": self.code.value,
            "error_message": self.error_message,
        }


ValidationResult = Union[ValidSession, InvalidSession]


@dataclass(frozen=True)
class RevocationResult:
    """Outcome of a bulk revocation."""

    requested: int = 0
    revoked: int = 0
    session_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def already_inactive(self) -> int:
        return self.requested - self.revoked


__all__ = [
    "SessionStatus",
    "SessionEvent",
    "SessionRecord",
    "SessionSummary",
    "SessionStats",
    "ValidSession",
    "InvalidSession",
    "ValidationResult",
    "RevocationResult",
]
