"""RoadSession Errors - Session error taxonomy.

Validation failures are reported as typed results carrying a
SessionErrorCode; the exception classes below are raised by operations
that cannot return a result (creation, explicit refresh, revocation) and
by store backends.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class SessionErrorCode(Enum):
    """Machine-readable failure codes."""

    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXPIRED = "session_expired"
    SESSION_REVOKED = "session_revoked"
    TOKEN_MINT_ERROR = "token_mint_error"
    STORAGE_UNAVAILABLE = "storage_unavailable"

    @property
    def http_status(self) -> int:
        """Suggested HTTP status for the calling layer."""
        if self is SessionErrorCode.STORAGE_UNAVAILABLE:
            return 503
        if self is SessionErrorCode.TOKEN_MINT_ERROR:
            return 500
        return 401

    @property
    def message(self) -> str:
        """Human-readable description."""
        return _MESSAGES[self]


_MESSAGES = {
    SessionErrorCode.MISSING_TOKEN: "Token is required",
    SessionErrorCode.INVALID_TOKEN: "Invalid token",
    SessionErrorCode.SESSION_NOT_FOUND: "Session not found",
    SessionErrorCode.SESSION_EXPIRED: "Session has expired",
    SessionErrorCode.SESSION_REVOKED: "Session is not active",
    SessionErrorCode.TOKEN_MINT_ERROR: "Failed to generate token",
    SessionErrorCode.STORAGE_UNAVAILABLE: "Session storage unavailable",
}


class SessionError(Exception):
    """Base session error."""

    code: SessionErrorCode = SessionErrorCode.INVALID_TOKEN

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code.message)


class InvalidTokenError(SessionError):
    """Token is malformed, unverifiable or superseded."""

    code = SessionErrorCode.INVALID_TOKEN


class SessionNotFoundError(SessionError):
    """No record exists for the session."""

    code = SessionErrorCode.SESSION_NOT_FOUND


class SessionExpiredError(SessionError):
    """Session is past its expiry."""

    code = SessionErrorCode.SESSION_EXPIRED


class SessionRevokedError(SessionError):
    """Session has been deactivated."""

    code = SessionErrorCode.SESSION_REVOKED


class TokenMintError(SessionError):
    """Token codec failed to produce a token."""

    code = SessionErrorCode.TOKEN_MINT_ERROR


class StorageUnavailableError(SessionError):
    """Store backend could not complete an operation."""

    code = SessionErrorCode.STORAGE_UNAVAILABLE


_ERRORS_BY_CODE = {
    SessionErrorCode.MISSING_TOKEN: InvalidTokenError,
    SessionErrorCode.INVALID_TOKEN: InvalidTokenError,
    SessionErrorCode.SESSION_NOT_FOUND: SessionNotFoundError,
    SessionErrorCode.SESSION_EXPIRED: SessionExpiredError,
    SessionErrorCode.SESSION_REVOKED: SessionRevokedError,
    SessionErrorCode.TOKEN_MINT_ERROR: TokenMintError,
    SessionErrorCode.STORAGE_UNAVAILABLE: StorageUnavailableError,
}


def error_for(code: SessionErrorCode) -> SessionError:
    """Build the exception matching a failure code."""
    return _ERRORS_BY_CODE[code](code.message)


__all__ = [
    "error_for",
    "SessionErrorCode",
    "SessionError",
    "InvalidTokenError",
    "SessionNotFoundError",
    "SessionExpiredError",
    "SessionRevokedError",
    "TokenMintError",
    "StorageUnavailableError",
]
