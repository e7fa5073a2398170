"""RoadSession Token Codec - Bearer token minting and parsing.

The session core treats the codec as a black box: mint a token for a
session, recover the session ID from a token. HMACTokenCodec is a compact
JWT-shaped reference implementation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from roadsession_core.errors import InvalidTokenError, TokenMintError

# Configure logging
logger = logging.getLogger(__name__)


def correlate_token(token: str) -> str:
    """One-way correlation value stored in place of the raw token."""
    return hashlib.sha256(token.encode("utf-8", errors="surrogatepass")).hexdigest()


class TokenCodec(ABC):
    """Token codec interface."""

    @abstractmethod
    def mint(
        self,
        session_id: str,
        user_id: str,
        username: str,
        role_name: str,
        permissions: Iterable[str],
        expires_at: datetime,
    ) -> str:
        """Produce a bearer token.

        Raises:
            TokenMintError: If the token cannot be produced
        """
        pass

    @abstractmethod
    def parse(self, token: str) -> str:
        """Recover the session ID carried by a token.

        Raises:
            InvalidTokenError: If the token is malformed or unverifiable
        """
        pass


class TokenAlgorithm(Enum):
    """Supported HMAC algorithms."""

    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"


_DIGESTS: Dict[TokenAlgorithm, Callable[..., Any]] = {
    TokenAlgorithm.HS256: hashlib.sha256,
    TokenAlgorithm.HS384: hashlib.sha384,
    TokenAlgorithm.HS512: hashlib.sha512,
}


class HMACTokenCodec(TokenCodec):
    """HMAC-signed ``header.payload.signature`` tokens.

    ``parse`` verifies structure and signature but not ``exp``: the session
    record owns expiry, so an expired session surfaces as SESSION_EXPIRED
    rather than as an unreadable token.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: TokenAlgorithm = TokenAlgorithm.HS256,
        issuer: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize codec.

        Args:
            secret_key: Signing secret
            algorithm: HMAC algorithm
            issuer: Value for the ``iss`` claim
            clock: Callable returning the current time, for ``iat``
        """
        if not secret_key:
            raise ValueError("secret_key is required")
        if isinstance(algorithm, str):
            algorithm = TokenAlgorithm(algorithm)
        self._secret = secret_key.encode("utf-8")
        self.algorithm = algorithm
        self.issuer = issuer
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def mint(
        self,
        session_id: str,
        user_id: str,
        username: str,
        role_name: str,
        permissions: Iterable[str],
        expires_at: datetime,
    ) -> str:
        if not session_id:
            raise TokenMintError("session_id is required")

        claims: Dict[str, Any] = {
            "sid": session_id,
            "sub": user_id,
            "username": username,
            "role": role_name,
            "permissions": sorted(permissions),
            "exp": int(expires_at.timestamp()),
            "iat": int(self._clock().timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        if self.issuer:
            claims["iss"] = self.issuer

        header = {"alg": self.algorithm.value, "typ": "JWT"}
        try:
            header_b64 = self._b64encode(json.dumps(header, separators=(",", ":")).encode())
            payload_b64 = self._b64encode(json.dumps(claims, separators=(",", ":")).encode())
        except (TypeError, ValueError) as e:
            raise TokenMintError(f"Cannot encode claims: {e}") from e

        message = f"{header_b64}.{payload_b64}".encode()
        signature_b64 = self._b64encode(self._sign(message))
        return f"{header_b64}.{payload_b64}.{signature_b64}"

    def parse(self, token: str) -> str:
        claims = self.decode(token)
        session_id = claims.get("sid")
        if not isinstance(session_id, str) or not session_id:
            raise InvalidTokenError("Token carries no session")
        return session_id

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify a token and return its claims.

        Raises:
            InvalidTokenError: If the token is malformed or unverifiable
        """
        if not token:
            raise InvalidTokenError("Empty token")

        try:
            parts = token.split(".")
            if len(parts) != 3:
                raise InvalidTokenError("Invalid token format")
            header_b64, payload_b64, signature_b64 = parts

            # Verify signature before parsing anything
            signature = self._b64decode(signature_b64)
            expected = self._sign(f"{header_b64}.{payload_b64}".encode("ascii"))
            if not hmac.compare_digest(signature, expected):
                raise InvalidTokenError("Invalid signature")

            header = json.loads(self._b64decode(header_b64))
            if not isinstance(header, dict) or header.get("alg") != self.algorithm.value:
                raise InvalidTokenError("Unexpected signing algorithm")

            claims = json.loads(self._b64decode(payload_b64))
            if not isinstance(claims, dict):
                raise InvalidTokenError("Invalid claims")
        except InvalidTokenError:
            raise
        except Exception as e:
            raise InvalidTokenError(f"Decode error: {e}") from e

        if self.issuer and claims.get("iss") != self.issuer:
            raise InvalidTokenError("Invalid issuer")
        return claims

    def _sign(self, message: bytes) -> bytes:
        return hmac.new(self._secret, message, _DIGESTS[self.algorithm]).digest()

    @staticmethod
    def _b64encode(data: bytes) -> str:
        """Base64URL encode bytes."""
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

    @staticmethod
    def _b64decode(data: str) -> bytes:
        """Base64URL decode to bytes."""
        # Add padding
        padding = 4 - len(data) % 4
        if padding != 4:
            data += "=" * padding
        return base64.urlsafe_b64decode(data.encode("ascii"))


__all__ = [
    "TokenCodec",
    "TokenAlgorithm",
    "HMACTokenCodec",
    "correlate_token",
]
