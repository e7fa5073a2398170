"""RoadSession Config - Session policy and engine configuration.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".roadsession" / "config.yaml"

DurationLike = Union[timedelta, int, float, str]

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def parse_duration(value: DurationLike) -> timedelta:
    """Parse a duration.

    Accepts a timedelta, a number of seconds, or a Go-style duration
    string such as ``"30m"``, ``"168h"`` or ``"1h30m"``.

    Args:
        value: Duration to parse

    Returns:
        Parsed timedelta

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))

    pos = 0
    total = timedelta(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def format_duration(value: timedelta) -> str:
    """Format a timedelta as a Go-style duration string (millisecond resolution)."""
    millis = round(value / timedelta(milliseconds=1))
    seconds, ms = divmod(millis, 1000)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    if ms or not parts:
        parts.append(f"{ms}ms" if ms else "0s")
    return "".join(parts)


@dataclass(frozen=True)
class SessionConfig:
    """Session policy. Read-only once the manager is built."""

    default_expiration: timedelta = timedelta(minutes=30)
    remember_me_expiration: timedelta = timedelta(days=7)
    refresh_threshold: timedelta = timedelta(minutes=5)
    cleanup_interval: timedelta = timedelta(minutes=10)
    max_concurrent_sessions: int = 5

    def validate(self) -> None:
        """Check the policy is coherent.

        Raises:
            ValueError: If a value is out of range
        """
        for name in ("default_expiration", "remember_me_expiration", "cleanup_interval"):
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"{name} must be positive")
        if self.refresh_threshold < timedelta(0):
            raise ValueError("refresh_threshold must not be negative")
        if self.refresh_threshold >= self.default_expiration:
            raise ValueError("refresh_threshold must be shorter than default_expiration")
        if self.max_concurrent_sessions < 1:
            raise ValueError("max_concurrent_sessions must be at least 1")

    def expiration_for(self, remember_me: bool) -> timedelta:
        """Session lifetime for the given creation flag."""
        return self.remember_me_expiration if remember_me else self.default_expiration

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionConfig:
        """Create from dictionary, ignoring unknown keys."""
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            if f.name == "max_concurrent_sessions":
                kwargs[f.name] = int(data[f.name])
            else:
                kwargs[f.name] = parse_duration(data[f.name])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_expiration": format_duration(self.default_expiration),
            "remember_me_expiration": format_duration(self.remember_me_expiration),
            "refresh_threshold": format_duration(self.refresh_threshold),
            "cleanup_interval": format_duration(self.cleanup_interval),
            "max_concurrent_sessions": self.max_concurrent_sessions,
        }


@dataclass
class EngineConfig:
    """Engine configuration."""

    session: SessionConfig = field(default_factory=SessionConfig)

    # Token settings
    token_secret: str = ""
    token_algorithm: str = "HS256"
    token_issuer: str = "roadsession"

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EngineConfig:
        """Create from dictionary, ignoring unknown keys."""
        kwargs: Dict[str, Any] = {
            k: v for k, v in data.items()
            if k != "session" and k in cls.__dataclass_fields__
        }
        kwargs["session"] = SessionConfig.from_dict(data.get("session") or {})
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Path) -> EngineConfig:
        """Load config from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def to_file(self, path: Path) -> None:
        """Save config to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """Load config from environment variables.

        Unset or unparseable values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        defaults = SessionConfig()

        def duration(key: str, default: timedelta) -> timedelta:
            raw = env.get(key)
            if not raw:
                return default
            try:
                return parse_duration(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid duration {key}={raw!r}")
                return default

        def integer(key: str, default: int) -> int:
            raw = env.get(key)
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid integer {key}={raw!r}")
                return default

        session = SessionConfig(
            default_expiration=duration("SESSION_DEFAULT_EXPIRATION", defaults.default_expiration),
            remember_me_expiration=duration("SESSION_REMEMBER_ME_EXPIRATION", defaults.remember_me_expiration),
            refresh_threshold=duration("JWT_REFRESH_THRESHOLD", defaults.refresh_threshold),
            cleanup_interval=duration("SESSION_CLEANUP_INTERVAL", defaults.cleanup_interval),
            max_concurrent_sessions=integer("SESSION_MAX_CONCURRENT", defaults.max_concurrent_sessions),
        )

        return cls(
            session=session,
            token_secret=env.get("JWT_SECRET", ""),
            token_algorithm=env.get("JWT_ALGORITHM", "HS256"),
            token_issuer=env.get("TOKEN_ISSUER", "roadsession"),
            log_level=env.get("LOG_LEVEL", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "token_secret": self.token_secret,
            "token_algorithm": self.token_algorithm,
            "token_issuer": self.token_issuer,
            "log_level": self.log_level,
        }


__all__ = [
    "SessionConfig",
    "EngineConfig",
    "parse_duration",
    "format_duration",
    "DEFAULT_CONFIG_PATH",
]
