from datetime import datetime, timedelta, timezone

import pytest

from roadsession_core.clock import ManualClock
from roadsession_core.config import SessionConfig
from roadsession_core.manager import SessionManager
from roadsession_core.models import SessionRecord
from roadsession_core.store import InMemorySessionRecordStore
from roadsession_core.tokens.codec import HMACTokenCodec

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
SECRET = "test-secret-0123456789abcdef"


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def codec(clock):
    return HMACTokenCodec(secret_key=SECRET, issuer="roadsession-test", clock=clock.now)


@pytest.fixture
def store():
    return InMemorySessionRecordStore()


@pytest.fixture
def config():
    return SessionConfig(
        default_expiration=timedelta(minutes=30),
        remember_me_expiration=timedelta(days=7),
        refresh_threshold=timedelta(minutes=5),
        cleanup_interval=timedelta(minutes=10),
        max_concurrent_sessions=5,
    )


@pytest.fixture
def manager(store, codec, config, clock):
    return SessionManager(store=store, codec=codec, config=config, clock=clock)


@pytest.fixture
def make_manager(store, codec, clock):
    def _make(**overrides):
        return SessionManager(
            store=store,
            codec=codec,
            config=SessionConfig(**overrides),
            clock=clock,
        )

    return _make


def make_record(
    session_id,
    user_id="u1",
    correlation=None,
    created_at=START,
    lifetime=timedelta(minutes=30),
    is_active=True,
):
    return SessionRecord(
        session_id=session_id,
        user_id=user_id,
        username=f"user-{user_id}",
        role_name="staff",
        permissions=frozenset({"orders:read"}),
        token_correlation=correlation or f"corr-{session_id}",
        created_at=created_at,
        expires_at=created_at + lifetime,
        last_activity=created_at,
        is_active=is_active,
    )
