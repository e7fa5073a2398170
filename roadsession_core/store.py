"""RoadSession Store - Session record storage.

Provides the storage contract used by the session manager and an
in-memory implementation. A store owns no policy: it keeps records and
their indices (by session id, by token correlation, by user) consistent
with each other under concurrent access.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from roadsession_core.models import SessionRecord

logger = logging.getLogger(__name__)

RecordPredicate = Callable[[SessionRecord], bool]
RecordAction = Callable[[SessionRecord], Any]
RecordMutation = Callable[[SessionRecord], Optional[SessionRecord]]


class SessionRecordStore(ABC):
    """Abstract session record store.

    Backends that perform I/O must raise StorageUnavailableError when an
    operation cannot complete, and must bound their I/O with a timeout.
    """

    @abstractmethod
    def put(self, record: SessionRecord) -> None:
        """Insert or replace a record, updating every index."""
        pass

    @abstractmethod
    def get_by_id(self, session_id: str) -> Optional[SessionRecord]:
        """Get record by session ID."""
        pass

    @abstractmethod
    def get_by_correlation(self, token_correlation: str) -> Optional[SessionRecord]:
        """Get record by token correlation value."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> List[SessionRecord]:
        """Get all records for a user, oldest inserted first."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a record from every index."""
        pass

    @abstractmethod
    def update(self, session_id: str, mutate: RecordMutation) -> Optional[SessionRecord]:
        """Atomically replace a record.

        ``mutate`` receives the current record and returns its replacement,
        or None to leave it unchanged. It may raise to abort; the exception
        propagates and nothing is written.

        Returns:
            The record as stored after the call, or None if absent
        """
        pass

    @abstractmethod
    def records(self) -> List[SessionRecord]:
        """Consistent snapshot of every record."""
        pass

    @abstractmethod
    def user_guard(self, user_id: str) -> Any:
        """Context manager serializing multi-step changes for one user."""
        pass

    def for_each(self, predicate: RecordPredicate, action: RecordAction) -> int:
        """Run ``action`` on every record matching ``predicate``.

        Matching happens on a snapshot; the store is not locked while
        actions run, so an action may call back into the store.

        Returns:
            Number of actions run
        """
        count = 0
        for record in self.records():
            if predicate(record):
                action(record)
                count += 1
        return count

    def stats(self) -> Dict[str, Any]:
        """Storage statistics."""
        records = self.records()
        return {
            "total_sessions": len(records),
            "unique_users": len({r.user_id for r in records}),
            "storage_type": type(self).__name__,
        }


class InMemorySessionRecordStore(SessionRecordStore):
    """In-memory store guarded by a single re-entrant lock.

    Records are frozen, so they are handed out without copying.
    """

    def __init__(self):
        """Initialize store."""
        self._sessions: Dict[str, SessionRecord] = {}
        self._token_index: Dict[str, str] = {}
        self._user_sessions: Dict[str, Dict[str, None]] = {}
        self._lock = threading.RLock()

        self._user_locks: Dict[str, threading.RLock] = {}
        self._user_lock_refs: Dict[str, int] = {}
        self._user_locks_guard = threading.Lock()

    def put(self, record: SessionRecord) -> None:
        """Insert or replace a record."""
        with self._lock:
            existing = self._sessions.get(record.session_id)
            if existing is not None:
                if existing.user_id != record.user_id:
                    raise ValueError(f"Session {record.session_id} belongs to another user")
                self._unindex_token(existing)

            self._sessions[record.session_id] = record
            self._token_index[record.token_correlation] = record.session_id
            self._user_sessions.setdefault(record.user_id, {})[record.session_id] = None

    def get_by_id(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_by_correlation(self, token_correlation: str) -> Optional[SessionRecord]:
        with self._lock:
            session_id = self._token_index.get(token_correlation)
            if session_id is None:
                return None
            return self._sessions.get(session_id)

    def list_by_user(self, user_id: str) -> List[SessionRecord]:
        with self._lock:
            session_ids = self._user_sessions.get(user_id, {})
            return [self._sessions[sid] for sid in session_ids if sid in self._sessions]

    def delete(self, session_id: str) -> bool:
        with self._lock:
            record = self._sessions.pop(session_id, None)
            if record is None:
                return False
            self._unindex_token(record)
            self._remove_user_mapping(session_id, record.user_id)
            return True

    def update(self, session_id: str, mutate: RecordMutation) -> Optional[SessionRecord]:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return None

            replacement = mutate(current)
            if replacement is None or replacement is current:
                return current
            if replacement.session_id != session_id or replacement.user_id != current.user_id:
                raise ValueError("update must not change session_id or user_id")

            self._unindex_token(current)
            self._sessions[session_id] = replacement
            self._token_index[replacement.token_correlation] = session_id
            return replacement

    def records(self) -> List[SessionRecord]:
        with self._lock:
            return list(self._sessions.values())

    @contextmanager
    def user_guard(self, user_id: str) -> Iterator[None]:
        """Hold the per-user lock.

        Lock order is user guard first, store lock second; the store lock
        is never held while waiting for a user guard.
        """
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = self._user_locks[user_id] = threading.RLock()
            self._user_lock_refs[user_id] = self._user_lock_refs.get(user_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._user_locks_guard:
                refs = self._user_lock_refs[user_id] - 1
                if refs:
                    self._user_lock_refs[user_id] = refs
                else:
                    del self._user_lock_refs[user_id]
                    del self._user_locks[user_id]

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_sessions": len(self._sessions),
                "unique_users": len(self._user_sessions),
                "token_index_entries": len(self._token_index),
                "storage_type": "memory",
            }

    def check_integrity(self) -> List[str]:
        """List index inconsistencies; empty when healthy."""
        issues: List[str] = []
        with self._lock:
            for token_correlation, session_id in self._token_index.items():
                record = self._sessions.get(session_id)
                if record is None:
                    issues.append(f"Token index references non-existent session: {session_id}")
                elif record.token_correlation != token_correlation:
                    issues.append(f"Token index mismatch for session {session_id}")

            for user_id, session_ids in self._user_sessions.items():
                for session_id in session_ids:
                    record = self._sessions.get(session_id)
                    if record is None:
                        issues.append(
                            f"User index references non-existent session: {session_id} for user {user_id}"
                        )
                    elif record.user_id != user_id:
                        issues.append(f"User index mismatch for session {session_id}")

            for session_id, record in self._sessions.items():
                if self._token_index.get(record.token_correlation) != session_id:
                    issues.append(f"Session {session_id} not properly indexed by token")
                if session_id not in self._user_sessions.get(record.user_id, {}):
                    issues.append(f"Session {session_id} not found in user index for user {record.user_id}")
        return issues

    def _unindex_token(self, record: SessionRecord) -> None:
        if self._token_index.get(record.token_correlation) == record.session_id:
            del self._token_index[record.token_correlation]

    def _remove_user_mapping(self, session_id: str, user_id: str) -> None:
        """Remove session from user mapping."""
        sids = self._user_sessions.get(user_id)
        if sids is None:
            return
        sids.pop(session_id, None)
        if not sids:
            del self._user_sessions[user_id]

    @property
    def count(self) -> int:
        """Get total record count."""
        with self._lock:
            return len(self._sessions)


__all__ = [
    "SessionRecordStore",
    "InMemorySessionRecordStore",
]
