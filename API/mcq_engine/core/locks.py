"""
Per-key mutual exclusion for oracle threads and cancellation flags for batch sessions.

Both registries are plain objects owned by the service container and passed to the
components that need them.
"""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ThreadLockRegistry:
    """At most one holder per thread id; distinct ids never block each other."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def acquire(self, thread_id: str) -> None:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        self._users[thread_id] = self._users.get(thread_id, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(thread_id)
            raise

    def release(self, thread_id: str) -> None:
        lock = self._locks.get(thread_id)
        if lock is None or not lock.locked():
            raise RuntimeError(f"thread {thread_id} is not locked")
        lock.release()
        self._forget(thread_id)

    def _forget(self, thread_id: str) -> None:
        remaining = self._users.get(thread_id, 1) - 1
        if remaining <= 0:
            self._users.pop(thread_id, None)
            self._locks.pop(thread_id, None)
        else:
            self._users[thread_id] = remaining

    def is_locked(self, thread_id: str) -> bool:
        lock = self._locks.get(thread_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, thread_id: str):
        await self.acquire(thread_id)
        try:
            yield
        finally:
            self.release(thread_id)


@dataclass
class BatchSession:
    session_id: str
    kind: str
    category: str | None = None
    cancelled: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "kind": self.kind,
            "category": self.category,
            "cancelled": self.cancelled,
            "started_at": self.started_at,
        }


class SessionRegistry:
    def __init__(self):
        self._sessions: dict[str, BatchSession] = {}

    def start(self, kind: str, *, session_id: str | None = None, category: str | None = None) -> BatchSession:
        session = BatchSession(session_id=session_id or uuid.uuid4().hex, kind=kind, category=category)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> BatchSession | None:
        return self._sessions.get(session_id)

    def cancel(self, session_id: str, kind: str | None = None) -> bool:
        session = self._sessions.get(session_id)
        if session is None or (kind is not None and session.kind != kind):
            return False
        session.cancelled = True
        return True

    def cancel_matching(self, kind: str, category: str | None = None) -> list[str]:
        cancelled = []
        for session in self._sessions.values():
            if session.kind == kind and (category is None or session.category == category):
                session.cancelled = True
                cancelled.append(session.session_id)
        return cancelled

    def is_cancelled(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return bool(session and session.cancelled)

    def finish(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def active(self) -> list[BatchSession]:
        return list(self._sessions.values())
