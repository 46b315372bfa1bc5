"""In-memory registry of live interview sessions, keyed by call id.

One SessionStore is built at app startup and drained at shutdown. Entries
exist only between "call placed" and "call terminal"; every termination
path in the flow controller removes its entry.

Removed sessions are kept read-only in a small bounded tail so a
transcript that lands after hangup can be checked against the questions
actually asked on that call. A retired session is never live again.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator

from interviewer.models.session import SessionState

log = logging.getLogger("interviewer.session_store")


class _CallLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class SessionStore:
    """Call id → SessionState, with one asyncio.Lock per call.

    Usage::

        store = SessionStore()
        async with store.locked(call_sid):
            session = store.get(call_sid) or store.create(call_sid, interview_id)
            ...  # mutate session; no other handler for call_sid runs meanwhile
    """

    def __init__(self, retired_limit: int = 256) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._locks: dict[str, _CallLock] = {}
        self._retired: OrderedDict[str, SessionState] = OrderedDict()
        self._retired_limit = retired_limit

    def get(self, call_id: str) -> SessionState | None:
        """Look up a live session by call id."""
        return self._sessions.get(call_id)

    def retired(self, call_id: str) -> SessionState | None:
        """Look up a recently removed session by call id."""
        return self._retired.get(call_id)

    def create(self, call_id: str, interview_id: str, topic: str = "") -> SessionState:
        """Create a session, or return the existing one for this call.

        Out-of-order callbacks can race the start request to create the same
        session; the second attempt is a no-op.
        """
        existing = self._sessions.get(call_id)
        if existing is not None:
            if existing.interview_id != interview_id:
                log.warning(
                    "Session %s already bound to interview %s (ignoring %s)",
                    call_id, existing.interview_id, interview_id,
                )
            return existing

        session = SessionState(call_id=call_id, interview_id=interview_id, topic=topic)
        self._sessions[call_id] = session
        self._retired.pop(call_id, None)
        log.info("Session created: %s (interview %s, total: %d)",
                 call_id, interview_id, len(self._sessions))
        return session

    def remove(self, call_id: str) -> SessionState | None:
        """Evict a session. Safe to call for unknown call ids."""
        session = self._sessions.pop(call_id, None)
        if session is not None:
            log.info("Session removed: %s (total: %d)", call_id, len(self._sessions))
            self._retired[call_id] = session
            self._retired.move_to_end(call_id)
            while len(self._retired) > self._retired_limit:
                self._retired.popitem(last=False)
        entry = self._locks.get(call_id)
        if entry is not None and entry.users == 0:
            del self._locks[call_id]
        return session

    @asynccontextmanager
    async def locked(self, call_id: str) -> AsyncIterator[None]:
        """Serialize webhook handling for one call.

        Different calls never contend. The lock entry is dropped once nobody
        holds or waits on it and the call has no session.
        """
        entry = self._locks.get(call_id)
        if entry is None:
            entry = self._locks[call_id] = _CallLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and call_id not in self._sessions:
                self._locks.pop(call_id, None)

    def call_ids(self) -> list[str]:
        return list(self._sessions)

    def drain(self) -> int:
        """Drop every session (process shutdown). Returns how many were dropped."""
        count = len(self._sessions)
        if count:
            log.warning("Draining %d live session(s): %s", count, ", ".join(self._sessions))
        self._sessions.clear()
        self._locks.clear()
        self._retired.clear()
        return count

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._sessions
