# src/meeting_taskbot/meeting/session_recorder.py

"""
Per-scope meeting recorder.

State machine per scope key: Idle -> Recording -> Idle.

Sessions live only in process memory. Each scope key owns its own lock, so
events from different scopes never wait on each other, while concurrent
appends to the same scope are serialized and never lose entries.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..permissions.permission_models import MEETING_HOST_ROLES, Role
from ..tasks.task_models import Scope

logger = logging.getLogger(__name__)

UNKNOWN_DISPLAY_NAME = "未知用戶"


@dataclass(frozen=True, slots=True)
class SessionEntry:
    user_id: str
    display_name: str
    message: str
    timestamp: float


@dataclass(slots=True)
class MeetingSession:
    scope: Scope
    start_time: float
    entries: list[SessionEntry] = field(default_factory=list)
    is_active: bool = True


class SessionRecorder:
    def __init__(self, host_roles: Iterable[Role] = MEETING_HOST_ROLES) -> None:
        self._host_roles = frozenset(host_roles)
        self._sessions: dict[str, MeetingSession] = {}
        self._locks: dict[str, threading.Lock] = {}
        # Guards only the two dicts above, never held while a session is mutated.
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _get(self, key: str) -> MeetingSession | None:
        with self._registry_lock:
            return self._sessions.get(key)

    def start(self, scope: Scope, acting_role: Role) -> bool:
        """
        Open a recording window. Returns False (and does nothing) for roles that
        may not host meetings. A prior session in the same scope is replaced.
        """
        if acting_role not in self._host_roles:
            logger.debug("Meeting start ignored scope=%s role=%s", scope.key, acting_role)
            return False

        key = scope.key
        with self._lock_for(key):
            session = MeetingSession(scope=scope, start_time=time.time())
            with self._registry_lock:
                replaced = key in self._sessions
                self._sessions[key] = session
        logger.info("Meeting recording started scope=%s replaced=%s", key, replaced)
        return True

    def record(self, scope: Scope, user_id: str, display_name: str | None, message: str) -> bool:
        """Buffer one message if the scope is recording. Never raises."""
        key = scope.key
        try:
            if self._get(key) is None:
                return False
            with self._lock_for(key):
                session = self._get(key)
                if session is None or not session.is_active:
                    return False
                session.entries.append(
                    SessionEntry(
                        user_id=user_id,
                        display_name=display_name or UNKNOWN_DISPLAY_NAME,
                        message=message,
                        timestamp=time.time(),
                    )
                )
                return True
        except Exception:
            logger.exception("Failed to buffer meeting message scope=%s", key)
            return False

    def end(self, scope: Scope) -> list[SessionEntry] | None:
        """
        Close the recording window and return its entries.

        None means there was no active session; an empty list means a session
        was open but nothing was said.
        """
        key = scope.key
        if self._get(key) is None:
            return None
        with self._lock_for(key):
            with self._registry_lock:
                session = self._sessions.pop(key, None)
                # A closed scope keeps no lock; the next start creates a fresh one.
                self._locks.pop(key, None)
            if session is None:
                return None
            session.is_active = False
            entries = list(session.entries)
        logger.info("Meeting recording ended scope=%s entries=%d", key, len(entries))
        return entries

    def is_recording(self, scope: Scope) -> bool:
        session = self._get(scope.key)
        return session is not None and session.is_active

    def entry_count(self, scope: Scope) -> int:
        key = scope.key
        if self._get(key) is None:
            return 0
        with self._lock_for(key):
            session = self._get(key)
            return len(session.entries) if session is not None else 0

    def started_at(self, scope: Scope) -> float | None:
        session = self._get(scope.key)
        return session.start_time if session is not None else None
