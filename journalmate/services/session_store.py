"""
Session store for planning conversations.

Owns the lifecycle of PlanningSession records:
- at most one live session per (user, mode); completed and abandoned
  sessions are never resumed
- lazy staleness: a live session idle longer than the TTL is marked
  abandoned the next time it is touched
- every state change is checked against ALLOWED_TRANSITIONS
- turns for the same (user, mode) are serialized with an in-process lock
  (dropped once idle),
  plus a Redis lock when Redis is reachable so several API workers agree

References:
    - journalmate/modules/planning_state.py (states and transitions)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from journalmate.config.planner import PlanningMode
from journalmate.lib.exceptions import SessionNotFound, StateError
from journalmate.modules.planning_state import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    PlanningSession,
    PlanningState,
    Turn,
    utcnow,
)
from journalmate.services.planner_storage import PlannerStorage
from journalmate.services.redis_service import RedisService

logger = logging.getLogger(__name__)


def validate_transition(current: PlanningState, new_state: PlanningState) -> None:
    """
    Raises:
        StateError: when new_state is not reachable from current
    """
    if new_state not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise StateError(f"Illegal transition {current.value} -> {new_state.value}")


def advance(session: PlanningSession, new_state: PlanningState) -> PlanningSession:
    """Move an in-memory session to new_state, clearing the plan outside plan states."""
    validate_transition(session.state, new_state)
    session.state = new_state
    if new_state in (PlanningState.COLLECTING, PlanningState.READY_TO_GENERATE, PlanningState.ABANDONED):
        session.pending_plan = None
    return session


class LockRegistry:
    """
    In-process locks keyed by (user, mode), shared by every store of the app.

    An entry lives only while some turn holds or waits for it, so the
    registry does not grow with the number of users seen.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __contains__(self, key: object) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)


class SessionStore:
    """
    Storage-backed session lifecycle with per-(user, mode) locking.

    Args:
        storage: Persistent storage collaborator
        redis_service: Optional Redis backend for cross-process locks
        ttl_seconds: Idle time after which a live session is abandoned
        lock_timeout: Seconds to wait for the Redis lock before giving up
        clock: Current time source (UTC)
        locks: In-process lock registry shared by every store of the app
    """

    DEFAULT_TTL = 24 * 3600
    LOCK_POLL_INTERVAL = 0.05

    def __init__(
        self,
        storage: PlannerStorage,
        redis_service: RedisService | None = None,
        ttl_seconds: int = DEFAULT_TTL,
        lock_timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
        locks: LockRegistry | None = None,
    ) -> None:
        self._storage = storage
        self._redis = redis_service
        self._ttl = timedelta(seconds=ttl_seconds)
        self._lock_timeout = lock_timeout
        self._clock = clock
        self._locks = locks if locks is not None else LockRegistry()

    @property
    def storage(self) -> PlannerStorage:
        return self._storage

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def get_or_create(self, user_id: str, mode: PlanningMode) -> PlanningSession:
        """Return the live session for (user, mode), creating a fresh one if none is live."""
        mode = PlanningMode(mode)
        live = await self._storage.find_live_session(user_id, mode)
        if live is not None and self._is_stale(live):
            await self._abandon(live)
            live = None
        if live is not None:
            return live

        now = self._clock()
        session = PlanningSession(user_id=user_id, mode=mode, created_at=now, last_activity_at=now)
        await self._storage.save_session(session)
        await self._storage.commit()
        logger.info("Planning session %s created for user %s (%s)", session.session_id, user_id, mode.value)
        return session

    async def get(self, session_id: str) -> PlanningSession:
        """
        Load a live session.

        Raises:
            SessionNotFound: missing, completed, abandoned, or stale (abandoned now)
        """
        session = await self._storage.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if session.state in TERMINAL_STATES:
            raise SessionNotFound(session_id, reason=session.state.value)
        if self._is_stale(session):
            await self._abandon(session)
            raise SessionNotFound(session_id, reason=PlanningState.ABANDONED.value)
        return session

    async def load(self, session_id: str) -> PlanningSession | None:
        """Load a session in any state (for inspection and confirmation replays)."""
        return await self._storage.get_session(session_id)

    async def append(self, session_id: str, turn: Turn) -> PlanningSession:
        """Append a turn to a live session's transcript."""
        session = await self.get(session_id)
        self.append_turn(session, turn)
        await self.save(session)
        return session

    def append_turn(self, session: PlanningSession, turn: Turn) -> None:
        """In-memory append; the caller saves."""
        session.transcript.append(turn)
        session.last_activity_at = self._clock()

    async def transition(self, session_id: str, new_state: PlanningState) -> PlanningSession:
        """
        Move a live session to a new state.

        Raises:
            SessionNotFound: session is not live
            StateError: transition not allowed
        """
        session = await self.get(session_id)
        advance(session, new_state)
        await self.save(session)
        return session

    async def save(self, session: PlanningSession) -> None:
        await self._storage.save_session(session)
        await self._storage.commit()

    def _is_stale(self, session: PlanningSession) -> bool:
        if session.state in TERMINAL_STATES:
            return False
        return self._clock() - session.last_activity_at > self._ttl

    async def _abandon(self, session: PlanningSession) -> None:
        session.state = PlanningState.ABANDONED
        session.pending_plan = None
        await self.save(session)
        logger.info("Planning session %s abandoned after inactivity", session.session_id)

    # =========================================================================
    # Locking
    # =========================================================================

    @asynccontextmanager
    async def lock(self, user_id: str, mode: PlanningMode | str) -> AsyncIterator[None]:
        """
        Serialize turns for one (user, mode).

        The in-process lock is always taken. The Redis lock is best effort:
        when Redis is unreachable only the local lock applies.

        Raises:
            StateError: when the Redis lock is still held after lock_timeout
        """
        key = f"planner:lock:{user_id}:{PlanningMode(mode).value}"
        async with self._locks.hold(key):
            token = await self._acquire_distributed(key)
            try:
                yield
            finally:
                if token is not None and self._redis is not None:
                    await self._redis.release_lock(key, token)

    async def _acquire_distributed(self, key: str) -> str | None:
        if self._redis is None:
            return None
        token = uuid.uuid4().hex
        ttl_ms = int(self._lock_timeout * 1000)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._lock_timeout
        while True:
            acquired = await self._redis.acquire_lock(key, token, ttl_ms)
            if acquired is None:
                return None
            if acquired:
                return token
            if loop.time() >= deadline:
                raise StateError(f"Planning session for {key} is busy")
            await asyncio.sleep(self.LOCK_POLL_INTERVAL)


__all__ = ["LockRegistry", "SessionStore", "advance", "validate_transition"]
