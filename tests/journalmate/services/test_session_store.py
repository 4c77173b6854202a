"""
Tests for the planning session store (journalmate/services/session_store.py).

Tests cover:
- One live session per (user, mode)
- Lazy staleness marks idle sessions abandoned
- Terminal sessions are never returned as live
- Transitions are validated
- Local and Redis locking
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from journalmate.config.planner import PlanningMode
from journalmate.lib.exceptions import SessionNotFound, StateError
from journalmate.modules.planning_state import PlanningState, Speaker, Turn
from journalmate.services.session_store import LockRegistry, SessionStore

# =============================================================================
# Helpers
# =============================================================================


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(storage, clock) -> SessionStore:
    return SessionStore(storage, ttl_seconds=3600, clock=clock)


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_get_or_create_reuses_live_session(self, store: SessionStore) -> None:
        first = await store.get_or_create("u1", PlanningMode.QUICK)
        second = await store.get_or_create("u1", PlanningMode.QUICK)
        assert first.session_id == second.session_id
        assert first.state == PlanningState.COLLECTING

    @pytest.mark.asyncio
    async def test_separate_sessions_per_mode_and_user(self, store: SessionStore) -> None:
        quick = await store.get_or_create("u1", PlanningMode.QUICK)
        smart = await store.get_or_create("u1", "smart")
        other = await store.get_or_create("u2", PlanningMode.QUICK)
        assert len({quick.session_id, smart.session_id, other.session_id}) == 3

    @pytest.mark.asyncio
    async def test_stale_session_is_replaced(self, store: SessionStore, clock: FakeClock) -> None:
        first = await store.get_or_create("u1", PlanningMode.QUICK)
        clock.advance(hours=2)
        second = await store.get_or_create("u1", PlanningMode.QUICK)

        assert second.session_id != first.session_id
        abandoned = await store.load(first.session_id)
        assert abandoned.state == PlanningState.ABANDONED

    @pytest.mark.asyncio
    async def test_get_stale_raises(self, store: SessionStore, clock: FakeClock) -> None:
        session = await store.get_or_create("u1", PlanningMode.QUICK)
        clock.advance(hours=1, seconds=1)
        with pytest.raises(SessionNotFound) as exc_info:
            await store.get(session.session_id)
        assert exc_info.value.reason == "abandoned"

    @pytest.mark.asyncio
    async def test_activity_keeps_session_fresh(self, store: SessionStore, clock: FakeClock) -> None:
        session = await store.get_or_create("u1", PlanningMode.QUICK)
        clock.advance(minutes=50)
        await store.append(session.session_id, Turn(speaker=Speaker.USER, text="hi"))
        clock.advance(minutes=50)
        loaded = await store.get(session.session_id)
        assert [turn.text for turn in loaded.transcript] == ["hi"]

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store: SessionStore) -> None:
        with pytest.raises(SessionNotFound) as exc_info:
            await store.get("missing")
        assert exc_info.value.reason == "missing"

    @pytest.mark.asyncio
    async def test_completed_session_is_not_live(self, store: SessionStore, storage) -> None:
        session = await store.get_or_create("u1", PlanningMode.QUICK)
        session.state = PlanningState.COMPLETED
        await store.save(session)

        with pytest.raises(SessionNotFound) as exc_info:
            await store.get(session.session_id)
        assert exc_info.value.reason == "completed"
        fresh = await store.get_or_create("u1", PlanningMode.QUICK)
        assert fresh.session_id != session.session_id


# =============================================================================
# Transitions
# =============================================================================


class TestTransition:

    @pytest.mark.asyncio
    async def test_valid_transition_is_saved(self, store: SessionStore) -> None:
        session = await store.get_or_create("u1", PlanningMode.QUICK)
        await store.transition(session.session_id, PlanningState.READY_TO_GENERATE)
        loaded = await store.load(session.session_id)
        assert loaded.state == PlanningState.READY_TO_GENERATE

    @pytest.mark.asyncio
    async def test_invalid_transition_raises(self, store: SessionStore) -> None:
        session = await store.get_or_create("u1", PlanningMode.QUICK)
        with pytest.raises(StateError):
            await store.transition(session.session_id, PlanningState.COMPLETED)
        loaded = await store.load(session.session_id)
        assert loaded.state == PlanningState.COLLECTING


# =============================================================================
# Locking
# =============================================================================


class TestLocking:

    @pytest.mark.asyncio
    async def test_local_lock_serializes_turns(self, storage) -> None:
        store = SessionStore(storage)
        order: list[str] = []

        async def turn(name: str) -> None:
            async with store.lock("u1", PlanningMode.QUICK):
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                order.append(f"{name}:end")

        await asyncio.gather(turn("a"), turn("b"))
        assert order == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_shared_lock_registry(self, storage) -> None:
        locks = LockRegistry()
        first = SessionStore(storage, locks=locks)
        second = SessionStore(storage, locks=locks)
        order: list[str] = []

        async def turn(store: SessionStore, name: str) -> None:
            async with store.lock("u1", PlanningMode.QUICK):
                assert locks.is_locked("planner:lock:u1:quick")
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                order.append(f"{name}:end")

        await asyncio.gather(turn(first, "a"), turn(second, "b"))
        assert order == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_idle_locks_are_dropped(self, storage) -> None:
        locks = LockRegistry()
        store = SessionStore(storage, locks=locks)
        for user_id in ("u1", "u2", "u3"):
            async with store.lock(user_id, PlanningMode.QUICK):
                assert f"planner:lock:{user_id}:quick" in locks
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_kept_while_a_turn_waits(self, storage) -> None:
        locks = LockRegistry()
        store = SessionStore(storage, locks=locks)
        release = asyncio.Event()

        async def holder() -> None:
            async with store.lock("u1", PlanningMode.QUICK):
                await release.wait()

        async def waiter() -> None:
            async with store.lock("u1", PlanningMode.QUICK):
                pass

        holding = asyncio.create_task(holder())
        await asyncio.sleep(0)
        waiting = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(holding, waiting)
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_redis_lock_acquired_and_released(self, storage) -> None:
        redis_service = AsyncMock()
        redis_service.acquire_lock.return_value = True
        store = SessionStore(storage, redis_service=redis_service)

        async with store.lock("u1", PlanningMode.SMART):
            pass

        key, token, ttl_ms = redis_service.acquire_lock.await_args.args
        assert key == "planner:lock:u1:smart"
        assert ttl_ms == 30000
        redis_service.release_lock.assert_awaited_once_with(key, token)

    @pytest.mark.asyncio
    async def test_redis_unavailable_uses_local_lock_only(self, storage) -> None:
        redis_service = AsyncMock()
        redis_service.acquire_lock.return_value = None
        store = SessionStore(storage, redis_service=redis_service)

        async with store.lock("u1", PlanningMode.QUICK):
            pass

        redis_service.release_lock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_lock_busy_times_out(self, storage) -> None:
        redis_service = AsyncMock()
        redis_service.acquire_lock.return_value = False
        store = SessionStore(storage, redis_service=redis_service, lock_timeout=0.1)

        with pytest.raises(StateError):
            async with store.lock("u1", PlanningMode.QUICK):
                pass
        redis_service.release_lock.assert_not_awaited()
