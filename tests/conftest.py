"""
Shared test fixtures for the JournalMate planner.

This module provides common fixtures used across all test modules:
- Environment setup (dev mode, no AI keys)
- Database session (in-memory SQLite)
- SQL planner storage on that session, plus row counting and activity loading helpers
- A scripted fake AI client
- Circuit breaker registry reset between tests

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import os
from collections.abc import Sequence

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# ---------------------------------------------------------------------------
# 1. Environment setup -- must run before any application imports
# ---------------------------------------------------------------------------

os.environ.setdefault("JOURNALMATE_DEV_MODE", "1")
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("ANTHROPIC_API_KEY", None)

# ---------------------------------------------------------------------------
# Application imports (after env vars are set)
# ---------------------------------------------------------------------------

from journalmate.lib.circuit_breaker import reset_circuit_breakers  # noqa: E402
from journalmate.lib.exceptions import LLMUnavailable  # noqa: E402
from journalmate.models import Activity, Base, PlannerSessionRecord, Task  # noqa: E402, F401
from journalmate.modules.planning_state import Turn  # noqa: E402
from journalmate.services.planner_storage import SQLPlannerStorage  # noqa: E402

# ---------------------------------------------------------------------------
# 2. db_session -- in-memory SQLite session for unit tests
# ---------------------------------------------------------------------------

@pytest.fixture()
async def db_session():
    """
    Provide an AsyncSession backed by an in-memory SQLite database (aiosqlite).

    A fresh database is created for every test that requests this fixture.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSession = async_sessionmaker(engine, expire_on_commit=False)
    async with TestingSession() as session:
        yield session

    await engine.dispose()


@pytest.fixture()
def storage(db_session):
    """SQLPlannerStorage over the in-memory database."""
    return SQLPlannerStorage(db_session)


@pytest.fixture()
def row_count(db_session):
    """Count the rows of a model table."""
    async def count(model) -> int:
        return await db_session.scalar(select(func.count()).select_from(model))

    return count


@pytest.fixture()
def load_activity(db_session):
    """Fetch an Activity with its tasks loaded from the database."""
    async def load(activity_id: str) -> Activity | None:
        activity = await db_session.get(Activity, activity_id)
        if activity is not None:
            await db_session.refresh(activity, ["tasks"])
        return activity

    return load


# ---------------------------------------------------------------------------
# 3. fake_llm -- scripted AI client
# ---------------------------------------------------------------------------

class FakeLLM:
    """
    LLMClient double answering per purpose.

    ``replies`` maps a purpose ("classify", "questions", "plan") to a reply
    string or an exception instance to raise. Unscripted purposes raise
    LLMUnavailable, which every caller treats as "no AI".
    """

    def __init__(self, replies: dict[str, object] | None = None) -> None:
        self.replies: dict[str, object] = dict(replies or {})
        self.calls: list[dict[str, object]] = []

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        purpose: str = "general",
        web_search: bool = False,
    ) -> str:
        self.calls.append({
            "purpose": purpose,
            "system": system_instructions,
            "transcript": list(transcript),
            "web_search": web_search,
        })
        reply = self.replies.get(purpose)
        if reply is None:
            raise LLMUnavailable(f"no scripted reply for {purpose}")
        if isinstance(reply, BaseException):
            raise reply
        return str(reply)

    def purposes(self) -> list[str]:
        return [str(call["purpose"]) for call in self.calls]


@pytest.fixture()
def fake_llm():
    return FakeLLM()


# ---------------------------------------------------------------------------
# 4. Circuit breakers are process-global; start every test closed
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_breakers():
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()
