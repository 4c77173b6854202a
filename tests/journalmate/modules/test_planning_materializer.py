"""
Tests for activity materialization (journalmate/modules/planning_materializer.py).

Tests cover:
- A confirmed plan becomes exactly one Activity with ordered Tasks
- Repeated and concurrent confirmations reuse the same Activity
- Money is stored in cents
- Storage failures roll back and leave the session confirming
"""

from __future__ import annotations

import dataclasses
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from journalmate.config.planner import PlanningMode
from journalmate.lib.exceptions import MaterializationFailed, StateError
from journalmate.models import Activity, Task
from journalmate.modules.planning_generator import template_plan
from journalmate.modules.planning_materializer import ActivityMaterializer
from journalmate.modules.planning_state import Domain, PlanningSession, PlanningState

# =============================================================================
# Helpers
# =============================================================================


def _confirming(stated: dict[str, str] | None = None) -> PlanningSession:
    stated = stated or {"destination": "Paris", "dates": "March 10-15"}
    return PlanningSession(
        user_id="u1",
        mode=PlanningMode.QUICK,
        domain=Domain.TRAVEL,
        state=PlanningState.CONFIRMING,
        stated_fields=stated,
        pending_plan=template_plan(Domain.TRAVEL, stated),
    )


# =============================================================================
# Success path
# =============================================================================


class TestMaterialize:

    @pytest.mark.asyncio
    async def test_creates_activity_and_tasks(self, storage, load_activity) -> None:
        session = _confirming()
        task_titles = [task.title for task in session.pending_plan.tasks]

        activity_id = await ActivityMaterializer(storage).materialize(session)

        assert session.state == PlanningState.COMPLETED
        assert session.activity_id == activity_id
        assert session.pending_plan is None

        activity = await load_activity(activity_id)
        assert activity.title == "Trip to Paris"
        assert activity.category == "travel"
        assert activity.source_session_id == session.session_id
        assert activity.budget is None
        assert [task.title for task in activity.tasks] == task_titles
        assert [task.priority for task in activity.tasks[:3]] == ["high", "high", "medium"]

        stored = await storage.get_session(session.session_id)
        assert stored.state == PlanningState.COMPLETED
        assert stored.activity_id == activity_id

    @pytest.mark.asyncio
    async def test_budget_stored_in_cents(self, storage, load_activity) -> None:
        session = _confirming({"destination": "Paris", "budget": "$2,000"})
        activity_id = await ActivityMaterializer(storage).materialize(session)

        activity = await load_activity(activity_id)
        assert activity.budget == 200000
        assert activity.budget_buffer == 10000
        assert activity.budget_breakdown["items"][0] == {"label": "Transport", "amount": 70000, "notes": None}
        transport = next(task for task in activity.tasks if task.category == "Transport")
        assert transport.cost == 70000

    @pytest.mark.asyncio
    async def test_completed_session_replays(self, storage, row_count) -> None:
        session = _confirming()
        materializer = ActivityMaterializer(storage)
        first = await materializer.materialize(session)
        second = await materializer.materialize(session)
        assert first == second
        assert await row_count(Activity) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_reuses_activity(self, storage, row_count) -> None:
        session = _confirming()
        duplicate = dataclasses.replace(session, transcript=list(session.transcript))
        materializer = ActivityMaterializer(storage)

        first = await materializer.materialize(session)
        second = await materializer.materialize(duplicate)

        assert first == second
        assert duplicate.state == PlanningState.COMPLETED
        assert await row_count(Activity) == 1
        assert await row_count(Task) == len(template_plan(Domain.TRAVEL, session.stated_fields).tasks)

    @pytest.mark.asyncio
    async def test_wrong_state_raises(self, storage) -> None:
        session = _confirming()
        session.state = PlanningState.PLAN_PENDING
        with pytest.raises(StateError):
            await ActivityMaterializer(storage).materialize(session)


# =============================================================================
# Failure path
# =============================================================================


class TestMaterializeFailure:

    @pytest.mark.asyncio
    async def test_storage_error_rolls_back(self) -> None:
        storage = AsyncMock()
        storage.get_activity_for_session.return_value = None
        storage.create_activity.side_effect = SQLAlchemyError("disk full")
        session = _confirming()

        with pytest.raises(MaterializationFailed):
            await ActivityMaterializer(storage).materialize(session)

        storage.rollback.assert_awaited_once()
        storage.commit.assert_not_awaited()
        assert session.state == PlanningState.CONFIRMING
        assert session.pending_plan is not None
        assert session.activity_id is None
