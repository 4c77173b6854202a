"""
Persistent storage for planning sessions and materialized activities.

The planner talks to storage through the PlannerStorage protocol. The SQL
implementation wraps an SQLAlchemy AsyncSession; nothing is committed
until commit() is called, so the materializer can write the activity, its
tasks and the completed session as one transaction.

Money is converted to cents on the way in.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalmate.config.planner import PlanningMode
from journalmate.models.activity import Activity
from journalmate.models.planner_session import PlannerSessionRecord
from journalmate.models.task import Task
from journalmate.modules.planning_state import (
    TERMINAL_STATES,
    Domain,
    Plan,
    PlanningSession,
    PlanningState,
    PlanTask,
    Turn,
    parse_datetime,
)

logger = logging.getLogger(__name__)

# Leading tasks of a plan are marked high priority
HIGH_PRIORITY_TASKS = 2


def to_cents(amount: float | None) -> int | None:
    if amount is None:
        return None
    return int(round(amount * 100))


class PlannerStorage(Protocol):
    """Storage collaborator used by the session store and the materializer."""

    async def get_session(self, session_id: str) -> PlanningSession | None: ...

    async def find_live_session(self, user_id: str, mode: PlanningMode) -> PlanningSession | None: ...

    async def save_session(self, session: PlanningSession) -> None: ...

    async def create_activity(self, session: PlanningSession, plan: Plan) -> str: ...

    async def create_tasks(self, activity_id: str, user_id: str, tasks: list[PlanTask]) -> int: ...

    async def get_activity_for_session(self, session_id: str) -> str | None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SQLPlannerStorage:
    """PlannerStorage on SQLAlchemy 2.0."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def get_session(self, session_id: str) -> PlanningSession | None:
        record = await self._db.get(PlannerSessionRecord, session_id)
        return self._to_session(record) if record is not None else None

    async def find_live_session(self, user_id: str, mode: PlanningMode) -> PlanningSession | None:
        terminal = [state.value for state in TERMINAL_STATES]
        stmt = (
            select(PlannerSessionRecord)
            .where(
                PlannerSessionRecord.user_id == user_id,
                PlannerSessionRecord.mode == PlanningMode(mode).value,
                PlannerSessionRecord.state.not_in(terminal),
            )
            .order_by(PlannerSessionRecord.last_activity_at.desc())
            .limit(1)
        )
        record = (await self._db.execute(stmt)).scalars().first()
        return self._to_session(record) if record is not None else None

    async def save_session(self, session: PlanningSession) -> None:
        record = await self._db.get(PlannerSessionRecord, session.session_id)
        if record is None:
            record = PlannerSessionRecord(session_id=session.session_id)
            self._db.add(record)

        data = session.to_dict()
        record.user_id = session.user_id
        record.mode = session.mode.value
        record.state = session.state.value
        record.domain = session.domain.value if session.domain else None
        record.transcript = data["transcript"]
        record.question_count = session.question_count
        record.asked_fields = data["asked_fields"]
        record.field_attempts = data["field_attempts"]
        record.stated_fields = data["stated_fields"]
        record.pending_plan = data["pending_plan"]
        record.activity_id = session.activity_id
        record.created_at = session.created_at
        record.last_activity_at = session.last_activity_at
        await self._db.flush()

    # -------------------------------------------------------------------------
    # Activities
    # -------------------------------------------------------------------------

    async def create_activity(self, session: PlanningSession, plan: Plan) -> str:
        breakdown = None
        if plan.budget is not None:
            breakdown = {
                "items": [
                    {"label": item.label, "amount": to_cents(item.amount), "notes": item.notes}
                    for item in plan.budget.items
                ],
                "buffer": to_cents(plan.budget.buffer),
                "total": to_cents(plan.budget.total),
            }

        activity = Activity(
            user_id=session.user_id,
            source_session_id=session.session_id,
            title=plan.title,
            category=(session.domain or plan.domain or Domain.GENERIC).value,
            status="planning",
            budget=to_cents(plan.budget.total) if plan.budget else None,
            budget_breakdown=breakdown,
            budget_buffer=to_cents(plan.budget.buffer) if plan.budget else None,
        )
        self._db.add(activity)
        await self._db.flush()
        return str(activity.id)

    async def create_tasks(self, activity_id: str, user_id: str, tasks: list[PlanTask]) -> int:
        for position, task in enumerate(tasks):
            self._db.add(
                Task(
                    activity_id=activity_id,
                    user_id=user_id,
                    title=task.title,
                    position=position,
                    category=task.category,
                    priority="high" if position < HIGH_PRIORITY_TASKS else "medium",
                    cost=to_cents(task.cost),
                    cost_notes=task.cost_notes,
                )
            )
        await self._db.flush()
        return len(tasks)

    async def get_activity_for_session(self, session_id: str) -> str | None:
        stmt = select(Activity.id).where(Activity.source_session_id == session_id)
        return (await self._db.execute(stmt)).scalars().first()

    # -------------------------------------------------------------------------
    # Transaction
    # -------------------------------------------------------------------------

    async def commit(self) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            logger.error("Planner storage commit failed: %s", e)
            await self._db.rollback()
            raise

    async def rollback(self) -> None:
        await self._db.rollback()

    # -------------------------------------------------------------------------

    @staticmethod
    def _to_session(record: PlannerSessionRecord) -> PlanningSession:
        plan = record.pending_plan
        return PlanningSession(
            session_id=record.session_id,
            user_id=record.user_id,
            mode=PlanningMode(record.mode),
            domain=Domain(record.domain) if record.domain else None,
            transcript=[Turn.from_dict(turn) for turn in (record.transcript or [])],
            question_count=record.question_count or 0,
            asked_fields=list(record.asked_fields or []),
            field_attempts=dict(record.field_attempts or {}),
            stated_fields=dict(record.stated_fields or {}),
            state=PlanningState(record.state),
            pending_plan=Plan.from_dict(plan) if plan else None,
            activity_id=record.activity_id,
            created_at=parse_datetime(record.created_at),
            last_activity_at=parse_datetime(record.last_activity_at),
        )


__all__ = ["PlannerStorage", "SQLPlannerStorage", "to_cents"]
