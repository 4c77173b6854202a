"""
Activity materialization for confirmed plans.

Writes a confirmed plan as one Activity with its Tasks and completes the
session, all in a single storage transaction. The session id is the
idempotency key: a repeated confirmation, a retry after a lost response, or
a concurrent duplicate all end with the same single Activity.
"""

from __future__ import annotations

import dataclasses

import structlog
from sqlalchemy.exc import SQLAlchemyError

from journalmate.infra.monitoring import record_materialization
from journalmate.lib.exceptions import DuplicateConfirmation, MaterializationFailed, StateError
from journalmate.modules.planning_state import PlanningSession, PlanningState
from journalmate.services.planner_storage import PlannerStorage

logger = structlog.get_logger(__name__)


class ActivityMaterializer:
    """Turns a confirming session into exactly one persisted Activity."""

    def __init__(self, storage: PlannerStorage) -> None:
        self._storage = storage

    async def materialize(self, session: PlanningSession) -> str:
        """
        Persist the session's pending plan and complete the session.

        On success the passed session is updated in place (completed,
        activity_id set, plan cleared).

        Returns:
            The activity id (the existing one for a completed session)

        Raises:
            StateError: session is neither confirming nor completed
            MaterializationFailed: storage write failed; nothing was committed
        """
        if session.state == PlanningState.COMPLETED and session.activity_id:
            duplicate = DuplicateConfirmation(session.session_id, session.activity_id)
            logger.info("duplicate_confirmation_ignored", detail=str(duplicate))
            record_materialization("replayed")
            return session.activity_id

        if session.state != PlanningState.CONFIRMING or session.pending_plan is None:
            raise StateError(f"Cannot materialize a session in state {session.state.value}")

        plan = session.pending_plan
        completed = dataclasses.replace(
            session,
            state=PlanningState.COMPLETED,
            pending_plan=None,
            transcript=list(session.transcript),
        )

        try:
            activity_id = await self._storage.get_activity_for_session(session.session_id)
            replayed = activity_id is not None
            if activity_id is None:
                activity_id = await self._storage.create_activity(session, plan)
                await self._storage.create_tasks(activity_id, session.user_id, plan.tasks)
            completed.activity_id = activity_id
            await self._storage.save_session(completed)
            await self._storage.commit()
        except (SQLAlchemyError, OSError) as exc:
            await self._storage.rollback()
            record_materialization("failed")
            logger.error("activity_materialization_failed", session_id=session.session_id, error=str(exc))
            raise MaterializationFailed(str(exc)) from exc

        session.state = completed.state
        session.pending_plan = None
        session.activity_id = activity_id
        record_materialization("replayed" if replayed else "created")
        logger.info(
            "activity_materialized",
            session_id=session.session_id,
            activity_id=activity_id,
            tasks=len(plan.tasks),
            replayed=replayed,
        )
        return activity_id


__all__ = ["ActivityMaterializer"]
