"""
FastAPI Dependencies for user identity, database sessions and the planner.
"""

import logging
from collections.abc import AsyncIterator

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from journalmate.config.planner import DEMO_USER_ID
from journalmate.modules.planning import PlanningModule
from journalmate.services.planner_storage import SQLPlannerStorage

logger = logging.getLogger(__name__)


async def get_user_id(x_user_id: str | None = Header(default=None, max_length=128)) -> str:
    """
    Dependency for the acting user.

    Authentication lives in front of this service; the gateway forwards the
    user id in X-User-Id. Requests without it act as the demo user.
    """
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return DEMO_USER_ID


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """One SQLAlchemy session per request."""
    async with request.app.state.session_factory() as db:
        yield db


def get_planner(request: Request, db: AsyncSession = Depends(get_db)) -> PlanningModule:
    """Planner wired to this request's database session."""
    state = request.app.state
    return PlanningModule.build(
        SQLPlannerStorage(db),
        llm=state.llm,
        settings=state.settings,
        redis_service=state.redis_service,
        content_extractor=state.content_extractor,
        locks=state.planner_locks,
    )
