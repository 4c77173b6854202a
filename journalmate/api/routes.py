"""
REST API Routes for the JournalMate planner.

All responses use the {ok, data, error} envelope.

Endpoints (all under /api/v1 prefix):
- /health - Health check
- /metrics - Prometheus metrics
- /planner/messages - One conversational planning turn
- /planner/sessions/{session_id} - Inspect a session
- /planner/sessions/{session_id}/materialize - Retry a failed save

Reference: journalmate/modules/planning.py
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter as FastAPIRouter
from fastapi import Depends
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from journalmate.api.dependencies import get_planner, get_user_id
from journalmate.api.schemas import (
    PlannerMessageRequest,
    error_response,
    session_view,
    success_response,
)
from journalmate.infra.monitoring import metrics_payload
from journalmate.modules.planning import PlannerResponse, PlanningModule

logger = logging.getLogger(__name__)

router = FastAPIRouter(prefix="/api/v1")


def _turn_response(response: PlannerResponse) -> Any:
    """Envelope for a planner turn; retryable failures keep the reply as data."""
    payload = response.to_dict()
    if response.error_code is None:
        return success_response(payload)
    return JSONResponse(
        status_code=503,
        content=error_response(response.error_code, message=response.text, data=payload),
    )


# =============================================================================
# Health & Metrics
# =============================================================================


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return success_response({"status": "ok"})


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=metrics_payload(), media_type=CONTENT_TYPE_LATEST)


# =============================================================================
# Planner Endpoints
# =============================================================================


@router.post("/planner/messages")
async def send_planner_message(
    data: PlannerMessageRequest,
    user_id: str = Depends(get_user_id),
    planner: PlanningModule = Depends(get_planner),
) -> Any:
    """
    Process one planner message.

    Without a session_id the live session for (user, mode) is continued, or
    a new one is started.

    Returns:
        Envelope with the assistant reply, state, progress and any plan
    """
    response = await planner.handle_message(
        user_id=user_id,
        mode=data.mode,
        text=data.message,
        session_id=data.session_id,
        source_urls=data.source_urls,
    )
    return _turn_response(response)


@router.get("/planner/sessions/{session_id}")
async def get_planner_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    planner: PlanningModule = Depends(get_planner),
) -> dict[str, Any]:
    """Envelope with the session's state, transcript and pending plan."""
    session = await planner.get_session(user_id, session_id)
    return success_response(session_view(session))


@router.post("/planner/sessions/{session_id}/materialize")
async def retry_materialization(
    session_id: str,
    user_id: str = Depends(get_user_id),
    planner: PlanningModule = Depends(get_planner),
) -> Any:
    """
    Retry saving a confirmed plan.

    Safe to repeat: a session that is already saved returns its activity.
    """
    response = await planner.retry_materialization(user_id, session_id)
    return _turn_response(response)


__all__ = ["router"]
