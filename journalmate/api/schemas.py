"""
Pydantic Schemas for the JournalMate planner REST API.

Defines the request models and the {ok, data, error} response envelope.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from journalmate.config.planner import PlanningMode, get_mode_policy
from journalmate.lib.errors import build_error_response
from journalmate.modules.planning_state import PlanningSession

# =============================================================================
# Response Envelope
# =============================================================================


def success_response(data: Any) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"ok": True, "data": data, "error": None}


def error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    data: Any = None,
) -> dict[str, Any]:
    """
    Wrap an error in the envelope.

    ``data`` carries a partial payload when the turn still produced a reply,
    e.g. the "try again" message after a failed save.
    """
    return {
        "ok": False,
        "data": data,
        "error": build_error_response(code, message=message, details=details),
    }


# =============================================================================
# Planner Schemas
# =============================================================================


class PlannerMessageRequest(BaseModel):
    """Validated input for one planner turn."""

    message: str = Field(..., min_length=1, max_length=4000)
    mode: PlanningMode = PlanningMode.QUICK
    session_id: str | None = Field(default=None, max_length=64)
    source_urls: list[str] = Field(default_factory=list, max_length=5)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


def session_view(session: PlanningSession) -> dict[str, Any]:
    """Public view of a planning session."""
    policy = get_mode_policy(session.mode)
    return {
        "session_id": session.session_id,
        "mode": session.mode.value,
        "state": session.state.value,
        "domain": session.domain.value if session.domain else None,
        "question_count": session.question_count,
        "question_budget": policy.minimum_questions,
        "stated_fields": dict(session.stated_fields),
        "transcript": [turn.to_dict() for turn in session.transcript],
        "pending_plan": session.pending_plan.to_dict() if session.pending_plan else None,
        "activity_id": session.activity_id,
        "created_at": session.created_at.isoformat(),
        "last_activity_at": session.last_activity_at.isoformat(),
    }


__all__ = [
    "PlannerMessageRequest",
    "error_response",
    "session_view",
    "success_response",
]
