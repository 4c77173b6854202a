"""
Planning Session State Machine and Data Structures.

Defines the session states, the allowed transitions between them, and the
session/plan dataclasses that flow between the planner components.

Reference: planning.py (main module)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from journalmate.config.planner import PlanningMode


# =============================================================================
# Planning Session States
# =============================================================================

class PlanningState(StrEnum):
    """State machine states for a planning session."""

    # Gathering essential fields
    COLLECTING = "collecting"

    # Enough information (or question budget spent), plan may be generated
    READY_TO_GENERATE = "ready_to_generate"

    # Plan shown, waiting for "are you comfortable with this plan?"
    PLAN_PENDING = "plan_pending"

    # User affirmed, activity is being written
    CONFIRMING = "confirming"

    # Activity written; session can never be resumed
    COMPLETED = "completed"

    # Stale or explicitly dropped; can never be resumed
    ABANDONED = "abandoned"


TERMINAL_STATES: frozenset[PlanningState] = frozenset({
    PlanningState.COMPLETED,
    PlanningState.ABANDONED,
})

PLAN_STATES: frozenset[PlanningState] = frozenset({
    PlanningState.PLAN_PENDING,
    PlanningState.CONFIRMING,
})

ALLOWED_TRANSITIONS: dict[PlanningState, frozenset[PlanningState]] = {
    PlanningState.COLLECTING: frozenset({
        PlanningState.COLLECTING,
        PlanningState.READY_TO_GENERATE,
        PlanningState.ABANDONED,
    }),
    PlanningState.READY_TO_GENERATE: frozenset({
        PlanningState.READY_TO_GENERATE,
        PlanningState.PLAN_PENDING,
        PlanningState.COLLECTING,
        PlanningState.ABANDONED,
    }),
    PlanningState.PLAN_PENDING: frozenset({
        PlanningState.CONFIRMING,
        PlanningState.COLLECTING,
        PlanningState.ABANDONED,
    }),
    PlanningState.CONFIRMING: frozenset({
        PlanningState.COMPLETED,
        PlanningState.CONFIRMING,
    }),
    PlanningState.COMPLETED: frozenset(),
    PlanningState.ABANDONED: frozenset(),
}


class Domain(StrEnum):
    """Closed set of planning domains."""

    TRAVEL = "travel"
    FITNESS = "fitness"
    EVENTS = "events"
    LEARNING = "learning"
    SOCIAL = "social"
    ENTERTAINMENT = "entertainment"
    WORK = "work"
    SHOPPING = "shopping"
    DINING = "dining"
    GENERIC = "generic"


class Speaker(StrEnum):
    """Who produced a transcript turn."""

    USER = "user"
    ASSISTANT = "assistant"
    # Text pulled from a URL or uploaded document by the content extractor
    SOURCE = "source"


def utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Transcript
# =============================================================================

@dataclass
class Turn:
    """One transcript entry."""

    speaker: Speaker
    text: str
    at: datetime = field(default_factory=utcnow)
    # Assistant turns that ask questions record which fields they asked about
    asked: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"speaker": self.speaker.value, "text": self.text, "at": self.at.isoformat()}
        if self.asked:
            data["asked"] = list(self.asked)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Turn:
        return cls(
            speaker=Speaker(data["speaker"]),
            text=str(data.get("text", "")),
            at=parse_datetime(data.get("at")),
            asked=[str(name) for name in data.get("asked") or []],
        )


# =============================================================================
# Plan
# =============================================================================

@dataclass
class PlanTask:
    """A single actionable task of a plan."""

    title: str
    cost: float | None = None
    cost_notes: str | None = None
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "cost": self.cost,
            "cost_notes": self.cost_notes,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanTask:
        return cls(
            title=str(data["title"]),
            cost=data.get("cost"),
            cost_notes=data.get("cost_notes"),
            category=data.get("category"),
        )


@dataclass
class BudgetLineItem:
    """One line of a budget breakdown."""

    label: str
    amount: float
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "amount": self.amount, "notes": self.notes}


@dataclass
class BudgetBreakdown:
    """Ordered line items plus a numeric buffer."""

    items: list[BudgetLineItem] = field(default_factory=list)
    buffer: float = 0.0

    @property
    def total(self) -> float:
        return round(sum(item.amount for item in self.items) + self.buffer, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "buffer": self.buffer,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BudgetBreakdown:
        return cls(
            items=[
                BudgetLineItem(
                    label=str(item["label"]),
                    amount=float(item["amount"]),
                    notes=item.get("notes"),
                )
                for item in data.get("items", [])
            ],
            buffer=float(data.get("buffer", 0.0)),
        )


@dataclass
class Plan:
    """A generated but not yet confirmed plan."""

    title: str
    tasks: list[PlanTask] = field(default_factory=list)
    budget: BudgetBreakdown | None = None
    domain: Domain = Domain.GENERIC
    # "ai" when the AI provider wrote it, "template" for the deterministic path
    source: str = "template"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "tasks": [task.to_dict() for task in self.tasks],
            "budget": self.budget.to_dict() if self.budget else None,
            "domain": self.domain.value,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Plan:
        budget = data.get("budget")
        return cls(
            title=str(data["title"]),
            tasks=[PlanTask.from_dict(task) for task in data.get("tasks", [])],
            budget=BudgetBreakdown.from_dict(budget) if budget else None,
            domain=Domain(data.get("domain", Domain.GENERIC.value)),
            source=str(data.get("source", "template")),
        )


# =============================================================================
# Session
# =============================================================================

@dataclass
class PlanningSession:
    """One live planning conversation for a (user, mode) pair."""

    user_id: str
    mode: PlanningMode
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    domain: Domain | None = None
    transcript: list[Turn] = field(default_factory=list)
    question_count: int = 0
    asked_fields: list[str] = field(default_factory=list)
    field_attempts: dict[str, int] = field(default_factory=dict)
    stated_fields: dict[str, str] = field(default_factory=dict)
    state: PlanningState = PlanningState.COLLECTING
    pending_plan: Plan | None = None
    activity_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)

    @property
    def is_live(self) -> bool:
        return self.state not in TERMINAL_STATES

    def user_turns(self) -> list[Turn]:
        return [turn for turn in self.transcript if turn.speaker == Speaker.USER]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the storage collaborator (JSON-safe)."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "mode": self.mode.value,
            "domain": self.domain.value if self.domain else None,
            "transcript": [turn.to_dict() for turn in self.transcript],
            "question_count": self.question_count,
            "asked_fields": list(self.asked_fields),
            "field_attempts": dict(self.field_attempts),
            "stated_fields": dict(self.stated_fields),
            "state": self.state.value,
            "pending_plan": self.pending_plan.to_dict() if self.pending_plan else None,
            "activity_id": self.activity_id,
            "created_at": self.created_at.isoformat(),
            "last_activity_at": self.last_activity_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanningSession:
        plan = data.get("pending_plan")
        domain = data.get("domain")
        return cls(
            session_id=str(data["session_id"]),
            user_id=str(data["user_id"]),
            mode=PlanningMode(data["mode"]),
            domain=Domain(domain) if domain else None,
            transcript=[Turn.from_dict(turn) for turn in data.get("transcript", [])],
            question_count=int(data.get("question_count", 0)),
            asked_fields=list(data.get("asked_fields", [])),
            field_attempts={k: int(v) for k, v in (data.get("field_attempts") or {}).items()},
            stated_fields={k: str(v) for k, v in (data.get("stated_fields") or {}).items()},
            state=PlanningState(data.get("state", PlanningState.COLLECTING.value)),
            pending_plan=Plan.from_dict(plan) if plan else None,
            activity_id=data.get("activity_id"),
            created_at=parse_datetime(data.get("created_at")),
            last_activity_at=parse_datetime(data.get("last_activity_at")),
        )


def parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return utcnow()


__all__ = [
    "ALLOWED_TRANSITIONS",
    "BudgetBreakdown",
    "BudgetLineItem",
    "Domain",
    "PLAN_STATES",
    "Plan",
    "PlanTask",
    "PlanningMode",
    "PlanningSession",
    "PlanningState",
    "Speaker",
    "TERMINAL_STATES",
    "Turn",
    "parse_datetime",
    "utcnow",
]
