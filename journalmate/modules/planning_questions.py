"""
Question planning for the collecting phase.

Decides, after each user turn, whether the session has enough to generate a
plan or which fields to ask about next. The question budget is the mode
policy: quick asks at most 3 new fields, smart at most 5. Re-asking a field
the user skipped does not spend budget but is limited per field, so the
conversation always reaches a plan.

Reference: planning.py (main module)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from journalmate.config.planner import ModePolicy, PlanningMode, get_mode_policy
from journalmate.lib.exceptions import LLMUnavailable
from journalmate.modules.planning_domains import DomainSpec, get_domain_spec
from journalmate.modules.planning_guard import contains_plan_content
from journalmate.modules.planning_parsing import Extraction
from journalmate.modules.planning_state import Domain, PlanningSession, Speaker, Turn

if TYPE_CHECKING:
    from journalmate.services.llm import LLMClient

logger = structlog.get_logger(__name__)


# =============================================================================
# Actions
# =============================================================================

@dataclass(frozen=True)
class AskQuestions:
    """Ask about these fields next. Only new_fields spend question budget."""

    new_fields: list[str] = field(default_factory=list)
    reasked_fields: list[str] = field(default_factory=list)

    @property
    def fields(self) -> list[str]:
        return [*self.new_fields, *self.reasked_fields]


@dataclass(frozen=True)
class ReadyToGenerate:
    """Enough information, or the question budget is spent."""

    reason: str


@dataclass(frozen=True)
class Progress:
    """Display-only progress signal."""

    gathered: int
    total: int
    mode: PlanningMode

    def render(self) -> str:
        policy = get_mode_policy(self.mode)
        return f"{policy.emoji} {policy.label}: {self.gathered}/{self.total}"


# =============================================================================
# Planner
# =============================================================================

class QuestionPlanner:
    """Pure decision logic plus the bookkeeping applied after asking."""

    def next_action(self, session: PlanningSession, extraction: Extraction) -> AskQuestions | ReadyToGenerate:
        """
        Decide the next step for a collecting session.

        Ready when nothing is missing, when the mode's minimum question count
        has been reached, or when every missing field has used up its
        re-asks. Otherwise returns the next batch: new fields by priority,
        then fields asked before and still unanswered.
        """
        policy = get_mode_policy(session.mode)

        if not extraction.missing:
            return ReadyToGenerate(reason="all_fields_stated")
        if session.question_count >= policy.minimum_questions:
            return ReadyToGenerate(reason="question_budget_reached")

        new_fields, reasked = self._batch(session, extraction, policy)
        if not new_fields and not reasked:
            return ReadyToGenerate(reason="nothing_left_to_ask")
        return AskQuestions(new_fields=new_fields, reasked_fields=reasked)

    def record_asked(self, session: PlanningSession, action: AskQuestions) -> None:
        """Update counters once the questions were actually sent."""
        policy = get_mode_policy(session.mode)
        for name in action.new_fields:
            session.asked_fields.append(name)
        for name in action.fields:
            session.field_attempts[name] = session.field_attempts.get(name, 0) + 1
        session.question_count = min(
            session.question_count + len(action.new_fields),
            policy.maximum_questions,
        )

    def progress(self, session: PlanningSession) -> Progress:
        policy = get_mode_policy(session.mode)
        return Progress(
            gathered=min(session.question_count, policy.minimum_questions),
            total=policy.minimum_questions,
            mode=session.mode,
        )

    # -------------------------------------------------------------------------

    @staticmethod
    def _batch(
        session: PlanningSession,
        extraction: Extraction,
        policy: ModePolicy,
    ) -> tuple[list[str], list[str]]:
        # extraction.missing is already in priority order
        room = min(policy.batch_size, policy.maximum_questions - session.question_count)
        unasked = [name for name in extraction.missing if name not in session.asked_fields]
        new_fields = unasked[:max(room, 0)]

        reaskable = [
            name for name in extraction.missing
            if name in session.asked_fields
            and session.field_attempts.get(name, 0) <= policy.max_reasks
        ]
        reasked = reaskable[:max(policy.batch_size - len(new_fields), 0)]
        return new_fields, reasked


# =============================================================================
# Rendering
# =============================================================================

def render_questions(
    action: AskQuestions,
    domain: Domain,
    progress: Progress,
    first_turn: bool = False,
) -> str:
    """Deterministic question text for a batch."""
    spec = get_domain_spec(domain)
    lines: list[str] = []
    if first_turn:
        lines.append(f"Let's plan this together ({spec.label}). A few quick questions:")
    elif action.reasked_fields and not action.new_fields:
        lines.append("Just a couple of details I still need:")
    else:
        lines.append("Great, thanks! Next:")

    for index, question in enumerate(_questions(spec, action.fields), start=1):
        lines.append(f"{index}. {question}")

    lines.append("")
    lines.append(progress.render())
    return "\n".join(lines)


def _questions(spec: DomainSpec, names: list[str]) -> list[str]:
    questions = []
    for name in names:
        field_spec = spec.get_field(name)
        if field_spec is not None:
            questions.append(field_spec.question)
    return questions


async def phrase_questions(
    llm: LLMClient | None,
    session: PlanningSession,
    action: AskQuestions,
    fallback: str,
) -> str:
    """
    Let the AI provider phrase the batch conversationally.

    Any reply that already contains plan content is discarded in favour of
    the deterministic text: no plan may appear before readiness holds.
    """
    if llm is None:
        return fallback

    spec = get_domain_spec(session.domain or Domain.GENERIC)
    questions = _questions(spec, action.fields)
    instructions = (
        "You are a friendly planning assistant gathering details. Ask ONLY these questions, "
        "in a short conversational message, without suggesting any plan, itinerary, prices or dates:\n"
        + "\n".join(f"- {q}" for q in questions)
    )
    transcript = [turn for turn in session.transcript if turn.speaker != Speaker.SOURCE]
    try:
        text = await llm.complete(instructions, transcript, purpose="questions")
    except LLMUnavailable as exc:
        logger.info("question_phrasing_unavailable", error=str(exc))
        return fallback

    if not text or not text.strip() or contains_plan_content(text):
        logger.warning("premature_plan_discarded", session_id=session.session_id)
        return fallback
    return text.strip()


def latest_user_turn(transcript: list[Turn]) -> Turn | None:
    for turn in reversed(transcript):
        if turn.speaker == Speaker.USER:
            return turn
    return None


__all__ = [
    "AskQuestions",
    "Progress",
    "QuestionPlanner",
    "ReadyToGenerate",
    "latest_user_turn",
    "phrase_questions",
    "render_questions",
]
