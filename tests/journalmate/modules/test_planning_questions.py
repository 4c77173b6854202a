"""
Tests for question planning (journalmate/modules/planning_questions.py).

Tests cover:
- Batches follow field priority
- New questions never exceed the mode maximum
- Readiness at the mode minimum, or when nothing is missing
- Re-asks are bounded per field and do not spend budget
- Progress signal
- AI phrasing is discarded when it contains plan content
"""

from __future__ import annotations

import pytest

from journalmate.config.planner import PlanningMode
from journalmate.modules.planning_parsing import Extraction
from journalmate.modules.planning_questions import (
    AskQuestions,
    Progress,
    QuestionPlanner,
    ReadyToGenerate,
    latest_user_turn,
    phrase_questions,
    render_questions,
)
from journalmate.modules.planning_state import Domain, PlanningSession, Speaker, Turn

# =============================================================================
# Helpers
# =============================================================================

TRAVEL_FIELDS = ["destination", "dates", "duration", "origin", "budget", "travelers", "occasion"]
FITNESS_FIELDS = ["goal", "activity", "frequency", "fitness_level", "session_length"]


def _session(mode: PlanningMode, domain: Domain = Domain.TRAVEL) -> PlanningSession:
    return PlanningSession(user_id="u1", mode=mode, domain=domain)


def _missing(fields: list[str], stated: set[str]) -> Extraction:
    return Extraction(
        stated={name: "x" for name in stated},
        missing=[name for name in fields if name not in stated],
    )


@pytest.fixture()
def planner() -> QuestionPlanner:
    return QuestionPlanner()


# =============================================================================
# next_action
# =============================================================================


class TestNextAction:

    def test_first_batch_by_priority(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.QUICK)
        action = planner.next_action(session, _missing(TRAVEL_FIELDS, {"destination"}))
        assert isinstance(action, AskQuestions)
        assert action.new_fields == ["dates", "duration", "origin"]
        assert action.reasked_fields == []

    def test_quick_ready_after_three(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.QUICK)
        action = planner.next_action(session, _missing(TRAVEL_FIELDS, {"destination"}))
        planner.record_asked(session, action)
        assert session.question_count == 3

        # Still four fields missing, but the quick budget is spent
        result = planner.next_action(session, _missing(TRAVEL_FIELDS, {"destination", "dates", "duration"}))
        assert result == ReadyToGenerate(reason="question_budget_reached")

    def test_ready_when_nothing_missing(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.SMART)
        result = planner.next_action(session, _missing(TRAVEL_FIELDS, set(TRAVEL_FIELDS)))
        assert result == ReadyToGenerate(reason="all_fields_stated")

    def test_smart_mode_reasks_without_spending_budget(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.SMART, Domain.FITNESS)

        first = planner.next_action(session, _missing(FITNESS_FIELDS, set()))
        assert first.new_fields == ["goal", "activity", "frequency"]
        planner.record_asked(session, first)
        assert session.question_count == 3

        # goal and activity answered; frequency skipped
        second = planner.next_action(session, _missing(FITNESS_FIELDS, {"goal", "activity"}))
        assert isinstance(second, AskQuestions)
        assert second.new_fields == ["fitness_level", "session_length"]
        assert second.reasked_fields == ["frequency"]
        planner.record_asked(session, second)
        assert session.question_count == 5
        assert session.field_attempts["frequency"] == 2

        third = planner.next_action(session, _missing(FITNESS_FIELDS, {"goal", "activity", "fitness_level"}))
        assert third == ReadyToGenerate(reason="question_budget_reached")

    def test_question_count_never_exceeds_maximum(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.QUICK)
        session.question_count = 2
        action = planner.next_action(session, _missing(TRAVEL_FIELDS, set()))
        assert len(action.new_fields) == 1
        planner.record_asked(session, action)
        assert session.question_count == 3

    def test_ready_when_only_exhausted_reasks_remain(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.SMART, Domain.FITNESS)
        session.asked_fields = list(FITNESS_FIELDS)
        session.field_attempts = {name: 2 for name in FITNESS_FIELDS}
        session.question_count = 4
        result = planner.next_action(session, _missing(FITNESS_FIELDS, {"goal"}))
        assert result == ReadyToGenerate(reason="nothing_left_to_ask")


# =============================================================================
# Progress and rendering
# =============================================================================


class TestProgress:

    def test_progress_renders_mode_label(self, planner: QuestionPlanner) -> None:
        session = _session(PlanningMode.QUICK)
        session.question_count = 2
        progress = planner.progress(session)
        assert progress == Progress(gathered=2, total=3, mode=PlanningMode.QUICK)
        assert progress.render() == "⚡ Quick Plan: 2/3"

    def test_smart_progress(self) -> None:
        assert Progress(gathered=5, total=5, mode=PlanningMode.SMART).render() == "🧠 Smart Plan: 5/5"

    def test_render_questions_lists_each_question(self) -> None:
        action = AskQuestions(new_fields=["dates", "duration"])
        text = render_questions(
            action, Domain.TRAVEL, Progress(2, 3, PlanningMode.QUICK), first_turn=True,
        )
        assert "1. When are you travelling?" in text
        assert "2. How many days will you be away?" in text
        assert text.endswith("⚡ Quick Plan: 2/3")

    def test_latest_user_turn(self) -> None:
        transcript = [
            Turn(speaker=Speaker.USER, text="first"),
            Turn(speaker=Speaker.ASSISTANT, text="question"),
            Turn(speaker=Speaker.USER, text="second"),
            Turn(speaker=Speaker.ASSISTANT, text="plan"),
        ]
        assert latest_user_turn(transcript).text == "second"
        assert latest_user_turn([]) is None


# =============================================================================
# AI phrasing
# =============================================================================


class TestPhraseQuestions:

    @pytest.mark.asyncio
    async def test_without_llm_uses_fallback(self) -> None:
        session = _session(PlanningMode.QUICK)
        text = await phrase_questions(None, session, AskQuestions(new_fields=["dates"]), "fallback")
        assert text == "fallback"

    @pytest.mark.asyncio
    async def test_uses_ai_phrasing(self, fake_llm) -> None:
        fake_llm.replies["questions"] = "Lovely! When are you thinking of going?"
        session = _session(PlanningMode.QUICK)
        text = await phrase_questions(fake_llm, session, AskQuestions(new_fields=["dates"]), "fallback")
        assert text == "Lovely! When are you thinking of going?"
        assert fake_llm.purposes() == ["questions"]

    @pytest.mark.asyncio
    async def test_premature_plan_is_discarded(self, fake_llm) -> None:
        fake_llm.replies["questions"] = "Here's your plan:\nDay 1: Louvre\nDay 2: Versailles"
        session = _session(PlanningMode.QUICK)
        text = await phrase_questions(fake_llm, session, AskQuestions(new_fields=["dates"]), "fallback")
        assert text == "fallback"

    @pytest.mark.asyncio
    async def test_unavailable_ai_uses_fallback(self, fake_llm) -> None:
        session = _session(PlanningMode.QUICK)
        text = await phrase_questions(fake_llm, session, AskQuestions(new_fields=["dates"]), "fallback")
        assert text == "fallback"
