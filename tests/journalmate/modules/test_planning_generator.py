"""
Tests for plan generation (journalmate/modules/planning_generator.py).

Tests cover:
- Budget allocation sums to the stated amount
- Template plans interpolate only stated values
- AI plans are validated and passed through the hallucination guard
- Fallback to the template when the AI reply is unusable
- Plan rendering ends with the confirmation question
"""

from __future__ import annotations

import json

import pytest

from journalmate.config.planner import PlanningMode
from journalmate.lib.exceptions import GenerationFailed, StateError
from journalmate.modules.planning_generator import (
    CONFIRMATION_PROMPT,
    PlanGenerator,
    allocate_budget,
    currency_symbol,
    render_plan,
    template_plan,
    try_parse_json,
)
from journalmate.modules.planning_state import (
    Domain,
    PlanningSession,
    PlanningState,
    Speaker,
    Turn,
)

# =============================================================================
# Helpers
# =============================================================================

PARIS_FIELDS = {
    "destination": "Paris",
    "dates": "March 10-15",
    "duration": "5 days",
    "origin": "London",
}


def _ready_session(
    stated: dict[str, str],
    mode: PlanningMode = PlanningMode.QUICK,
    domain: Domain = Domain.TRAVEL,
) -> PlanningSession:
    return PlanningSession(
        user_id="u1",
        mode=mode,
        domain=domain,
        state=PlanningState.READY_TO_GENERATE,
        stated_fields=dict(stated),
        transcript=[
            Turn(speaker=Speaker.USER, text="Plan a trip to Paris"),
            Turn(speaker=Speaker.ASSISTANT, text="When, how long, and from where?"),
            Turn(speaker=Speaker.USER, text="March 10-15, 5 days, from London"),
        ],
    )


def _ai_reply(*titles: str, budget: list[dict] | None = None) -> str:
    payload = {
        "title": "Paris getaway",
        "tasks": [{"title": title, "cost": None, "cost_notes": None, "category": None} for title in titles],
        "budget": budget,
        "buffer": None,
    }
    return f"Here you go:\n```json\n{json.dumps(payload)}\n```"


# =============================================================================
# Budget allocation
# =============================================================================


class TestBudgetAllocation:

    def test_travel_split(self) -> None:
        budget = allocate_budget(Domain.TRAVEL, 2000)
        assert [(item.label, item.amount) for item in budget.items] == [
            ("Transport", 700.0),
            ("Accommodation", 700.0),
            ("Food", 300.0),
            ("Activities", 200.0),
        ]
        assert budget.buffer == 100.0
        assert budget.total == 2000.0

    @pytest.mark.parametrize("domain", list(Domain))
    def test_every_domain_sums_to_amount(self, domain: Domain) -> None:
        assert allocate_budget(domain, 333.33).total == 333.33


# =============================================================================
# Templates
# =============================================================================


class TestTemplatePlan:

    def test_paris_trip(self) -> None:
        plan = template_plan(Domain.TRAVEL, PARIS_FIELDS)
        assert plan.title == "Trip to Paris"
        assert plan.source == "template"
        assert [task.title for task in plan.tasks] == [
            "Confirm your travel dates (March 10-15)",
            "Book transport from London to Paris",
            "Book accommodation in Paris for 5 days",
            "Plan meals and dining in Paris",
            "Choose activities and sights in Paris",
            "Pack and check travel documents",
        ]
        assert plan.budget is None
        assert all(task.cost is None for task in plan.tasks)

    def test_nothing_stated_uses_value_free_tasks(self) -> None:
        plan = template_plan(Domain.TRAVEL, {})
        assert plan.title == "Trip plan"
        assert [task.title for task in plan.tasks] == [
            "Pick your travel dates",
            "Book transport",
            "Book accommodation",
            "Plan meals and dining",
            "Choose activities and sights",
            "Pack and check travel documents",
        ]

    def test_stated_budget_attaches_costs(self) -> None:
        plan = template_plan(Domain.TRAVEL, {**PARIS_FIELDS, "budget": "$2,000"})
        assert plan.budget is not None
        assert plan.budget.total == 2000.0
        costs = {task.title: task.cost for task in plan.tasks}
        assert costs["Book transport from London to Paris"] == 700.0
        assert costs["Book accommodation in Paris for 5 days"] == 700.0
        assert costs["Pack and check travel documents"] is None

    def test_unstated_fields_never_appear(self) -> None:
        stated = {"goal": "lose weight", "activity": "running", "fitness_level": "beginner"}
        plan = template_plan(Domain.FITNESS, stated)
        assert plan.title == "Lose weight plan"
        titles = " ".join(task.title for task in plan.tasks).lower()
        assert "running" in titles
        assert "session" in titles
        assert "times a week" not in titles
        assert "minutes" not in titles


# =============================================================================
# Generator
# =============================================================================


class TestPlanGenerator:

    @pytest.mark.asyncio
    async def test_not_ready_raises(self) -> None:
        session = _ready_session(PARIS_FIELDS)
        session.state = PlanningState.COLLECTING
        with pytest.raises(StateError):
            await PlanGenerator().generate(session)

    @pytest.mark.asyncio
    async def test_template_without_llm(self) -> None:
        plan = await PlanGenerator().generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "template"
        assert plan.title == "Trip to Paris"

    @pytest.mark.asyncio
    async def test_ai_disabled_skips_provider(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Book a hotel in Paris")
        plan = await PlanGenerator(llm=fake_llm, ai_enabled=False).generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "template"
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_ai_plan_is_guarded(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Book a hotel in Paris", "Day trip to Rome", "Visit the Louvre")
        plan = await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "ai"
        assert plan.title == "Paris getaway"
        assert [task.title for task in plan.tasks] == ["Book a hotel in Paris", "Visit the Louvre"]

    @pytest.mark.asyncio
    async def test_assistant_turns_not_sent_as_facts(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Book a hotel in Paris")
        await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))
        call = fake_llm.calls[0]
        assert all(turn.speaker != Speaker.ASSISTANT for turn in call["transcript"])
        assert "Destination: Paris" in call["system"]
        assert "Do NOT include any costs" in call["system"]

    @pytest.mark.asyncio
    async def test_web_search_follows_mode(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Book a hotel in Paris")
        generator = PlanGenerator(llm=fake_llm)
        await generator.generate(_ready_session(PARIS_FIELDS, mode=PlanningMode.QUICK))
        await generator.generate(_ready_session(PARIS_FIELDS, mode=PlanningMode.SMART))
        assert [call["web_search"] for call in fake_llm.calls] == [False, True]

    @pytest.mark.asyncio
    async def test_ai_plan_gets_budget_from_stated_amount(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Book transport to Paris", "Book a hotel in Paris")
        plan = await PlanGenerator(llm=fake_llm).generate(
            _ready_session({**PARIS_FIELDS, "budget": "$2,000"}),
        )
        assert plan.budget is not None
        assert plan.budget.total == 2000.0
        assert plan.tasks[0].cost == 700.0

    @pytest.mark.asyncio
    async def test_unparseable_reply_falls_back(self, fake_llm) -> None:
        fake_llm.replies["plan"] = "Sorry, I can't help with that."
        plan = await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "template"
        assert plan.title == "Trip to Paris"

    @pytest.mark.asyncio
    async def test_invalid_schema_falls_back(self, fake_llm) -> None:
        fake_llm.replies["plan"] = json.dumps({"title": "Paris", "tasks": []})
        plan = await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "template"

    @pytest.mark.asyncio
    async def test_all_tasks_stripped_falls_back(self, fake_llm) -> None:
        fake_llm.replies["plan"] = _ai_reply("Day trip to Rome", "Weekend in Berlin")
        plan = await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))
        assert plan.source == "template"

    @pytest.mark.asyncio
    async def test_backend_down_raises(self, fake_llm) -> None:
        with pytest.raises(GenerationFailed):
            await PlanGenerator(llm=fake_llm).generate(_ready_session(PARIS_FIELDS))


# =============================================================================
# Parsing and rendering
# =============================================================================


class TestRendering:

    def test_try_parse_json(self) -> None:
        assert try_parse_json('```json\n{"a": 1}\n```') == {"a": 1}
        assert try_parse_json('Sure! {"a": 1} hope that helps') == {"a": 1}
        assert try_parse_json("[1, 2]") is None
        assert try_parse_json("{broken") is None

    def test_currency_symbol(self) -> None:
        assert currency_symbol("€800") == "€"
        assert currency_symbol("500 pounds") == "£"
        assert currency_symbol("$2,000") == "$"
        assert currency_symbol(None) == "$"

    def test_render_plan_with_budget(self) -> None:
        stated = {**PARIS_FIELDS, "budget": "$2,000"}
        text = render_plan(template_plan(Domain.TRAVEL, stated), stated)
        assert text.startswith("**Trip to Paris**")
        assert "2. Book transport from London to Paris ($700.00)" in text
        assert "- Buffer: $100.00" in text
        assert "Total: $2,000.00" in text
        assert text.endswith(CONFIRMATION_PROMPT)

    def test_render_plan_without_budget(self) -> None:
        text = render_plan(template_plan(Domain.TRAVEL, PARIS_FIELDS), PARIS_FIELDS)
        assert "Budget breakdown" not in text
        assert "$" not in text
