"""
Plan generation.

Produces a Plan (title, ordered tasks, optional budget breakdown) from the
fields a user stated. Two paths:

- AI: the provider writes the plan as JSON; the reply is validated with
  pydantic and then passed through the hallucination guard.
- Template: deterministic per-domain tasks that only interpolate stated
  values. Used when no provider is configured, and as the fallback when the
  AI plan has no grounded task left.

A budget breakdown exists only when the user stated a positive amount. The
breakdown always sums to that amount: per-domain ratios plus a buffer line.

Reference: planning.py (main module)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from journalmate.config.planner import get_mode_policy
from journalmate.lib.exceptions import GenerationFailed, LLMUnavailable, StateError
from journalmate.modules.planning_domains import NO_BUDGET, get_domain_spec
from journalmate.modules.planning_guard import GroundingContext, PlanGuard
from journalmate.modules.planning_parsing import parse_amount
from journalmate.modules.planning_state import (
    BudgetBreakdown,
    BudgetLineItem,
    Domain,
    Plan,
    PlanningSession,
    PlanningState,
    PlanTask,
    Speaker,
)

if TYPE_CHECKING:
    from journalmate.services.llm import LLMClient

logger = structlog.get_logger(__name__)

CONFIRMATION_PROMPT = "Are you comfortable with this plan?"


# =============================================================================
# Budget allocation
# =============================================================================

# (category, share of the stated amount); the remainder is the buffer
BUDGET_RATIOS: dict[Domain, list[tuple[str, float]]] = {
    Domain.TRAVEL: [("Transport", 0.35), ("Accommodation", 0.35), ("Food", 0.15), ("Activities", 0.10)],
    Domain.FITNESS: [("Gear", 0.50), ("Memberships & classes", 0.40)],
    Domain.EVENTS: [("Venue", 0.35), ("Food & drinks", 0.30), ("Entertainment", 0.15), ("Decorations", 0.10)],
    Domain.LEARNING: [("Courses & materials", 0.70), ("Tools", 0.20)],
    Domain.SOCIAL: [("Food & drinks", 0.50), ("Activities", 0.40)],
    Domain.ENTERTAINMENT: [("Tickets", 0.60), ("Food & drinks", 0.25), ("Transport", 0.10)],
    Domain.WORK: [("Tools & services", 0.60), ("Team", 0.30)],
    Domain.SHOPPING: [("Items", 0.90)],
    Domain.DINING: [("Food", 0.75), ("Drinks", 0.15)],
    Domain.GENERIC: [("Main costs", 0.70), ("Extras", 0.20)],
}


def allocate_budget(domain: Domain, amount: float) -> BudgetBreakdown:
    """Split a stated amount by the domain's ratios; the buffer absorbs rounding."""
    items = [
        BudgetLineItem(label=label, amount=round(amount * ratio, 2))
        for label, ratio in BUDGET_RATIOS.get(domain, BUDGET_RATIOS[Domain.GENERIC])
    ]
    buffer = round(amount - sum(item.amount for item in items), 2)
    return BudgetBreakdown(items=items, buffer=max(buffer, 0.0))


def attach_costs(tasks: list[PlanTask], budget: BudgetBreakdown) -> list[PlanTask]:
    """
    Give tasks without a cost their share of the matching breakdown line.

    A task matches a line by category, or by the line label appearing in its
    title. A line shared by several tasks is split evenly between them.
    """
    def matches(task: PlanTask, label: str) -> bool:
        if task.category and task.category.lower() == label.lower():
            return True
        return label.lower() in task.title.lower()

    result = list(tasks)
    for item in budget.items:
        indexes = [i for i, task in enumerate(result) if task.cost is None and matches(task, item.label)]
        if not indexes:
            continue
        share = round(item.amount / len(indexes), 2)
        for i in indexes:
            task = result[i]
            result[i] = PlanTask(
                title=task.title,
                cost=share,
                cost_notes=task.cost_notes or f"{item.label} allocation",
                category=task.category or item.label,
            )
    return result


# =============================================================================
# Templates
# =============================================================================

@dataclass(frozen=True)
class _TaskTemplate:
    """Task text using stated values, with an optional value-free fallback."""

    text: str
    fields: tuple[str, ...] = ()
    fallback: str | None = None
    category: str | None = None
    group: str | None = None

    def render(self, stated: dict[str, str]) -> str | None:
        if all(stated.get(name) for name in self.fields):
            return self.text.format(**stated)
        return self.fallback


_TEMPLATES: dict[Domain, tuple[str, str | None, list[_TaskTemplate]]] = {
    Domain.TRAVEL: ("Trip to {destination}", "Trip plan", [
        _TaskTemplate("Confirm your travel dates ({dates})", ("dates",), "Pick your travel dates"),
        _TaskTemplate("Book transport from {origin} to {destination}", ("origin", "destination"),
                      None, "Transport"),
        _TaskTemplate("Book transport to {destination}", ("destination",), "Book transport", "Transport"),
        _TaskTemplate("Book accommodation in {destination} for {duration}", ("destination", "duration"),
                      None, "Accommodation"),
        _TaskTemplate("Book accommodation in {destination}", ("destination",), "Book accommodation",
                      "Accommodation"),
        _TaskTemplate("Plan meals and dining in {destination}", ("destination",), "Plan meals and dining",
                      "Food"),
        _TaskTemplate("Choose activities and sights in {destination}", ("destination",),
                      "Choose activities and sights", "Activities"),
        _TaskTemplate("Plan something special for the {occasion}", ("occasion",)),
        _TaskTemplate("Coordinate plans with {travelers}", ("travelers",)),
        _TaskTemplate("Pack and check travel documents", ()),
    ]),
    Domain.FITNESS: ("{goal} plan", "Fitness plan", [
        _TaskTemplate("Set your goal: {goal}", ("goal",), "Write down one concrete fitness goal"),
        _TaskTemplate("Schedule {activity} sessions {frequency}", ("activity", "frequency"), None, group="schedule"),
        _TaskTemplate("Schedule {activity} sessions", ("activity",), "Schedule your training sessions", group="schedule"),
        _TaskTemplate("Keep each session to {session_length}", ("session_length",)),
        _TaskTemplate("Start at an intensity that suits your level ({fitness_level})", ("fitness_level",)),
        _TaskTemplate("Get the gear you need", (), None, "Gear"),
        _TaskTemplate("Sign up for a gym or class", (), None, "Memberships & classes"),
        _TaskTemplate("Track your progress weekly", ()),
    ]),
    Domain.EVENTS: ("{event_type} plan", "Event plan", [
        _TaskTemplate("Lock in the date ({dates})", ("dates",), "Pick a date"),
        _TaskTemplate("Book the venue: {venue}", ("venue",), "Find and book a venue", "Venue"),
        _TaskTemplate("Send invitations ({guests})", ("guests",), "Draw up the guest list and send invitations"),
        _TaskTemplate("Arrange food and drinks", (), None, "Food & drinks"),
        _TaskTemplate("Arrange music or entertainment", (), None, "Entertainment"),
        _TaskTemplate("Decorate around the {theme} theme", ("theme",), "Plan the decorations", "Decorations"),
        _TaskTemplate("Confirm everything a few days before", ()),
    ]),
    Domain.LEARNING: ("Learn {topic}", "Learning plan", [
        _TaskTemplate("Assess your starting point ({current_level})", ("current_level",),
                      "Assess your starting point"),
        _TaskTemplate("Find {format} for {topic}", ("format", "topic"), None, "Courses & materials"),
        _TaskTemplate("Find learning resources for {topic}", ("topic",), "Find learning resources",
                      "Courses & materials"),
        _TaskTemplate("Block {time_commitment} for study", ("time_commitment",), "Block regular study time"),
        _TaskTemplate("Set milestones for the next {timeline}", ("timeline",), "Set weekly milestones"),
        _TaskTemplate("Set up your practice tools", (), None, "Tools"),
        _TaskTemplate("Review what you learned each week", ()),
    ]),
    Domain.SOCIAL: ("{activity} with friends", "Get-together plan", [
        _TaskTemplate("Pick a time ({dates})", ("dates",), "Pick a time that works for everyone"),
        _TaskTemplate("Invite everyone ({group_size})", ("group_size",), "Send out the invites"),
        _TaskTemplate("Organize the {activity}", ("activity",), "Choose what you'll do", "Activities"),
        _TaskTemplate("Sort out food and drinks", (), None, "Food & drinks"),
        _TaskTemplate("Confirm the meeting place: {location}", ("location",), "Choose a meeting place"),
    ]),
    Domain.ENTERTAINMENT: ("{activity} outing", "Outing plan", [
        _TaskTemplate("Get tickets for the {activity}", ("activity",), "Get tickets", "Tickets"),
        _TaskTemplate("Put it in the calendar ({dates})", ("dates",), "Pick a date"),
        _TaskTemplate("Plan how to get to {location}", ("location",), "Plan how to get there", "Transport"),
        _TaskTemplate("Plan food and drinks around it", (), None, "Food & drinks"),
        _TaskTemplate("Coordinate with {group_size}", ("group_size",)),
    ]),
    Domain.WORK: ("{project}", "Work plan", [
        _TaskTemplate("Break the {project} into milestones", ("project",), "Break the work into milestones"),
        _TaskTemplate("Work back from the deadline ({deadline})", ("deadline",), "Set a deadline"),
        _TaskTemplate("Schedule focused work blocks ({time_commitment})", ("time_commitment",),
                      "Schedule focused work blocks"),
        _TaskTemplate("Agree on roles with your team ({team_size})", ("team_size",), None, "Team"),
        _TaskTemplate("Set up the tools and services you need", (), None, "Tools & services"),
        _TaskTemplate("Review and deliver", ()),
    ]),
    Domain.SHOPPING: ("Buy {items}", "Shopping plan", [
        _TaskTemplate("List exactly what you need: {items}", ("items",), "List exactly what you need"),
        _TaskTemplate("Compare options at {store}", ("store",), "Compare options and reviews"),
        _TaskTemplate("Buy the items", (), None, "Items"),
        _TaskTemplate("Make sure it arrives in time ({dates})", ("dates",)),
    ]),
    Domain.DINING: ("{cuisine} dinner", "Dining plan", [
        _TaskTemplate("Shortlist {cuisine} places in {location}", ("cuisine", "location"), None, group="shortlist"),
        _TaskTemplate("Shortlist {cuisine} places", ("cuisine",), "Shortlist a few places", group="shortlist"),
        _TaskTemplate("Reserve a table ({dates})", ("dates",), "Reserve a table", "Food"),
        _TaskTemplate("Confirm the party size ({group_size})", ("group_size",)),
        _TaskTemplate("Check menus for {dietary} options", ("dietary",)),
        _TaskTemplate("Decide on drinks", (), None, "Drinks"),
    ]),
    Domain.GENERIC: ("{what}", "Your plan", [
        _TaskTemplate("Define the goal: {what}", ("what",), "Define what you want to achieve"),
        _TaskTemplate("Set the date ({when})", ("when",), "Set a date"),
        _TaskTemplate("Confirm the location: {where}", ("where",), "Choose a location"),
        _TaskTemplate("Prepare what you need", (), None, "Main costs"),
        _TaskTemplate("Break it into small steps", ()),
        _TaskTemplate("Review and follow through", ()),
    ]),
}


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def template_plan(domain: Domain, stated: dict[str, str]) -> Plan:
    """
    Deterministic plan that only interpolates stated values.

    Templates listed with and without a value for the same step are
    alternatives: the first that renders wins.
    """
    title_template, title_fallback, templates = _TEMPLATES.get(domain, _TEMPLATES[Domain.GENERIC])
    try:
        title = _capitalize(title_template.format(**stated))
    except KeyError:
        title = title_fallback or "Your plan"

    tasks: list[PlanTask] = []
    seen_steps: set[str] = set()
    seen_titles: set[str] = set()
    for template in templates:
        text = template.render(stated)
        if text is None or text in seen_titles:
            continue
        # Alternatives for one step share a group or a category
        step = template.group or template.category
        if step and step in seen_steps:
            continue
        seen_titles.add(text)
        if step:
            seen_steps.add(step)
        tasks.append(PlanTask(title=text, category=template.category))

    plan = Plan(title=title, tasks=tasks, domain=domain, source="template")
    return with_budget(plan, stated)


def with_budget(plan: Plan, stated: dict[str, str]) -> Plan:
    """Attach a deterministic breakdown when a positive amount was stated."""
    amount = parse_amount(stated.get("budget"))
    if amount is None:
        return plan
    budget = plan.budget or allocate_budget(plan.domain, amount)
    return Plan(
        title=plan.title,
        tasks=attach_costs(plan.tasks, budget),
        budget=budget,
        domain=plan.domain,
        source=plan.source,
    )


# =============================================================================
# AI plan parsing
# =============================================================================

class AITask(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    cost: float | None = Field(default=None, ge=0)
    cost_notes: str | None = None
    category: str | None = None


class AIBudgetItem(BaseModel):
    label: str = Field(min_length=1)
    amount: float = Field(ge=0)
    notes: str | None = None


class AIPlan(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    tasks: list[AITask] = Field(min_length=1)
    budget: list[AIBudgetItem] | None = None
    buffer: float | None = Field(default=None, ge=0)

    def to_plan(self, domain: Domain) -> Plan:
        budget = None
        if self.budget:
            budget = BudgetBreakdown(
                items=[BudgetLineItem(label=i.label, amount=i.amount, notes=i.notes) for i in self.budget],
                buffer=self.buffer or 0.0,
            )
        return Plan(
            title=self.title.strip(),
            tasks=[
                PlanTask(title=t.title.strip(), cost=t.cost, cost_notes=t.cost_notes, category=t.category)
                for t in self.tasks
            ],
            budget=budget,
            domain=domain,
            source="ai",
        )


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def try_parse_json(text: str) -> dict[str, Any] | None:
    """Parse a JSON object from a model reply, tolerating code fences and chatter."""
    fenced = _FENCE_RE.search(text)
    candidate = fenced.group(1) if fenced else text
    start, end = candidate.find("{"), candidate.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(candidate[start:end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


# =============================================================================
# Generator
# =============================================================================

class PlanGenerator:
    """Builds the pending plan for a session that is ready to generate."""

    def __init__(self, llm: LLMClient | None = None, ai_enabled: bool = True) -> None:
        self._llm = llm
        self._ai_enabled = ai_enabled

    @property
    def uses_ai(self) -> bool:
        return self._llm is not None and self._ai_enabled

    async def generate(self, session: PlanningSession, source_content: list[str] | None = None) -> Plan:
        """
        Generate a plan for the session.

        Raises:
            StateError: when the session is not ready to generate
            GenerationFailed: when the AI backend is unreachable
        """
        if session.state != PlanningState.READY_TO_GENERATE:
            raise StateError(f"Cannot generate a plan in state {session.state.value}")

        domain = session.domain or Domain.GENERIC
        stated = dict(session.stated_fields)
        sources = list(source_content or [])

        if not self.uses_ai:
            return template_plan(domain, stated)

        plan = await self._generate_ai(session, domain, stated, sources)
        if plan is None or not plan.tasks:
            logger.info("ai_plan_fallback_to_template", domain=domain.value)
            return template_plan(domain, stated)
        return plan

    async def _generate_ai(
        self,
        session: PlanningSession,
        domain: Domain,
        stated: dict[str, str],
        sources: list[str],
    ) -> Plan | None:
        policy = get_mode_policy(session.mode)
        transcript = [turn for turn in session.transcript if turn.speaker != Speaker.ASSISTANT]
        try:
            reply = await self._llm.complete(
                self._instructions(domain, stated, sources),
                transcript,
                purpose="plan",
                web_search=policy.web_search,
            )
        except LLMUnavailable as exc:
            raise GenerationFailed(str(exc)) from exc

        data = try_parse_json(reply)
        if data is None:
            logger.warning("ai_plan_unparseable", reply_length=len(reply))
            return None
        try:
            parsed = AIPlan.model_validate(data)
        except ValidationError as exc:
            logger.warning("ai_plan_invalid", errors=exc.error_count())
            return None

        user_texts = [turn.text for turn in transcript]
        guard = PlanGuard(GroundingContext(stated=stated, texts=[*sources, *user_texts]))
        plan = guard.enforce(parsed.to_plan(domain))
        if not plan.tasks:
            return None
        return with_budget(plan, stated)

    @staticmethod
    def _instructions(domain: Domain, stated: dict[str, str], sources: list[str]) -> str:
        spec = get_domain_spec(domain)
        facts = "\n".join(
            f"- {spec.get_field(name).label if spec.get_field(name) else name}: {value}"
            for name, value in stated.items()
            if value != NO_BUDGET
        ) or "- (none)"
        budget_rule = (
            "Include a budget breakdown whose total does not exceed the stated budget."
            if parse_amount(stated.get("budget")) is not None
            else "Do NOT include any costs, prices or budget."
        )
        source_block = ""
        if sources:
            source_block = "\n\nReference material:\n" + "\n---\n".join(s[:4000] for s in sources)
        return (
            f"You are a planning assistant. Write an actionable {spec.label.lower()} plan.\n"
            "Use ONLY these facts the user stated; never invent dates, prices or places:\n"
            f"{facts}\n{budget_rule}{source_block}\n\n"
            'Reply with JSON only: {"title": str, "tasks": [{"title": str, "cost": number|null, '
            '"cost_notes": str|null, "category": str|null}], "budget": [{"label": str, "amount": number, '
            '"notes": str|null}]|null, "buffer": number|null}'
        )


# =============================================================================
# Rendering
# =============================================================================

def currency_symbol(stated_budget: str | None) -> str:
    text = (stated_budget or "").lower()
    if "€" in text or "eur" in text:
        return "€"
    if "£" in text or "gbp" in text or "pound" in text:
        return "£"
    return "$"


def render_plan(plan: Plan, stated: dict[str, str]) -> str:
    """User-facing plan text, ending with the confirmation question."""
    symbol = currency_symbol(stated.get("budget"))
    lines = [f"**{plan.title}**", ""]
    for index, task in enumerate(plan.tasks, start=1):
        cost = f" ({symbol}{task.cost:,.2f})" if task.cost is not None else ""
        lines.append(f"{index}. {task.title}{cost}")

    if plan.budget is not None:
        lines.append("")
        lines.append("Budget breakdown:")
        for item in plan.budget.items:
            lines.append(f"- {item.label}: {symbol}{item.amount:,.2f}")
        lines.append(f"- Buffer: {symbol}{plan.budget.buffer:,.2f}")
        lines.append(f"Total: {symbol}{plan.budget.total:,.2f}")

    lines.append("")
    lines.append(CONFIRMATION_PROMPT)
    return "\n".join(lines)


__all__ = [
    "AIPlan",
    "BUDGET_RATIOS",
    "CONFIRMATION_PROMPT",
    "PlanGenerator",
    "allocate_budget",
    "attach_costs",
    "currency_symbol",
    "render_plan",
    "template_plan",
    "try_parse_json",
    "with_budget",
]
