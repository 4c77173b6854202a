"""
Hallucination guard for generated plans.

A plan may only mention dates, prices and places that the user stated or
that came from extracted source content. Tasks that carry anything else are
dropped, costs are dropped when no budget amount was stated, and a budget
whose total exceeds the stated amount is rejected.

Also detects plan-shaped text in assistant replies that are supposed to be
questions only.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from journalmate.infra.monitoring import record_hallucination
from journalmate.lib.exceptions import HallucinationDetected
from journalmate.modules.planning_domains import MONTHS, PLACE, WEEKDAYS
from journalmate.modules.planning_parsing import parse_amount
from journalmate.modules.planning_state import Plan, PlanTask

logger = structlog.get_logger(__name__)

# Tolerance for rounding when comparing a budget total to the stated amount
_BUDGET_TOLERANCE = 0.5

_DATE_RE = re.compile(
    rf"\b(?:{MONTHS}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?|\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?{MONTHS}"
    rf"|{WEEKDAYS}|\d{{4}}-\d{{2}}-\d{{2}}|\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?)\b",
    re.IGNORECASE,
)
_PRICE_RE = re.compile(
    r"(?:[$€£]\s?(\d[\d,]*(?:\.\d{1,2})?)(\s?k)?\b"
    r"|\b(\d[\d,]*(?:\.\d{1,2})?)(\s?k)?\s?(?:dollars|bucks|usd|eur|euros?|gbp|pounds)\b)",
    re.IGNORECASE,
)
_PLACE_RE = re.compile(rf"(?i:\b(?:in|at|to|near|from|around|visit|visiting|explore|exploring)\s+)({PLACE})")
_NUMBER_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s?(k)?\b", re.IGNORECASE)

# Words that start a capitalized run without naming a place
_PLACE_STOPWORDS = frozenset({
    "day", "the", "your", "my", "our", "a", "an", "each", "every", "least", "home", "one",
    "hotel", "airport", "station", "restaurant", "gym", "museum", "beach", "park", "venue",
    "store", "shop", "office", "local", "check", "night", "week", "weekend",
})

_PLAN_MARKERS_RE = re.compile(
    r"\b(?:day\s+\d+\s*[:\-]|itinerary|here'?s\s+(?:your|the|a)\s+(?:plan|itinerary)|budget\s+breakdown"
    r"|are\s+you\s+comfortable\s+with\s+this\s+plan|step\s+\d+\s*:)",
    re.IGNORECASE,
)
_LIST_LINE_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(?P<text>.+)$", re.MULTILINE)


def contains_plan_content(text: str) -> bool:
    """
    True when an assistant reply already reads like a plan.

    Numbered questions are fine; three or more list lines that are not
    questions, or an explicit plan marker, count as plan content.
    """
    if _PLAN_MARKERS_RE.search(text):
        return True
    statements = [
        m.group("text") for m in _LIST_LINE_RE.finditer(text)
        if not m.group("text").rstrip().endswith("?")
    ]
    return len(statements) >= 3


def _numbers(texts: Iterable[str]) -> set[float]:
    found: set[float] = set()
    for text in texts:
        for match in _NUMBER_RE.finditer(text):
            try:
                value = float(match.group(1).replace(",", ""))
            except ValueError:
                continue
            found.add(value)
            if match.group(2):
                found.add(value * 1000)
    return found


@dataclass
class GroundingContext:
    """Everything a plan is allowed to mention."""

    stated: dict[str, str]
    texts: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        corpus = [*self.stated.values(), *self.texts]
        self._lower = "\n".join(corpus).lower()
        self._numbers = _numbers(corpus)

    @property
    def budget_amount(self) -> float | None:
        return parse_amount(self.stated.get("budget"))

    def mentions(self, phrase: str) -> bool:
        return phrase.lower() in self._lower

    def mentions_number(self, value: float) -> bool:
        return value in self._numbers


class PlanGuard:
    """Strips unsupported content from a plan."""

    def __init__(self, context: GroundingContext) -> None:
        self.context = context

    def verify_task(self, task: PlanTask) -> None:
        """
        Raises:
            HallucinationDetected: when the task names a date, price or place nobody stated
        """
        text = " ".join(part for part in (task.title, task.cost_notes or "") if part)
        reasons: list[str] = []

        for match in _DATE_RE.finditer(text):
            if not self.context.mentions(match.group(0)):
                reasons.append(f"date:{match.group(0)}")

        for match in _PRICE_RE.finditer(text):
            digits = match.group(1) or match.group(3)
            multiplier = 1000 if (match.group(2) or match.group(4)) else 1
            try:
                amount = float(digits.replace(",", "")) * multiplier
            except ValueError:
                continue
            if not self.context.mentions_number(amount):
                reasons.append(f"price:{match.group(0).strip()}")

        for match in _PLACE_RE.finditer(text):
            place = match.group(1)
            if place.split(" ")[0].lower() in _PLACE_STOPWORDS:
                continue
            if not self.context.mentions(place):
                reasons.append(f"place:{place}")

        if reasons:
            raise HallucinationDetected(reasons)

    def enforce(self, plan: Plan) -> Plan:
        """Return a copy of the plan holding only grounded content."""
        budget_amount = self.context.budget_amount
        kept: list[PlanTask] = []

        for task in plan.tasks:
            try:
                self.verify_task(task)
            except HallucinationDetected as exc:
                logger.info("plan_task_stripped", title=task.title, reasons=exc.reasons)
                for reason in exc.reasons:
                    record_hallucination(reason.split(":", 1)[0])
                continue
            if budget_amount is None and (task.cost is not None or task.cost_notes):
                record_hallucination("cost")
                task = PlanTask(title=task.title, category=task.category)
            kept.append(task)

        budget = plan.budget
        if budget is not None:
            if budget_amount is None:
                record_hallucination("budget")
                logger.info("plan_budget_stripped", reason="no_budget_stated")
                budget = None
            elif budget.total > budget_amount + _BUDGET_TOLERANCE:
                record_hallucination("budget")
                logger.info("plan_budget_rejected", total=budget.total, stated=budget_amount)
                budget = None

        return Plan(title=plan.title, tasks=kept, budget=budget, domain=plan.domain, source=plan.source)


__all__ = [
    "GroundingContext",
    "PlanGuard",
    "contains_plan_content",
]
