"""
Field extraction for the planning flow.

Reads the transcript of a planning session and reports which essential
fields of its domain the user has explicitly stated, and with what literal
value. Only user turns and extracted source content are read; assistant
turns never contribute, so a value the assistant suggested does not count
as stated.

Examples:
    "Plan a trip to Paris for 5 days" -> {"destination": "Paris", "duration": "5 days"}
    "Paris" answering "Where are you headed?" -> {"destination": "Paris"}
    "My budget is 1500"               -> {"budget": "1500"}
    "maybe Rome, not sure yet"        -> {} (hedged)
    "we have no budget"               -> {"budget": "none"}

Reference: planning.py (main module)
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from journalmate.lib.exceptions import ExtractionFailed
from journalmate.modules.planning_domains import (
    APPROX,
    BARE_NUMBER,
    COUNT_WORDS,
    DOMAIN_TABLE,
    FILLER_VALUES,
    NO_BUDGET,
    NON_PLACE_WORDS,
    PLACE,
    DomainSpec,
    FieldSpec,
)
from journalmate.modules.planning_state import Domain, Speaker, Turn

logger = structlog.get_logger(__name__)


# A clause containing one of these never populates a field
_HEDGE_RE = re.compile(
    r"\b(?:maybe|perhaps|possibly|probably|not\s+sure|unsure|don'?t\s+know|no\s+idea|undecided|tbd"
    r"|to\s+be\s+decided|not\s+decided|haven'?t\s+decided|flexible|i\s+guess|whatever"
    r"|open\s+to\s+(?:anything|suggestions)|any(?:thing|where|time)\s+(?:works|is\s+fine))\b",
    re.IGNORECASE,
)

# Sentence ends, semicolons, newlines, ", " and " but " all start a new clause.
# A bare comma (as in "$1,500") does not.
_CLAUSE_SPLIT_RE = re.compile(r"[.!?;\n]+(?:\s+|$)|,\s+|\s+but\s+", re.IGNORECASE)

_AMOUNT_RE = re.compile(r"(\d[\d,]*(?:\.\d{1,2})?)\s*(k)?\b", re.IGNORECASE)

_READABLE_SOURCES = (Speaker.USER, Speaker.SOURCE)

# Whole-clause answers to a question: "Paris", "4", "around 2k", "Spanish"
_BARE_PLACE_RE = re.compile(PLACE)
_BARE_NUMBER_RE = re.compile(
    rf"(?:{APPROX}\s+)?(?P<value>{BARE_NUMBER}|" + "|".join(sorted(COUNT_WORDS)) + r")(?:\s+(?:total|in\s+total|tops|max))?",
    re.IGNORECASE,
)
_BARE_TEXT_RE = re.compile(r"[A-Za-z][\w+#' -]{1,40}")


@dataclass
class Extraction:
    """Stated field values plus the still-missing fields in priority order."""

    stated: dict[str, str] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def parse_amount(value: str | None) -> float | None:
    """
    Read a numeric amount out of a stated budget value.

    Examples:
        "$2,000" -> 2000.0
        "1.5k"   -> 1500.0
        "low budget" -> None

    Returns:
        The amount, or None when the value carries no positive number
    """
    if not value or value == NO_BUDGET:
        return None
    match = _AMOUNT_RE.search(value)
    if not match:
        return None
    try:
        amount = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    if match.group(2):
        amount *= 1000
    return amount if amount > 0 else None


def split_clauses(text: str) -> list[str]:
    """Split free text into clauses; hedges are scoped to one clause."""
    return [clause for clause in _CLAUSE_SPLIT_RE.split(text) if clause and clause.strip()]


def is_hedged(clause: str) -> bool:
    return _HEDGE_RE.search(clause) is not None


class FieldExtractor:
    """Deterministic, pattern-based extractor over a session transcript."""

    def __init__(self, table: dict[Domain, DomainSpec] | None = None) -> None:
        self._table = table if table is not None else DOMAIN_TABLE

    def extract(self, transcript: Sequence[Turn], domain: Domain) -> Extraction:
        """
        Extract the stated essential fields for a domain.

        Later statements override earlier ones. Any internal failure
        degrades to an empty extraction (every field missing).
        """
        spec = self._table.get(domain) or self._table[Domain.GENERIC]
        try:
            stated = self._scan(transcript, spec)
        except (ExtractionFailed, re.error, TypeError, ValueError) as exc:
            logger.warning("field_extraction_failed", domain=spec.domain.value, error=str(exc))
            stated = {}

        missing = [f.name for f in spec.fields_by_priority() if f.name not in stated]
        return Extraction(stated=stated, missing=missing)

    # -------------------------------------------------------------------------

    def _scan(self, transcript: Sequence[Turn], spec: DomainSpec) -> dict[str, str]:
        stated: dict[str, str] = {}
        # Fields the latest assistant turn asked about; None until an assistant turn is seen
        asked: frozenset[str] | None = None
        for turn in transcript:
            if not isinstance(turn, Turn):
                raise ExtractionFailed(f"unexpected transcript entry: {type(turn).__name__}")
            if turn.speaker == Speaker.ASSISTANT:
                asked = frozenset(turn.asked)
                continue
            if turn.speaker not in _READABLE_SOURCES:
                continue
            shapes_used: set[str] = set()
            for clause in split_clauses(turn.text):
                if is_hedged(clause):
                    continue
                matched = False
                for field_spec in spec.fields:
                    value = self._last_value(clause, field_spec)
                    if value is not None:
                        stated[field_spec.name] = value
                        matched = True
                if matched or turn.speaker != Speaker.USER:
                    continue
                bare = self._bare_answer(clause, spec, stated, asked, shapes_used)
                if bare is not None:
                    shape, name, value = bare
                    stated[name] = value
                    shapes_used.add(shape)
        return stated

    def _bare_answer(
        self,
        clause: str,
        spec: DomainSpec,
        stated: dict[str, str],
        asked: frozenset[str] | None,
        shapes_used: set[str],
    ) -> tuple[str, str, str] | None:
        """
        Read a clause that is nothing but a value ("Paris", "4", "around 2k").

        The value goes to the highest-priority open field of the matching
        shape. Once an assistant turn has asked questions, only the fields it
        asked about are open; before any question every missing field is.
        Each shape is used at most once per turn, so "Paris, France" fills
        one field.
        """
        text = " ".join(clause.split()).strip(" -'\"")
        if not text:
            return None
        open_fields = [
            f for f in spec.fields_by_priority()
            if f.name not in stated and (asked is None or f.name in asked)
        ]
        if not open_fields:
            return None

        if "place" not in shapes_used and len(text.split(" ")) <= 4 and _BARE_PLACE_RE.fullmatch(text):
            for field_spec in open_fields:
                if field_spec.place:
                    value = self._clean(text, field_spec)
                    if value == text:
                        return "place", field_spec.name, value
                    break

        number = _BARE_NUMBER_RE.fullmatch(text)
        if number and "number" not in shapes_used:
            raw = number.group("value")
            amount = parse_amount(raw) if raw[0].isdigit() else None
            count_like = raw.lower() in COUNT_WORDS or (raw.isdigit() and 0 < int(raw) < 100)
            target = None
            if count_like:
                target = next((f for f in open_fields if f.count), None)
            if target is None and amount is not None and (asked is not None or not count_like):
                target = next((f for f in open_fields if f.budget), None)
            if target is not None:
                return "number", target.name, raw
            return None

        free = [f for f in open_fields if f.free_text]
        if (
            asked is not None
            and "text" not in shapes_used
            and len(free) == 1
            and _BARE_TEXT_RE.fullmatch(text)
            and text.split(" ")[0].lower() not in NON_PLACE_WORDS
            and text.lower() not in FILLER_VALUES
        ):
            return "text", free[0].name, text
        return None

    def _last_value(self, clause: str, field_spec: FieldSpec) -> str | None:
        """Latest acceptable match of any of the field's patterns in a clause."""
        best: tuple[int, str] | None = None
        for pattern in field_spec.patterns:
            for match in pattern.finditer(clause):
                groups = match.groupdict()
                if field_spec.budget and groups.get("none"):
                    value = NO_BUDGET
                    position = match.start("none")
                else:
                    raw = groups.get("value")
                    if raw is None:
                        continue
                    value = self._clean(raw, field_spec)
                    if value is None:
                        continue
                    position = match.start("value")
                if best is None or position >= best[0]:
                    best = (position, value)
        return best[1] if best else None

    @staticmethod
    def _clean(raw: str, field_spec: FieldSpec) -> str | None:
        value = " ".join(raw.split()).strip(" -'\"")
        if not value:
            return None

        if field_spec.place:
            words = value.split(" ")
            # "Paris March" -> "Paris"; "March" alone -> rejected
            while words and words[-1].lower() in NON_PLACE_WORDS:
                words.pop()
            if not words or words[0].lower() in NON_PLACE_WORDS:
                return None
            value = " ".join(words)

        if value.lower() in FILLER_VALUES:
            return None
        return value


__all__ = [
    "Extraction",
    "FieldExtractor",
    "is_hedged",
    "parse_amount",
    "split_clauses",
]
