"""
Confirmation detection for a pending plan.

Classifies the user's reply to "Are you comfortable with this plan?".
Requested changes take precedence over agreement, so "yes, but make it
cheaper" is a refinement and never a confirmation. Phrases that only sound
like a change request ("no changes needed", "more than enough") are read as
agreement first.
"""

from __future__ import annotations

import re
from enum import StrEnum

from journalmate.modules.planning_state import PlanningSession, Turn


class Confirmation(StrEnum):
    AFFIRM = "affirm"
    REJECT = "reject"
    REFINE = "refine"


_REFINE_RE = re.compile(
    r"\b(?:but|however|change|changes|increase|decrease|raise|lower|add|remove|drop|instead|more|less"
    r"|modify|adjust|swap|replace|different|cheaper|shorter|longer|what\s+about|how\s+about"
    r"|can\s+we|could\s+we|can\s+you|could\s+you|rather)\b",
    re.IGNORECASE,
)

# "no problem" / "no worries" are agreement, not rejection
_REJECT_RE = re.compile(
    r"\b(?:no(?!\s+(?:problem|worries))|nope|nah|not\s+really|cancel|don'?t|do\s+not|start\s+over"
    r"|never\s*mind|not\s+comfortable|not\s+happy)\b",
    re.IGNORECASE,
)

# Agreement phrased with change or reject words
_AGREEMENT_RE = re.compile(
    r"\b(?:no\s+(?:further\s+|more\s+)?changes?(?:\s+(?:needed|necessary|required))?"
    r"|(?:don'?t|do\s+not|wouldn'?t|would\s+not)\s+(?:change|add|remove)\s+(?:anything|a\s+thing)"
    r"|nothing\s+(?:to|I'?d|I\s+would)\s+change|no\s+need\s+to\s+change(?:\s+anything)?"
    r"|don'?t\s+need\s+(?:any\s+)?changes|(?:it'?s\s+)?more\s+than\s+enough|no\s+notes)\b",
    re.IGNORECASE,
)

_AFFIRM_RE = re.compile(
    r"\b(?:yes|yeah|yep|yup|sure|ok|okay|looks\s+good|perfect|great|sounds\s+good|i'?m\s+comfortable"
    r"|that\s+works|let'?s\s+do\s+it|go\s+ahead|proceed|confirm(?:ed)?|love\s+it|all\s+good"
    r"|no\s+problem|no\s+worries|absolutely|definitely|do\s+it|save\s+it)\b",
    re.IGNORECASE,
)


class ConfirmationDetector:
    """Lexical classifier: refine beats reject beats affirm; unknown is refine."""

    def detect(self, latest_user_turn: Turn | str, session: PlanningSession | None = None) -> Confirmation:
        text = latest_user_turn.text if isinstance(latest_user_turn, Turn) else latest_user_turn
        text = text.strip()
        if not text:
            return Confirmation.REFINE
        agreed = _AGREEMENT_RE.search(text) is not None
        remainder = _AGREEMENT_RE.sub(" ", text)
        if _REFINE_RE.search(remainder):
            return Confirmation.REFINE
        if _REJECT_RE.search(remainder):
            return Confirmation.REJECT
        if agreed or _AFFIRM_RE.search(remainder):
            return Confirmation.AFFIRM
        return Confirmation.REFINE


__all__ = ["Confirmation", "ConfirmationDetector"]
