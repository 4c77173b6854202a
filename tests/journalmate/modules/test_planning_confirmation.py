"""
Tests for confirmation detection (journalmate/modules/planning_confirmation.py).
"""

from __future__ import annotations

import pytest

from journalmate.modules.planning_confirmation import Confirmation, ConfirmationDetector
from journalmate.modules.planning_state import Speaker, Turn


@pytest.fixture()
def detector() -> ConfirmationDetector:
    return ConfirmationDetector()


class TestConfirmation:

    @pytest.mark.parametrize(
        "reply",
        ["yes", "Yes, let's do it", "sounds good", "perfect!", "no problem", "ok go ahead"],
    )
    def test_affirm(self, detector: ConfirmationDetector, reply: str) -> None:
        assert detector.detect(reply) == Confirmation.AFFIRM

    @pytest.mark.parametrize("reply", ["nope", "not really", "I don't like it", "cancel that"])
    def test_reject(self, detector: ConfirmationDetector, reply: str) -> None:
        assert detector.detect(reply) == Confirmation.REJECT

    @pytest.mark.parametrize(
        "reply",
        ["yes but increase the budget", "Can you make it cheaper?", "add a museum day", "hmm"],
    )
    def test_refine(self, detector: ConfirmationDetector, reply: str) -> None:
        assert detector.detect(reply) == Confirmation.REFINE

    def test_change_request_beats_agreement(self, detector: ConfirmationDetector) -> None:
        assert detector.detect("yes, perfect, but make it shorter") == Confirmation.REFINE

    def test_empty_reply_is_refine(self, detector: ConfirmationDetector) -> None:
        assert detector.detect("   ") == Confirmation.REFINE

    def test_accepts_turn(self, detector: ConfirmationDetector) -> None:
        assert detector.detect(Turn(speaker=Speaker.USER, text="Yep")) == Confirmation.AFFIRM

    @pytest.mark.parametrize(
        "reply",
        [
            "Perfect, no changes needed",
            "yes, don't change anything",
            "Looks good, I love it, more than enough",
            "nothing to change",
            "No notes, save it",
        ],
    )
    def test_agreement_worded_like_a_change(self, detector: ConfirmationDetector, reply: str) -> None:
        assert detector.detect(reply) == Confirmation.AFFIRM

    def test_real_change_after_agreement_phrase(self, detector: ConfirmationDetector) -> None:
        assert detector.detect("no changes needed but add a museum day") == Confirmation.REFINE
