"""
Exception hierarchy for the JournalMate planner.

All planner errors inherit from JournalMateException so callers can catch
the whole family while still handling the recoverable cases individually:

- SessionNotFound / StateError: session lifecycle
- ClassificationUnavailable / ExtractionFailed: degrade locally, never surfaced
- GenerationFailed / MaterializationFailed: surfaced with a retry affordance
- HallucinationDetected / DuplicateConfirmation: invariant checks, corrected silently
"""

from __future__ import annotations


class JournalMateException(Exception):
    """Base exception for all JournalMate errors."""


class ConfigurationError(JournalMateException):
    """Missing or invalid environment configuration."""


class SessionNotFound(JournalMateException):
    """Referenced session is missing, completed or abandoned."""

    def __init__(self, session_id: str, reason: str = "missing") -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Planning session {session_id} is {reason}")


class StateError(JournalMateException):
    """Illegal state transition or operation in the wrong state."""


class ClassificationUnavailable(JournalMateException):
    """Domain classifier backend failed."""


class ExtractionFailed(JournalMateException):
    """Field extraction could not run over the transcript."""


class GenerationFailed(JournalMateException):
    """The AI backend did not produce a usable plan."""


class HallucinationDetected(JournalMateException):
    """Generated content references values nobody stated."""

    def __init__(self, reasons: list[str]) -> None:
        self.reasons = reasons
        super().__init__("; ".join(reasons) or "unsupported plan content")


class MaterializationFailed(JournalMateException):
    """Writing the confirmed plan to storage failed."""


class DuplicateConfirmation(JournalMateException):
    """A second confirmation arrived for an already-completed session."""

    def __init__(self, session_id: str, activity_id: str) -> None:
        self.session_id = session_id
        self.activity_id = activity_id
        super().__init__(f"Session {session_id} already produced activity {activity_id}")


class LLMUnavailable(JournalMateException):
    """Every configured AI provider failed or timed out."""


class ContentExtractionError(JournalMateException):
    """A URL or document could not be turned into text."""


__all__ = [
    "JournalMateException",
    "ConfigurationError",
    "SessionNotFound",
    "StateError",
    "ClassificationUnavailable",
    "ExtractionFailed",
    "GenerationFailed",
    "HallucinationDetected",
    "MaterializationFailed",
    "DuplicateConfirmation",
    "LLMUnavailable",
    "ContentExtractionError",
]
