"""
Centralized error response builder for the JournalMate planner.

Error codes are constants that map to translatable, user-facing messages.
The builder returns structured error dicts compatible with the API
response envelope.
"""

from __future__ import annotations

from typing import Any

from journalmate.lib.exceptions import (
    GenerationFailed,
    JournalMateException,
    LLMUnavailable,
    MaterializationFailed,
    SessionNotFound,
    StateError,
)

# =============================================================================
# Error Code Constants
# =============================================================================

SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
GENERATION_FAILED = "GENERATION_FAILED"
MATERIALIZATION_FAILED = "MATERIALIZATION_FAILED"
INVALID_STATE = "INVALID_STATE"
VALIDATION_ERROR = "VALIDATION_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"

# =============================================================================
# i18n Message Registry
#
# Maps (error_code, language) -> message. Falls back to "en".
# =============================================================================

_ERROR_MESSAGES: dict[str, dict[str, str]] = {
    SESSION_NOT_FOUND: {
        "en": "That planning session has ended. Send a new message to start a fresh plan.",
        "de": "Diese Planungssitzung ist beendet. Sende eine neue Nachricht, um neu zu planen.",
    },
    GENERATION_FAILED: {
        "en": "I couldn't put your plan together just now. Please try again.",
        "de": "Ich konnte deinen Plan gerade nicht erstellen. Bitte versuche es erneut.",
    },
    MATERIALIZATION_FAILED: {
        "en": "I couldn't save your plan. Please try again.",
        "de": "Ich konnte deinen Plan nicht speichern. Bitte versuche es erneut.",
    },
    INVALID_STATE: {
        "en": "That action isn't available right now.",
        "de": "Diese Aktion ist gerade nicht verfuegbar.",
    },
    VALIDATION_ERROR: {
        "en": "Invalid input. Please check your request.",
        "de": "Ungueltige Eingabe. Bitte ueberpruefe deine Anfrage.",
    },
    INTERNAL_ERROR: {
        "en": "Something went wrong. Please try again.",
        "de": "Etwas ist schiefgelaufen. Bitte versuche es erneut.",
    },
}

_DEFAULT_LANG = "en"

# Exceptions that carry a retry affordance for the end user
RETRYABLE_CODES: frozenset[str] = frozenset({GENERATION_FAILED, MATERIALIZATION_FAILED})


def get_error_message(code: str, lang: str = "en") -> str:
    """
    Get a translated error message for a given error code.

    Args:
        code: Error code constant
        lang: ISO 639-1 language code

    Returns:
        Translated message, English fallback, or a generic message
    """
    messages = _ERROR_MESSAGES.get(code, {})
    return messages.get(lang, messages.get(_DEFAULT_LANG, "An error occurred."))


def code_for_exception(exc: BaseException) -> str:
    """Map a planner exception onto its error code."""
    if isinstance(exc, SessionNotFound):
        return SESSION_NOT_FOUND
    if isinstance(exc, (GenerationFailed, LLMUnavailable)):
        return GENERATION_FAILED
    if isinstance(exc, MaterializationFailed):
        return MATERIALIZATION_FAILED
    if isinstance(exc, StateError):
        return INVALID_STATE
    if isinstance(exc, JournalMateException):
        return INTERNAL_ERROR
    return INTERNAL_ERROR


def build_error_response(
    code: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    lang: str = "en",
) -> dict[str, Any]:
    """
    Build a structured error dict for the response envelope.

    Args:
        code: Error code constant
        message: Optional override message (bypasses i18n lookup)
        details: Optional additional error details
        lang: Language for the i18n lookup

    Returns:
        {"code": str, "message": str, "retryable": bool, "details"?: dict}
    """
    resolved_message = message if message is not None else get_error_message(code, lang)
    error: dict[str, Any] = {
        "code": code,
        "message": resolved_message,
        "retryable": code in RETRYABLE_CODES,
    }
    if details is not None:
        error["details"] = details
    return error


__all__ = [
    "SESSION_NOT_FOUND",
    "GENERATION_FAILED",
    "MATERIALIZATION_FAILED",
    "INVALID_STATE",
    "VALIDATION_ERROR",
    "INTERNAL_ERROR",
    "RETRYABLE_CODES",
    "get_error_message",
    "code_for_exception",
    "build_error_response",
]
