"""
Lib package for JournalMate.

Contains shared utilities:
- exceptions.py: Planner exception hierarchy
- errors.py: Error codes and i18n-ready error responses
- circuit_breaker.py: Circuit breaker for AI provider calls
- logging.py: structlog configuration
"""

from journalmate.lib.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
    get_all_circuit_breakers,
    get_circuit_breaker,
    reset_circuit_breakers,
)
from journalmate.lib.errors import (
    GENERATION_FAILED,
    INTERNAL_ERROR,
    INVALID_STATE,
    MATERIALIZATION_FAILED,
    SESSION_NOT_FOUND,
    VALIDATION_ERROR,
    build_error_response,
    code_for_exception,
    get_error_message,
)

__all__ = [
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "get_circuit_breaker",
    "get_all_circuit_breakers",
    "reset_circuit_breakers",
    # Errors
    "SESSION_NOT_FOUND",
    "GENERATION_FAILED",
    "MATERIALIZATION_FAILED",
    "INVALID_STATE",
    "VALIDATION_ERROR",
    "INTERNAL_ERROR",
    "build_error_response",
    "code_for_exception",
    "get_error_message",
]
