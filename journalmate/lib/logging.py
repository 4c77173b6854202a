"""
Structured logging for the planner.

structlog renders both structlog and stdlib records through one handler:
console lines in dev mode, JSON everywhere else. Every line logged while a
planning turn is handled carries that turn's session, user and mode.
"""

import logging
import sys

import structlog

from journalmate.config.planner import PlannerSettings

# Request lines from the AI and page fetches, and SQL echo
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def setup_logging(settings: PlannerSettings) -> None:
    """Configure structlog and the root logger once at startup."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.dev_mode else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_planner_context(session_id: str, user_id: str, mode: str) -> None:
    """Tag every log line of the current planning turn."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(session_id=session_id, user_id=user_id, mode=mode)
