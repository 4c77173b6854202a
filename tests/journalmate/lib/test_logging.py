"""
Tests for structured logging setup (journalmate/lib/logging.py).
"""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from journalmate.config.planner import PlannerSettings
from journalmate.lib.logging import bind_planner_context, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def _render(record: logging.LogRecord) -> str:
    return logging.getLogger().handlers[0].format(record)


class TestSetupLogging:

    def test_json_outside_dev_mode(self) -> None:
        setup_logging(PlannerSettings(dev_mode=False, log_level="debug"))
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

        record = logging.LogRecord("journalmate.test", logging.INFO, __file__, 1, "plan generated", None, None)
        payload = json.loads(_render(record))
        assert payload["event"] == "plan generated"
        assert payload["level"] == "info"

    def test_console_in_dev_mode(self) -> None:
        setup_logging(PlannerSettings(dev_mode=True))
        record = logging.LogRecord("journalmate.test", logging.WARNING, __file__, 1, "slow provider", None, None)
        rendered = _render(record)
        assert "slow provider" in rendered
        with pytest.raises(json.JSONDecodeError):
            json.loads(rendered)

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(PlannerSettings(log_level="chatty"))
        assert logging.getLogger().level == logging.INFO


class TestPlannerContext:

    def test_binds_turn_identity(self) -> None:
        bind_planner_context("s1", "u1", "quick")
        assert structlog.contextvars.get_contextvars() == {"session_id": "s1", "user_id": "u1", "mode": "quick"}

    def test_previous_turn_is_cleared(self) -> None:
        structlog.contextvars.bind_contextvars(activity_id="a1")
        bind_planner_context("s2", "u2", "smart")
        assert "activity_id" not in structlog.contextvars.get_contextvars()

    def test_context_in_rendered_lines(self) -> None:
        setup_logging(PlannerSettings(dev_mode=False))
        bind_planner_context("s3", "u3", "quick")
        record = logging.LogRecord("journalmate.test", logging.INFO, __file__, 1, "turn handled", None, None)
        payload = json.loads(_render(record))
        assert payload["session_id"] == "s3"
        assert payload["mode"] == "quick"
