"""
Tests for mode policies and settings (journalmate/config/planner.py).
"""

from __future__ import annotations

import pytest

from journalmate.config.planner import (
    MODE_POLICIES,
    PlannerSettings,
    PlanningMode,
    get_mode_policy,
)
from journalmate.lib.exceptions import ConfigurationError


class TestModePolicies:

    def test_quick_mode_asks_three(self) -> None:
        policy = get_mode_policy(PlanningMode.QUICK)
        assert policy.minimum_questions == 3
        assert policy.maximum_questions == 3
        assert policy.web_search is False

    def test_smart_mode_asks_five_with_web_search(self) -> None:
        policy = get_mode_policy("smart")
        assert policy.minimum_questions == 5
        assert policy.maximum_questions == 5
        assert policy.web_search is True

    def test_minimum_never_exceeds_maximum(self) -> None:
        for policy in MODE_POLICIES.values():
            assert policy.minimum_questions <= policy.maximum_questions

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            get_mode_policy("turbo")


class TestPlannerSettings:

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("DATABASE_URL", "REDIS_URL", "JOURNALMATE_LLM_PROVIDERS", "PLANNER_AI_PLANS"):
            monkeypatch.delenv(name, raising=False)
        settings = PlannerSettings.from_env()
        assert settings.database_url.startswith("sqlite")
        assert settings.redis_url is None
        assert settings.llm_providers == ["openai", "anthropic"]
        assert settings.ai_plans_enabled is True

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JOURNALMATE_LLM_PROVIDERS", "Anthropic, openai")
        monkeypatch.setenv("PLANNER_LLM_TIMEOUT_SECONDS", "12.5")
        monkeypatch.setenv("PLANNER_SESSION_TTL_SECONDS", "600")
        monkeypatch.setenv("PLANNER_AI_PLANS", "off")
        settings = PlannerSettings.from_env()
        assert settings.llm_providers == ["anthropic", "openai"]
        assert settings.llm_timeout_seconds == 12.5
        assert settings.session_ttl_seconds == 600
        assert settings.ai_plans_enabled is False

    def test_invalid_number_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLANNER_SESSION_TTL_SECONDS", "a day")
        with pytest.raises(ConfigurationError):
            PlannerSettings.from_env()
