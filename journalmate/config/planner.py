"""
Planner configuration for JournalMate.

Defines the two planning modes and their question-budget policies, plus the
environment-driven runtime settings (AI providers, storage, staleness).

Modes:
- quick: 3 questions before a plan is generated
- smart: 5 questions, with web augmentation requested from the AI provider

The emoji and label are display-only; core logic reads the thresholds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum

from journalmate.lib.exceptions import ConfigurationError

# Sessions opened without authentication all share this owner
DEMO_USER_ID = "demo-user"


class PlanningMode(StrEnum):
    """Turn-budget policies for the same planning state machine."""

    QUICK = "quick"
    SMART = "smart"


@dataclass(frozen=True)
class ModePolicy:
    """Question-budget policy for one planning mode."""

    mode: PlanningMode
    minimum_questions: int
    maximum_questions: int
    # Tunable: how many new fields one assistant turn may ask about
    batch_size: int = 3
    # Tunable: how often an unanswered field may be asked again
    max_reasks: int = 1
    emoji: str = ""
    label: str = ""
    web_search: bool = False


MODE_POLICIES: dict[PlanningMode, ModePolicy] = {
    PlanningMode.QUICK: ModePolicy(
        mode=PlanningMode.QUICK,
        minimum_questions=3,
        maximum_questions=3,
        emoji="⚡",
        label="Quick Plan",
    ),
    PlanningMode.SMART: ModePolicy(
        mode=PlanningMode.SMART,
        minimum_questions=5,
        maximum_questions=5,
        emoji="\U0001f9e0",
        label="Smart Plan",
        web_search=True,
    ),
}


def get_mode_policy(mode: str | PlanningMode) -> ModePolicy:
    """
    Look up the policy for a mode.

    Raises:
        ConfigurationError: for an unknown mode string
    """
    try:
        return MODE_POLICIES[PlanningMode(mode)]
    except ValueError as exc:
        raise ConfigurationError(f"Unknown planning mode: {mode!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class PlannerSettings:
    """Runtime settings read from the environment."""

    database_url: str = "sqlite:///./journalmate.db"
    redis_url: str | None = None
    llm_providers: list[str] = field(default_factory=lambda: ["openai", "anthropic"])
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_search_model: str = "gpt-4o-search-preview"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    llm_timeout_seconds: float = 30.0
    session_ttl_seconds: int = 24 * 3600
    ai_plans_enabled: bool = True
    dev_mode: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> PlannerSettings:
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: when a numeric variable does not parse
        """
        providers_raw = os.getenv("JOURNALMATE_LLM_PROVIDERS", "openai,anthropic")
        providers = [p.strip().lower() for p in providers_raw.split(",") if p.strip()]
        try:
            timeout = float(os.getenv("PLANNER_LLM_TIMEOUT_SECONDS", "30"))
            ttl = int(os.getenv("PLANNER_SESSION_TTL_SECONDS", str(24 * 3600)))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid planner timing setting: {exc}") from exc

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./journalmate.db"),
            redis_url=os.getenv("REDIS_URL"),
            llm_providers=providers,
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            openai_search_model=os.getenv("OPENAI_SEARCH_MODEL", "gpt-4o-search-preview"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
            llm_timeout_seconds=timeout,
            session_ttl_seconds=ttl,
            ai_plans_enabled=_env_bool("PLANNER_AI_PLANS", True),
            dev_mode=_env_bool("JOURNALMATE_DEV_MODE", False),
            environment=os.getenv("JOURNALMATE_ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
