"""Configuration package for JournalMate."""

from journalmate.config.planner import (
    DEMO_USER_ID,
    MODE_POLICIES,
    ModePolicy,
    PlannerSettings,
    PlanningMode,
    get_mode_policy,
)

__all__ = [
    "DEMO_USER_ID",
    "MODE_POLICIES",
    "ModePolicy",
    "PlannerSettings",
    "PlanningMode",
    "get_mode_policy",
]
