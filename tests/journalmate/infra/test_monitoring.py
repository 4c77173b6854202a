"""
Tests for Prometheus monitoring (journalmate/infra/monitoring.py).

Test coverage:
- Metric recording helpers
- track_llm_call outcome labelling
- Metrics export
"""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from journalmate.infra.monitoring import (
    metrics_payload,
    record_hallucination,
    record_materialization,
    record_plan,
    record_turn,
    track_llm_call,
)


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_record_turn_increments_counter() -> None:
    labels = {"mode": "quick", "state": "collecting"}
    before = _sample("journalmate_planner_turns_total", labels)
    record_turn("quick", "collecting")
    assert _sample("journalmate_planner_turns_total", labels) == before + 1


def test_record_plan_and_materialization() -> None:
    plan_labels = {"domain": "travel", "source": "template"}
    before = _sample("journalmate_plans_generated_total", plan_labels)
    record_plan("travel", "template")
    assert _sample("journalmate_plans_generated_total", plan_labels) == before + 1

    before = _sample("journalmate_activities_materialized_total", {"outcome": "created"})
    record_materialization("created")
    assert _sample("journalmate_activities_materialized_total", {"outcome": "created"}) == before + 1


def test_record_hallucination_ignores_zero() -> None:
    before = _sample("journalmate_hallucinations_stripped_total", {"kind": "place"})
    record_hallucination("place", 0)
    record_hallucination("place", 2)
    assert _sample("journalmate_hallucinations_stripped_total", {"kind": "place"}) == before + 2


def test_track_llm_call_ok() -> None:
    labels = {"provider": "openai", "purpose": "plan", "outcome": "ok"}
    before = _sample("journalmate_llm_calls_total", labels)
    with track_llm_call("openai", "plan") as ctx:
        ctx["outcome"] = "ok"
    assert _sample("journalmate_llm_calls_total", labels) == before + 1


def test_track_llm_call_defaults_to_error_on_exception() -> None:
    labels = {"provider": "anthropic", "purpose": "classify", "outcome": "error"}
    before = _sample("journalmate_llm_calls_total", labels)
    with pytest.raises(RuntimeError):
        with track_llm_call("anthropic", "classify"):
            raise RuntimeError("boom")
    assert _sample("journalmate_llm_calls_total", labels) == before + 1


def test_metrics_payload_exposes_planner_metrics() -> None:
    record_turn("smart", "plan_pending")
    payload = metrics_payload().decode()
    assert "journalmate_planner_turns_total" in payload
