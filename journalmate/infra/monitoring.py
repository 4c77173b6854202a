"""
Prometheus monitoring for the JournalMate planner.

Metrics:
- Planner turns by mode and resulting state
- AI provider calls: count by outcome, latency
- Plans generated by source (ai / template) and hallucination strips
- Activities materialized (created vs. idempotent replay)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from prometheus_client import Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


# =============================================================================
# Metrics Definitions
# =============================================================================

planner_turns_total = Counter(
    "journalmate_planner_turns_total",
    "Planner turns processed",
    ["mode", "state"],
)

llm_calls_total = Counter(
    "journalmate_llm_calls_total",
    "AI provider calls",
    ["provider", "purpose", "outcome"],
)

llm_call_duration_seconds = Histogram(
    "journalmate_llm_call_duration_seconds",
    "AI provider call latency in seconds",
    ["provider"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

plans_generated_total = Counter(
    "journalmate_plans_generated_total",
    "Plans accepted as pending",
    ["domain", "source"],
)

hallucinations_stripped_total = Counter(
    "journalmate_hallucinations_stripped_total",
    "Plan elements discarded for unsupported values",
    ["kind"],
)

activities_materialized_total = Counter(
    "journalmate_activities_materialized_total",
    "Confirmed plans written to storage",
    ["outcome"],
)


# =============================================================================
# Recording helpers
# =============================================================================

def record_turn(mode: str, state: str) -> None:
    """Count one processed planner turn."""
    planner_turns_total.labels(mode=mode, state=state).inc()


def record_plan(domain: str, source: str) -> None:
    plans_generated_total.labels(domain=domain, source=source).inc()


def record_hallucination(kind: str, count: int = 1) -> None:
    if count > 0:
        hallucinations_stripped_total.labels(kind=kind).inc(count)


def record_materialization(outcome: str) -> None:
    """outcome: created | replayed | failed"""
    activities_materialized_total.labels(outcome=outcome).inc()


@contextmanager
def track_llm_call(provider: str, purpose: str) -> Iterator[dict[str, Any]]:
    """
    Track one AI provider call.

    Usage:
        >>> with track_llm_call("openai", "plan") as ctx:
        ...     text = await provider.complete(...)
        ...     ctx["outcome"] = "ok"
    """
    start_time = time.time()
    ctx: dict[str, Any] = {"outcome": "error"}
    try:
        yield ctx
    finally:
        duration = time.time() - start_time
        llm_calls_total.labels(provider=provider, purpose=purpose, outcome=ctx["outcome"]).inc()
        llm_call_duration_seconds.labels(provider=provider).observe(duration)


def metrics_payload() -> bytes:
    """Prometheus exposition payload for the /metrics endpoint."""
    return generate_latest()
