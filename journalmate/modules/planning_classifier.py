"""
Domain classification for new planning sessions.

Keyword scoring against the domain table decides the domain of the first
message. When no keyword matches, the AI provider (if configured) may
suggest one label from the closed set; anything else falls back to generic.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from journalmate.lib.exceptions import ClassificationUnavailable, LLMUnavailable
from journalmate.modules.planning_domains import DOMAIN_TABLE, DomainSpec
from journalmate.modules.planning_state import Domain, Speaker, Turn

if TYPE_CHECKING:
    from journalmate.services.llm import LLMClient

logger = structlog.get_logger(__name__)


class DomainClassifier:
    """Maps an initial message to exactly one Domain."""

    def __init__(
        self,
        llm: LLMClient | None = None,
        table: dict[Domain, DomainSpec] | None = None,
    ) -> None:
        self._llm = llm
        self._table = table if table is not None else DOMAIN_TABLE

    def score(self, message: str) -> dict[Domain, int]:
        """Keyword hit counts per domain (domains without hits omitted)."""
        scores: dict[Domain, int] = {}
        for domain, spec in self._table.items():
            hits = len(spec.keyword_pattern.findall(message))
            if hits:
                scores[domain] = hits
        return scores

    def classify_by_keywords(self, message: str) -> Domain | None:
        scores = self.score(message)
        if not scores:
            return None
        best = max(scores.values())
        # Ties go to the earliest domain in table order
        for domain in self._table:
            if scores.get(domain) == best:
                return domain
        return None

    async def classify(self, initial_message: str) -> Domain:
        """
        Classify the first message of a session.

        Never raises: backend failures are logged and resolve to generic.
        """
        domain = self.classify_by_keywords(initial_message)
        if domain is not None:
            return domain

        if self._llm is None:
            return Domain.GENERIC

        try:
            return await self._classify_with_llm(initial_message)
        except ClassificationUnavailable as exc:
            logger.warning("domain_classification_unavailable", error=str(exc))
            return Domain.GENERIC

    async def _classify_with_llm(self, message: str) -> Domain:
        labels = ", ".join(d.value for d in self._table)
        instructions = (
            "Classify the user's planning request into exactly one of these categories: "
            f"{labels}. Reply with the single category word only."
        )
        try:
            reply = await self._llm.complete(
                instructions, [Turn(speaker=Speaker.USER, text=message)], purpose="classify",
            )
        except LLMUnavailable as exc:
            raise ClassificationUnavailable(str(exc)) from exc

        label = reply.strip().strip(".\"'`").lower()
        try:
            domain = Domain(label)
        except ValueError:
            logger.info("domain_classification_rejected", label=label[:40])
            return Domain.GENERIC
        return domain if domain in self._table else Domain.GENERIC


__all__ = ["DomainClassifier"]
