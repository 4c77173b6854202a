"""
AI text generation for the planner.

Providers are interchangeable: each takes system instructions plus the
transcript and returns text. FallbackLLMClient tries them in the configured
order, each behind its own circuit breaker and a per-call timeout, and
raises LLMUnavailable only when every provider failed.

Smart mode asks for web augmentation. OpenAI honours it by switching to its
search model; Anthropic by enabling its web search tool.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from journalmate.config.planner import PlannerSettings
from journalmate.infra.monitoring import track_llm_call
from journalmate.lib.circuit_breaker import CircuitBreakerError, get_circuit_breaker
from journalmate.lib.exceptions import LLMUnavailable
from journalmate.modules.planning_state import Speaker, Turn

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2048


class LLMProvider(Protocol):
    name: str

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        web_search: bool = False,
    ) -> str: ...


class LLMClient(Protocol):
    """What the planner modules call; FallbackLLMClient implements it."""

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        purpose: str = "general",
        web_search: bool = False,
    ) -> str: ...


def to_chat_messages(transcript: Sequence[Turn]) -> list[dict[str, str]]:
    """
    Map transcript turns to alternating user/assistant chat messages.

    Source content is sent as user-side reference material. Consecutive
    same-role turns are merged and the list always starts with a user turn.
    """
    merged: list[dict[str, str]] = []
    for turn in transcript:
        role = "assistant" if turn.speaker == Speaker.ASSISTANT else "user"
        content = turn.text if turn.speaker != Speaker.SOURCE else f"Reference material:\n{turn.text}"
        if merged and merged[-1]["role"] == role:
            merged[-1]["content"] += "\n" + content
        else:
            merged.append({"role": role, "content": content})
    if not merged or merged[0]["role"] != "user":
        merged.insert(0, {"role": "user", "content": "."})
    return merged


# =============================================================================
# Providers
# =============================================================================

class OpenAIProvider:
    """Chat Completions API over httpx."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        search_model: str = "gpt-4o-search-preview",
        base_url: str = "https://api.openai.com",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._search_model = search_model
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        web_search: bool = False,
    ) -> str:
        body: dict[str, Any] = {
            "model": self._search_model if web_search else self._model,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "messages": [{"role": "system", "content": system_instructions}, *to_chat_messages(transcript)],
        }
        response = await self._client.post(
            f"{self._base_url}/v1/chat/completions",
            json=body,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        response.raise_for_status()
        data = response.json()
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMUnavailable(f"openai: unexpected response structure ({e})") from e
        if not text or not str(text).strip():
            raise LLMUnavailable("openai: empty response")
        return str(text)


class AnthropicProvider:
    """Messages API over httpx."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        web_search: bool = False,
    ) -> str:
        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "system": system_instructions,
            "messages": to_chat_messages(transcript),
        }
        if web_search:
            body["tools"] = [{"type": "web_search_20250305", "name": "web_search", "max_uses": 3}]

        response = await self._client.post(
            f"{self._base_url}/v1/messages",
            json=body,
            headers={"x-api-key": self._api_key, "anthropic-version": "2023-06-01"},
        )
        response.raise_for_status()
        data = response.json()
        try:
            blocks = data["content"]
            text = "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
        except (KeyError, TypeError, AttributeError) as e:
            raise LLMUnavailable(f"anthropic: unexpected response structure ({e})") from e
        if not text.strip():
            raise LLMUnavailable(f"anthropic: empty response (stop_reason={data.get('stop_reason', 'unknown')})")
        return text


# =============================================================================
# Fallback chain
# =============================================================================

class FallbackLLMClient:
    """
    Try providers in order until one answers.

    Args:
        providers: Ordered providers
        timeout_seconds: Per-call timeout
        failure_threshold: Consecutive failures before a provider's circuit opens
        recovery_timeout: Seconds before an open circuit lets a trial call through
    """

    def __init__(
        self,
        providers: Sequence[LLMProvider],
        timeout_seconds: float = 30.0,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
    ) -> None:
        if not providers:
            raise ValueError("FallbackLLMClient needs at least one provider")
        self._providers = list(providers)
        self._timeout = timeout_seconds
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def aclose(self) -> None:
        """Close the HTTP clients the providers created for themselves."""
        for provider in self._providers:
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()

    async def complete(
        self,
        system_instructions: str,
        transcript: Sequence[Turn],
        *,
        purpose: str = "general",
        web_search: bool = False,
    ) -> str:
        """
        Raises:
            LLMUnavailable: every provider failed, timed out or is circuit-open
        """
        errors: list[str] = []
        for provider in self._providers:
            breaker = await get_circuit_breaker(
                f"llm:{provider.name}",
                failure_threshold=self._failure_threshold,
                recovery_timeout=self._recovery_timeout,
            )
            with track_llm_call(provider.name, purpose) as ctx:
                try:
                    text = await breaker.call(
                        lambda p=provider: asyncio.wait_for(
                            p.complete(system_instructions, transcript, web_search=web_search),
                            timeout=self._timeout,
                        )
                    )
                except CircuitBreakerError as e:
                    ctx["outcome"] = "circuit_open"
                    errors.append(str(e))
                    continue
                except TimeoutError:
                    ctx["outcome"] = "timeout"
                    logger.warning("AI provider %s timed out after %.1fs (%s)", provider.name, self._timeout, purpose)
                    errors.append(f"{provider.name}: timeout")
                    continue
                except (httpx.HTTPError, LLMUnavailable, ValueError) as e:
                    logger.warning("AI provider %s failed (%s): %s", provider.name, purpose, e)
                    errors.append(f"{provider.name}: {e}")
                    continue
                ctx["outcome"] = "ok"
                return text

        raise LLMUnavailable("; ".join(errors) or "no AI provider available")


def build_llm_client(settings: PlannerSettings, http_client: httpx.AsyncClient | None = None) -> FallbackLLMClient | None:
    """Build the fallback chain from settings; None when no provider has credentials."""
    providers: list[LLMProvider] = []
    for name in settings.llm_providers:
        if name == "openai" and settings.openai_api_key:
            providers.append(OpenAIProvider(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                search_model=settings.openai_search_model,
                client=http_client,
            ))
        elif name == "anthropic" and settings.anthropic_api_key:
            providers.append(AnthropicProvider(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                client=http_client,
            ))
        elif name not in ("openai", "anthropic"):
            logger.warning("Unknown AI provider %r in JOURNALMATE_LLM_PROVIDERS", name)

    if not providers:
        logger.info("No AI provider configured; planner uses deterministic templates")
        return None
    return FallbackLLMClient(providers, timeout_seconds=settings.llm_timeout_seconds)


__all__ = [
    "AnthropicProvider",
    "FallbackLLMClient",
    "LLMClient",
    "LLMProvider",
    "OpenAIProvider",
    "build_llm_client",
    "to_chat_messages",
]
