"""Redis service for cross-process planner locks."""

from __future__ import annotations

import logging
import os
import ssl
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# Delete the lock only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisService:
    """
    Thin async Redis wrapper.

    Every operation degrades when Redis is unreachable: lock calls return
    None ("unknown") and callers fall back to in-process locking.
    """

    def __init__(self, redis_url: str | None = None) -> None:
        self._redis_url = redis_url or os.environ.get("REDIS_URL")
        self._client: redis.Redis | None = None

    @staticmethod
    def _tls_kwargs(redis_url: str) -> dict[str, Any]:
        """Build TLS keyword arguments when using rediss:// URLs."""
        if not redis_url.startswith("rediss://"):
            return {}

        cert_path = os.environ.get("REDIS_TLS_CERT_PATH")
        if cert_path:
            ssl_ctx = ssl.create_default_context(cafile=cert_path)
        else:
            ssl_ctx = ssl.create_default_context()
        ssl_ctx.check_hostname = True
        ssl_ctx.verify_mode = ssl.CERT_REQUIRED
        return {"ssl": ssl_ctx}

    @property
    def configured(self) -> bool:
        return bool(self._redis_url) or self._client is not None

    async def _ensure_async_client(self) -> redis.Redis | None:
        """Get or create the async client; None when Redis is not reachable."""
        if self._client is None and self._redis_url:
            try:
                client = redis.from_url(  # type: ignore[no-untyped-call]
                    self._redis_url,
                    decode_responses=True,
                    **self._tls_kwargs(self._redis_url),
                )
                await client.ping()
                self._client = client
            except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
                logger.warning("Redis unavailable at %s: %s", self._redis_url, e)
                self._client = None
        return self._client

    async def acquire_lock(self, key: str, token: str, ttl_ms: int) -> bool | None:
        """
        SET key token NX PX ttl_ms.

        Returns:
            True if acquired, False if held by someone else, None if Redis is unavailable
        """
        client = await self._ensure_async_client()
        if client is None:
            return None
        try:
            result = await client.set(key, token, nx=True, px=ttl_ms)
        except redis.RedisError as e:
            logger.warning("Redis lock acquire failed for %s: %s", key, e)
            return None
        return bool(result)

    async def release_lock(self, key: str, token: str) -> bool:
        """Release a lock previously acquired with the same token."""
        client = await self._ensure_async_client()
        if client is None:
            return False
        try:
            result = await client.eval(_RELEASE_SCRIPT, 1, key, token)
        except redis.RedisError as e:
            logger.warning("Redis lock release failed for %s: %s", key, e)
            return False
        return bool(result)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = ["RedisService"]
