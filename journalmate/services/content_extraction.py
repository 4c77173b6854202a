"""
Content extraction for planner source material.

Turns a reference the user shared (a URL, or already-extracted document
text) into plain text. The planner appends the result to the transcript as
a ``source`` turn, so stated values and plan grounding can come from it.

URLs are fetched server-side, so every hop (including redirects) must
resolve to public addresses only, and the body is read up to a byte cap.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from journalmate.lib.exceptions import ContentExtractionError

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 8000
MAX_CONTENT_BYTES = 512 * 1024
MAX_REDIRECTS = 5

# Elements that never carry readable page content
_NOISE_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript", "svg", "head"]

Resolver = Callable[[str, int], Awaitable[list[str]]]


@dataclass(frozen=True)
class ExtractedContent:
    source: str
    text: str


class ContentExtractor(Protocol):
    async def extract(self, reference: str) -> ExtractedContent: ...


def html_to_text(markup: str) -> str:
    """Strip markup down to readable text, one block per line."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()
    text = soup.get_text(separator="\n", strip=True)
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


async def resolve_host(host: str, port: int) -> list[str]:
    """All addresses a host name resolves to."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [str(info[4][0]) for info in infos]


def is_public_address(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_global and not ip.is_multicast


class HttpContentExtractor:
    """
    Fetches http(s) URLs with httpx; anything else is treated as document text.

    Args:
        client: Shared httpx client (closed by aclose() only when created here)
        timeout_seconds: Per-request timeout
        max_chars: Characters of text kept
        max_bytes: Bytes of body read before the download is cut off
        resolver: Host name resolver, checked before every request
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
        max_chars: int = MAX_CONTENT_CHARS,
        max_bytes: int = MAX_CONTENT_BYTES,
        resolver: Resolver | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._timeout = timeout_seconds
        self._max_chars = max_chars
        self._max_bytes = max_bytes
        self._resolver = resolver or resolve_host

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def extract(self, reference: str) -> ExtractedContent:
        """
        Raises:
            ContentExtractionError: fetch failed, the URL points at a
                non-public address, or the page has no text
        """
        reference = reference.strip()
        if not reference.lower().startswith(("http://", "https://")):
            text = reference[:self._max_chars]
            if not text:
                raise ContentExtractionError("Empty document")
            return ExtractedContent(source="document", text=text)

        try:
            body, content_type, encoding = await self._fetch(httpx.URL(reference))
        except httpx.HTTPError as e:
            raise ContentExtractionError(f"Could not fetch {reference}: {e}") from e

        markup = body.decode(encoding or "utf-8", errors="replace")
        text = html_to_text(markup) if "html" in content_type or markup.lstrip().startswith("<") else markup.strip()
        if not text:
            raise ContentExtractionError(f"No readable text at {reference}")

        logger.info("Extracted %d chars from %s", len(text), reference)
        return ExtractedContent(source=reference, text=text[:self._max_chars])

    async def _fetch(self, url: httpx.URL) -> tuple[bytes, str, str | None]:
        """Follow redirects by hand so each hop passes the address check."""
        for _ in range(MAX_REDIRECTS + 1):
            await self._check_public(url)
            async with self._client.stream(
                "GET", url, timeout=self._timeout, follow_redirects=False,
            ) as response:
                if response.is_redirect:
                    location = response.headers.get("location")
                    if not location:
                        raise ContentExtractionError(f"Redirect without location from {url}")
                    url = url.join(location)
                    continue
                response.raise_for_status()
                body = await self._read_capped(response)
                return body, response.headers.get("content-type", ""), response.charset_encoding
        raise ContentExtractionError(f"Too many redirects fetching {url}")

    async def _read_capped(self, response: httpx.Response) -> bytes:
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            remaining = self._max_bytes - size
            chunks.append(chunk[:remaining])
            size += min(len(chunk), remaining)
            if size >= self._max_bytes:
                logger.info("Stopped reading %s after %d bytes", response.url, size)
                break
        return b"".join(chunks)

    async def _check_public(self, url: httpx.URL) -> None:
        """
        Raises:
            ContentExtractionError: scheme is not http(s) or the host
                resolves to a loopback, private, link-local or reserved address
        """
        if url.scheme not in ("http", "https") or not url.host:
            raise ContentExtractionError(f"Unsupported URL {url}")
        port = url.port or (443 if url.scheme == "https" else 80)
        try:
            addresses = await self._resolver(url.host, port)
        except OSError as e:
            raise ContentExtractionError(f"Could not resolve {url.host}: {e}") from e
        if not addresses or not all(is_public_address(address) for address in addresses):
            logger.warning("Refused to fetch %s: host is not public", url)
            raise ContentExtractionError(f"Refusing to fetch non-public address {url.host}")


__all__ = [
    "ContentExtractor",
    "ExtractedContent",
    "HttpContentExtractor",
    "html_to_text",
    "is_public_address",
    "resolve_host",
]
