"""
Web tools: fetch a URL and search via the Brave Search API.

Fetches connect to the address that passed the SSRF check, never to a fresh
resolution of the hostname. Redirects are followed by hand so every hop is
checked the same way.
"""

from __future__ import annotations

import html
import json
import logging
import os
import re
from typing import Any
from urllib.parse import urljoin

import httpx

from toolguard._types import ToolResult
from toolguard.log_sanitizer import sanitize_url
from toolguard.networking import Resolver, Target, resolve_target
from toolguard.tools.base import PropertySchema, Tool, ToolSchema

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7_2) AppleWebKit/537.36"
MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 10.0
MAX_BODY_BYTES = 2 * 1024 * 1024
DEFAULT_MAX_CHARS = 50_000

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
DEFAULT_MAX_RESULTS = 5

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[\s\S]*?</\1\s*>", re.I)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.I)
_BLOCK_END = re.compile(r"</(?:p|div|section|article|h[1-6]|li|tr)\s*>", re.I)
_TAG = re.compile(r"<[^>]+>")


def strip_html(markup: str) -> str:
    """Reduce an HTML document to readable text."""
    text = _SCRIPT_STYLE.sub("", markup)
    text = _LINE_BREAK.sub("\n", text)
    text = _BLOCK_END.sub("\n\n", text)
    text = _TAG.sub("", text)
    text = html.unescape(text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_content(body: str, content_type: str) -> tuple[str, str]:
    """
    Pick a readable rendering of a response body.

    Returns:
        ``(text, extractor)`` where extractor is "json", "html" or "raw".
    """
    if "application/json" in content_type:
        try:
            return json.dumps(json.loads(body), indent=2, ensure_ascii=False), "json"
        except ValueError:
            return body, "raw"

    head = body.lstrip()[:256].lower()
    if "text/html" in content_type or head.startswith(("<!doctype", "<html")):
        return strip_html(body), "html"
    return body, "raw"


class _Blocked(Exception):
    """A hop failed validation; carries the result to return."""

    def __init__(self, result: ToolResult) -> None:
        super().__init__(result.content)
        self.result = result


class WebFetchTool(Tool):
    """
    Fetch a URL and return its readable text.

    Args:
        max_chars: Default cap on returned characters.
        resolver: Async ``(host, port) -> [addresses]``; defaults to the
            system resolver.
        transport: httpx transport, mainly for tests.
    """

    name = "web_fetch"
    description = "Fetch URL and extract readable text content."

    def __init__(
        self,
        max_chars: int = DEFAULT_MAX_CHARS,
        *,
        resolver: Resolver | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.max_chars = max_chars
        self._resolver = resolver
        self._transport = transport
        self._timeout = timeout

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "url": PropertySchema(type="string", description="URL to fetch"),
                "maxChars": PropertySchema(
                    type="integer", description="Max content chars to return", minimum=100
                ),
            },
            required=("url",),
        )

    async def _check(self, url: str, *, redirect: bool) -> Target:
        check = await resolve_target(url, resolver=self._resolver)
        if check.verdict:
            return check.target
        reason = check.verdict.reason
        if redirect:
            reason = f"Redirect blocked: {reason}"
        if check.resolution_failed:
            raise _Blocked(ToolResult.error(f"Error: {reason}"))
        raise _Blocked(ToolResult.access_denied(f"Error: {reason}"))

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        url: str = params["url"].strip()
        max_chars: int = params.get("maxChars") or self.max_chars

        try:
            target = await self._check(url, redirect=False)
        except _Blocked as blocked:
            return blocked.result

        logger.info("Fetching: %s", sanitize_url(url))
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                trust_env=False,
                follow_redirects=False,
                timeout=self._timeout,
            ) as client:
                status, final_url, content_type, body = await self._fetch(client, target)
        except _Blocked as blocked:
            return blocked.result
        except httpx.HTTPError as e:
            logger.warning("Fetch failed for %s: %s", sanitize_url(url), type(e).__name__)
            return ToolResult.error(f"Error: Fetch failed: {e}")

        text, extractor = extract_content(body, content_type)
        truncated = len(text) > max_chars
        if truncated:
            text = text[:max_chars]

        header = f"[{final_url}]"
        if final_url != url:
            header += f" (redirected from {url})"
        lines = [header, f"Status: {status} | Extractor: {extractor}", "", text]
        if truncated:
            lines.append(f"\n... (truncated to {max_chars} chars)")
        return ToolResult.success("\n".join(lines))

    async def _fetch(
        self, client: httpx.AsyncClient, target: Target
    ) -> tuple[int, str, str, str]:
        for _ in range(MAX_REDIRECTS + 1):
            extensions = {}
            if target.scheme == "https" and not target.is_ip_literal:
                extensions["sni_hostname"] = target.hostname
            request = client.build_request(
                "GET",
                target.pinned_url(),
                headers={"Host": target.host_header, "User-Agent": USER_AGENT},
                extensions=extensions,
            )
            response = await client.send(request, stream=True)
            try:
                location = response.headers.get("location")
                if response.is_redirect and location:
                    next_url = urljoin(target.url, location)
                    logger.debug("Redirect %s -> %s", sanitize_url(target.url), sanitize_url(next_url))
                    target = await self._check(next_url, redirect=True)
                    continue

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body += chunk
                    if len(body) >= MAX_BODY_BYTES:
                        del body[MAX_BODY_BYTES:]
                        break
                encoding = response.charset_encoding or "utf-8"
                try:
                    text = bytes(body).decode(encoding, errors="replace")
                except LookupError:
                    text = bytes(body).decode("utf-8", errors="replace")
                return (
                    response.status_code,
                    target.url,
                    response.headers.get("content-type", ""),
                    text,
                )
            finally:
                await response.aclose()

        raise _Blocked(ToolResult.error(f"Error: Too many redirects (max {MAX_REDIRECTS})"))


class WebSearchTool(Tool):
    """Search the web with the Brave Search API."""

    name = "web_search"
    description = "Search the web. Returns titles, URLs, and snippets."

    def __init__(
        self,
        api_key: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_key = api_key or os.environ.get("BRAVE_API_KEY")
        self.max_results = max_results
        self._transport = transport
        self._timeout = timeout

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "query": PropertySchema(type="string", description="Search query", min_length=1),
                "count": PropertySchema(
                    type="integer", description="Number of results (1-10)", minimum=1, maximum=10
                ),
            },
            required=("query",),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        if not self.api_key:
            return ToolResult.error("Error: BRAVE_API_KEY not configured")

        query: str = params["query"]
        count = min(max(params.get("count") or self.max_results, 1), 10)
        logger.info("Web search: %s (count: %d)", query, count)

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(
                    BRAVE_SEARCH_URL,
                    params={"q": query, "count": str(count)},
                    headers={"Accept": "application/json", "X-Subscription-Token": self.api_key},
                )
        except httpx.HTTPError as e:
            logger.warning("Search request failed: %s", type(e).__name__)
            return ToolResult.error(f"Error: Search request failed: {e}")

        if response.status_code != 200:
            return ToolResult.error(f"Error: Search API returned {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return ToolResult.error("Error: Search API returned invalid JSON")

        results = (data.get("web") or {}).get("results") if isinstance(data, dict) else None
        if not results:
            return ToolResult.success(f"No results for: {query}")

        lines = [f"Results for: {query}\n"]
        for i, item in enumerate(results[:count], start=1):
            lines.append(f"{i}. {item.get('title', '')}\n   {item.get('url', '')}")
            if item.get("description"):
                lines.append(f"   {item['description']}")
        return ToolResult.success("\n".join(lines))
