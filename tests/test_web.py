"""Tests for the web fetch and search tools."""

from __future__ import annotations

import httpx
import pytest

from toolguard._types import ResultStatus
from toolguard.tools.web import WebFetchTool, WebSearchTool, extract_content, strip_html

PUBLIC_IP = "93.184.216.34"


class FakeResolver:
    def __init__(self, records: dict[str, list[str]]) -> None:
        self.records = records

    async def __call__(self, host: str, port: int) -> list[str]:
        if host not in self.records:
            raise OSError(f"Name or service not known: {host}")
        return self.records[host]


class Handler:
    """httpx MockTransport handler that records requests."""

    def __init__(self, responder) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def _fetch_tool(handler: Handler, records: dict[str, list[str]] | None = None) -> WebFetchTool:
    resolver = FakeResolver(records or {"example.com": [PUBLIC_IP]})
    return WebFetchTool(resolver=resolver, transport=httpx.MockTransport(handler))


class TestWebFetch:
    async def test_fetches_public_page(self) -> None:
        handler = Handler(
            lambda request: httpx.Response(
                200, html="<html><body><h1>Title</h1><p>Hello &amp; welcome</p></body></html>"
            )
        )
        result = await _fetch_tool(handler).execute({"url": "https://example.com/"})

        assert result.status is ResultStatus.SUCCESS
        assert result.content.startswith("[https://example.com/]")
        assert "Hello & welcome" in result.content
        assert "<p>" not in result.content

    async def test_connects_to_checked_address(self) -> None:
        """The request goes to the validated IP with the original Host and SNI."""
        handler = Handler(lambda request: httpx.Response(200, text="ok"))
        await _fetch_tool(handler).execute({"url": "https://example.com/path?x=1"})

        request = handler.requests[0]
        assert request.url.host == PUBLIC_IP
        assert request.url.path == "/path"
        assert request.url.query == b"x=1"
        assert request.headers["host"] == "example.com"
        assert request.extensions["sni_hostname"] == "example.com"

    @pytest.mark.parametrize(
        "url",
        [
            "http://10.0.0.1/",
            "http://192.168.1.1/",
            "http://172.16.0.1/",
            "http://127.0.0.1/",
            "http://169.254.169.254/latest/meta-data/",
            "http://[fc00::1]/",
            "http://[fe80::1]/",
        ],
    )
    async def test_private_addresses_denied(self, url: str) -> None:
        handler = Handler(lambda request: httpx.Response(200, text="internal"))
        result = await _fetch_tool(handler).execute({"url": url})
        assert result.status is ResultStatus.ACCESS_DENIED
        assert "blocked" in result.content
        assert handler.requests == []

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://example.com/", "gopher://example.com/"])
    async def test_non_http_schemes_denied(self, url: str) -> None:
        handler = Handler(lambda request: httpx.Response(200))
        result = await _fetch_tool(handler).execute({"url": url})
        assert result.denied
        assert "validation failed" in result.content
        assert handler.requests == []

    async def test_rebinding_hostname_denied(self) -> None:
        handler = Handler(lambda request: httpx.Response(200))
        tool = _fetch_tool(handler, {"evil.example": ["127.0.0.1"]})
        result = await tool.execute({"url": "http://evil.example/"})
        assert result.denied
        assert handler.requests == []

    async def test_dns_failure_is_error(self) -> None:
        handler = Handler(lambda request: httpx.Response(200))
        result = await _fetch_tool(handler).execute({"url": "https://unknown.example/"})
        assert result.status is ResultStatus.ERROR

    async def test_redirect_to_private_address_denied(self) -> None:
        """Every redirect hop is validated."""
        handler = Handler(
            lambda request: httpx.Response(302, headers={"location": "http://169.254.169.254/latest/"})
        )
        result = await _fetch_tool(handler).execute({"url": "https://example.com/"})
        assert result.denied
        assert "Redirect blocked" in result.content
        assert len(handler.requests) == 1

    async def test_relative_redirect_followed(self) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(301, headers={"location": "/final"})
            return httpx.Response(200, text="landed")

        handler = Handler(respond)
        result = await _fetch_tool(handler).execute({"url": "https://example.com/start"})
        assert result.ok
        assert result.content.startswith("[https://example.com/final]")
        assert "landed" in result.content
        assert [r.url.path for r in handler.requests] == ["/start", "/final"]

    async def test_too_many_redirects(self) -> None:
        handler = Handler(lambda request: httpx.Response(302, headers={"location": "/loop"}))
        result = await _fetch_tool(handler).execute({"url": "https://example.com/"})
        assert result.failed
        assert "Too many redirects" in result.content
        assert len(handler.requests) == 6

    async def test_json_pretty_printed(self) -> None:
        handler = Handler(lambda request: httpx.Response(200, json={"a": 1, "b": [1, 2]}))
        result = await _fetch_tool(handler).execute({"url": "https://example.com/api"})
        assert '"a": 1' in result.content
        assert "Extractor: json" in result.content

    async def test_truncation(self) -> None:
        handler = Handler(lambda request: httpx.Response(200, text="x" * 1000))
        result = await _fetch_tool(handler).execute({"url": "https://example.com/", "maxChars": 100})
        assert "truncated to 100 chars" in result.content
        assert "x" * 101 not in result.content

    async def test_transport_error_is_error(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await _fetch_tool(Handler(fail)).execute({"url": "https://example.com/"})
        assert result.failed
        assert "Fetch failed" in result.content

    def test_max_chars_schema_minimum(self) -> None:
        tool = WebFetchTool()
        assert tool.validate_params({"url": "https://example.com", "maxChars": 50})
        assert not tool.validate_params({"url": "https://example.com", "maxChars": 100})


class TestExtraction:
    def test_strip_html_removes_scripts(self) -> None:
        text = strip_html("<p>Keep</p><script>var secret = 1;</script><style>p{}</style>")
        assert text == "Keep"

    def test_doctype_detected_without_content_type(self) -> None:
        _, extractor = extract_content("<!DOCTYPE html><p>x</p>", "")
        assert extractor == "html"

    def test_invalid_json_falls_back_to_raw(self) -> None:
        text, extractor = extract_content("{not json", "application/json")
        assert extractor == "raw"
        assert text == "{not json"


class TestWebSearch:
    async def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BRAVE_API_KEY", raising=False)
        result = await WebSearchTool().execute({"query": "python"})
        assert result.failed
        assert "BRAVE_API_KEY not configured" in result.content

    async def test_api_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BRAVE_API_KEY", "env-key")
        assert WebSearchTool().api_key == "env-key"

    async def test_search_results(self) -> None:
        payload = {
            "web": {
                "results": [
                    {"title": "Python", "url": "https://python.org", "description": "The language"},
                    {"title": "Docs", "url": "https://docs.python.org"},
                ]
            }
        }
        handler = Handler(lambda request: httpx.Response(200, json=payload))
        tool = WebSearchTool(api_key="k", transport=httpx.MockTransport(handler))
        result = await tool.execute({"query": "python", "count": 3})

        assert result.ok
        assert result.content.startswith("Results for: python")
        assert "1. Python\n   https://python.org\n   The language" in result.content
        assert "2. Docs" in result.content

        request = handler.requests[0]
        assert request.headers["x-subscription-token"] == "k"
        assert request.url.params["q"] == "python"
        assert request.url.params["count"] == "3"
        assert request.url.host == "api.search.brave.com"

    async def test_api_error(self) -> None:
        handler = Handler(lambda request: httpx.Response(500))
        tool = WebSearchTool(api_key="k", transport=httpx.MockTransport(handler))
        result = await tool.execute({"query": "python"})
        assert result.failed
        assert "Search API returned 500" in result.content

    async def test_no_results(self) -> None:
        handler = Handler(lambda request: httpx.Response(200, json={"web": {"results": []}}))
        tool = WebSearchTool(api_key="k", transport=httpx.MockTransport(handler))
        result = await tool.execute({"query": "zzzz"})
        assert result.ok
        assert result.content == "No results for: zzzz"
