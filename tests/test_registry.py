"""Tests for the tool registry and parameter schemas."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from toolguard._types import ResultStatus, ToolResult
from toolguard.ratelimit import RateLimit, RateLimiter
from toolguard.tools.base import PropertySchema, Tool, ToolSchema
from toolguard.tools.registry import Registry


class EchoTool(Tool):
    name = "echo"
    description = "Echo text back."

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "text": PropertySchema(type="string", description="Text to echo", min_length=1),
                "times": PropertySchema(type="integer", minimum=1, maximum=3),
            },
            required=("text",),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        self.calls.append(params)
        return ToolResult.success(params["text"] * params.get("times", 1))


class BrokenTool(EchoTool):
    name = "broken"

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        raise RuntimeError("internal detail /srv/secret/path")


class DenyTool(EchoTool):
    name = "deny"

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        return ToolResult.access_denied("Error: nope")


class SlowTool(EchoTool):
    name = "slow"

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        await asyncio.sleep(0.01)
        return await super().execute(params)


class TestSchemaValidation:
    @pytest.mark.parametrize(
        ("params", "message"),
        [
            ({}, "missing required parameter 'text'"),
            ({"text": 5}, "'text' should be string"),
            ({"text": ""}, "'text' must be at least 1 chars"),
            ({"text": "a", "times": 0}, "'times' must be >= 1"),
            ({"text": "a", "times": 4}, "'times' must be <= 3"),
            ({"text": "a", "times": True}, "'times' should be integer"),
            ({"text": "a", "times": 1.5}, "'times' should be integer"),
        ],
    )
    def test_errors(self, params: dict[str, Any], message: str) -> None:
        assert message in EchoTool().validate_params(params)

    def test_valid(self) -> None:
        assert EchoTool().validate_params({"text": "a", "times": 2}) == []

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            PropertySchema(type="tuple")

    def test_array_items(self) -> None:
        schema = PropertySchema(type="array", items=PropertySchema(type="integer"))
        assert schema.validate([1, "x"], "ids") == ["'ids[1]' should be integer"]

    def test_to_schema(self) -> None:
        schema = EchoTool().to_schema()
        assert schema["type"] == "function"
        function = schema["function"]
        assert function["name"] == "echo"
        assert function["parameters"]["required"] == ["text"]
        assert function["parameters"]["properties"]["text"] == {
            "type": "string",
            "description": "Text to echo",
            "minLength": 1,
        }
        assert function["parameters"]["properties"]["times"]["maximum"] == 3


class TestRegistry:
    async def test_runs_tool(self, registry: Registry) -> None:
        registry.register(EchoTool())
        result = await registry.run("echo", {"text": "hi", "times": 2})
        assert result.ok
        assert result.content == "hihi"

    async def test_execute_returns_content(self, registry: Registry) -> None:
        registry.register(EchoTool())
        assert await registry.execute("echo", {"text": "hi"}) == "hi"

    async def test_unknown_tool(self, registry: Registry) -> None:
        result = await registry.run("missing", {})
        assert result.status is ResultStatus.ERROR
        assert result.content == "Error: Tool 'missing' not found"

    async def test_invalid_params_never_reach_tool(self, registry: Registry) -> None:
        tool = EchoTool()
        registry.register(tool)
        result = await registry.run("echo", {"times": 9})
        assert result.failed
        assert result.content.startswith("Error: Invalid parameters for tool 'echo':")
        assert "missing required parameter 'text'" in result.content
        assert tool.calls == []

    async def test_non_dict_params(self, registry: Registry) -> None:
        registry.register(EchoTool())
        result = await registry.run("echo", ["text"])  # type: ignore[arg-type]
        assert result.failed

    async def test_exception_becomes_generic_error(self, registry: Registry) -> None:
        registry.register(BrokenTool())
        result = await registry.run("broken", {"text": "x"})
        assert result.failed
        assert result.content == "Error executing broken"
        assert "/srv/secret" not in result.content

    async def test_denial_passed_through(self, registry: Registry) -> None:
        registry.register(DenyTool())
        result = await registry.run("deny", {"text": "x"})
        assert result.denied

    async def test_rate_limit_denies(self) -> None:
        registry = Registry(session_key="s", rate_limiter=RateLimiter({"echo": RateLimit(2, 60)}))
        tool = EchoTool()
        registry.register(tool)

        assert (await registry.run("echo", {"text": "1"})).ok
        assert (await registry.run("echo", {"text": "2"})).ok
        result = await registry.run("echo", {"text": "3"})
        assert result.denied
        assert "Rate limit exceeded" in result.content
        assert len(tool.calls) == 2

        # Another session has its own window
        assert (await registry.run("echo", {"text": "4"}, session_key="other")).ok

    async def test_failed_validation_is_still_not_recorded(self) -> None:
        limiter = RateLimiter({"echo": RateLimit(1, 60)})
        registry = Registry(session_key="s", rate_limiter=limiter)
        registry.register(EchoTool())
        await registry.run("echo", {})
        assert limiter.current_count("echo", "s") == 0

    async def test_concurrent_calls_respect_limit(self) -> None:
        """Calls in flight at the same time cannot all slip under the limit."""
        limiter = RateLimiter({"slow": RateLimit(2, 60)})
        registry = Registry(session_key="s", rate_limiter=limiter)
        tool = SlowTool()
        registry.register(tool)

        results = await asyncio.gather(*(registry.run("slow", {"text": str(i)}) for i in range(5)))
        assert sum(result.ok for result in results) == 2
        assert sum(result.denied for result in results) == 3
        assert len(tool.calls) == 2
        assert limiter.current_count("slow", "s") == 2

    async def test_failed_validation_gives_slot_back(self) -> None:
        limiter = RateLimiter({"echo": RateLimit(1, 60)})
        registry = Registry(session_key="s", rate_limiter=limiter)
        registry.register(EchoTool())
        assert (await registry.run("echo", {"times": 2})).failed
        assert (await registry.run("echo", ["text"])).failed  # type: ignore[arg-type]
        assert (await registry.run("echo", {"text": "ok"})).ok
        assert (await registry.run("echo", {"text": "again"})).denied

    async def test_raising_call_is_counted(self) -> None:
        limiter = RateLimiter({"broken": RateLimit(1, 60)})
        registry = Registry(session_key="s", rate_limiter=limiter)
        registry.register(BrokenTool())
        assert (await registry.run("broken", {"text": "x"})).failed
        assert (await registry.run("broken", {"text": "x"})).denied

    def test_default_limiter(self) -> None:
        assert "exec" in Registry().rate_limiter.per_tool_limits

    def test_bookkeeping(self, registry: Registry) -> None:
        registry.register(EchoTool())
        registry.register(DenyTool())
        assert len(registry) == 2
        assert "echo" in registry
        assert registry.has("deny")
        assert registry.tool_names == ["echo", "deny"]
        assert isinstance(registry.get("echo"), EchoTool)

        names = [d["function"]["name"] for d in registry.definitions(exclude=["deny"])]
        assert names == ["echo"]

        registry.unregister("deny")
        assert "deny" not in registry
        registry.clear()
        assert len(registry) == 0
