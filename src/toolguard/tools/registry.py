"""
Tool registry with rate limiting and parameter validation.
"""

from __future__ import annotations

import logging
from typing import Any

from toolguard._types import ResultStatus, ToolResult
from toolguard.ratelimit import RateLimiter
from toolguard.tools.base import Tool

logger = logging.getLogger(__name__)


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


class Registry:
    """
    Holds the tools offered to the model and dispatches calls to them.

    Every call goes through the same sequence: lookup, rate-limit slot
    reservation, parameter validation, then execution. A call that fails
    validation hands its slot back.

    Example:
        >>> registry = Registry(session_key="chat-42")
        >>> registry.register(ReadFileTool(PathJail(workspace)))
        >>> result = await registry.run("read_file", {"path": "notes.txt"})
    """

    def __init__(
        self,
        session_key: str = "default",
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.session_key = session_key
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter.with_defaults()
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)
        logger.info("Unregistered tool: %s", name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def definitions(self, exclude: list[str] | None = None) -> list[dict[str, Any]]:
        """Tool definitions in OpenAI function-calling format."""
        excluded = set(exclude or ())
        return [tool.to_schema() for name, tool in self._tools.items() if name not in excluded]

    def clear(self) -> None:
        self._tools.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def run(
        self,
        name: str,
        params: dict[str, Any],
        session_key: str | None = None,
    ) -> ToolResult:
        """
        Execute a tool call from the model.

        Args:
            name: Tool name chosen by the model.
            params: Argument map chosen by the model.
            session_key: Rate-limit session; defaults to the registry's.

        Returns:
            ToolResult. Unknown tools, invalid parameters and unexpected
            exceptions are errors; rate-limit rejections are denials.
        """
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.error(f"Error: Tool '{name}' not found")

        session = session_key or self.session_key
        limited = self.rate_limiter.acquire(name, session)
        if limited is not None:
            return ToolResult.access_denied(f"Error: {limited}")

        try:
            errors = tool.validate_params(params) if isinstance(params, dict) else ["expected an object"]
            if errors:
                # The call never ran, so it does not count against the limits
                self.rate_limiter.release(name, session)
                return ToolResult.error(
                    f"Error: Invalid parameters for tool '{name}': {'; '.join(errors)}"
                )

            path = params.get("path")
            if isinstance(path, str):
                logger.debug("Executing tool: %s (%s)", name, path)
            else:
                logger.debug("Executing tool: %s", name)

            result = await tool.execute(params)

            if result.status is ResultStatus.SUCCESS:
                logger.debug("Tool %s completed successfully", name)
            elif result.status is ResultStatus.ACCESS_DENIED:
                logger.warning("Tool %s ACCESS DENIED: %s", name, _first_line(result.content))
            else:
                logger.warning("Tool %s failed: %s", name, _first_line(result.content))

            return result
        except Exception:
            logger.exception("Error executing %s", name)
            return ToolResult.error(f"Error executing {name}")

    async def execute(
        self,
        name: str,
        params: dict[str, Any],
        session_key: str | None = None,
    ) -> str:
        """Like ``run`` but returns only the content string given to the model."""
        result = await self.run(name, params, session_key)
        return result.content
