"""
PydanticAI integration for toolguard.

Provides helpers to create PydanticAI-compatible tools.
"""

from __future__ import annotations

from typing import Any

try:
    from pydantic_ai import Tool
except ImportError:
    raise ImportError(
        "PydanticAI integration requires 'pydantic-ai'. "
        "Install with `pip install toolguard[pydantic-ai]`"
    ) from None

from toolguard.tools.registry import Registry


def create_pydantic_ai_tools(registry: Registry, session_key: str | None = None) -> list[Tool]:
    """
    Create PydanticAI tools for every tool in a registry.

    The JSON schema each tool advertises to the model is the registry's own,
    and every call is dispatched through ``registry.execute``.

    Example:
        >>> from pydantic_ai import Agent
        >>> agent = Agent("openai:gpt-4o", tools=create_pydantic_ai_tools(registry))
    """
    tools = []
    for name in registry.tool_names:
        tool = registry.get(name)

        def make_runner(tool_name: str) -> Any:
            async def run(**kwargs: Any) -> str:
                return await registry.execute(tool_name, kwargs, session_key)

            return run

        tools.append(
            Tool.from_schema(
                make_runner(name),
                name=name,
                description=tool.description,
                json_schema=tool.parameters.to_dict(),
            )
        )
    return tools
