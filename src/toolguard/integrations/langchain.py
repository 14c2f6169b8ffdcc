"""LangChain integration for toolguard."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from toolguard.tools.base import Tool
    from toolguard.tools.registry import Registry

HAS_LANGCHAIN = False
_StructuredTool: Any = None

try:
    import langchain_core.tools

    _StructuredTool = langchain_core.tools.StructuredTool
    HAS_LANGCHAIN = True
except ImportError:
    pass

_PYTHON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def _args_model(tool: Tool) -> Any:
    from pydantic import Field, create_model

    schema = tool.parameters
    fields: dict[str, Any] = {}
    for key, prop in schema.properties.items():
        annotation = _PYTHON_TYPES[prop.type]
        if key in schema.required:
            fields[key] = (annotation, Field(..., description=prop.description))
        else:
            fields[key] = (annotation | None, Field(None, description=prop.description))
    return create_model(f"{tool.name.title().replace('_', '')}Args", **fields)


def create_langchain_tools(registry: Registry, session_key: str | None = None) -> dict[str, Any]:
    """
    Create LangChain tools for every tool in a registry.

    Calls go through ``registry.execute`` so rate limits, parameter
    validation and logging apply exactly as for direct calls.

    Args:
        registry: The registry to expose.
        session_key: Rate-limit session for these tools; defaults to the
            registry's own.

    Returns:
        Dictionary of tool name to LangChain StructuredTool.

    Raises:
        ImportError: If langchain-core is not installed.

    Example:
        >>> tools = create_langchain_tools(create_registry("./agent"))
        >>> agent = create_react_agent(llm, list(tools.values()))
    """
    if not HAS_LANGCHAIN:
        raise ImportError(
            "LangChain integration requires langchain-core. "
            "Install with: pip install toolguard[langchain]"
        )

    tools: dict[str, Any] = {}
    for name in registry.tool_names:
        tool = registry.get(name)

        def make_runner(tool_name: str) -> Any:
            async def run(**kwargs: Any) -> str:
                params = {key: value for key, value in kwargs.items() if value is not None}
                return await registry.execute(tool_name, params, session_key)

            return run

        tools[name] = _StructuredTool.from_function(
            coroutine=make_runner(name),
            name=name,
            description=tool.description,
            args_schema=_args_model(tool),
        )
    return tools
