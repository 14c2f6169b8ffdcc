"""Agent tools and the registry that dispatches to them."""

from toolguard.tools.base import PropertySchema, Tool, ToolSchema
from toolguard.tools.exec import ExecTool
from toolguard.tools.filesystem import (
    EditFileTool,
    ListDirTool,
    ReadFileTool,
    WriteFileTool,
    filesystem_tools,
)
from toolguard.tools.registry import Registry
from toolguard.tools.web import WebFetchTool, WebSearchTool

__all__ = [
    "EditFileTool",
    "ExecTool",
    "ListDirTool",
    "PropertySchema",
    "ReadFileTool",
    "Registry",
    "Tool",
    "ToolSchema",
    "WebFetchTool",
    "WebSearchTool",
    "WriteFileTool",
    "filesystem_tools",
]
