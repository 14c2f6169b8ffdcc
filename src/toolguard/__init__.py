"""
toolguard: a security layer between LLM tool calls and the host.

Example:
    >>> from toolguard import create_registry
    >>> registry = create_registry({"workspace": "./agent", "sandbox": "auto"})
    >>> result = await registry.run("exec", {"command": "ls -la"})
"""

from toolguard._types import CommandResult, ResultStatus, ToolResult, Verdict
from toolguard.api import create_registry
from toolguard.config import ExecConfig, ToolsConfig
from toolguard.errors import ConfigurationError, ToolguardError
from toolguard.log_sanitizer import sanitize, sanitize_url, setup_logging
from toolguard.networking import NetworkMode, validate_url
from toolguard.ratelimit import RateLimit, RateLimiter
from toolguard.sandbox import SandboxType
from toolguard.security import CommandPolicy, PathJail, validate_command
from toolguard.tools import (
    EditFileTool,
    ExecTool,
    ListDirTool,
    ReadFileTool,
    Registry,
    Tool,
    WebFetchTool,
    WebSearchTool,
    WriteFileTool,
)

__version__ = "0.1.0"

__all__ = [
    "CommandPolicy",
    "CommandResult",
    "ConfigurationError",
    "EditFileTool",
    "ExecConfig",
    "ExecTool",
    "ListDirTool",
    "NetworkMode",
    "PathJail",
    "RateLimit",
    "RateLimiter",
    "ReadFileTool",
    "Registry",
    "ResultStatus",
    "SandboxType",
    "Tool",
    "ToolResult",
    "ToolguardError",
    "ToolsConfig",
    "Verdict",
    "WebFetchTool",
    "WebSearchTool",
    "WriteFileTool",
    "create_registry",
    "sanitize",
    "sanitize_url",
    "setup_logging",
    "validate_command",
    "validate_url",
]
