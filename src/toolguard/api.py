"""
Main entry point: create_registry factory function.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from toolguard.config import ToolsConfig
from toolguard.networking import Resolver
from toolguard.ratelimit import RateLimiter
from toolguard.security.paths import PathJail
from toolguard.security.policy import CommandPolicy
from toolguard.tools.exec import ExecTool
from toolguard.tools.filesystem import filesystem_tools
from toolguard.tools.registry import Registry
from toolguard.tools.web import WebFetchTool, WebSearchTool

logger = logging.getLogger(__name__)


def create_registry(
    config: ToolsConfig | Mapping[str, Any] | Path | str,
    *,
    session_key: str = "default",
    resolver: Resolver | None = None,
) -> Registry:
    """
    Build a registry with the exec, file and web tools wired to ``config``.

    Args:
        config: A ToolsConfig, a plain mapping for ``ToolsConfig.from_mapping``,
            or just a workspace path (all other settings default).
        session_key: Default rate-limit session for calls.
        resolver: DNS resolver override for the web fetch tool.

    Returns:
        Registry with exec, read_file, write_file, edit_file, list_dir,
        web_fetch and web_search registered.

    Raises:
        ConfigurationError: If the configuration is invalid.

    Example:
        >>> registry = create_registry({"workspace": "./agent", "sandbox": "auto"})
        >>> print(await registry.execute("list_dir", {"path": "."}))
    """
    if isinstance(config, (str, Path)):
        config = ToolsConfig(workspace=Path(config))
    elif not isinstance(config, ToolsConfig):
        config = ToolsConfig.from_mapping(config)

    limiter = RateLimiter(config.rate_limits, config.global_rate_limit)
    registry = Registry(session_key=session_key, rate_limiter=limiter)

    exec_config = config.exec_config()
    policy = CommandPolicy(full_shell_access=exec_config.full_shell_access)
    for pattern in config.exec_deny_patterns:
        policy.add_blocked_pattern(pattern, "configured deny pattern")
    registry.register(ExecTool(exec_config, policy))

    jail = PathJail(config.workspace if config.restrict_to_workspace else None)
    for tool in filesystem_tools(jail):
        registry.register(tool)

    registry.register(WebFetchTool(config.web_fetch_max_chars, resolver=resolver))
    registry.register(WebSearchTool(config.brave_api_key))

    logger.info(
        "Registered %d tools (workspace=%s, sandbox=%s, confined=%s)",
        len(registry),
        config.workspace,
        config.sandbox,
        config.restrict_to_workspace,
    )
    return registry
