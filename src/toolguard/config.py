"""
Tool configuration.

Configuration is consumed here, not loaded: the host application reads its
own config file and passes a plain mapping to ``ToolsConfig.from_mapping``.
Every problem is raised as ConfigurationError at construction time so that a
bad config fails at startup instead of on the first tool call.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from toolguard.errors import ConfigurationError
from toolguard.networking import NetworkMode
from toolguard.ratelimit import DEFAULT_GLOBAL_LIMIT, DEFAULT_TOOL_LIMITS, RateLimit
from toolguard.sandbox.detection import SANDBOX_CONFIG_VALUES
from toolguard.sandbox.docker import DockerConfig

DEFAULT_EXEC_TIMEOUT = 60.0
DEFAULT_MAX_OUTPUT = 10_000
DEFAULT_FETCH_MAX_CHARS = 50_000


def _canonical_dir(path: Path | str) -> Path:
    resolved = Path(path).expanduser().resolve()
    if not resolved.is_dir():
        raise ConfigurationError(f"Working directory does not exist: {path}")
    return resolved


def _network_mode(value: NetworkMode | str | bool) -> NetworkMode:
    if isinstance(value, NetworkMode):
        return value
    if isinstance(value, bool):
        return NetworkMode.ALLOWED if value else NetworkMode.BLOCKED
    try:
        return NetworkMode(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid network mode '{value}' (expected 'allowed' or 'blocked')"
        ) from None


@dataclass(frozen=True)
class ExecConfig:
    """
    Settings for the exec tool.

    ``working_dir`` is canonicalized on construction and is the only
    directory commands ever run in. With ``restrict_to_workspace`` the paths
    a command names must stay inside it as well.
    """

    working_dir: Path
    sandbox: str = "auto"
    full_shell_access: bool = False
    timeout: float = DEFAULT_EXEC_TIMEOUT
    network: NetworkMode = NetworkMode.ALLOWED
    max_output: int = DEFAULT_MAX_OUTPUT
    docker: DockerConfig = field(default_factory=DockerConfig)
    restrict_to_workspace: bool = True

    def __post_init__(self) -> None:
        sandbox = str(self.sandbox).strip().lower()
        if sandbox not in SANDBOX_CONFIG_VALUES:
            raise ConfigurationError(
                f"Invalid sandbox config '{self.sandbox}' "
                f"(expected one of: {', '.join(SANDBOX_CONFIG_VALUES)})"
            )
        if sandbox != "none" and self.full_shell_access:
            raise ConfigurationError(
                "sandbox and full_shell_access are mutually exclusive: "
                "full shell access is only for unsandboxed, single-tenant deployments "
                "(set sandbox to 'none' or disable full_shell_access)"
            )
        if self.timeout <= 0:
            raise ConfigurationError("exec timeout must be positive")
        if self.max_output < 1:
            raise ConfigurationError("max_output must be at least 1")

        object.__setattr__(self, "sandbox", sandbox)
        object.__setattr__(self, "working_dir", _canonical_dir(self.working_dir))
        object.__setattr__(self, "network", _network_mode(self.network))


def _rate_limit(value: RateLimit | Mapping[str, Any], name: str) -> RateLimit:
    if isinstance(value, RateLimit):
        return value
    try:
        return RateLimit(
            max_calls=int(value["max_calls"]),
            window_seconds=float(value.get("window_seconds", 60)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid rate limit for '{name}': {e}") from e


@dataclass(frozen=True)
class ToolsConfig:
    """Configuration for the whole tool set built by ``create_registry``."""

    workspace: Path
    sandbox: str = "auto"
    full_shell_access: bool = False
    exec_timeout: float = DEFAULT_EXEC_TIMEOUT
    exec_max_output: int = DEFAULT_MAX_OUTPUT
    network: NetworkMode = NetworkMode.ALLOWED
    restrict_to_workspace: bool = True
    brave_api_key: str | None = None
    web_fetch_max_chars: int = DEFAULT_FETCH_MAX_CHARS
    rate_limits: dict[str, RateLimit] = field(default_factory=lambda: dict(DEFAULT_TOOL_LIMITS))
    global_rate_limit: RateLimit | None = DEFAULT_GLOBAL_LIMIT
    docker: DockerConfig = field(default_factory=DockerConfig)
    exec_deny_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "workspace", _canonical_dir(self.workspace))
        if self.brave_api_key is None:
            object.__setattr__(self, "brave_api_key", os.environ.get("BRAVE_API_KEY") or None)
        if self.web_fetch_max_chars < 100:
            raise ConfigurationError("web_fetch_max_chars must be at least 100")
        object.__setattr__(self, "exec_deny_patterns", tuple(self.exec_deny_patterns))
        for pattern in self.exec_deny_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid exec deny pattern '{pattern}': {e}") from e
        self.exec_config()

    def exec_config(self) -> ExecConfig:
        """Build (and validate) the exec tool settings."""
        return ExecConfig(
            working_dir=self.workspace,
            sandbox=self.sandbox,
            full_shell_access=self.full_shell_access,
            timeout=self.exec_timeout,
            network=self.network,
            max_output=self.exec_max_output,
            docker=self.docker,
            restrict_to_workspace=self.restrict_to_workspace,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ToolsConfig:
        """
        Build a config from a plain mapping, as produced by a YAML/JSON loader.

        Recognized keys::

            workspace: /srv/agent
            sandbox: auto | bubblewrap | docker | none
            restrict_to_workspace: true
            network: allowed | blocked
            exec: {timeout: 60, full_shell_access: false, max_output: 10000,
                   deny_patterns: ["\\bgit\\s+push\\b"]}
            docker: {image: alpine:latest, memory: 512m, cpus: 1.0}
            web: {brave_api_key: ..., max_chars: 50000}
            rate_limits: {exec: {max_calls: 10, window_seconds: 60}}
            global_rate_limit: {max_calls: 100, window_seconds: 60}  # or null

        Raises:
            ConfigurationError: For missing or invalid values.
        """
        if "workspace" not in data:
            raise ConfigurationError("workspace is required")

        exec_section = data.get("exec") or {}
        web_section = data.get("web") or {}
        docker_section = data.get("docker") or {}

        kwargs: dict[str, Any] = {
            "workspace": Path(data["workspace"]),
            "sandbox": data.get("sandbox", "auto"),
            "full_shell_access": bool(
                exec_section.get("full_shell_access", data.get("full_shell_access", False))
            ),
            "restrict_to_workspace": bool(data.get("restrict_to_workspace", True)),
            "network": _network_mode(data.get("network", NetworkMode.ALLOWED)),
            "brave_api_key": web_section.get("brave_api_key"),
        }
        try:
            if "timeout" in exec_section:
                kwargs["exec_timeout"] = float(exec_section["timeout"])
            if "max_output" in exec_section:
                kwargs["exec_max_output"] = int(exec_section["max_output"])
            if "deny_patterns" in exec_section:
                patterns = exec_section["deny_patterns"] or ()
                if isinstance(patterns, str):
                    patterns = (patterns,)
                kwargs["exec_deny_patterns"] = tuple(str(p) for p in patterns)
            if "max_chars" in web_section:
                kwargs["web_fetch_max_chars"] = int(web_section["max_chars"])
            if docker_section:
                kwargs["docker"] = DockerConfig(**docker_section)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid tool configuration: {e}") from e

        limits = dict(DEFAULT_TOOL_LIMITS)
        for name, value in (data.get("rate_limits") or {}).items():
            limits[name] = _rate_limit(value, name)
        kwargs["rate_limits"] = limits

        if "global_rate_limit" in data:
            value = data["global_rate_limit"]
            kwargs["global_rate_limit"] = None if value is None else _rate_limit(value, "global")

        return cls(**kwargs)
