"""
Shell command tool.

Order of checks is fixed: working directory, command policy, workspace path
confinement, sandbox backend. Nothing is spawned until every check passes.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

from toolguard import sandbox
from toolguard._types import CommandResult, ToolResult
from toolguard.config import ExecConfig
from toolguard.log_sanitizer import sanitize
from toolguard.sandbox import SandboxType
from toolguard.security.paths import check_command_paths
from toolguard.security.policy import CommandPolicy
from toolguard.tools.base import PropertySchema, Tool, ToolSchema

logger = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "(no output)"

# Host environment variables passed through to commands; everything else
# (API keys in particular) stays out of the child's environment.
PASSTHROUGH_ENV = ("PATH", "HOME", "LANG", "LC_ALL", "LC_CTYPE", "TZ", "TERM", "USER", "LOGNAME")


class ExecTool(Tool):
    """
    Execute shell commands in the configured workspace.

    Example:
        >>> tool = ExecTool(ExecConfig(working_dir="/srv/agent", sandbox="auto"))
        >>> result = await tool.execute({"command": "ls -la"})
    """

    name = "exec"
    description = (
        "Execute a shell command in the workspace and return its output. "
        "Commands run from the workspace directory; pipes, redirects and "
        "chaining may be disabled."
    )

    def __init__(self, config: ExecConfig, policy: CommandPolicy | None = None) -> None:
        self.config = config
        self.policy = policy or CommandPolicy(full_shell_access=config.full_shell_access)

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "command": PropertySchema(
                    type="string", description="The shell command to execute", min_length=1
                ),
                "working_dir": PropertySchema(
                    type="string",
                    description="Optional working directory; must be the workspace itself",
                ),
            },
            required=("command",),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        command: str = params["command"]
        workdir = self.config.working_dir

        requested = params.get("working_dir")
        if requested is not None and not self._is_workspace(requested):
            logger.warning("Exec denied: working_dir outside workspace")
            logger.debug("Requested working_dir: %s", requested)
            return ToolResult.access_denied(
                "Error: working_dir is outside workspace; commands always run in the workspace"
            )

        verdict = self.policy.check_command(command)
        if not verdict:
            logger.warning("Exec denied: %s", verdict.reason)
            logger.debug("Denied command: %s", sanitize(command))
            return ToolResult.access_denied(f"Error: {verdict.reason}")

        if self.config.restrict_to_workspace:
            verdict = check_command_paths(command, workdir)
            if not verdict:
                logger.warning("Exec denied: %s", verdict.reason)
                logger.debug("Command names a path outside the workspace: %s", sanitize(command))
                return ToolResult.access_denied(f"Error: {verdict.reason}")

        backend = self._backend()
        if isinstance(backend, ToolResult):
            return backend

        name = on_timeout = None
        if backend is SandboxType.CONTAINER:
            name = sandbox.new_container_name()
            on_timeout = functools.partial(sandbox.kill_container, name)

        argv = sandbox.wrap(
            backend,
            workdir,
            ["sh", "-c", command],
            network=self.config.network,
            docker_config=self.config.docker,
            container_name=name,
        )

        logger.info("Executing (%s): %s", backend.value, sanitize(command))
        try:
            result = await sandbox.run_process(
                argv,
                cwd=workdir,
                timeout=self.config.timeout,
                max_output=self.config.max_output,
                env=self._child_env(),
                on_timeout=on_timeout,
            )
        except OSError as e:
            logger.error("Failed to spawn command: %s", e)
            return ToolResult.error(f"Error: Failed to execute command: {e.strerror or e}")

        return ToolResult.success(self._format(result))

    def _is_workspace(self, requested: str) -> bool:
        try:
            candidate = Path(requested).expanduser()
            if not candidate.is_absolute():
                candidate = self.config.working_dir / candidate
            return candidate.resolve() == self.config.working_dir
        except (OSError, ValueError):
            return False

    def _backend(self) -> SandboxType | ToolResult:
        backend = sandbox.resolve_type(self.config.sandbox)
        if self.config.sandbox == "auto":
            if backend is SandboxType.NONE:
                logger.error("sandbox=auto but no sandbox backend is available")
                return ToolResult.error(
                    "Error: No sandbox backend available (install bubblewrap or docker, "
                    "or set sandbox to 'none')"
                )
        elif backend is not SandboxType.NONE and not sandbox.backend_present(backend):
            logger.error("Configured sandbox backend %s is not installed", backend.value)
            return ToolResult.error(f"Error: Sandbox backend '{backend.value}' is not installed")
        return backend

    @staticmethod
    def _child_env() -> dict[str, str]:
        return {key: os.environ[key] for key in PASSTHROUGH_ENV if key in os.environ}

    def _format(self, result: CommandResult) -> str:
        parts = []
        if result.timed_out:
            parts.append(f"Command timed out after {_seconds(self.config.timeout)} seconds")
        if result.stdout:
            parts.append(result.stdout)
        if result.stderr.strip():
            parts.append(f"STDERR:\n{result.stderr}")
        if result.exit_code != 0 and not result.timed_out:
            parts.append(f"\nExit code: {result.exit_code}")

        output = "\n".join(parts) if parts else NO_OUTPUT_MESSAGE
        limit = self.config.max_output
        if len(output) > limit:
            output = output[:limit] + f"\n... (truncated, {len(output) - limit} more chars)"
        return output


def _seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
