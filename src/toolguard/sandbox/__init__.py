"""
Sandbox backends: detection, command wrapping and process execution.
"""

from __future__ import annotations

from pathlib import Path

from toolguard.networking import NetworkMode
from toolguard.sandbox import docker, native
from toolguard.sandbox.detection import (
    SandboxType,
    available,
    backend_present,
    clear_override,
    detect,
    reset_cache,
    resolve_type,
    set_override,
)
from toolguard.sandbox.docker import DockerConfig, kill_container, new_container_name
from toolguard.sandbox.executor import TIMEOUT_EXIT_CODE, run_process


def wrap(
    backend: SandboxType,
    working_dir: Path | str,
    command: list[str],
    *,
    network: NetworkMode = NetworkMode.ALLOWED,
    docker_config: DockerConfig | None = None,
    container_name: str | None = None,
) -> list[str]:
    """
    Wrap an argv so it runs under ``backend``.

    Pure argv composition; the command's content is never inspected here.
    ``container_name`` only applies to the docker backend.
    """
    if backend is SandboxType.NAMESPACE_JAIL:
        return native.build_command(working_dir, command, network=network)
    if backend is SandboxType.CONTAINER:
        return docker.build_command(
            working_dir, command, network=network, config=docker_config, name=container_name
        )
    return list(command)


__all__ = [
    "TIMEOUT_EXIT_CODE",
    "DockerConfig",
    "SandboxType",
    "available",
    "backend_present",
    "clear_override",
    "detect",
    "kill_container",
    "new_container_name",
    "reset_cache",
    "resolve_type",
    "run_process",
    "set_override",
    "wrap",
]
