"""
Docker (container) command builder.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from toolguard.networking import NetworkMode

logger = logging.getLogger(__name__)

CONTAINER_NAME_PREFIX = "toolguard-"
KILL_TIMEOUT = 10.0


@dataclass(frozen=True)
class DockerConfig:
    """Docker execution configuration."""

    image: str = "alpine:latest"
    cpus: float = 1.0
    memory: str = "512m"
    pids_limit: int = 256


def new_container_name() -> str:
    """Return a fresh, unique container name."""
    return f"{CONTAINER_NAME_PREFIX}{uuid.uuid4().hex[:16]}"


def build_command(
    working_dir: Path | str,
    command: list[str],
    *,
    network: NetworkMode = NetworkMode.ALLOWED,
    config: DockerConfig | None = None,
    name: str | None = None,
) -> list[str]:
    """
    Build a ``docker run`` invocation for an ephemeral container.

    The working directory is mounted read-write at the same path inside the
    container and used as its working directory, so relative paths in the
    command mean the same thing inside and out. ``name`` lets the caller
    ``docker kill`` the container later; killing the client alone does not
    stop it.
    """
    config = config or DockerConfig()
    workdir = str(working_dir)
    net_flag = "bridge" if network is NetworkMode.ALLOWED else "none"

    args = [
        "docker", "run", "--rm", "-i",
        "--init",  # reap and forward signals
    ]
    if name:
        args += ["--name", name]
    args += [
        "-v", f"{workdir}:{workdir}:rw",
        "-w", workdir,
        "--network", net_flag,
        "--memory", config.memory,
        "--cpus", str(config.cpus),
        "--pids-limit", str(config.pids_limit),
        "--security-opt", "no-new-privileges",
        "--cap-drop", "ALL",
        config.image,
    ]
    return args + list(command)


async def kill_container(name: str) -> bool:
    """
    Run ``docker kill`` against a named container.

    Returns:
        True if docker reported success. Failures are logged, not raised:
        the container may already have exited and been removed.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "docker", "kill", name,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("Failed to run docker kill for %s: %s", name, e)
        return False

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=KILL_TIMEOUT)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.error("docker kill %s did not finish within %ss", name, KILL_TIMEOUT)
        return False

    if proc.returncode != 0:
        logger.warning(
            "docker kill %s exited %d: %s",
            name,
            proc.returncode,
            stderr.decode("utf-8", errors="replace").strip(),
        )
        return False
    logger.info("Killed timed-out container %s", name)
    return True
