"""
Sandbox backend detection.

Detection is process-wide: the probe result is cached for the life of the
process and an override slot (for tests) takes priority over it.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from enum import Enum

from toolguard.errors import ConfigurationError

logger = logging.getLogger(__name__)

DOCKER_PROBE_TIMEOUT = 5.0

SANDBOX_CONFIG_VALUES = ("auto", "bubblewrap", "docker", "none")


class SandboxType(Enum):
    """Available sandbox backends."""

    NONE = "none"
    NAMESPACE_JAIL = "bubblewrap"
    CONTAINER = "docker"


_BINARIES = {
    SandboxType.NAMESPACE_JAIL: "bwrap",
    SandboxType.CONTAINER: "docker",
}

_lock = threading.Lock()
_cached: SandboxType | None = None
_override: SandboxType | None = None


def _docker_daemon_running() -> bool:
    try:
        proc = subprocess.run(
            ["docker", "info"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=DOCKER_PROBE_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("docker info probe failed: %s", e)
        return False
    return proc.returncode == 0


def _probe() -> SandboxType:
    if shutil.which("bwrap"):
        return SandboxType.NAMESPACE_JAIL
    if shutil.which("docker") and _docker_daemon_running():
        return SandboxType.CONTAINER
    return SandboxType.NONE


def detect() -> SandboxType:
    """
    Return the best available sandbox backend.

    Preference order: override, bubblewrap, docker (binary present and
    daemon answering), none. The probe runs at most once per process.
    """
    global _cached

    with _lock:
        if _override is not None:
            return _override
        if _cached is None:
            _cached = _probe()
            if _cached is SandboxType.NONE:
                logger.warning("No sandbox backend found (install bubblewrap or docker)")
            else:
                logger.info("Detected sandbox backend: %s", _cached.value)
        return _cached


def available() -> bool:
    """Return True if any sandbox backend is usable."""
    return detect() is not SandboxType.NONE


def backend_present(backend: SandboxType) -> bool:
    """Return True if the binary for an explicitly configured backend is on PATH."""
    with _lock:
        if _override is not None:
            return _override is backend
    binary = _BINARIES.get(backend)
    if binary is None:
        return True
    return shutil.which(binary) is not None


def resolve_type(config: str) -> SandboxType:
    """
    Map a sandbox configuration value to a backend.

    Args:
        config: One of "auto", "bubblewrap", "docker", "none".

    Raises:
        ConfigurationError: For any other value.
    """
    value = config.strip().lower()
    if value == "auto":
        return detect()
    if value == "bubblewrap":
        return SandboxType.NAMESPACE_JAIL
    if value == "docker":
        return SandboxType.CONTAINER
    if value == "none":
        return SandboxType.NONE
    raise ConfigurationError(
        f"Invalid sandbox config '{config}' (expected one of: {', '.join(SANDBOX_CONFIG_VALUES)})"
    )


def set_override(backend: SandboxType) -> None:
    """Force detection to report ``backend``. For tests only."""
    global _override
    with _lock:
        _override = backend


def clear_override() -> None:
    global _override
    with _lock:
        _override = None


def reset_cache() -> None:
    """Forget the probe result so the next detect() probes again."""
    global _cached
    with _lock:
        _cached = None
