"""
Bubblewrap (namespace jail) command builder.

Only system directories are visible, read-only. The working directory is the
single writable host path; /tmp is a private tmpfs.
"""

from __future__ import annotations

from pathlib import Path

from toolguard.networking import NetworkMode

BWRAP = "bwrap"

# Required system directories
READ_ONLY_BINDS = ("/usr", "/bin", "/sbin", "/lib")

# Bound when present on the host
OPTIONAL_READ_ONLY_BINDS = (
    "/lib64",
    "/lib32",
    "/etc/alternatives",
    "/etc/resolv.conf",
    "/etc/hosts",
    "/etc/nsswitch.conf",
    "/etc/ssl",
    "/etc/ca-certificates",
    "/etc/pki",
)


def build_command(
    working_dir: Path | str,
    command: list[str],
    *,
    network: NetworkMode = NetworkMode.ALLOWED,
) -> list[str]:
    """
    Build a bwrap invocation that runs ``command`` inside a namespace jail.

    Args:
        working_dir: Absolute host directory, bound read-write at the same path.
        command: argv to run inside the jail.
        network: ALLOWED keeps the host network namespace; BLOCKED unshares it.

    Returns:
        The full argv, starting with ``bwrap``.
    """
    workdir = str(working_dir)
    args = [BWRAP]
    for path in READ_ONLY_BINDS:
        args += ["--ro-bind", path, path]
    for path in OPTIONAL_READ_ONLY_BINDS:
        args += ["--ro-bind-try", path, path]

    args += [
        "--bind", workdir, workdir,
        "--proc", "/proc",
        "--dev", "/dev",
        "--tmpfs", "/tmp",
        "--unshare-all",
    ]
    if network is NetworkMode.ALLOWED:
        args.append("--share-net")
    args += [
        "--die-with-parent",
        "--new-session",
        "--chdir", workdir,
        "--",
    ]
    return args + list(command)
