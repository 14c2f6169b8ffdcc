"""
Filesystem path confinement.

All containment checks are made on fully resolved paths (symlinks followed),
never on the string the model supplied.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePath

from toolguard._types import Verdict
from toolguard.security.policy import BLOCKED_PREFIX

logger = logging.getLogger(__name__)

ENV_FILE_PATTERN = re.compile(r"\.env(?:\.|$)")


def is_env_file(path: str | PurePath) -> bool:
    """Return True for .env, .env.*, *.env and *.env.* file names."""
    name = PurePath(path).name
    return name == ".env" or name.startswith(".env.") or ENV_FILE_PATTERN.search(name) is not None


class PathJail:
    """
    Resolves model-supplied paths against an allowed root.

    ``PathJail(None)`` is unconfined: paths are expanded and resolved but
    may point anywhere. Secret files are denied either way.

    Example:
        >>> jail = PathJail("/srv/workspace")
        >>> verdict, path = jail.resolve("notes/todo.txt")
    """

    def __init__(self, root: Path | str | None) -> None:
        self.root = Path(root).expanduser().resolve() if root is not None else None

    @property
    def confined(self) -> bool:
        return self.root is not None

    def resolve(self, requested: str) -> tuple[Verdict, Path | None]:
        """
        Resolve ``requested`` and check it.

        Args:
            requested: The path as the model supplied it.

        Returns:
            ``(verdict, path)``; ``path`` is the canonical path when allowed
            and None when denied. Denial reasons never contain host paths.
        """
        if not requested or not requested.strip():
            return Verdict.deny("path must not be empty"), None
        if "\x00" in requested:
            return Verdict.deny("path contains a null byte"), None
        if is_env_file(requested):
            logger.warning("Denied access to secret file")
            logger.debug("Secret file request: %s", requested)
            return Verdict.deny("access to .env files is not allowed"), None

        if self.root is None:
            resolved = Path(requested).expanduser().resolve()
        else:
            if Path(requested).is_absolute() or requested.startswith("~"):
                logger.debug("Absolute path rejected: %s", requested)
                return Verdict.deny("absolute paths are not allowed; use a path relative to the workspace"), None
            resolved = (self.root / requested).resolve()
            if resolved != self.root and self.root not in resolved.parents:
                logger.warning("Denied path outside workspace")
                logger.debug("Path escape: %s -> %s", requested, resolved)
                return Verdict.deny("path is outside the workspace"), None

        # A symlink with an innocent name can still point at a secret
        if is_env_file(resolved):
            logger.warning("Denied access to secret file")
            logger.debug("Secret file request via link: %s", requested)
            return Verdict.deny("access to .env files is not allowed"), None

        return Verdict.allow(), resolved


# Path-like words in a command line: a leading / or ~ after whitespace, an
# operator, an assignment or an opening quote.
_COMMAND_PATH = re.compile(r"""(?:^|[\s|&;<>()='"])([~/][^\s"'|&;<>()]*)""")
_TRAVERSAL = re.compile(r"(?:^|[\s/\\=:'\"])\.\.(?=$|[\s/\\'\";|&)])")
_ENCODED_TRAVERSAL = re.compile(r"%2e%2e", re.IGNORECASE)
_SHELL_EXPANSION = re.compile(r"\$HOME\b|\$USER\b|\$PATH\b|\$\{|\$\(|`|(?:^|[\s=:'\"])~")

# Device files every command may touch
ALLOWED_DEVICE_PATHS = frozenset({"/dev/null", "/dev/zero", "/dev/stdin", "/dev/stdout", "/dev/stderr"})


def check_command_paths(command: str, root: Path | str) -> Verdict:
    """
    Confine the paths a shell command names to ``root``.

    Denies parent-directory traversal (plain or URL-encoded), shell
    expansions that resolve outside the command text (``$HOME``, ``~``,
    ``${...}``, substitutions), and absolute paths that resolve outside the
    root. This is a text check; the kernel sandbox remains the real boundary.

    Args:
        command: The raw command string.
        root: The workspace the command runs in.

    Returns:
        Verdict; denial reasons start with "Command blocked by safety guard"
        and never contain host paths.
    """
    if _TRAVERSAL.search(command):
        return _path_denial("path traversal detected")
    if _ENCODED_TRAVERSAL.search(command):
        return _path_denial("encoded path traversal detected")
    if _SHELL_EXPANSION.search(command):
        return _path_denial("shell expansion detected")

    workspace = Path(root).expanduser().resolve()
    for match in _COMMAND_PATH.finditer(command):
        word = match.group(1)
        if word in ALLOWED_DEVICE_PATHS:
            continue
        try:
            resolved = Path(word).expanduser().resolve()
        except (OSError, RuntimeError):
            return _path_denial("path could not be validated")
        if resolved != workspace and workspace not in resolved.parents:
            return _path_denial("path resolves outside the workspace")

    return Verdict.allow()


def _path_denial(reason: str) -> Verdict:
    return Verdict.deny(f"{BLOCKED_PREFIX} ({reason})")
