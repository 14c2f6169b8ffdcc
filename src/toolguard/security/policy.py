"""
Command policy with pattern-based blocking.

This is the text-analysis layer in front of the exec tool. It denies known-bad
shapes rather than allowlisting known-good commands, so the tool stays general
purpose. The list cannot be complete for a Turing-complete shell language; it
is one layer under the kernel sandbox, not a guarantee on its own.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable

from toolguard._types import Verdict

BLOCKED_PREFIX = "Command blocked by safety guard"

# Interpreter names, optionally with a version suffix or a directory prefix
_SHELLS = r"(?:ba|z|da|k|c|tc|fi|mk)?sh"
_INTERPRETERS = r"(?:python[\d.]*|pypy[\d.]*|perl|ruby|node|nodejs|deno|bun|php[\d.]*|lua[\d.]*)"
_CMD = r"(?<![\w.-])(?:[\w./-]*/)?"  # command word, optionally path-qualified
# Command position only: start of the line or after an operator, past wrappers like env
_CMD_START = (
    r"(?:^|[;&|(\n`]|\$\()\s*"
    r"(?:(?:env|command|builtin|exec|nohup|xargs|time)\s+(?:-\S+\s+)*)*"
    r"(?:[\w./-]*/)?"
)

# Always denied, regardless of shell access level. Matched case-sensitively.
DANGEROUS_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Filesystem destruction (recursive forced rm is checked by _recursive_forced_delete)
    (re.compile(_CMD + r"mkfs(?:\.\w+)?(?![\w-])"), "filesystem creation"),
    (re.compile(_CMD + r"dd\s[^\n]*\bof=/dev/"), "direct device write via dd"),
    (re.compile(r">\s*/dev/(?:sd|hd|vd|xvd|nvme|mmcblk|disk)"), "direct device write"),
    # Remote code execution
    (
        re.compile(
            r"(?<![\w.-])(?:curl|wget)\b[^\n]*\|\s*(?:sudo\s+)?(?:[\w./-]*/)?"
            rf"(?:{_SHELLS}|{_INTERPRETERS})(?![\w.-])"
        ),
        "download piped into an interpreter",
    ),
    (
        re.compile(_CMD + r"(?:python[\d.]*|pypy[\d.]*)\s+(?:-[A-Za-z]+\s+)*-[A-Za-z]*c(?![A-Za-z])"),
        "inline interpreter code",
    ),
    (
        re.compile(_CMD + r"(?:perl|ruby)\s+(?:-[A-Za-z]+\s+)*-[A-Za-z]*[eE](?![A-Za-z])"),
        "inline interpreter code",
    ),
    (
        re.compile(_CMD + r"(?:node|nodejs|bun|deno)\s+(?:-\S+\s+)*(?:-[ep](?![\w-])|--eval\b|--print\b|eval\b)"),
        "inline interpreter code",
    ),
    (re.compile(_CMD + r"(?:php[\d.]*|lua[\d.]*)\s+(?:-[A-Za-z]+\s+)*-[A-Za-z]*[re](?![A-Za-z])"), "inline interpreter code"),
    (re.compile(r"(?<![\w.-])eval(?![\w.-])"), "eval"),
    # Listening sockets and reverse shells
    (
        re.compile(_CMD + r"(?:nc|ncat|netcat)\s+(?:[^\s;&|]+\s+)*?(?:-[A-Za-z]*l|--listen\b)"),
        "listening socket (netcat)",
    ),
    (re.compile(_CMD + r"socat\b[^\n]*(?i:(?:tcp|udp|sctp)[46]?-listen)"), "listening socket (socat)"),
    (re.compile(r"/dev/(?:tcp|udp)/"), "raw network socket via /dev/tcp"),
    # Privilege escalation
    (re.compile(r"(?<![\w.-])(?:sudo|doas|pkexec)(?![\w.-])"), "privilege escalation"),
    (re.compile(_CMD_START + r"su(?:\s+-|\s+root\b|\s*$|\s*[;&|)])"), "privilege escalation via su"),
    # Resource exhaustion
    (re.compile(r":\s*\(\s*\)\s*\{.*\}"), "fork bomb"),
    (re.compile(r"(\w+)\s*\(\s*\)\s*\{[^}]*\b\1\s*\|\s*\1\b"), "fork bomb"),
    # System control
    (re.compile(_CMD + r"(?:shutdown|reboot|poweroff|halt)(?![\w.-])"), "system power control"),
    (re.compile(_CMD + r"init\s+[06](?!\w)"), "system power control"),
    # Link creation can smuggle outside files into the workspace
    (re.compile(_CMD_START + r"ln(?![\w.-])"), "link creation"),
    (re.compile(_CMD + r"cp\s+(?:-\S+\s+)*?(?:-[A-Za-z]*l[A-Za-z]*|--link)(?![\w-])"), "hard link creation via cp"),
    # Secrets
    (
        re.compile(r"(?:^|[\s/'\"=<>:])[\w-]*\.env(?:\.[\w-]+)?(?=$|[\s'\";|&)<>/])"),
        "access to .env files",
    ),
]

_SEGMENT_SPLIT = re.compile(r"[;&|()\n`]|\$\(")
_PROTECTED_TARGET = re.compile(r"^(?:/|~|\$HOME\b|\$\{HOME\})")


def _words(segment: str) -> list[str]:
    try:
        return shlex.split(segment)
    except ValueError:
        # Unbalanced quotes: fall back to whitespace words, quotes stripped
        return [word.strip("'\"") for word in segment.split()]


def _recursive_forced_delete(command: str) -> bool:
    """
    Detect ``rm`` given both a recursive and a force flag and an absolute or
    home target, in any argument order (GNU rm permutes its arguments).
    """
    for segment in _SEGMENT_SPLIT.split(command):
        words = _words(segment)
        for index, word in enumerate(words):
            if PurePosixPath(word).name != "rm":
                continue
            recursive = force = protected = False
            options_done = False
            for arg in words[index + 1 :]:
                if not options_done and arg == "--":
                    options_done = True
                elif not options_done and arg.startswith("--"):
                    recursive = recursive or arg == "--recursive"
                    force = force or arg == "--force"
                elif not options_done and arg.startswith("-") and len(arg) > 1:
                    recursive = recursive or "r" in arg or "R" in arg
                    force = force or "f" in arg
                elif _PROTECTED_TARGET.match(arg):
                    protected = True
            if recursive and force and protected:
                return True
    return False


# Structural checks for shapes a single regex cannot pin down
DANGEROUS_CHECKS: list[tuple[Callable[[str], bool], str]] = [
    (_recursive_forced_delete, "recursive forced delete of an absolute or home path"),
]

# Denied unless full shell access is enabled. Order matters: the first match
# decides the reason, so two-character operators come before one-character ones.
SHELL_FEATURE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"^\s*(?:(?:builtin|command|exec|env|nohup)\s+)*(?:cd|pushd|popd|chdir)(?=$|\s)"),
        "changing directory is not allowed; commands always run in the workspace",
    ),
    (re.compile(r"&&|\|\||;"), "command chaining (&&, ||, ;) is not allowed"),
    (re.compile(r"[\r\n]"), "multiple command lines are not allowed"),
    (re.compile(r"\|"), "pipes are not allowed"),
    (re.compile(r"[<>]"), "input/output redirection is not allowed"),
    (re.compile(r"&"), "background execution (&) is not allowed"),
    (re.compile(r"`"), "command substitution (backticks) is not allowed"),
    (re.compile(r"\$\("), "command substitution $(...) is not allowed"),
    (re.compile(r"\$\{"), "variable expansion ${...} is not allowed"),
    (re.compile(r"\$[A-Za-z_0-9@*#?$!-]"), "variable expansion ($VAR) is not allowed"),
]


@dataclass
class CommandPolicy:
    """
    Configurable command policy.

    Two layers:
    - ``blocked_patterns``: always denied (destructive or exfiltration shapes),
      together with the structural ``DANGEROUS_CHECKS``
    - ``shell_feature_patterns``: denied unless ``full_shell_access`` is True
      (pipes, redirects, chaining, substitution, directory changes)
    """

    full_shell_access: bool = False
    blocked_patterns: list[tuple[re.Pattern[str], str]] = field(
        default_factory=lambda: list(DANGEROUS_PATTERNS)
    )
    shell_feature_patterns: list[tuple[re.Pattern[str], str]] = field(
        default_factory=lambda: list(SHELL_FEATURE_PATTERNS)
    )

    @classmethod
    def restricted(cls) -> CommandPolicy:
        """Policy for agents without a real shell (recommended)."""
        return cls(full_shell_access=False)

    @classmethod
    def full_shell(cls) -> CommandPolicy:
        """
        Policy that permits shell composition.

        Only for deployments that are not kernel-sandboxed and not
        multi-tenant; the always-denied patterns still apply.
        """
        return cls(full_shell_access=True)

    def check_command(self, command: str) -> Verdict:
        """
        Validate a raw command string.

        Args:
            command: The command exactly as the model produced it.

        Returns:
            Verdict; a denied verdict's reason starts with
            "Command blocked by safety guard".
        """
        if "\x00" in command:
            return Verdict.deny(f"{BLOCKED_PREFIX} (null byte in command)")

        for check, reason in DANGEROUS_CHECKS:
            if check(command):
                return Verdict.deny(f"{BLOCKED_PREFIX} (dangerous pattern: {reason})")

        for pattern, reason in self.blocked_patterns:
            if pattern.search(command):
                return Verdict.deny(f"{BLOCKED_PREFIX} (dangerous pattern: {reason})")

        if not self.full_shell_access:
            for pattern, reason in self.shell_feature_patterns:
                if pattern.search(command):
                    return Verdict.deny(
                        f"{BLOCKED_PREFIX} ({reason} without full shell access)"
                    )

        return Verdict.allow()

    def add_blocked_pattern(self, pattern: str, reason: str) -> None:
        """
        Add a custom always-denied pattern.

        Args:
            pattern: Regex pattern string (case-sensitive).
            reason: Human-readable reason for blocking.
        """
        self.blocked_patterns.append((re.compile(pattern), reason))


def validate_command(command: str, full_shell_access: bool = False) -> Verdict:
    """Check a command against the default policy for the given access level."""
    return CommandPolicy(full_shell_access=full_shell_access).check_command(command)
