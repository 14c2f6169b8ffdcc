"""
Core type definitions for toolguard.

Uses dataclasses and enums for lightweight, typed abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ResultStatus(Enum):
    """Outcome classification for a tool call."""

    SUCCESS = "success"
    ERROR = "error"  # Operational failures (missing file, spawn failure, DNS)
    ACCESS_DENIED = "access_denied"  # Security policy rejections


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Immutable envelope returned by every tool."""

    status: ResultStatus
    content: str

    @classmethod
    def success(cls, content: str) -> ToolResult:
        return cls(ResultStatus.SUCCESS, content)

    @classmethod
    def error(cls, content: str) -> ToolResult:
        return cls(ResultStatus.ERROR, content)

    @classmethod
    def access_denied(cls, content: str) -> ToolResult:
        return cls(ResultStatus.ACCESS_DENIED, content)

    @property
    def ok(self) -> bool:
        """Return True if the call succeeded."""
        return self.status is ResultStatus.SUCCESS

    @property
    def denied(self) -> bool:
        """Return True if a security policy rejected the call."""
        return self.status is ResultStatus.ACCESS_DENIED

    @property
    def failed(self) -> bool:
        """Return True for operational errors."""
        return self.status is ResultStatus.ERROR

    def __str__(self) -> str:
        return self.content


@dataclass(frozen=True, slots=True)
class Verdict:
    """
    Outcome of a validator.

    Validators return verdicts instead of raising so that a forgotten
    ``except`` can never turn a rejection into a pass.
    """

    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> Verdict:
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> Verdict:
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Immutable result from process execution."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    truncated: bool = False

    @property
    def success(self) -> bool:
        """Return True if the process exited with code 0 and did not time out."""
        return self.exit_code == 0 and not self.timed_out
