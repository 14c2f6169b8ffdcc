"""
Exception types.

Per-call outcomes (denials, failures, timeouts) are never raised; they are
returned as ToolResult values. Exceptions here are reserved for problems that
must stop a tool from being built at all.
"""


class ToolguardError(Exception):
    """Base class for toolguard exceptions."""


class ConfigurationError(ToolguardError, ValueError):
    """Raised when tool configuration is contradictory or invalid."""
