"""Command and path validation."""

from toolguard.security.paths import PathJail, check_command_paths, is_env_file
from toolguard.security.policy import (
    DANGEROUS_PATTERNS,
    SHELL_FEATURE_PATTERNS,
    CommandPolicy,
    validate_command,
)

__all__ = [
    "DANGEROUS_PATTERNS",
    "SHELL_FEATURE_PATTERNS",
    "CommandPolicy",
    "PathJail",
    "check_command_paths",
    "is_env_file",
    "validate_command",
]
