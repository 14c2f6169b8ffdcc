"""
Credential redaction for log output.

Anything that may end up in a log line (commands, URLs, tool output, exception
text) can carry secrets the model copied from the workspace. Every handler
installed by ``setup_logging`` passes records through ``sanitize`` first.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from urllib.parse import urlsplit, urlunsplit

REDACTED = "[REDACTED]"

SENSITIVE_PARAMS = frozenset(
    {"api_key", "apikey", "key", "token", "secret", "password", "access_token", "auth"}
)

# Order matters: specific shapes run before the generic key=value patterns
PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Sensitive query parameters
    (
        re.compile(r"([?&])(api_key|apikey|key|token|secret|password|access_token)=([^&\s#]+)", re.I),
        rf"\1\2={REDACTED}",
    ),
    # Authorization headers (before Bearer so the scheme word is covered too)
    (re.compile(r"(Authorization:\s*)(?:Bearer\s+|Basic\s+|Token\s+)?\S+", re.I), rf"\1{REDACTED}"),
    (re.compile(r"(x-api-key:\s*)\S+", re.I), rf"\1{REDACTED}"),
    # Bearer tokens
    (re.compile(r"\bBearer\s+(?!\[REDACTED\])[A-Za-z0-9_\-.~+/=]+", re.I), f"Bearer {REDACTED}"),
    # Provider API keys
    (re.compile(r"sk-ant-[A-Za-z0-9_-]+"), f"sk-ant-{REDACTED}"),
    (re.compile(r"sk-(?!ant-)[A-Za-z0-9_-]{16,}"), f"sk-{REDACTED}"),
    (re.compile(r"\bgsk_[A-Za-z0-9]{20,}"), f"gsk_{REDACTED}"),
    (re.compile(r"\bxox[abposr]-[A-Za-z0-9-]{10,}"), f"xox-{REDACTED}"),
    (re.compile(r"\bAIza[0-9A-Za-z_-]{35}"), f"AIza{REDACTED}"),
    (re.compile(r"\b(?:ghp|gho|ghs|ghu)_[A-Za-z0-9]{36}\b"), f"ghp_{REDACTED}"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{22,}"), f"github_pat_{REDACTED}"),
    # AWS access key IDs
    (re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b"), f"AKIA{REDACTED}"),
    # Generic key=value / key: value secrets
    (
        re.compile(r"\b(api[_-]?key|token|secret|password|passwd)([=:]\s*)['\"]?(?!\[REDACTED\])[^\s&'\",]+['\"]?", re.I),
        rf"\1\2{REDACTED}",
    ),
]


def sanitize(text: str) -> str:
    """Redact credential-shaped substrings, leaving the rest of the text intact."""
    for pattern, replacement in PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_url(url: str) -> str:
    """
    Redact sensitive query parameter values from a URL.

    The path and non-sensitive parameters are kept as they are. Input that
    does not parse as a URL falls back to ``sanitize``.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return sanitize(url)

    if not parts.scheme or not parts.netloc:
        return sanitize(url)

    netloc = parts.netloc
    if "@" in netloc:
        # user:password@host
        netloc = f"{REDACTED}@{netloc.rsplit('@', 1)[1]}"

    query = parts.query
    if query:
        params = []
        for param in query.split("&"):
            name = param.split("=", 1)[0]
            if name.lower() in SENSITIVE_PARAMS:
                params.append(f"{name}={REDACTED}")
            else:
                params.append(param)
        query = "&".join(params)

    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def contains_sensitive_data(text: str) -> bool:
    """Return True if any credential pattern matches."""
    return any(pattern.search(text) for pattern, _ in PATTERNS)


class SanitizingFilter(logging.Filter):
    """Logging filter that redacts secrets from the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = sanitize(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = sanitize(record.exc_text)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line: ts, level, source, msg, and error when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S%z", time.localtime(record.created)),
            "level": record.levelname,
            "source": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_text:
            entry["error"] = record.exc_text
        return json.dumps(entry)


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """
    Configure the ``toolguard`` logger hierarchy.

    Args:
        level: Minimum level to emit.
        log_file: Optional path; when given, JSON lines are appended there too.

    Returns:
        The configured package logger.
    """
    root = logging.getLogger("toolguard")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)5s %(name)s - %(message)s", datefmt="%H:%M:%S")
    )
    console.addFilter(SanitizingFilter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(SanitizingFilter())
        root.addHandler(file_handler)

    return root
