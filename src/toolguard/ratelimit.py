"""
Sliding-window rate limiting for tool calls.

Two independent windows are kept per session: one per (tool, session) pair
and one global per session. ``acquire`` checks and records in one step under
the lock; ``check_limit`` and ``record_call`` are the two halves on their own.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """At most ``max_calls`` within any ``window_seconds`` interval."""

    max_calls: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

    def describe(self) -> str:
        window = int(self.window_seconds) if float(self.window_seconds).is_integer() else self.window_seconds
        return f"max {self.max_calls} calls per {window} seconds"


# Defaults for high-risk tools
DEFAULT_TOOL_LIMITS: dict[str, RateLimit] = {
    "exec": RateLimit(max_calls=10, window_seconds=60),
    "web_fetch": RateLimit(max_calls=20, window_seconds=60),
    "web_search": RateLimit(max_calls=10, window_seconds=60),
}
DEFAULT_GLOBAL_LIMIT = RateLimit(max_calls=100, window_seconds=60)


class RateLimiter:
    """
    Thread-safe sliding-window limiter.

    Example:
        >>> limiter = RateLimiter({"exec": RateLimit(3, 60)})
        >>> if (reason := limiter.acquire("exec", "session-1")) is None:
        ...     run_the_tool()
    """

    def __init__(
        self,
        per_tool_limits: dict[str, RateLimit] | None = None,
        global_limit: RateLimit | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._per_tool_limits = dict(per_tool_limits or {})
        self._global_limit = global_limit
        self._clock = clock
        self._windows: dict[tuple[str, ...], deque[float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def with_defaults(cls, **overrides: RateLimit) -> RateLimiter:
        """Create a limiter with the default limits for exec and web tools."""
        limits = dict(DEFAULT_TOOL_LIMITS)
        limits.update(overrides)
        return cls(limits, DEFAULT_GLOBAL_LIMIT)

    @property
    def per_tool_limits(self) -> dict[str, RateLimit]:
        return dict(self._per_tool_limits)

    @property
    def global_limit(self) -> RateLimit | None:
        return self._global_limit

    def check_limit(self, tool_name: str, session_key: str) -> str | None:
        """
        Check whether a call may proceed, without recording it.

        Returns:
            None if allowed, otherwise a reason naming the limit that was hit.
        """
        now = self._clock()
        with self._lock:
            return self._exceeded(tool_name, session_key, now)

    def record_call(self, tool_name: str, session_key: str) -> None:
        """Record a call against both the per-tool and the global window."""
        now = self._clock()
        with self._lock:
            self._record(tool_name, session_key, now)

    def acquire(self, tool_name: str, session_key: str) -> str | None:
        """
        Check and record a call as one step.

        Concurrent callers cannot all pass the check before any of them is
        recorded, so at most ``max_calls`` of them get through.

        Returns:
            None if the call was admitted (and recorded), otherwise the reason.
        """
        now = self._clock()
        with self._lock:
            reason = self._exceeded(tool_name, session_key, now)
            if reason is None:
                self._record(tool_name, session_key, now)
            return reason

    def release(self, tool_name: str, session_key: str) -> None:
        """Give back the newest slot taken by ``acquire`` for a call that never ran."""
        with self._lock:
            for key in (("tool", tool_name, session_key), ("global", session_key)):
                window = self._windows.get(key)
                if window:
                    window.pop()

    def current_count(self, tool_name: str | None, session_key: str) -> int:
        """Calls currently recorded in a window (``tool_name=None`` for global)."""
        key = ("global", session_key) if tool_name is None else ("tool", tool_name, session_key)
        with self._lock:
            return len(self._windows.get(key, ()))

    def reset(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._windows.clear()

    # The helpers below expect the lock to be held

    def _exceeded(self, tool_name: str, session_key: str, now: float) -> str | None:
        limit = self._per_tool_limits.get(tool_name)
        if limit is not None:
            if self._count(("tool", tool_name, session_key), limit, now) >= limit.max_calls:
                logger.warning("Rate limit exceeded for tool %s (session %s)", tool_name, session_key)
                return f"Rate limit exceeded: {limit.describe()} for tool '{tool_name}'"

        if self._global_limit is not None:
            limit = self._global_limit
            if self._count(("global", session_key), limit, now) >= limit.max_calls:
                logger.warning("Global rate limit exceeded (session %s)", session_key)
                return f"Rate limit exceeded: {limit.describe()} across all tools"

        return None

    def _record(self, tool_name: str, session_key: str, now: float) -> None:
        # Unlimited windows would never be pruned
        if tool_name in self._per_tool_limits:
            self._windows.setdefault(("tool", tool_name, session_key), deque()).append(now)
        if self._global_limit is not None:
            self._windows.setdefault(("global", session_key), deque()).append(now)

    def _count(self, key: tuple[str, ...], limit: RateLimit, now: float) -> int:
        window = self._windows.setdefault(key, deque())
        cutoff = now - limit.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()
        return len(window)
