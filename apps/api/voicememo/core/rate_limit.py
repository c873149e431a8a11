"""Per-client fixed-window request limits."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import time


@dataclass(slots=True)
class FixedWindowRateLimiter:
    limit: int
    window_seconds: float
    clock: Callable[[], float] = time.monotonic
    _windows: dict[str, tuple[float, int]] = field(default_factory=dict)
    _last_sweep: float | None = None

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> bool:
        """Count one request for ``key``; return False once the window is full."""
        now = self.clock()
        self._sweep(now)
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        if count >= self.limit:
            self._windows[key] = (window_start, count)
            return False

        self._windows[key] = (window_start, count + 1)
        return True

    def retry_after_seconds(self, key: str) -> int:
        window_start, _ = self._windows.get(key, (self.clock(), 0))
        remaining = self.window_seconds - (self.clock() - window_start)
        return max(1, int(remaining + 0.999))

    def _sweep(self, now: float) -> None:
        # At most once per window, drop clients whose window has already closed.
        if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [key for key, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in expired:
            del self._windows[key]

