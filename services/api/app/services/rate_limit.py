from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    count: int
    expires_at: float


class RateLimiter:
    """Process-wide, time-windowed action counter.

    Best-effort abuse damping, not a security boundary: state lives in memory and is
    lost on restart. Construct at startup, `start()` the sweeper, `stop()` on shutdown.
    """

    def __init__(
        self,
        *,
        sweep_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def allow(self, key: str, limit: int, window_seconds: float) -> bool:
        if limit <= 0:
            return False

        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.expires_at:
                self._windows[key] = _Window(count=1, expires_at=now + window_seconds)
                return True

            if window.count >= limit:
                return False

            window.count += 1
            return True

    def sweep(self) -> int:
        """Drop expired windows. Returns how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [key for key, w in self._windows.items() if now >= w.expires_at]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run_sweeper, name="rate-limit-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self._sweep_interval):
            removed = self.sweep()
            if removed:
                logger.debug("Swept %d expired rate-limit windows", removed)
