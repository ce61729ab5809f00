"""Timer-driven flushing, independent of the writing threads."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from .diagnostics import logger


class FlushScheduler:
    """Periodically flushes the buffer from a background timer thread.

    Each tick disarms the timer, flushes when at least `min_flush_interval_s`
    passed since the last completed flush and entries are pending, then
    re-arms. Ticks therefore never overlap, even when a flush runs long.
    """

    def __init__(
        self,
        *,
        flush: Callable[[], object],
        pending: Callable[[], int],
        interval_s: float = 30.0,
        min_flush_interval_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create a stopped scheduler; call `start()` to arm it.

        Args:
            flush: Called on the timer thread to flush the buffer.
            pending: Returns the number of buffered entries.
            interval_s: Tick period.
            min_flush_interval_s: Minimum time between two flushes; must be
                >= `interval_s` so ticks can honour it.
            clock: Monotonic clock, injectable for tests.
        """
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0. Got: {interval_s}")
        if min_flush_interval_s <= 0:
            raise ValueError(f"min_flush_interval_s must be > 0. Got: {min_flush_interval_s}")
        if interval_s > min_flush_interval_s:
            raise ValueError(
                f"interval_s ({interval_s}) must not exceed min_flush_interval_s ({min_flush_interval_s})"
            )

        self._flush = flush
        self._pending = pending
        self.interval_s = interval_s
        self.min_flush_interval_s = min_flush_interval_s
        self._clock = clock

        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._stopped = False
        self._started = False

        # No flush yet: the first eligible tick flushes.
        self.last_flush_at: float | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        """Arm the timer. Calling it again has no effect."""
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True
            self._arm_locked()

    def stop(self) -> None:
        """Disarm permanently. Safe to call repeatedly or during a tick."""
        with self._lock:
            self._stopped = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def mark_flushed(self) -> None:
        """Record that a flush completed (whatever triggered it)."""
        self.last_flush_at = self._clock()

    def due(self) -> bool:
        """True when the minimum interval since the last flush has elapsed."""
        if self.last_flush_at is None:
            return True
        return self._clock() - self.last_flush_at >= self.min_flush_interval_s

    def _arm_locked(self) -> None:
        timer = threading.Timer(self.interval_s, self._tick)
        timer.name = "log-flush-scheduler"
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        """Run one scheduler tick on the timer thread."""
        with self._lock:
            if self._stopped:
                return
            self._timer = None
            self.ticks += 1

        try:
            if self.due() and self._pending() > 0:
                self._flush()
        except Exception as exc:  # noqa: BLE001 - nobody is waiting on a scheduled flush
            # The sink and the writer already reported this failure.
            logger.debug("Scheduled log flush failed: %s", exc)
        finally:
            with self._lock:
                if not self._stopped:
                    self._arm_locked()
