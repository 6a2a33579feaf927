"""
Quota throttle: a rolling fixed-window request budget.

The grid service publishes a per-100-second request quota whose windows
reset on multiples of 100 seconds. ``QuotaThrottle`` keeps local accounting
of how many requests were issued in the current window and, once the next
reservation would pass the budget, either parks the caller until the window
rolls over or lets the call through when the caller opted out of blocking.

Manifesto:
    This is advisory local accounting, not a guarantee. The backend stays
    the final arbiter and may still reject an over-quota call; the engine
    reports that as a retryable ``BackendRejectedError``.

    - **Aligned windows:** window starts are multiples of the window length
      in a fixed UTC-7 zone, matching the service's reset boundary
    - **Safety margin:** the default budget (90) sits below the true limit
    - **Cancellable waits:** a blocking wait sleeps on an Event, so
      ``cancel()`` or a timeout ends it early; it never busy-loops

Architecture:
    ::

        reserve(cost, blocking)
          │
          ├─ now ≥ window_start + window ?  → realign window, usage = 0
          │
          ├─ usage + cost > limit ?
          │     ├─ blocking      → sleep until window_start + window,
          │     │                  then window_start += window, usage = 0
          │     └─ non-blocking  → log and pass through
          │
          └─ usage += cost

Examples:
    >>> throttle = QuotaThrottle(limit=90, window_seconds=100)
    >>> throttle.reserve(1)
    >>> throttle.usage
    1

Tags:
    quota, rate-limit, throttle, fixed-window, sheetstore
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from sheetstore.core.errors import QuotaWaitInterrupted
from sheetstore.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], bool]


class QuotaThrottle:
    """
    Fixed-window request budget shared by every call through one manager.

    Parameters:
        limit: Requests allowed per window before reservations throttle.
        window_seconds: Window length in seconds.
        utc_offset_hours: Fixed zone the window boundaries are anchored in.
        blocking: Default blocking mode for :meth:`reserve`.
        wait_timeout: Longest a single blocking wait may last (None = no bound).
        clock: Returns the current epoch time in seconds.
        sleeper: ``sleeper(seconds) -> bool``; returns False when the wait
            was interrupted. Defaults to waiting on the throttle's cancel
            event.
    """

    def __init__(
        self,
        limit: int = 90,
        window_seconds: int = 100,
        utc_offset_hours: int = -7,
        *,
        blocking: bool = True,
        wait_timeout: float | None = None,
        clock: Clock | None = None,
        sleeper: Sleeper | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self.blocking = blocking
        self.wait_timeout = wait_timeout
        self._offset = utc_offset_hours * 3600
        self._clock = clock or time.time
        self._cancelled = threading.Event()
        self._sleeper = sleeper or self._wait_on_event
        self._lock = threading.Lock()

        self.usage = 0
        self.window_start: int | None = None

    @classmethod
    def from_settings(cls, settings, **kwargs) -> QuotaThrottle:
        """Build a throttle from :class:`SheetStoreSettings`."""
        return cls(
            limit=settings.quota_limit,
            window_seconds=settings.quota_window_seconds,
            utc_offset_hours=settings.quota_utc_offset_hours,
            blocking=settings.block_on_quota,
            wait_timeout=settings.quota_wait_timeout,
            **kwargs,
        )

    def window_for(self, now: float) -> int:
        """Start of the window containing ``now`` (epoch seconds)."""
        local = int(now) + self._offset
        return (local // self.window_seconds) * self.window_seconds - self._offset

    @property
    def window_end(self) -> int | None:
        if self.window_start is None:
            return None
        return self.window_start + self.window_seconds

    def reserve(self, cost: int = 1, blocking: bool | None = None, timeout: float | None = None) -> None:
        """
        Account for ``cost`` requests, waiting for the next window if needed.

        Args:
            cost: Requests about to be issued.
            blocking: Override the default blocking mode for this call.
            timeout: Override the default wait bound for this call.

        Raises:
            QuotaWaitInterrupted: a blocking wait was cancelled or timed out
                before the window rolled over.
        """
        if cost < 0:
            raise ValueError("cost must not be negative")
        blocking = self.blocking if blocking is None else blocking
        timeout = self.wait_timeout if timeout is None else timeout

        with self._lock:
            now = self._clock()
            if self.window_start is None or now >= self.window_start + self.window_seconds:
                self.window_start = self.window_for(now)
                self.usage = 0
                logger.debug("quota_window_reset", window_start=self.window_start)

            if self.usage + cost > self.limit:
                # A fresh window is the best an oversized cost can get; waiting gains nothing.
                if blocking and self.usage > 0:
                    self._wait_for_rollover(now, timeout)
                    self.window_start += self.window_seconds
                    self.usage = 0
                    logger.info("quota_window_reset", window_start=self.window_start, after_wait=True)
                else:
                    logger.warning(
                        "quota_exceeded_passthrough",
                        usage=self.usage,
                        cost=cost,
                        limit=self.limit,
                    )

            self.usage += cost

    def _wait_for_rollover(self, now: float, timeout: float | None) -> None:
        remaining = max(0.0, self.window_start + self.window_seconds - now)
        logger.info("quota_wait", seconds=remaining, usage=self.usage, limit=self.limit)
        if timeout is not None and remaining > timeout:
            self._sleeper(timeout)
            raise QuotaWaitInterrupted(
                f"Quota wait of {remaining:.1f}s exceeds timeout of {timeout:.1f}s",
                retry_after=remaining - timeout,
            )
        if remaining > 0 and not self._sleeper(remaining):
            raise QuotaWaitInterrupted(
                "Quota wait cancelled",
                retry_after=max(0.0, self.window_start + self.window_seconds - self._clock()),
            )

    def _wait_on_event(self, seconds: float) -> bool:
        return not self._cancelled.wait(seconds)

    def cancel(self) -> None:
        """Interrupt any current and future blocking waits."""
        self._cancelled.set()

    def reset_cancel(self) -> None:
        """Allow blocking waits again after :meth:`cancel`."""
        self._cancelled.clear()


__all__ = ["QuotaThrottle"]
