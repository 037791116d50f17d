"""Timeouts and cancellation for pipeline stages.

Each boundary races its callable on a worker thread against a timer. When the
timer wins the worker is abandoned and ``ProcessingTimeout`` is raised; the
callable should carry its own hard limit (e.g. a subprocess timeout) so the
abandoned thread does not linger.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import TypeVar

from splitscan.domain.errors import ProcessingTimeout, ScanCancelled

T = TypeVar("T")

# How often a waiting stage re-checks the cancellation token
CANCEL_POLL_INTERVAL_S = 0.05


class CancellationToken:
    """Single cancellation signal held by the caller for a whole request."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise ScanCancelled(f"Cancelled during {stage}")


class Deadline:
    """Absolute wall-clock budget shared by several sequential steps."""

    def __init__(self, timeout_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout_s = timeout_s
        self._clock = clock
        self._expires_at = clock() + timeout_s

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


def run_with_timeout(
    fn: Callable[[], T],
    timeout_s: float,
    *,
    stage: str,
    cancel: CancellationToken | None = None,
) -> T:
    """Run ``fn`` and return its result, or raise once ``timeout_s`` elapses.

    Raises:
        ProcessingTimeout: the timer fired first.
        ScanCancelled: the cancellation token was set while waiting.
        Exception: whatever ``fn`` itself raised.
    """
    if cancel is not None:
        cancel.raise_if_cancelled(stage)
    if timeout_s <= 0:
        raise ProcessingTimeout(stage, timeout_s)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"splitscan-{stage}")
    future = executor.submit(fn)
    deadline = time.monotonic() + timeout_s
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                future.cancel()
                raise ProcessingTimeout(stage, timeout_s)
            wait_s = remaining if cancel is None else min(remaining, CANCEL_POLL_INTERVAL_S)
            try:
                return future.result(timeout=wait_s)
            except FutureTimeout:
                if cancel is not None and cancel.cancelled:
                    future.cancel()
                    raise ScanCancelled(f"Cancelled during {stage}") from None
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
