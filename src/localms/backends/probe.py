"""Fixed-interval health probing."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import httpx

ReachabilityCheck = Callable[[], bool]


class ProbeTimeout(TimeoutError):
    """Raised when the check never succeeded within the timeout."""

    def __init__(self, message: str, attempts: int, elapsed_sec: float) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.elapsed_sec = elapsed_sec


class ProbeCancelled(RuntimeError):
    """Raised when the caller set the cancel event during the wait."""


def wait_until_reachable(
    check: ReachabilityCheck,
    *,
    interval_sec: float,
    timeout_sec: float,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Call ``check`` once per interval, starting immediately.

    Returns the number of attempts made. Never kills anything; exceptions
    raised by ``check`` propagate unchanged.
    """
    started = clock()
    attempts = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise ProbeCancelled("health probe cancelled after {0} attempts".format(attempts))
        attempts += 1
        if check():
            return attempts
        elapsed = clock() - started
        if elapsed + interval_sec > timeout_sec:
            raise ProbeTimeout(
                "backend not reachable after {0:.1f}s ({1} attempts)".format(
                    elapsed + interval_sec,
                    attempts,
                ),
                attempts=attempts,
                elapsed_sec=elapsed + interval_sec,
            )
        sleep(interval_sec)


def http_liveness_check(url: str, timeout_sec: float = 2.0) -> bool:
    """Best-effort GET; connection refused and timeouts read as 'not yet'."""
    try:
        response = httpx.get(url, timeout=timeout_sec)
    except httpx.HTTPError:
        return False
    return response.status_code == 200
