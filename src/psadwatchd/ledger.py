"""Consecutive-failure accounting and the give-up policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import Daemon

logger = logging.getLogger("psadwatchd")


@dataclass
class RetryCounter:
    """Consecutive failed restarts for one daemon."""

    daemon: Daemon
    consecutive_failures: int = 0


class RetryLedger:
    """One counter per daemon, owned by the supervisor loop.

    Counters are independent, but any single one reaching ``max_retries``
    means the whole watchdog gives up.
    """

    def __init__(self, max_retries: int):
        self.max_retries = max_retries
        self.counters: dict[Daemon, RetryCounter] = {d: RetryCounter(daemon=d) for d in Daemon}

    def record_failure(self, daemon: Daemon) -> bool:
        """Count a failed check. Returns True when it is time to give up."""
        counter = self.counters[daemon]
        counter.consecutive_failures += 1

        logger.warning(
            f"{daemon.value} not running, restart attempt "
            f"#{counter.consecutive_failures} (max: {self.max_retries})"
        )

        return counter.consecutive_failures >= self.max_retries

    def record_success(self, daemon: Daemon):
        counter = self.counters[daemon]
        if counter.consecutive_failures:
            logger.info(f"{daemon.value} is running again")
        counter.consecutive_failures = 0

    def failures(self, daemon: Daemon) -> int:
        return self.counters[daemon].consecutive_failures
