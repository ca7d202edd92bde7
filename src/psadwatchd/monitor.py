"""Daemon liveness checks."""

from __future__ import annotations

import enum
import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from .config import MonitoredProcess
from .launcher import ProcessLauncher
from .ledger import RetryLedger
from .notifiers import AlertEvent, AlertNotifier

logger = logging.getLogger("psadwatchd")

# characters of the pid file's first line that are considered
MAX_PID_LEN = 10

_ATOI_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")


class Outcome(enum.Enum):
    ALIVE = "alive"
    RESTARTED = "restarted"
    GAVE_UP = "gave_up"


def parse_pid(text: str) -> int:
    """Parse a pid the way C's atoi does: leading digits, else 0."""
    match = _ATOI_RE.match(text)
    if not match:
        return 0
    return int(match.group(1))


def read_pid_file(path: str) -> Optional[int]:
    """Return the pid recorded in ``path``, or None if it cannot be opened."""
    try:
        with open(path) as f:
            line = f.readline(MAX_PID_LEN)
    except (OSError, UnicodeDecodeError):
        return None
    return parse_pid(line)


def pid_alive(pid: int) -> bool:
    """Signal-0 check: True if ``pid`` exists and may be signalled.

    A pid of 0 or below would address a process group, so it is never
    alive. A stale pid reused by an unrelated process reads as alive.
    """
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


@dataclass
class CheckResult:
    """Result of checking one daemon."""

    name: str
    outcome: Outcome
    pid: Optional[int] = None
    failures: int = 0


class ProcessMonitor:
    """Checks daemons and restarts the ones that have died."""

    def __init__(self, launcher: ProcessLauncher, ledger: RetryLedger, notifier: AlertNotifier):
        self.launcher = launcher
        self.ledger = ledger
        self.notifier = notifier

    def check(self, process: MonitoredProcess) -> CheckResult:
        pid = read_pid_file(process.pid_file)

        if pid is None:
            logger.debug(f"Could not open pid file {process.pid_file}")
            return self._restart(process, AlertEvent.RESTART_MISSING_PIDFILE, pid)

        if not pid_alive(pid):
            logger.debug(f"{process.name} (pid {pid}) is not running")
            return self._restart(process, AlertEvent.RESTART_DEAD_PROCESS, pid)

        logger.debug(f"{process.name} is running (pid {pid})")
        self.ledger.record_success(process.daemon)
        return CheckResult(name=process.name, outcome=Outcome.ALIVE, pid=pid)

    def _restart(self, process: MonitoredProcess, kind: str, pid: Optional[int]) -> CheckResult:
        self.notifier.alert(kind, process.name)
        self.launcher.launch_and_wait(process.binary, process.cmdline_file)

        give_up = self.ledger.record_failure(process.daemon)
        failures = self.ledger.failures(process.daemon)

        if give_up:
            logger.error(f"Could not restart {process.name} process.  Exiting.")
            self.notifier.alert(AlertEvent.GIVE_UP, process.name)
            return CheckResult(process.name, Outcome.GAVE_UP, pid, failures)

        return CheckResult(process.name, Outcome.RESTARTED, pid, failures)
