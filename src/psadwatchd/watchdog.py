"""Main supervisor loop."""

from __future__ import annotations

import logging
import time

from .config import ConfigStore, WatchdogConfig
from .errors import RestartExhausted
from .launcher import ProcessLauncher
from .ledger import RetryLedger
from .monitor import CheckResult, Outcome, ProcessMonitor
from .notifiers import AlertNotifier

logger = logging.getLogger("psadwatchd")


class SupervisorLoop:
    """Checks every daemon once per tick, sequentially, forever.

    Retry counters live for the lifetime of the loop and survive config
    reloads; everything derived from the config is rebuilt on reload.
    """

    def __init__(self, store: ConfigStore, dry_run: bool = False):
        self.store = store
        self.dry_run = dry_run
        self.launcher = ProcessLauncher(dry_run=dry_run)
        self.ledger = RetryLedger(store.config.max_retries)
        self._apply_config()

    @property
    def config(self) -> WatchdogConfig:
        return self.store.config

    def _apply_config(self):
        config = self.config
        self.processes = config.processes()
        self.ledger.max_retries = config.max_retries
        self.monitor = ProcessMonitor(
            self.launcher,
            self.ledger,
            AlertNotifier(config, dry_run=self.dry_run),
        )

    def tick(self) -> list[CheckResult]:
        """Check every daemon, then pick up config changes.

        Raises RestartExhausted as soon as one daemon gives up; the
        remaining daemons are not checked.
        """
        results = []
        for process in self.processes:
            result = self.monitor.check(process)
            results.append(result)
            if result.outcome is Outcome.GAVE_UP:
                raise RestartExhausted(result.name, result.failures)

        old_pid_file = self.config.pid_file
        if self.store.reload_if_changed():
            logger.info(f"Re-read config file {self.store.path}")
            if self.config.pid_file != old_pid_file:
                logger.warning(
                    f"PSADWATCHD_PID_FILE changed to {self.config.pid_file}; "
                    f"still using {old_pid_file} until restart"
                )
            self._apply_config()

        return results

    def run(self):
        """Run the watchdog loop. Only returns by raising."""
        logger.info("psadwatchd started")
        if self.dry_run:
            logger.info("Running in DRY-RUN mode")
        logger.info(
            f"Monitoring {', '.join(p.name for p in self.processes)} "
            f"every {self.config.check_interval}s"
        )

        while True:
            self.tick()
            time.sleep(self.config.check_interval)
