"""Exception hierarchy for psadwatchd.

Every exception here is fatal: the CLI catches ``WatchdogError``, logs it
and exits with a failure status.
"""


class WatchdogError(Exception):
    """Base class for fatal watchdog conditions."""


class ConfigError(WatchdogError):
    """Config file missing, unreadable, or missing a required key."""


class LaunchError(WatchdogError):
    """A daemon could not be spawned or its cmdline file could not be read."""


class InstanceError(WatchdogError):
    """Another psadwatchd already owns the pid file."""


class RestartExhausted(WatchdogError):
    """A daemon failed ``max_retries`` consecutive checks."""

    def __init__(self, name: str, failures: int):
        super().__init__(f"Could not restart {name} after {failures} attempts")
        self.name = name
        self.failures = failures
