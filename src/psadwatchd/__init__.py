"""
psadwatchd - keeps the psad daemons running

Checks psad, kmsgsd and diskmond on a fixed interval, restarts any that
have died, mails the operators, and gives up after too many consecutive
failed restarts.
"""

__version__ = "1.1.1"

from .config import ConfigStore, Daemon, WatchdogConfig
from .monitor import ProcessMonitor
from .watchdog import SupervisorLoop

__all__ = ["ConfigStore", "Daemon", "WatchdogConfig", "ProcessMonitor", "SupervisorLoop"]
