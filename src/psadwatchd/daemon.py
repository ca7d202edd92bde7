"""Daemonization and single-instance enforcement."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import psutil

from .errors import InstanceError, WatchdogError
from .monitor import read_pid_file

logger = logging.getLogger("psadwatchd")

PROGRAM = "psadwatchd"


def _is_watchdog(pid: int) -> bool:
    try:
        proc = psutil.Process(pid)
        return any(PROGRAM in part for part in [proc.name()] + proc.cmdline())
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # can't inspect it, assume the pid file is right
        return True


def check_unique_pid(pid_file: str):
    """Raise InstanceError if another psadwatchd owns ``pid_file``.

    A pid file left behind by a dead watchdog, or whose pid now belongs
    to some other program, is stale and ignored.
    """
    pid = read_pid_file(pid_file)
    if not pid or pid == os.getpid():
        return

    if psutil.pid_exists(pid) and _is_watchdog(pid):
        raise InstanceError(f"psadwatchd is already running as pid {pid} ({pid_file})")

    logger.debug(f"Ignoring stale pid file {pid_file} (pid {pid})")


def write_pid_file(pid_file: str):
    pid_path = Path(pid_file)
    try:
        pid_path.parent.mkdir(parents=True, exist_ok=True)
        pid_path.write_text(f"{os.getpid()}\n")
    except OSError as e:
        raise InstanceError(f"Could not write pid file {pid_file}: {e}") from e
    logger.debug(f"Wrote PID file: {pid_path}")


def _fork_parent_exits(stage: str):
    try:
        if os.fork() > 0:
            sys.exit(0)
    except OSError as e:
        raise WatchdogError(f"Could not fork ({stage}): {e}") from e


def _close_stdio():
    sys.stdout.flush()
    sys.stderr.flush()

    with open("/dev/null", "r") as devnull:
        os.dup2(devnull.fileno(), sys.stdin.fileno())
    with open("/dev/null", "a+") as devnull:
        os.dup2(devnull.fileno(), sys.stdout.fileno())
        os.dup2(devnull.fileno(), sys.stderr.fileno())


def daemonize(pid_file: str):
    """Detach psadwatchd from its terminal and record the daemon's pid.

    The session leader forks once more so the watchdog can never
    reacquire a controlling terminal.
    """
    _fork_parent_exits("leaving the shell")
    os.chdir("/")
    os.setsid()
    os.umask(0o022)
    _fork_parent_exits("dropping session leadership")

    _close_stdio()
    write_pid_file(pid_file)
