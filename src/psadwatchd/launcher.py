"""Relaunching dead daemons."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import Iterator, Optional

from .config import MAX_LINE_BUF
from .errors import LaunchError

logger = logging.getLogger("psadwatchd")

# argv slots available to a relaunched daemon, binary included
MAX_ARGS = 30

_TOKEN_RE = re.compile(r"[^ \t]+")


def tokenize(line: str) -> Iterator[str]:
    """Yield the space/tab separated words of a single command line."""
    line = line.split("\n", 1)[0]
    for match in _TOKEN_RE.finditer(line):
        yield match.group(0)


def read_cmdline(path: str) -> str:
    """Return the first line of a cmdline file."""
    try:
        # non-UTF-8 arguments are passed back to execve as the original bytes
        with open(path, errors="surrogateescape") as f:
            line = f.readline(MAX_LINE_BUF - 1)
    except OSError as e:
        raise LaunchError(f"Could not read cmdline file {path}: {e}") from e

    if not line:
        raise LaunchError(f"Cmdline file {path} is empty")

    return line


def build_argv(binary: str, cmdline_file: Optional[str] = None) -> list[str]:
    """Reconstruct the argument vector used to relaunch ``binary``.

    argv[0] is always ``binary``. A cmdline file whose first word is the
    program itself (``psad -i eth0``) has that word replaced by ``binary``;
    otherwise every word is appended as an argument.
    """
    argv = [binary]
    if cmdline_file is None:
        return argv

    tokens = tokenize(read_cmdline(cmdline_file))
    first = next(tokens, None)
    if first is not None and os.path.basename(first) != os.path.basename(binary):
        argv.append(first)
    argv.extend(tokens)

    if len(argv) > MAX_ARGS:
        raise LaunchError(f"Cmdline file {cmdline_file} has more than {MAX_ARGS} arguments")

    return argv


class ProcessLauncher:
    """Spawn a daemon and wait for it to detach."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def launch_and_wait(self, binary: str, cmdline_file: Optional[str] = None) -> int:
        """Run ``binary`` with an empty environment, blocking until it exits.

        The daemon is expected to fork into the background, so the direct
        child exits quickly. A binary that never daemonizes stalls the loop;
        there is no timeout. Returns the child's exit status.
        """
        argv = build_argv(binary, cmdline_file)

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would execute: {' '.join(argv)}")
            return 0

        logger.info(f"Restarting: {' '.join(argv)}")
        try:
            result = subprocess.run(argv, env={}, stdin=subprocess.DEVNULL)
        except OSError as e:
            raise LaunchError(f"Could not execute {binary}: {e}") from e

        if result.returncode != 0:
            logger.warning(f"{binary} exited with status {result.returncode}")
        else:
            logger.debug(f"{binary} exited with status 0")

        return result.returncode
