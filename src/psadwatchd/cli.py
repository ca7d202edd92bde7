"""Command-line interface for psadwatchd."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from .config import DEFAULT_CONFIG_FILE, ConfigStore
from .daemon import check_unique_pid, daemonize
from .errors import WatchdogError
from .watchdog import SupervisorLoop

logger = logging.getLogger("psadwatchd")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    # Console handler
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    # File handler
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            logger.addHandler(file_handler)
        except PermissionError:
            logger.warning(f"Cannot write to log file: {log_file}")


@click.command()
@click.version_option(package_name="psadwatchd")
@click.argument(
    "config_path",
    required=False,
    default=DEFAULT_CONFIG_FILE,
    type=click.Path(dir_okay=False),
)
@click.option(
    "-f", "--foreground",
    is_flag=True,
    help="Stay in the foreground instead of daemonizing",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Dry-run mode (no restarts or mail)",
)
@click.option(
    "--check-config",
    is_flag=True,
    help="Validate the config file and exit",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose logging",
)
def main(config_path: str, foreground: bool, dry_run: bool, check_config: bool, verbose: bool):
    """Keep psad, kmsgsd and diskmond running.

    CONFIG_PATH defaults to /etc/psad/psadwatchd.conf.
    """
    try:
        store = ConfigStore(config_path)
    except WatchdogError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    config = store.config

    if check_config:
        click.echo(f"Configuration is valid: {config_path}")
        for process in config.processes():
            cmdline = process.cmdline_file or "-"
            click.echo(f"  - {process.name}: {process.binary} (pid: {process.pid_file}, cmdline: {cmdline})")
        click.echo(f"  check interval: {config.check_interval}s, max retries: {config.max_retries}")
        return

    setup_logging(verbose, config.log_file)

    try:
        check_unique_pid(config.pid_file)
        if not foreground:
            daemonize(config.pid_file)

        SupervisorLoop(store, dry_run=dry_run).run()
    except WatchdogError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
