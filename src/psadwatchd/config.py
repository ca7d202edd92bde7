"""Configuration management for psadwatchd.

The config file is line oriented: ``KEY value`` pairs, comment lines start
with ``#`` or ``;`` and blank lines are ignored. Files ending in ``.yaml`` or
``.yml`` are read as a YAML mapping with the same key names.
"""

from __future__ import annotations

import enum
import os
import re
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_FILE = "/etc/psad/psadwatchd.conf"

# Length ceilings carried over from the fixed buffers of the C daemon.
MAX_PATH_LEN = 100
MAX_GEN_LEN = 256
MAX_LINE_BUF = 1024
# unsigned int ceiling of the C numeric settings
MAX_NUMERIC = 2 ** 32 - 1

COMMENT_CHARS = ("#", ";")


class Daemon(enum.Enum):
    """Daemons supervised by psadwatchd, in check order."""

    PSAD = "psad"
    KMSGSD = "kmsgsd"
    DISKMOND = "diskmond"


# config file key -> (WatchdogConfig attribute, required, max length)
CONFIG_KEYS: dict[str, tuple[str, bool, int]] = {
    "psadCmd": ("psad_binary", True, MAX_PATH_LEN),
    "PSAD_PID_FILE": ("psad_pid_file", True, MAX_PATH_LEN),
    "PSAD_CMDLINE_FILE": ("psad_cmdline_file", False, MAX_PATH_LEN),
    "kmsgsdCmd": ("kmsgsd_binary", True, MAX_PATH_LEN),
    "KMSGSD_PID_FILE": ("kmsgsd_pid_file", True, MAX_PATH_LEN),
    "diskmondCmd": ("diskmond_binary", True, MAX_PATH_LEN),
    "DISKMOND_PID_FILE": ("diskmond_pid_file", True, MAX_PATH_LEN),
    "shCmd": ("sh_cmd", True, MAX_PATH_LEN),
    "mailCmd": ("mail_cmd", True, MAX_PATH_LEN),
    "EMAIL_ADDRESSES": ("email_addresses", True, MAX_GEN_LEN),
    "PSADWATCHD_CHECK_INTERVAL": ("check_interval", True, MAX_GEN_LEN),
    "PSADWATCHD_MAX_RETRIES": ("max_retries", True, MAX_GEN_LEN),
    "PSADWATCHD_PID_FILE": ("pid_file", True, MAX_PATH_LEN),
    "HOSTNAME": ("hostname", False, MAX_GEN_LEN),
    "WEBHOOK_URL": ("webhook_url", False, MAX_LINE_BUF),
    "PSADWATCHD_LOG_FILE": ("log_file", False, MAX_PATH_LEN),
}

NUMERIC_KEYS = ("PSADWATCHD_CHECK_INTERVAL", "PSADWATCHD_MAX_RETRIES")

_LINE_RE = re.compile(r"([^ \t]+)[ \t]+(.*)")
_NUMBER_RE = re.compile(r"[0-9]+")


@dataclass
class MonitoredProcess:
    """One supervised daemon and the files used to find and relaunch it."""

    daemon: Daemon
    binary: str
    pid_file: str
    cmdline_file: Optional[str] = None

    @property
    def name(self) -> str:
        return self.daemon.value


@dataclass
class WatchdogConfig:
    """Settings for the watchdog, replaced as a whole on reload."""

    psad_binary: str = "/usr/sbin/psad"
    psad_pid_file: str = "/var/run/psad/psad.pid"
    psad_cmdline_file: Optional[str] = None
    kmsgsd_binary: str = "/usr/sbin/kmsgsd"
    kmsgsd_pid_file: str = "/var/run/psad/kmsgsd.pid"
    diskmond_binary: str = "/usr/sbin/diskmond"
    diskmond_pid_file: str = "/var/run/psad/diskmond.pid"

    # Alerting
    sh_cmd: str = "/bin/sh"
    mail_cmd: str = "/bin/mail"
    email_addresses: str = "root@localhost"
    hostname: str = ""
    webhook_url: Optional[str] = None

    # Loop settings
    check_interval: int = 5  # seconds between ticks
    max_retries: int = 10  # consecutive failed restarts before giving up

    pid_file: str = "/var/run/psad/psadwatchd.pid"
    log_file: Optional[str] = None

    def __post_init__(self):
        if not self.hostname:
            self.hostname = socket.gethostname()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WatchdogConfig":
        """Load configuration from a key/value or YAML file."""
        path = Path(path)
        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)

        # undecodable bytes survive as surrogates, the way paths do in os
        try:
            with open(path, errors="surrogateescape") as f:
                values = parse_lines(f)
        except OSError as e:
            raise ConfigError(f"Could not open config file {path}: {e}") from e

        return cls.from_dict(values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "WatchdogConfig":
        """Load configuration from a YAML mapping using the same key names."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Could not open config file {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid UTF-8: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        values = {str(k): str(v).strip() for k, v in data.items() if v is not None}
        return cls.from_dict(values)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WatchdogConfig":
        """Create configuration from config-file keys.

        Raises ConfigError listing every missing or malformed key.
        """
        errors = []
        kwargs: dict[str, Any] = {}

        for key, (attr, required, max_len) in CONFIG_KEYS.items():
            value = data.get(key)
            if value is None or str(value) == "":
                if required:
                    errors.append(f"Missing required key: {key}")
                continue

            value = str(value)
            if len(value) > max_len:
                errors.append(f"Value for {key} exceeds {max_len} characters")
                continue

            if key in NUMERIC_KEYS:
                if not _NUMBER_RE.fullmatch(value):
                    errors.append(f"{key} must be a base-10 integer, got {value!r}")
                    continue
                kwargs[attr] = int(value)
            else:
                kwargs[attr] = value

        if errors:
            raise ConfigError("; ".join(errors))

        config = cls(**kwargs)
        errors = config.validate()
        if errors:
            raise ConfigError("; ".join(errors))

        return config

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not 1 <= self.check_interval <= MAX_NUMERIC:
            errors.append(f"PSADWATCHD_CHECK_INTERVAL must be between 1 and {MAX_NUMERIC}")

        if not 1 <= self.max_retries <= MAX_NUMERIC:
            errors.append(f"PSADWATCHD_MAX_RETRIES must be between 1 and {MAX_NUMERIC}")

        # execve does no PATH search
        for key, binary in (
            ("psadCmd", self.psad_binary),
            ("kmsgsdCmd", self.kmsgsd_binary),
            ("diskmondCmd", self.diskmond_binary),
        ):
            if not os.path.isabs(binary):
                errors.append(f"{key} must be an absolute path, got {binary!r}")

        if any(c in self.email_addresses for c in ",;"):
            errors.append("EMAIL_ADDRESSES must be separated by spaces")

        return errors

    def processes(self) -> list[MonitoredProcess]:
        """Monitored daemons in check order."""
        return [
            MonitoredProcess(
                Daemon.PSAD, self.psad_binary, self.psad_pid_file, self.psad_cmdline_file
            ),
            MonitoredProcess(Daemon.KMSGSD, self.kmsgsd_binary, self.kmsgsd_pid_file),
            MonitoredProcess(Daemon.DISKMOND, self.diskmond_binary, self.diskmond_pid_file),
        ]

    def to_dict(self) -> dict[str, Any]:
        """Export configuration keyed by config-file keys."""
        return {key: getattr(self, attr) for key, (attr, _, _) in CONFIG_KEYS.items()}


def parse_lines(lines: Iterable[str]) -> dict[str, str]:
    """Extract known ``KEY value`` pairs; later lines override earlier ones."""
    values = {}

    for line in lines:
        line = line.rstrip("\n").lstrip(" \t")
        if not line or line.startswith(COMMENT_CHARS):
            continue

        match = _LINE_RE.match(line)
        if not match or match.group(1) not in CONFIG_KEYS:
            continue

        value = match.group(2).strip()
        if value.endswith(";"):
            value = value[:-1].rstrip()
        values[match.group(1)] = value

    return values


def load(path: Union[str, Path]) -> WatchdogConfig:
    return WatchdogConfig.from_file(path)


def config_mtime(path: Union[str, Path]) -> float:
    try:
        return os.stat(path).st_mtime
    except OSError as e:
        raise ConfigError(f"Could not get mtime for config file {path}: {e}") from e


def has_changed(path: Union[str, Path], last_mtime: float) -> bool:
    """True when the file's modification time differs from ``last_mtime``."""
    return config_mtime(path) != last_mtime


@dataclass
class ConfigWatchState:
    """Last observed modification time of the config file."""

    path: Path
    last_mtime: float


class ConfigStore:
    """Holds the current config and reloads it when the file changes."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.config, self.watch = self._snapshot()

    def _snapshot(self) -> tuple[WatchdogConfig, ConfigWatchState]:
        # mtime first, so an edit racing the parse is seen on the next tick
        mtime = config_mtime(self.path)
        config = load(self.path)
        return config, ConfigWatchState(path=self.path, last_mtime=mtime)

    def reload_if_changed(self) -> bool:
        """Reload when the mtime moved. Returns True if settings were replaced."""
        if not has_changed(self.path, self.watch.last_mtime):
            return False

        config, watch = self._snapshot()
        self.config, self.watch = config, watch
        return True
