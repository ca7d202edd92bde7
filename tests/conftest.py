"""Shared fixtures for psadwatchd tests."""

import pytest

from psadwatchd.config import WatchdogConfig

CONFIG_TEMPLATE = """\
# psadwatchd test config
psadCmd                   {bindir}/psad;
PSAD_PID_FILE             {rundir}/psad.pid;
PSAD_CMDLINE_FILE         {rundir}/psad.cmd;
kmsgsdCmd                 {bindir}/kmsgsd;
KMSGSD_PID_FILE           {rundir}/kmsgsd.pid;
diskmondCmd               {bindir}/diskmond;
DISKMOND_PID_FILE         {rundir}/diskmond.pid;
shCmd                     /bin/sh;
mailCmd                   /bin/mail;
EMAIL_ADDRESSES           root@localhost admin@example.com;
PSADWATCHD_CHECK_INTERVAL {interval};
PSADWATCHD_MAX_RETRIES    {retries};
PSADWATCHD_PID_FILE       {rundir}/psadwatchd.pid;
HOSTNAME                  testhost;
"""


@pytest.fixture
def write_config(tmp_path):
    """Write a complete key/value config file and return its path."""
    rundir = tmp_path / "run"
    rundir.mkdir()

    def _write(interval=5, retries=10, extra=""):
        path = tmp_path / "psadwatchd.conf"
        path.write_text(
            CONFIG_TEMPLATE.format(bindir="/usr/sbin", rundir=rundir, interval=interval, retries=retries)
            + extra
        )
        return path

    return _write


@pytest.fixture
def config(tmp_path):
    """Config whose pid files live under tmp_path and do not exist yet."""
    return WatchdogConfig(
        psad_binary="/usr/sbin/psad",
        psad_pid_file=str(tmp_path / "psad.pid"),
        kmsgsd_binary="/usr/sbin/kmsgsd",
        kmsgsd_pid_file=str(tmp_path / "kmsgsd.pid"),
        diskmond_binary="/usr/sbin/diskmond",
        diskmond_pid_file=str(tmp_path / "diskmond.pid"),
        hostname="testhost",
        max_retries=3,
        pid_file=str(tmp_path / "psadwatchd.pid"),
    )
