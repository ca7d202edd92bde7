"""Tests for single-instance enforcement."""

import os
from unittest.mock import patch

import pytest

from psadwatchd.daemon import check_unique_pid, daemonize, write_pid_file
from psadwatchd.errors import InstanceError, WatchdogError


class TestCheckUniquePid:
    """Test check_unique_pid."""

    def test_no_pid_file(self, tmp_path):
        check_unique_pid(str(tmp_path / "psadwatchd.pid"))

    def test_own_pid(self, tmp_path):
        """Our own pid is not a conflict."""
        pid_file = tmp_path / "psadwatchd.pid"
        pid_file.write_text(f"{os.getpid()}\n")
        check_unique_pid(str(pid_file))

    @patch("psadwatchd.daemon.psutil.pid_exists", return_value=False)
    def test_stale_pid_file(self, mock_exists, tmp_path):
        """A dead watchdog's pid file is ignored."""
        pid_file = tmp_path / "psadwatchd.pid"
        pid_file.write_text("99999\n")
        check_unique_pid(str(pid_file))
        mock_exists.assert_called_once_with(99999)

    @patch("psadwatchd.daemon._is_watchdog", return_value=True)
    @patch("psadwatchd.daemon.psutil.pid_exists", return_value=True)
    def test_running_instance(self, mock_exists, mock_is_watchdog, tmp_path):
        """A live psadwatchd owns the pid file."""
        pid_file = tmp_path / "psadwatchd.pid"
        pid_file.write_text("4242\n")
        with pytest.raises(InstanceError) as exc_info:
            check_unique_pid(str(pid_file))
        assert "4242" in str(exc_info.value)

    @patch("psadwatchd.daemon._is_watchdog", return_value=False)
    @patch("psadwatchd.daemon.psutil.pid_exists", return_value=True)
    def test_pid_reused_by_other_program(self, mock_exists, mock_is_watchdog, tmp_path):
        """A recycled pid belonging to something else is not a conflict."""
        pid_file = tmp_path / "psadwatchd.pid"
        pid_file.write_text("4242\n")
        check_unique_pid(str(pid_file))


class TestWritePidFile:
    """Test write_pid_file."""

    def test_writes_pid(self, tmp_path):
        pid_file = tmp_path / "run" / "psadwatchd.pid"
        write_pid_file(str(pid_file))
        assert pid_file.read_text() == f"{os.getpid()}\n"

    def test_unwritable(self, tmp_path):
        """Failure to record our pid is fatal."""
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(InstanceError):
            write_pid_file(str(blocker / "psadwatchd.pid"))


class TestDaemonize:
    """Test daemonize with fork and descriptor juggling mocked out."""

    @patch("psadwatchd.daemon._close_stdio")
    @patch("psadwatchd.daemon.os.umask")
    @patch("psadwatchd.daemon.os.setsid")
    @patch("psadwatchd.daemon.os.chdir")
    @patch("psadwatchd.daemon.os.fork", return_value=0)
    def test_child_detaches_and_records_pid(self, mock_fork, mock_chdir, mock_setsid,
                                             mock_umask, mock_close, tmp_path):
        """The grandchild leaves the session and writes the pid file."""
        pid_file = tmp_path / "psadwatchd.pid"

        daemonize(str(pid_file))

        assert mock_fork.call_count == 2
        mock_chdir.assert_called_once_with("/")
        mock_setsid.assert_called_once()
        mock_close.assert_called_once()
        assert pid_file.read_text() == f"{os.getpid()}\n"

    @patch("psadwatchd.daemon.os.fork", return_value=1234)
    def test_parent_exits(self, mock_fork, tmp_path):
        """The launching process exits 0 once the child exists."""
        with pytest.raises(SystemExit) as exc_info:
            daemonize(str(tmp_path / "psadwatchd.pid"))
        assert exc_info.value.code == 0
        assert not (tmp_path / "psadwatchd.pid").exists()

    @patch("psadwatchd.daemon.os.fork", side_effect=OSError("EAGAIN"))
    def test_fork_failure_is_fatal(self, mock_fork, tmp_path):
        """A failed fork is a WatchdogError for the CLI to report."""
        with pytest.raises(WatchdogError) as exc_info:
            daemonize(str(tmp_path / "psadwatchd.pid"))
        assert "EAGAIN" in str(exc_info.value)
