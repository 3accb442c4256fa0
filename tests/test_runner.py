"""Tests for the child process runner"""
import os
import signal
import subprocess
import tempfile
import time
from unittest.mock import patch

import pytest

from maya_exporter.collectors.runner import CommandRunner
from maya_exporter.errors import CommandError


def is_alive(pid: int) -> bool:
    """True unless the process is gone or only a zombie awaiting its reaper"""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    return state != "Z"


class TestCommandRunner:
    """Test running commands under a deadline"""

    def test_combined_output(self):
        runner = CommandRunner("sh", "-c", "echo out; echo err >&2")

        assert runner.run() == b"out\nerr\n"

    def test_command(self):
        runner = CommandRunner("zpool", "list", "-Hp", timeout=2)

        assert runner.command == ["zpool", "list", "-Hp"]
        assert str(runner) == "zpool list -Hp"
        assert runner.timeout == 2

    def test_non_zero_exit(self):
        runner = CommandRunner("sh", "-c", "echo no pools available; exit 1")

        with pytest.raises(CommandError) as exc_info:
            runner.run()
        assert exc_info.value.output == b"no pools available\n"
        assert exc_info.value.timed_out is False

    def test_missing_binary(self):
        runner = CommandRunner("/nonexistent/zpool", "list")

        with pytest.raises(CommandError):
            runner.run()

    def test_timeout_is_bounded(self):
        runner = CommandRunner("sleep", "10", timeout=0.5)

        start = time.monotonic()
        with pytest.raises(CommandError) as exc_info:
            runner.run()
        elapsed = time.monotonic() - start

        assert exc_info.value.timed_out is True
        assert elapsed < 1.5

    @pytest.mark.skipif(not os.path.isdir("/proc"), reason="needs procfs")
    def test_timeout_kills_descendants(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            pid_file = os.path.join(tmp_dir, "pids")
            script = f"echo $$ > {pid_file}; sleep 30 & echo $! >> {pid_file}; wait"
            runner = CommandRunner("sh", "-c", script, timeout=0.5)

            with pytest.raises(CommandError):
                runner.run()

            with open(pid_file) as f:
                pids = [int(line) for line in f.read().split()]

        assert len(pids) == 2
        deadline = time.monotonic() + 2
        while any(is_alive(pid) for pid in pids) and time.monotonic() < deadline:
            time.sleep(0.05)
        assert not any(is_alive(pid) for pid in pids)

    def test_interrupted_wait_kills_child(self):
        communicate = subprocess.Popen.communicate
        children = []

        def interrupted(proc, *args, **kwargs):
            if kwargs.get("timeout") is not None:
                children.append(proc)
                raise KeyboardInterrupt
            return communicate(proc, *args, **kwargs)

        runner = CommandRunner("sleep", "30", timeout=10)
        with patch.object(subprocess.Popen, "communicate", autospec=True, side_effect=interrupted):
            with pytest.raises(KeyboardInterrupt):
                runner.run()

        assert len(children) == 1
        assert children[0].returncode == -signal.SIGKILL
