"""Child process runner for the zpool/zfs command line tools"""
import logging
import os
import signal
import subprocess
from typing import List

from maya_exporter.errors import CommandError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

NO_POOLS_AVAILABLE = "no pools available"
NO_DATASETS_AVAILABLE = "no datasets available"
LIBUZFS_CLIENT_ERROR = "failed to initialize libuzfs client"


class CommandRunner:
    """Runs one command line with a wall-clock deadline.

    The child gets its own process group so that a timeout can kill
    everything it spawned, not only the direct child.
    """

    def __init__(self, cmd: str, *args: str, timeout: float = DEFAULT_TIMEOUT):
        self.cmd = cmd
        self.args = list(args)
        self.timeout = timeout

    @property
    def command(self) -> List[str]:
        return [self.cmd] + self.args

    def __str__(self):
        return " ".join(self.command)

    def run(self) -> bytes:
        """Return combined stdout and stderr of a successful run"""
        logger.debug(f"Running command: {self}")
        try:
            proc = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            raise CommandError(f"failed to start {self}: {e}") from e

        try:
            output, _ = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self._kill(proc)
            raise CommandError(f"{self}: timed out after {self.timeout}s", timed_out=True)
        except BaseException:
            self._kill(proc)
            raise

        if proc.returncode != 0:
            raise CommandError(f"{self}: exit status {proc.returncode}", output=output)
        return output

    @staticmethod
    def _kill(proc: subprocess.Popen):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        # reap the child and drain the pipe
        proc.communicate()


def output_of(error: CommandError) -> str:
    return error.output.decode("utf-8", errors="replace")
