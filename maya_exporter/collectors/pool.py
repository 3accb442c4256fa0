"""Pool collector: capacity and health from ``zpool list -Hp``"""
import logging
import os
import threading
import time
from typing import List

from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric

from maya_exporter.collectors.base import AdmissionGate, BaseCollector
from maya_exporter.collectors.runner import NO_POOLS_AVAILABLE, CommandRunner, output_of
from maya_exporter.errors import CommandError, RejectedError
from maya_exporter.metrics.catalog import PoolMetrics
from maya_exporter.metrics.models import PoolEntry, parse_float


logger = logging.getLogger(__name__)

# zpool list -Hp columns: name size alloc free expandsz frag cap dedup health altroot
MIN_FIELDS = 9
USED_PERCENT_FIELD = 6
STATUS_FIELD = 8

COMMAND_ERROR_RETRY = 2
NO_POOLS_RETRY = 3


class PoolCollector(BaseCollector):
    """Publishes pool capacity gauges and the per-pool status code"""

    def __init__(self, runner: CommandRunner = None, config=None):
        super().__init__(config, "pool", "zpool capacity and health")
        timeout = getattr(config, "command_timeout", 5.0)
        self.runner = runner or CommandRunner("zpool", "list", "-Hp", timeout=timeout)
        self.metrics = PoolMetrics()
        self.gate = AdmissionGate()
        self._lock = threading.Lock()

    def gauges(self) -> List[Gauge]:
        return self.metrics.collectors()

    def collect(self) -> List[Metric]:
        try:
            with self.gate.admit():
                with self._lock:
                    self.refresh()
        except RejectedError:
            logger.warning("zpool list request rejected, previous request is still in progress")
            self.metrics.reject_request_counter.inc()
            return self.metrics.reject_request_counter.collect()
        return self.emit()

    def refresh(self):
        """Run zpool list once and write the result to the gauges"""
        try:
            output = self.runner.run().decode("utf-8", errors="replace")
        except CommandError as e:
            if NO_POOLS_AVAILABLE in output_of(e):
                self.no_pools()
                return
            logger.error(f"Error in running zpool list: {e}")
            self.metrics.command_error_counter.inc()
            return

        if NO_POOLS_AVAILABLE in output:
            self.no_pools()
            return

        self.metrics.set(self.parse(output))

    def no_pools(self):
        logger.warning("No pools available")
        self.metrics.no_pool_available_counter.inc()
        self.metrics.set_no_pools(os.environ.get("HOSTNAME", ""))

    def parse(self, output: str) -> List[PoolEntry]:
        """Parse ``zpool list -Hp`` rows, counting short rows and bad numbers"""
        pools = []
        for line in output.splitlines():
            fields = line.split()
            if not fields:
                continue
            if len(fields) < MIN_FIELDS:
                logger.error(f"Incomplete zpool list output: {line!r}")
                self.metrics.incomplete_output_counter.inc()
                continue

            on_error = self.metrics.parse_error_counter.inc
            pool = PoolEntry(
                name=fields[0],
                size=parse_float(fields[1], on_error),
                used=parse_float(fields[2], on_error),
                free=parse_float(fields[3], on_error),
                used_percent=parse_float(fields[USED_PERCENT_FIELD], on_error),
                status=fields[STATUS_FIELD],
            )
            if pool.status_code is None:
                logger.error(f"Unknown pool status {pool.status!r} for pool {pool.name}")
                on_error()
            pools.append(pool)
        return pools


def wait_for_pool(runner: CommandRunner = None, sleep=time.sleep):
    """Block until ``zpool status`` succeeds and reports at least one pool.

    Retries forever; the loop ends only once the pool container has
    imported its pool.
    """
    runner = runner or CommandRunner("zpool", "status")
    while True:
        try:
            output = runner.run().decode("utf-8", errors="replace")
        except CommandError as e:
            logger.warning(f"zpool status failed, retrying in {COMMAND_ERROR_RETRY}s: {e}")
            sleep(COMMAND_ERROR_RETRY)
            continue

        if NO_POOLS_AVAILABLE in output:
            logger.info(f"No pool available yet, retrying in {NO_POOLS_RETRY}s")
            sleep(NO_POOLS_RETRY)
            continue

        logger.info("Pool is available")
        return
