"""Pool liveness collector: last sync timestamp from ``zfs get``"""
import logging
import os
from typing import List, Optional

from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric

from maya_exporter.collectors.base import AdmissionGate, BaseCollector
from maya_exporter.collectors.runner import (
    NO_DATASETS_AVAILABLE,
    NO_POOLS_AVAILABLE,
    CommandRunner,
    output_of,
)
from maya_exporter.errors import CommandError, RejectedError
from maya_exporter.metrics.catalog import PoolLivenessMetrics
from maya_exporter.metrics.models import PoolLiveness, parse_float


logger = logging.getLogger(__name__)

LIVENESS_PROPERTY = "io.openebs:livenesstimestamp"
LIVENESS_TIMEOUT = 1.0


def hostname() -> str:
    return os.environ.get("HOSTNAME", "")


class PoolLivenessCollector(BaseCollector):
    """Publishes the pool's last sync time.

    At most one ``zfs get`` runs at a time. A scrape that arrives while one is
    running only bumps the reject counter and emits nothing else.
    """

    def __init__(self, runner: CommandRunner = None, config=None):
        super().__init__(config, "pool_liveness", "pool last sync time")
        timeout = getattr(config, "liveness_timeout", LIVENESS_TIMEOUT)
        self.runner = runner or CommandRunner("zfs", "get", "-Hp", LIVENESS_PROPERTY, timeout=timeout)
        self.metrics = PoolLivenessMetrics()
        self.gate = AdmissionGate()

    def gauges(self) -> List[Gauge]:
        return self.metrics.collectors()

    def collect(self) -> List[Metric]:
        try:
            with self.gate.admit():
                pool = self.get()
                if pool is not None:
                    self.metrics.set(pool)
        except RejectedError:
            logger.warning("zfs get livenesstimestamp request rejected, previous request is still in progress")
            self.metrics.reject_request_counter.inc()
            return self.metrics.reject_request_counter.collect()
        return self.emit()

    def get(self) -> Optional[PoolLiveness]:
        try:
            output = self.runner.run().decode("utf-8", errors="replace")
        except CommandError as e:
            text = output_of(e)
            if NO_POOLS_AVAILABLE in text or NO_DATASETS_AVAILABLE in text:
                return self.unknown()
            logger.error(f"Error in running zfs get {LIVENESS_PROPERTY}: {e}")
            return PoolLiveness(name=hostname(), command_error=1)
        return self.parse(output)

    def parse(self, output: str) -> Optional[PoolLiveness]:
        """Parse ``<pool> <property> <value> <source>``.

        Returns None for a first line with fewer than two fields.
        """
        if not output.strip() or NO_POOLS_AVAILABLE in output or NO_DATASETS_AVAILABLE in output:
            return self.unknown()

        line = next(line for line in output.splitlines() if line.strip())
        fields = line.split()
        if len(fields) < 2:
            return None

        timestamp = fields[2] if len(fields) > 2 else None
        return PoolLiveness(name=fields[0], last_sync_time=parse_float(timestamp))

    @staticmethod
    def unknown() -> PoolLiveness:
        return PoolLiveness(name=hostname(), state_unknown=1)
