"""Dataset collectors: per-replica I/O from ``zfs stats`` and sizes from ``zfs list -Hp``"""
import json
import logging
import threading
from abc import abstractmethod
from typing import List, Optional

from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric

from maya_exporter.collectors.base import AdmissionGate, BaseCollector
from maya_exporter.collectors.runner import (
    LIBUZFS_CLIENT_ERROR,
    NO_DATASETS_AVAILABLE,
    CommandRunner,
    output_of,
)
from maya_exporter.errors import CommandError, ParseError, RejectedError
from maya_exporter.metrics.catalog import DatasetListMetrics, DatasetStatsMetrics
from maya_exporter.metrics.models import DatasetEntry, DatasetStats, parse_float


logger = logging.getLogger(__name__)


class _DatasetCollector(BaseCollector):
    """Shared scrape skeleton: admission gate, fetch mutex, sentinel checks"""

    def __init__(self, metrics, runner: CommandRunner, config=None, name: str = "", help_text: str = ""):
        super().__init__(config, name, help_text)
        self.metrics = metrics
        self.runner = runner
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
            logger.warning(f"{self.runner} request rejected, previous request is still in progress")
            self.metrics.reject_request_counter.inc()
            return self.metrics.reject_request_counter.collect()
        return self.emit()

    def refresh(self):
        output = self.fetch()
        if output is not None:
            self.update(output)

    def fetch(self) -> Optional[str]:
        """Run the command; None when the scrape ends here"""
        try:
            output = self.runner.run().decode("utf-8", errors="replace")
        except CommandError as e:
            if self.check_sentinels(output_of(e)):
                return None
            logger.error(f"Error in running {self.runner}: {e}")
            self.metrics.command_error_counter.inc()
            return None

        if self.check_sentinels(output):
            return None
        return output

    def check_sentinels(self, output: str) -> bool:
        """Count the zfs "not ready" messages; True when one matched"""
        if LIBUZFS_CLIENT_ERROR in output:
            logger.error(f"{self.runner}: {LIBUZFS_CLIENT_ERROR}")
            self.metrics.initialize_libuzfs_client_error_counter.inc()
            return True
        if NO_DATASETS_AVAILABLE in output:
            logger.warning(f"{self.runner}: {NO_DATASETS_AVAILABLE}")
            self.metrics.no_dataset_available_counter.inc()
            return True
        return False

    @abstractmethod
    def update(self, output: str):
        """Parse successful command output into the gauges"""


class DatasetStatsCollector(_DatasetCollector):
    """Per volume replica I/O counters, labelled ``{vol, pool}``"""

    def __init__(self, runner: CommandRunner = None, config=None):
        timeout = getattr(config, "command_timeout", 5.0)
        super().__init__(
            DatasetStatsMetrics(),
            runner or CommandRunner("zfs", "stats", timeout=timeout),
            config,
            "zfs_stats",
            "volume replica I/O statistics",
        )

    def update(self, output: str):
        try:
            datasets = self.parse(output)
        except ParseError as e:
            logger.error(f"Error in parsing zfs stats: {e}")
            self.metrics.parse_error_counter.inc()
            return
        except CommandError as e:
            logger.error(f"zfs stats: {e}")
            self.metrics.command_error_counter.inc()
            return
        self.metrics.set(datasets)

    def parse(self, output: str) -> List[DatasetStats]:
        """Decode ``{"stats": [...]}`` into dataset stats.

        Raises ParseError for empty or undecodable output, and CommandError
        when the command reports no dataset or a dataset without a name.
        """
        if not output.strip():
            raise ParseError("Got empty output from zfs stats")
        try:
            data = json.loads(output)
        except ValueError as e:
            raise ParseError(f"error in unmarshalling zfs stats: {e}") from e

        items = data.get("stats") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ParseError("zfs stats output has no stats list")
        if not items:
            raise CommandError("Got empty pool/volume name")

        on_error = self.metrics.parse_error_counter.inc
        datasets = []
        for item in items:
            if not isinstance(item, dict):
                logger.error(f"Unexpected zfs stats element: {item!r}")
                on_error()
                continue
            dataset = DatasetStats.from_dict(item, on_error)
            if not dataset.name:
                raise CommandError("Got empty pool/volume name")
            if "/" not in dataset.name:
                logger.error(f"Dataset name {dataset.name!r} is not of the form pool/volume")
                on_error()
                continue
            datasets.append(dataset)
        return datasets


class DatasetListCollector(_DatasetCollector):
    """Used and available bytes per dataset, labelled ``{name}``"""

    def __init__(self, runner: CommandRunner = None, config=None):
        timeout = getattr(config, "command_timeout", 5.0)
        super().__init__(
            DatasetListMetrics(),
            runner or CommandRunner("zfs", "list", "-Hp", timeout=timeout),
            config,
            "zfs_list",
            "volume replica capacity",
        )

    def update(self, output: str):
        if not output:
            logger.error("Got empty output from zfs list")
            self.metrics.parse_error_counter.inc()
            return
        self.metrics.set(self.parse(output))

    def parse(self, output: str) -> List[DatasetEntry]:
        """Parse rows of ``name used available ...``; stops at the first short row"""
        on_error = self.metrics.parse_error_counter.inc
        datasets = []
        for line in output.split("\n"):
            fields = line.split()
            if len(fields) < 3:
                break
            datasets.append(DatasetEntry(
                name=fields[0],
                used=parse_float(fields[1], on_error),
                available=parse_float(fields[2], on_error),
            ))
        return datasets
