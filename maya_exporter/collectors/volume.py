"""Volume collector for jiva and cstor targets"""
import logging
from typing import List

from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric

from maya_exporter.collectors.base import AdmissionGate, BaseCollector
from maya_exporter.collectors.cstor import CstorSource
from maya_exporter.collectors.jiva import JivaSource
from maya_exporter.errors import ParseError, RejectedError, SourceConnectionError
from maya_exporter.metrics.catalog import VolumeMetrics
from maya_exporter.metrics.models import Stats


logger = logging.getLogger(__name__)


class VolumeCollector(BaseCollector):
    """Scrapes one volume source per scrape and publishes the snapshot.

    Failures are never raised to the registry. A connection or decode failure
    bumps the matching counter and publishes a zero snapshot instead. A scrape
    that overlaps a running one only bumps the reject counter.
    """

    def __init__(self, source, config=None):
        super().__init__(config, "volume", f"{source.cas_type} volume statistics")
        self.source = source
        self.metrics = VolumeMetrics()
        self.gate = AdmissionGate()

    def gauges(self) -> List[Gauge]:
        return self.metrics.collectors()

    def collect(self) -> List[Metric]:
        try:
            with self.gate.admit():
                self.metrics.set(self.get_stats())
        except RejectedError:
            logger.warning("Volume stats request rejected, previous request is still in progress")
            self.metrics.reject_request_counter.inc()
            return self.metrics.reject_request_counter.collect()
        return self.emit()

    def get_stats(self) -> Stats:
        """Fetch and parse one snapshot, counting failures"""
        try:
            volume_stats = self.source.get()
        except SourceConnectionError as e:
            logger.error(f"Error in getting volume stats: {e}")
            self.metrics.connection_error_counter.inc()
            self.metrics.connection_retry_counter.inc()
            return Stats()
        except ParseError as e:
            logger.error(f"Error in parsing volume stats: {e}")
            self.metrics.parse_error_counter.inc()
            return Stats()

        return self.source.parse(volume_stats, self.metrics.parse_error_counter.inc)

    def cleanup(self):
        self.source.close()


def build_source(config):
    """Volume source for the configured storage engine"""
    engine = config.storage_engine
    if engine == "jiva":
        return JivaSource(config.controller_address, timeout=config.request_timeout)
    if engine == "cstor":
        return CstorSource(config.socket_path, io_timeout=config.socket_io_timeout)
    raise ValueError(f"no volume source for storage engine {engine!r}")
