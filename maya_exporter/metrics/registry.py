"""Metrics registry for managing collectors and orchestrating collection"""
import time
from typing import Dict, Iterator, List, Optional

from prometheus_client import CollectorRegistry, GCCollector, PlatformCollector, ProcessCollector
from prometheus_client.exposition import generate_latest
from prometheus_client.metrics_core import Metric

from maya_exporter.collectors.base import BaseCollector
from maya_exporter.logging_config import get_logger, log_collection


logger = get_logger(__name__)


class MetricsRegistry:
    """Central registry for all metric collectors.

    Wraps a ``prometheus_client.CollectorRegistry``; registering a collector
    describes it once, and a name already owned by another collector is
    refused.
    """

    def __init__(self, config=None):
        self.config = config
        self.collectors: Dict[str, BaseCollector] = {}
        self.registry = CollectorRegistry(auto_describe=True)
        if getattr(config, "include_runtime_metrics", True):
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)

    def register_collector(self, collector: BaseCollector):
        """Register a new collector"""
        if not isinstance(collector, BaseCollector):
            raise ValueError("Collector must inherit from BaseCollector")
        if collector.name in self.collectors:
            raise ValueError(f"Collector already registered: {collector.name}")

        # raises ValueError when a metric name collides with another collector
        self.registry.register(collector)
        self.collectors[collector.name] = collector
        logger.info("Registered collector", collector=collector.name, event_type="collector_registered")

    def unregister_collector(self, name: str):
        collector = self.collectors.pop(name)
        self.registry.unregister(collector)

    def get_collector(self, name: str) -> Optional[BaseCollector]:
        """Get collector by name"""
        return self.collectors.get(name)

    def list_collectors(self) -> List[str]:
        """List all registered collector names"""
        return list(self.collectors.keys())

    def collect(self) -> Iterator[Metric]:
        """Yield every metric family, collectors in registration order"""
        start_time = time.time()
        families = list(self.registry.collect())
        log_collection(logger, len(self.collectors), len(families), time.time() - start_time)
        return iter(families)

    def gather(self) -> List[Metric]:
        return list(self.collect())

    def render_text(self) -> bytes:
        """Render the text exposition format"""
        return generate_latest(self)

    def get_collector_status(self) -> Dict[str, Dict]:
        """Get status information for all collectors"""
        status = {}
        for name, collector in self.collectors.items():
            status[name] = {
                "class": collector.__class__.__name__,
                "help": collector.help_text,
                "metrics": len(collector.gauges()),
            }
        return status

    def cleanup(self):
        """Cleanup all collectors"""
        for name, collector in self.collectors.items():
            try:
                collector.cleanup()
            except Exception as e:
                logger.error("Error cleaning up collector", collector=name, error=str(e))
