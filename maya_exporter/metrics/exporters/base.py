"""Base exporter interface and factory"""
import abc
from typing import Iterator, List

from prometheus_client.metrics_core import Metric

from maya_exporter.metrics.models import ExportFormat


class Snapshot:
    """Metric families gathered by one scrape, readable like a registry"""

    def __init__(self, families: List[Metric]):
        self.families = families

    def collect(self) -> Iterator[Metric]:
        return iter(self.families)


class BaseExporter(abc.ABC):
    """Encodes gathered metric families in one exposition format"""

    content_type: str = "text/plain"

    @abc.abstractmethod
    def export_metrics(self, families: List[Metric]) -> bytes:
        """Encode every metric family"""
        pass


class ExporterFactory:
    """Factory for creating exporters based on the requested format"""

    @staticmethod
    def create_exporter(export_format: ExportFormat) -> BaseExporter:
        """Create an exporter for the given export format"""
        if export_format == ExportFormat.TEXT:
            from .prometheus import PrometheusExporter
            return PrometheusExporter()
        elif export_format == ExportFormat.JSON:
            from .json_format import JSONExporter
            return JSONExporter()
        else:
            raise ValueError(f"Unsupported export format: {export_format}")
