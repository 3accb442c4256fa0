"""Prometheus text format exporter"""
from typing import List

from prometheus_client.exposition import generate_latest
from prometheus_client.metrics_core import Metric

from .base import BaseExporter, Snapshot


class PrometheusExporter(BaseExporter):
    """Export metrics in the Prometheus text exposition format"""

    content_type = "text/plain; version=0.0.4; charset=utf-8"

    def export_metrics(self, families: List[Metric]) -> bytes:
        return generate_latest(Snapshot(families))
