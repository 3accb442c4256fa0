"""JSON exporter

Encodes metric families in the field layout of the Prometheus ``MetricFamily``
protobuf message as produced by a JSON marshaller, which existing consumers
of ``?format=json`` parse:

    [{"name": "openebs_reads", "help": "...", "type": 1,
      "metric": [{"gauge": {"value": 0}}]}]
"""
import json
import math
from typing import Any, Dict, List, Tuple

from prometheus_client.metrics_core import Metric

from .base import BaseExporter


# MetricType enum values of the exposition protobuf
COUNTER = 0
GAUGE = 1
SUMMARY = 2
UNTYPED = 3
HISTOGRAM = 4

METRIC_TYPES = {
    "counter": COUNTER,
    "gauge": GAUGE,
    "info": GAUGE,
    "stateset": GAUGE,
    "summary": SUMMARY,
    "unknown": UNTYPED,
    "histogram": HISTOGRAM,
    "gaugehistogram": HISTOGRAM,
}

VALUE_KEYS = {
    COUNTER: "counter",
    GAUGE: "gauge",
    UNTYPED: "untyped",
}


class EncodingError(ValueError):
    """A metric family cannot be represented in JSON"""


def family_name(family: Metric) -> str:
    """Family name as written by the text exposition format"""
    if family.type == "counter":
        return family.name + "_total"
    if family.type == "info":
        return family.name + "_info"
    return family.name


def number(value: float):
    """Integral values are written without a fractional part"""
    if math.isfinite(value) and value == int(value):
        return int(value)
    return value


def label_pairs(labels: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"name": name, "value": labels[name]} for name in sorted(labels)]


def _with_labels(labels: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
    metric = {}
    if labels:
        metric["label"] = label_pairs(labels)
    metric.update(body)
    return metric


def _simple_metrics(family: Metric, metric_type: int) -> List[Dict[str, Any]]:
    key = VALUE_KEYS[metric_type]
    metrics = []
    for sample in family.samples:
        if sample.name.endswith("_created"):
            continue
        metrics.append(_with_labels(sample.labels, {key: {"value": number(sample.value)}}))
    return metrics


def _grouped(family: Metric, bucket_label: str) -> List[Tuple[Dict[str, str], Dict[str, list]]]:
    """Group samples of a summary or histogram by their series labels"""
    groups: Dict[Tuple, Tuple[Dict[str, str], Dict[str, list]]] = {}
    for sample in family.samples:
        series = {k: v for k, v in sample.labels.items() if k != bucket_label}
        key = tuple(sorted(series.items()))
        if key not in groups:
            groups[key] = (series, {})
        suffix = sample.name[len(family.name):]
        groups[key][1].setdefault(suffix, []).append(sample)
    return list(groups.values())


def _summary_metrics(family: Metric) -> List[Dict[str, Any]]:
    metrics = []
    for labels, samples in _grouped(family, "quantile"):
        summary = {
            "sample_count": number(samples["_count"][0].value) if "_count" in samples else 0,
            "sample_sum": number(samples["_sum"][0].value) if "_sum" in samples else 0,
        }
        quantiles = [
            {"quantile": number(float(s.labels["quantile"])), "value": number(s.value)}
            for s in samples.get("", [])
        ]
        if quantiles:
            summary["quantile"] = quantiles
        metrics.append(_with_labels(labels, {"summary": summary}))
    return metrics


def _histogram_metrics(family: Metric) -> List[Dict[str, Any]]:
    count_suffix, sum_suffix = ("_gcount", "_gsum") if family.type == "gaugehistogram" else ("_count", "_sum")
    metrics = []
    for labels, samples in _grouped(family, "le"):
        histogram = {
            "sample_count": number(samples[count_suffix][0].value) if count_suffix in samples else 0,
            "sample_sum": number(samples[sum_suffix][0].value) if sum_suffix in samples else 0,
        }
        buckets = []
        for s in samples.get("_bucket", []):
            upper_bound = float(s.labels["le"])
            if math.isinf(upper_bound):
                continue
            buckets.append({"cumulative_count": number(s.value), "upper_bound": number(upper_bound)})
        if buckets:
            histogram["bucket"] = buckets
        metrics.append(_with_labels(labels, {"histogram": histogram}))
    return metrics


def encode_family(family: Metric) -> Dict[str, Any]:
    """Encode one metric family"""
    metric_type = METRIC_TYPES.get(family.type, UNTYPED)
    if metric_type == SUMMARY:
        metrics = _summary_metrics(family)
    elif metric_type == HISTOGRAM:
        metrics = _histogram_metrics(family)
    else:
        metrics = _simple_metrics(family, metric_type)

    return {
        "name": family_name(family),
        "help": family.documentation,
        "type": metric_type,
        "metric": metrics,
    }


class JSONExporter(BaseExporter):
    """Export metric families as a JSON array"""

    content_type = "application/json"

    def export_metrics(self, families: List[Metric]) -> bytes:
        encoded = [encode_family(family) for family in families]
        try:
            return json.dumps(encoded, allow_nan=False).encode("utf-8")
        except ValueError as e:
            raise EncodingError(str(e)) from e
