"""Tests for the jiva volume source"""
import json

import httpx
import pytest
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.parser import text_string_to_metric_families

from maya_exporter.collectors.jiva import JivaSource, target_address
from maya_exporter.collectors.volume import VolumeCollector
from maya_exporter.errors import ParseError, SourceConnectionError
from maya_exporter.metrics.models import VolumeStats


JIVA_STATS = {
    "Name": "vol1",
    "ReadIOPS": "10",
    "WriteIOPS": "15",
    "TotalReadBytes": "1024",
    "TotalWriteBytes": "2048",
    "TotalReadTime": "100",
    "TotalWriteTime": "200",
    "TotalReadBlockCount": "3",
    "TotalWriteBlockCount": "4",
    "Size": "1073741824",
    "SectorSize": "4096",
    "UsedBlocks": "1048576",
    "UsedLogicalBlocks": "1048576",
    "RevisionCounter": "100",
    "ReplicaCounter": "3",
    "UpTime": "158",
    "Replicas": [
        {"Address": "tcp://172.18.0.3:9502", "Mode": "RW"},
        {"Address": "tcp://172.18.0.4:9502", "Mode": "RW"},
        {"Address": "tcp://172.18.0.5:9502", "Mode": "ERR"},
    ],
}


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def render(collector) -> str:
    registry = CollectorRegistry()
    registry.register(collector)
    return generate_latest(registry).decode()


def samples(output: str) -> dict:
    """Decoded exposition keyed by sample name and label set"""
    values = {}
    for family in text_string_to_metric_families(output):
        for sample in family.samples:
            values[(sample.name, frozenset(sample.labels.items()))] = sample.value
    return values


class TestJivaSource:
    """Test fetching and parsing jiva controller stats"""

    def setup_method(self):
        self.requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(200, json=JIVA_STATS)

        self.source = JivaSource("http://172.18.0.2:9501", client=mock_client(handler))

    def test_url(self):
        assert self.source.url == "http://172.18.0.2:9501/v1/stats"

    def test_invalid_controller_address(self):
        with pytest.raises(ValueError):
            JivaSource("localhost")

    def test_get(self):
        raw = self.source.get()

        assert self.requests[0].method == "GET"
        assert str(self.requests[0].url) == "http://172.18.0.2:9501/v1/stats"
        assert raw.got is True
        assert raw.name == "vol1"
        assert raw.target_address == "http://172.18.0.2:9501/v1/stats"
        assert len(raw.replicas) == 3

    def test_parse(self):
        stats = self.source.parse(self.source.get())

        assert stats.name == "vol1"
        assert stats.iqn == "iqn.2016-09.com.openebs.jiva:vol1"
        assert stats.address == "172.18.0.2"
        assert stats.cas_type == "jiva"
        assert stats.logical_size == 4.0
        assert stats.size == 1.0
        assert stats.reads == 10.0

    def test_parse_without_snapshot(self):
        stats = self.source.parse(VolumeStats())

        assert stats.got is False
        assert stats.size == 0.0

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = JivaSource("http://localhost:9501", client=mock_client(handler))
        with pytest.raises(SourceConnectionError):
            source.get()

    def test_decode_error(self):
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, text="not json")))
        with pytest.raises(ParseError):
            source.get()

    def test_non_object_body(self):
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, json=[1, 2])))
        with pytest.raises(ParseError):
            source.get()

    def test_target_address(self):
        assert target_address("http://10.0.0.1:9501/v1/stats") == "10.0.0.1"
        assert target_address("http://10.0.0.1:8080/v1/stats") == "10.0.0.1:8080/v1/stats"


class TestJivaCollector:
    """Test the volume collector over a jiva source"""

    def test_happy_path(self):
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, json=JIVA_STATS)))
        output = render(VolumeCollector(source))

        assert "openebs_size_of_volume 1.0" in output
        assert "openebs_logical_size 4.0" in output
        assert "openebs_reads 10.0" in output
        assert "openebs_total_replica_count 3.0" in output
        assert "openebs_healthy_replica_count 2.0" in output
        assert "openebs_degraded_replica_count 1.0" in output
        assert "openebs_volume_status 2.0" in output
        uptime = ("openebs_volume_uptime", frozenset({("volName", "vol1"), ("castype", "jiva")}))
        assert samples(output)[uptime] == 158.0

    def test_reported_status(self):
        payload = dict(JIVA_STATS, Status="RW")
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, json=payload)))
        output = render(VolumeCollector(source))

        assert "openebs_volume_status 3.0" in output

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source = JivaSource("http://localhost:9501", client=mock_client(handler))
        registry = CollectorRegistry()
        registry.register(VolumeCollector(source))
        generate_latest(registry)
        output = generate_latest(registry).decode()

        assert "openebs_size_of_volume 0.0" in output
        assert "openebs_connection_error_total 2.0" in output
        assert "openebs_connection_retry_total 2.0" in output

    def test_malformed_body(self):
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, text="{")))
        output = render(VolumeCollector(source))

        assert "openebs_parse_error_total 1.0" in output
        assert "openebs_reads 0.0" in output

    def test_field_parse_error(self):
        payload = dict(JIVA_STATS, ReadIOPS="many")
        source = JivaSource("http://localhost:9501",
                            client=mock_client(lambda request: httpx.Response(200, text=json.dumps(payload))))
        output = render(VolumeCollector(source))

        assert "openebs_parse_error_total 1.0" in output
        assert "openebs_reads 0.0" in output
        assert "openebs_writes 15.0" in output

