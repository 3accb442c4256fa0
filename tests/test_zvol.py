"""Tests for the zfs stats and zfs list collectors"""
import json
from unittest.mock import Mock

import pytest
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.parser import text_string_to_metric_families

from maya_exporter.collectors.zvol import DatasetListCollector, DatasetStatsCollector, _DatasetCollector
from maya_exporter.metrics.catalog import DatasetListMetrics
from maya_exporter.errors import CommandError


POOL = "cstor-5ce4639a-2dc1-11e9-bbe3-42010a80017a"
VOLUME = "pvc-1c1698bb-2dc6-11e9-bbe3-42010a80017a"

ZFS_STATS = {
    "name": f"{POOL}/{VOLUME}",
    "status": "Rebuilding",
    "rebuildStatus": "SNAP REBUILD INPROGRESS",
    "readCount": 1000,
    "readByte": 1024,
    "writeCount": 1000,
    "writeByte": 1024,
    "syncCount": 100,
    "syncLatency": 10,
    "readLatency": 150,
    "writeLatency": 200,
    "inflightIOCnt": 2000,
    "dispatchedIOCnt": 50,
    "rebuildCnt": 3,
    "rebuildBytes": 500,
    "rebuildDoneCnt": 2,
    "rebuildFailedCnt": 0,
}

ZFS_LIST = (
    "cstor-f1ea249b\t6144\t3000\t512\t/cstor-f1ea249b\n"
    "cstor-f1ea249b/pvc-c3a68fa3\t6144\t3000\t6144\t-\n"
    "cstor-f1ea249b/pvc-c3a68fa3_rebuild_clone\t0\t3000\t6144\t-\n"
)


def runner_with(*outputs) -> Mock:
    runner = Mock()
    runner.run.side_effect = [o if isinstance(o, Exception) else o.encode() for o in outputs]
    return runner


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


class TestDatasetStatsCollector:
    """Test zfs stats scrapes"""

    def test_dataset_io(self):
        values = samples(render(DatasetStatsCollector(runner_with(json.dumps({"stats": [ZFS_STATS]})))))
        labels = frozenset({("vol", VOLUME), ("pool", POOL)})

        assert values[("openebs_replica_status", labels)] == 3.0
        assert values[("openebs_rebuild_status", labels)] == 2.0
        assert values[("openebs_total_read_count", labels)] == 1000.0
        assert values[("openebs_total_write_bytes", labels)] == 1024.0
        assert values[("openebs_sync_latency", labels)] == 10.0
        assert values[("openebs_inflight_io_count", labels)] == 2000.0
        assert values[("openebs_dispatched_io_count", labels)] == 50.0
        assert values[("openebs_rebuild_bytes", labels)] == 500.0
        assert values[("openebs_total_rebuild_done", labels)] == 2.0
        assert values[("openebs_total_failed_rebuild", labels)] == 0.0

    def test_errored_rebuild_with_trailing_spaces(self):
        stats = dict(ZFS_STATS, rebuildStatus="ERRORED  ")
        values = samples(render(DatasetStatsCollector(runner_with(json.dumps({"stats": [stats]})))))

        assert values[("openebs_rebuild_status", frozenset({("vol", VOLUME), ("pool", POOL)}))] == 4.0

    def test_stale_series_are_dropped(self):
        other = dict(ZFS_STATS, name=f"{POOL}/pvc-other")
        registry = CollectorRegistry()
        registry.register(DatasetStatsCollector(runner_with(
            json.dumps({"stats": [ZFS_STATS, other]}),
            json.dumps({"stats": [ZFS_STATS]}),
        )))

        assert "pvc-other" in generate_latest(registry).decode()
        assert "pvc-other" not in generate_latest(registry).decode()

    def test_empty_output(self):
        output = render(DatasetStatsCollector(runner_with("")))

        assert "openebs_zfs_stats_parse_error_counter 1.0" in output

    def test_malformed_json(self):
        output = render(DatasetStatsCollector(runner_with('{"stats": [')))

        assert "openebs_zfs_stats_parse_error_counter 1.0" in output

    def test_empty_list(self):
        output = render(DatasetStatsCollector(runner_with('{"stats": []}')))

        assert "openebs_zfs_command_error 1.0" in output

    def test_empty_name(self):
        stats = dict(ZFS_STATS, name="")
        output = render(DatasetStatsCollector(runner_with(json.dumps({"stats": [ZFS_STATS, stats]}))))

        assert "openebs_zfs_command_error 1.0" in output
        assert "openebs_replica_status{" not in output

    def test_name_without_pool(self):
        stats = dict(ZFS_STATS, name="pvc-only")
        output = render(DatasetStatsCollector(runner_with(json.dumps({"stats": [ZFS_STATS, stats]}))))

        assert "openebs_zfs_stats_parse_error_counter 1.0" in output
        assert f'vol="{VOLUME}"' in output
        assert "pvc-only" not in output

    def test_command_error(self):
        output = render(DatasetStatsCollector(runner_with(CommandError("timed out", timed_out=True))))

        assert "openebs_zfs_command_error 1.0" in output

    def test_libuzfs_not_initialized(self):
        output = render(DatasetStatsCollector(runner_with("failed to initialize libuzfs client")))

        assert "openebs_zfs_stats_failed_to_initialize_libuzfs_client_error_counter 1.0" in output
        assert "openebs_zfs_stats_parse_error_counter 0.0" in output

    def test_no_datasets(self):
        output = render(DatasetStatsCollector(runner_with(
            CommandError("exit status 1", output=b"no datasets available\n"))))

        assert "openebs_zfs_stats_no_dataset_available_error_counter 1.0" in output
        assert "openebs_zfs_command_error 0.0" in output


class TestDatasetListCollector:
    """Test zfs list scrapes"""

    def test_sizes(self):
        output = render(DatasetListCollector(runner_with(ZFS_LIST)))

        assert 'openebs_used_size{name="cstor-f1ea249b/pvc-c3a68fa3"} 6144.0' in output
        assert 'openebs_available_size{name="cstor-f1ea249b/pvc-c3a68fa3"} 3000.0' in output
        assert 'openebs_used_size{name="cstor-f1ea249b/pvc-c3a68fa3_rebuild_clone"} 0.0' in output

    def test_unexpected_output(self):
        output = render(DatasetListCollector(runner_with(
            "cstor-f1ea249b\tliaub\tkzjsfvn\t512\t/cstor-f1ea249b\n"
            "cstor-f1ea249b/pvc-c4a68fa3\t6144\t3000\t6144\t-\n"
        )))

        assert "openebs_zfs_list_parse_error 2.0" in output

    def test_short_row_ends_parsing(self):
        output = render(DatasetListCollector(runner_with(
            "cstor-f1ea249b/a\t1\t2\n"
            "truncated\t1\n"
            "cstor-f1ea249b/b\t3\t4\n"
        )))

        assert 'name="cstor-f1ea249b/a"' in output
        assert 'name="cstor-f1ea249b/b"' not in output
        assert "openebs_zfs_list_parse_error 0.0" in output

    def test_empty_output(self):
        output = render(DatasetListCollector(runner_with("")))

        assert "openebs_zfs_list_parse_error 1.0" in output

    def test_command_error(self):
        output = render(DatasetListCollector(runner_with(CommandError("exit status 1"))))

        assert "openebs_zfs_list_command_error 1.0" in output

    def test_sentinels(self):
        collector = DatasetListCollector(runner_with(
            "failed to initialize libuzfs client",
            "no datasets available",
        ))
        registry = CollectorRegistry()
        registry.register(collector)
        generate_latest(registry)
        output = generate_latest(registry).decode()

        assert "openebs_zfs_list_failed_to_initialize_libuzfs_client_error_counter 1.0" in output
        assert "openebs_zfs_list_no_dataset_available_error_counter 1.0" in output


class TestDatasetCollectorBase:
    def test_output_parser_is_required(self):
        with pytest.raises(TypeError):
            _DatasetCollector(DatasetListMetrics(), runner_with(""))
