"""Metric catalogue

Names, help text and label sets of every exported metric. The names are a
wire contract with dashboards and alert rules; do not rename them.

All gauges are created unregistered and owned by exactly one collector,
which is the only writer. The classes here never read values back.
"""
from typing import Iterable, List

from prometheus_client import Gauge

from maya_exporter.metrics.models import (
    DatasetEntry,
    DatasetStats,
    PoolEntry,
    PoolLiveness,
    POOL_STATUS,
    Stats,
)


NAMESPACE = "openebs"


def _gauge(name: str, help_text: str, labels: Iterable[str] = ()) -> Gauge:
    return Gauge(name, help_text, labelnames=tuple(labels), namespace=NAMESPACE, registry=None)


class VolumeMetrics:
    """Gauges exported by a volume (jiva or cstor target) sidecar"""

    def __init__(self):
        self.actual_used = _gauge("actual_used", "Actual volume size used")
        self.logical_size = _gauge("logical_size", "Logical size of volume")
        self.sector_size = _gauge("sector_size", "sector size of volume")
        self.reads = _gauge("reads", "Read Input/Outputs on Volume")
        self.writes = _gauge("writes", "Write Input/Outputs on Volume")
        self.total_read_bytes = _gauge("total_read_bytes", "Total read bytes")
        self.total_write_bytes = _gauge("total_write_bytes", "Total write bytes")
        self.total_read_time = _gauge("read_time", "Read time on volume")
        self.total_write_time = _gauge("write_time", "Write time on volume")
        self.total_read_block_count = _gauge("read_block_count", "Read Block count of volume")
        self.total_write_block_count = _gauge("write_block_count", "Write Block count of volume")
        self.size_of_volume = _gauge("size_of_volume", "Size of the volume requested")
        self.volume_status = _gauge(
            "volume_status",
            "Status of volume: (1, 2, 3, 4) = {Offline, Degraded, Healthy, Unknown}",
        )
        self.connection_retry_counter = _gauge("connection_retry_total", "Total no of connection retry requests")
        self.connection_error_counter = _gauge("connection_error_total", "Total no of connection errors")
        self.parse_error_counter = _gauge("parse_error_total", "Total no of parsing errors")
        self.total_replica_counter = _gauge("total_replica_count", "Total no of replicas connected to cas")
        self.healthy_replica_counter = _gauge("healthy_replica_count", "Total no of healthy replicas")
        self.degraded_replica_counter = _gauge("degraded_replica_count", "Total no of degraded/ro replicas")
        self.volume_uptime = _gauge("volume_uptime", "Time since volume has registered", ["volName", "castype"])
        self.is_client_connected = _gauge(
            "iscsi_initiator_login_status",
            "iSCSI Initiator to jiva target login status: (0, 1): {Not Logged In, Logged In}",
        )
        self.reject_request_counter = _gauge(
            "target_reject_request_counter",
            "Total no of rejected GET http requests if a request is already in progress",
        )

    def collectors(self) -> List[Gauge]:
        return [
            self.reads,
            self.writes,
            self.total_read_bytes,
            self.total_write_bytes,
            self.total_read_time,
            self.total_write_time,
            self.total_read_block_count,
            self.total_write_block_count,
            self.actual_used,
            self.logical_size,
            self.sector_size,
            self.size_of_volume,
            self.volume_status,
            self.connection_error_counter,
            self.connection_retry_counter,
            self.parse_error_counter,
            self.total_replica_counter,
            self.degraded_replica_counter,
            self.healthy_replica_counter,
            self.volume_uptime,
            self.is_client_connected,
            self.reject_request_counter,
        ]

    def set(self, stats: Stats) -> None:
        """Write one snapshot of volume stats to every gauge"""
        self.reads.set(stats.reads)
        self.writes.set(stats.writes)
        self.total_read_time.set(stats.total_read_time)
        self.total_write_time.set(stats.total_write_time)
        self.total_read_bytes.set(stats.total_read_bytes)
        self.total_write_bytes.set(stats.total_write_bytes)
        self.total_read_block_count.set(stats.total_read_block_count)
        self.total_write_block_count.set(stats.total_write_block_count)
        self.sector_size.set(stats.sector_size)
        self.logical_size.set(stats.logical_size)
        self.actual_used.set(stats.actual_used)
        self.size_of_volume.set(stats.size)

        self.volume_uptime.clear()
        self.volume_uptime.labels(stats.name, stats.cas_type).set(stats.uptime)

        stats.count_replicas()
        self.total_replica_counter.set(stats.total_replica_count)
        self.healthy_replica_counter.set(stats.healthy_replica_count)
        self.degraded_replica_counter.set(stats.degraded_replica_count)
        self.volume_status.set(stats.volume_status().value)


class PoolMetrics:
    """Gauges exported from ``zpool list``"""

    def __init__(self):
        self.size = _gauge("pool_size", "Size of pool")
        self.used_capacity = _gauge("used_pool_capacity", "Capacity used by pool")
        self.free_capacity = _gauge("free_pool_capacity", "Free capacity in pool")
        self.used_capacity_percent = _gauge("used_pool_capacity_percent", "Capacity used by pool in percent")
        self.status = _gauge(
            "pool_status",
            "Status of pool (0, 1, 2, 3, 4, 5, 6) = "
            "{OFFLINE, ONLINE, DEGRADED, FAULTED, REMOVED, UNAVAIL, NoPoolsAvailable}",
            ["pool"],
        )
        self.parse_error_counter = _gauge("zpool_list_parse_error_count", "Total no of parsing errors")
        self.command_error_counter = _gauge("zpool_command_error", "Total no of zpool command errors")
        self.no_pool_available_counter = _gauge("no_pool_available_error", "Total no of no pool available errors")
        self.incomplete_output_counter = _gauge(
            "zpool_list_incomplete_stdout_error", "Total no of incomplete stdout of zpool list command errors"
        )
        self.reject_request_counter = _gauge(
            "zpool_reject_request_count", "Total no of rejected requests of zpool command"
        )

    def collectors(self) -> List[Gauge]:
        return [
            self.size,
            self.used_capacity,
            self.free_capacity,
            self.used_capacity_percent,
            self.status,
            self.parse_error_counter,
            self.command_error_counter,
            self.no_pool_available_counter,
            self.incomplete_output_counter,
            self.reject_request_counter,
        ]

    def set(self, pools: List[PoolEntry]) -> None:
        self.status.clear()
        for pool in pools:
            self.size.set(pool.size)
            self.used_capacity.set(pool.used)
            self.free_capacity.set(pool.free)
            self.used_capacity_percent.set(pool.used_percent)
            if pool.status_code is not None:
                self.status.labels(pool.name).set(pool.status_code)

    def set_no_pools(self, name: str) -> None:
        """Publish the synthetic NoPoolsAvailable row, leaving capacities untouched"""
        self.status.clear()
        self.status.labels(name).set(POOL_STATUS["NoPoolsAvailable"])


class DatasetStatsMetrics:
    """Gauges exported from ``zfs stats``, labelled by volume and pool"""

    LABELS = ("vol", "pool")

    def __init__(self):
        self.read_bytes = _gauge("total_read_bytes", "Total read in bytes of volume replica", self.LABELS)
        self.write_bytes = _gauge("total_write_bytes", "Total write in bytes of volume replica", self.LABELS)
        self.read_count = _gauge("total_read_count", "Total read io count of volume replica", self.LABELS)
        self.write_count = _gauge("total_write_count", "Total write io count of volume replica", self.LABELS)
        self.sync_count = _gauge("sync_count", "Total sync io count of volume replica", self.LABELS)
        self.sync_latency = _gauge("sync_latency", "Sync latency on volume replica", self.LABELS)
        self.read_latency = _gauge("read_latency", "Read latency on volume replica", self.LABELS)
        self.write_latency = _gauge("write_latency", "Write latency on volume replica", self.LABELS)
        self.replica_status = _gauge(
            "replica_status",
            'Status of volume replica (0, 1, 2, 3) = {"Offline", "Healthy", "Degraded", "Rebuilding"}',
            self.LABELS,
        )
        self.inflight_io_count = _gauge("inflight_io_count", "Inflight IO's count of volume replica", self.LABELS)
        self.dispatched_io_count = _gauge(
            "dispatched_io_count", "Dispatched IO's count of volume replica", self.LABELS
        )
        self.rebuild_count = _gauge("rebuild_count", "Rebuild count of volume replica", self.LABELS)
        self.rebuild_bytes = _gauge("rebuild_bytes", "Rebuild bytes of volume replica", self.LABELS)
        self.rebuild_status = _gauge(
            "rebuild_status",
            'Status of rebuild on volume replica (0, 1, 2, 3, 4, 5, 6)= {"INIT", "DONE", '
            '"SNAP REBUILD INPROGRESS", "ACTIVE DATASET REBUILD INPROGRESS", "ERRORED", "FAILED", "UNKNOWN"}',
            self.LABELS,
        )
        self.rebuild_done_count = _gauge("total_rebuild_done", "Total no of rebuild done on volume replica", self.LABELS)
        self.rebuild_failed_count = _gauge(
            "total_failed_rebuild", "Total no of failed rebuilds on volume replica", self.LABELS
        )

        self.command_error_counter = _gauge("zfs_command_error", "Total no of zfs command errors")
        self.parse_error_counter = _gauge("zfs_stats_parse_error_counter", "Total no of zfs stats parse errors")
        self.reject_request_counter = _gauge(
            "zfs_stats_reject_request_count", "Total no of rejected requests of zfs stats"
        )
        self.no_dataset_available_counter = _gauge(
            "zfs_stats_no_dataset_available_error_counter",
            "Total no of no datasets error in zfs stats command",
        )
        self.initialize_libuzfs_client_error_counter = _gauge(
            "zfs_stats_failed_to_initialize_libuzfs_client_error_counter",
            "Total no of failed to initialize libuzfs client error in zfs stats command",
        )

    def vectors(self) -> List[Gauge]:
        return [
            self.read_bytes,
            self.write_bytes,
            self.read_count,
            self.write_count,
            self.sync_count,
            self.sync_latency,
            self.read_latency,
            self.write_latency,
            self.replica_status,
            self.inflight_io_count,
            self.dispatched_io_count,
            self.rebuild_count,
            self.rebuild_bytes,
            self.rebuild_status,
            self.rebuild_done_count,
            self.rebuild_failed_count,
        ]

    def collectors(self) -> List[Gauge]:
        return self.vectors() + [
            self.command_error_counter,
            self.parse_error_counter,
            self.reject_request_counter,
            self.no_dataset_available_counter,
            self.initialize_libuzfs_client_error_counter,
        ]

    def set(self, datasets: List[DatasetStats]) -> None:
        """Replace every labelled series with this scrape's datasets"""
        for vector in self.vectors():
            vector.clear()
        for ds in datasets:
            labels = (ds.volume, ds.pool)
            self.read_bytes.labels(*labels).set(ds.read_bytes)
            self.write_bytes.labels(*labels).set(ds.write_bytes)
            self.read_count.labels(*labels).set(ds.read_count)
            self.write_count.labels(*labels).set(ds.write_count)
            self.sync_count.labels(*labels).set(ds.sync_count)
            self.sync_latency.labels(*labels).set(ds.sync_latency)
            self.read_latency.labels(*labels).set(ds.read_latency)
            self.write_latency.labels(*labels).set(ds.write_latency)
            self.replica_status.labels(*labels).set(ds.status_code)
            self.inflight_io_count.labels(*labels).set(ds.inflight_io_count)
            self.dispatched_io_count.labels(*labels).set(ds.dispatched_io_count)
            self.rebuild_count.labels(*labels).set(ds.rebuild_count)
            self.rebuild_bytes.labels(*labels).set(ds.rebuild_bytes)
            self.rebuild_status.labels(*labels).set(ds.rebuild_status_code)
            self.rebuild_done_count.labels(*labels).set(ds.rebuild_done_count)
            self.rebuild_failed_count.labels(*labels).set(ds.rebuild_failed_count)


class DatasetListMetrics:
    """Gauges exported from ``zfs list``, labelled by dataset name"""

    def __init__(self):
        self.used = _gauge("used_size", "Used size of volume replica on a pool", ["name"])
        self.available = _gauge("available_size", "Available size of volume replica on a pool", ["name"])
        self.parse_error_counter = _gauge("zfs_list_parse_error", "Total no of zfs list parse errors")
        self.command_error_counter = _gauge("zfs_list_command_error", "Total no of zfs command errors")
        self.reject_request_counter = _gauge(
            "zfs_list_request_reject_count", "Total no of rejected requests of zfs list"
        )
        self.no_dataset_available_counter = _gauge(
            "zfs_list_no_dataset_available_error_counter",
            "Total no of no datasets error in zfs list command",
        )
        self.initialize_libuzfs_client_error_counter = _gauge(
            "zfs_list_failed_to_initialize_libuzfs_client_error_counter",
            "Total no of failed to initialize libuzfs client error in zfs list command",
        )

    def collectors(self) -> List[Gauge]:
        return [
            self.used,
            self.available,
            self.parse_error_counter,
            self.command_error_counter,
            self.reject_request_counter,
            self.no_dataset_available_counter,
            self.initialize_libuzfs_client_error_counter,
        ]

    def set(self, datasets: List[DatasetEntry]) -> None:
        self.used.clear()
        self.available.clear()
        for ds in datasets:
            self.used.labels(ds.name).set(ds.used)
            self.available.labels(ds.name).set(ds.available)


class PoolLivenessMetrics:
    """Gauges exported from ``zfs get io.openebs:livenesstimestamp``"""

    def __init__(self):
        self.last_sync_time = _gauge("zpool_last_sync_time", "Last sync time of pool", ["pool"])
        self.state_unknown = _gauge("zpool_state_unknown", "zpool state unknown", ["pool"])
        self.command_error = _gauge("zpool_sync_time_command_error", "Zpool sync time command error", ["pool"])
        self.reject_request_counter = _gauge(
            "zfs_get_livenesstimestamp_request_reject_count",
            "Total no of rejected requests for pool liveness",
        )

    def vectors(self) -> List[Gauge]:
        return [self.last_sync_time, self.state_unknown, self.command_error]

    def collectors(self) -> List[Gauge]:
        return self.vectors() + [self.reject_request_counter]

    def set(self, pool: PoolLiveness) -> None:
        for vector in self.vectors():
            vector.clear()
        self.last_sync_time.labels(pool.name).set(pool.last_sync_time)
        self.state_unknown.labels(pool.name).set(pool.state_unknown)
        self.command_error.labels(pool.name).set(pool.command_error)
