"""Value objects shared by sources, collectors and the metric catalogue"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

# Unit divisors. BYTES_TO_MB is not 2**20; consumers depend on the exact value.
# MIC_SEC is the microseconds-per-second divisor for replica latencies.
BYTES_TO_GB = 1073741824
BYTES_TO_MB = 1048567
MIC_SEC = 1000000


class ExportFormat(Enum):
    """Exposition formats served on the metrics path"""
    TEXT = "text"
    JSON = "json"

    @classmethod
    def from_query(cls, value: Optional[str]) -> "ExportFormat":
        """Anything other than ``json`` selects the text format"""
        if value == cls.JSON.value:
            return cls.JSON
        return cls.TEXT


class VolumeStatus(Enum):
    """Volume status codes exported by openebs_volume_status"""
    OFFLINE = 1
    DEGRADED = 2
    HEALTHY = 3
    UNKNOWN = 4


POOL_STATUS: Dict[str, int] = {
    "OFFLINE": 0,
    "ONLINE": 1,
    "DEGRADED": 2,
    "FAULTED": 3,
    "REMOVED": 4,
    "UNAVAIL": 5,
    "NoPoolsAvailable": 6,
}

REPLICA_STATUS: Dict[str, int] = {
    "Offline": 0,
    "Healthy": 1,
    "Degraded": 2,
    "Rebuilding": 3,
}

REBUILD_STATUS: Dict[str, int] = {
    "INIT": 0,
    "DONE": 1,
    "SNAP REBUILD INPROGRESS": 2,
    "ACTIVE DATASET REBUILD INPROGRESS": 3,
    "ERRORED": 4,
    "FAILED": 5,
    "UNKNOWN": 6,
}

HEALTHY_REPLICA_MODES = {"RW", "HEALTHY"}
DEGRADED_REPLICA_MODES = {"RO", "WO", "ERR", "DEGRADED"}

TARGET_STATUS: Dict[str, VolumeStatus] = {
    "OFFLINE": VolumeStatus.OFFLINE,
    "RO": VolumeStatus.OFFLINE,
    "DEGRADED": VolumeStatus.DEGRADED,
    "HEALTHY": VolumeStatus.HEALTHY,
    "RW": VolumeStatus.HEALTHY,
}


def parse_float(value: Any, on_error: Optional[Callable[[], None]] = None) -> float:
    """Convert a wire value to float.

    Missing values count as zero. A value that is present but does not parse
    contributes zero and reports through ``on_error``.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        value = int(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.error(f"failed to parse {value!r} as float")
        if on_error is not None:
            on_error()
        return 0.0


@dataclass
class Replica:
    """Replica address and the mode it is serving in"""
    address: str = ""
    mode: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Replica":
        return cls(address=str(data.get("Address", "")), mode=str(data.get("Mode", "")))


@dataclass
class VolumeStats:
    """Raw volume statistics as delivered by a volume source.

    Numeric fields keep their wire representation and are parsed late.
    """
    name: Any = None
    iqn: str = ""
    target_address: str = ""
    reads: Any = None
    writes: Any = None
    total_read_bytes: Any = None
    total_write_bytes: Any = None
    total_read_time: Any = None
    total_write_time: Any = None
    total_read_block_count: Any = None
    total_write_block_count: Any = None
    size: Any = None
    sector_size: Any = None
    used_logical_blocks: Any = None
    used_blocks: Any = None
    revision_counter: Any = None
    replica_counter: Any = None
    uptime: Any = None
    replicas: List[Replica] = field(default_factory=list)
    target_status: str = ""
    got: bool = False

    # JSON key -> attribute, shared by both volume sources
    FIELDS = {
        "Name": "name",
        "iqn": "iqn",
        "ReadIOPS": "reads",
        "WriteIOPS": "writes",
        "TotalReadBytes": "total_read_bytes",
        "TotalWriteBytes": "total_write_bytes",
        "TotalReadTime": "total_read_time",
        "TotalWriteTime": "total_write_time",
        "TotalReadBlockCount": "total_read_block_count",
        "TotalWriteBlockCount": "total_write_block_count",
        "Size": "size",
        "SectorSize": "sector_size",
        "UsedLogicalBlocks": "used_logical_blocks",
        "UsedBlocks": "used_blocks",
        "RevisionCounter": "revision_counter",
        "ReplicaCounter": "replica_counter",
        "UpTime": "uptime",
        "Status": "target_status",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VolumeStats":
        """Build raw stats from a decoded JSON object"""
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        kwargs = {attr: data[key] for key, attr in cls.FIELDS.items() if key in data}
        for attr in ("iqn", "target_status"):
            if kwargs.get(attr) is None:
                kwargs.pop(attr, None)
            else:
                kwargs[attr] = str(kwargs[attr])
        replicas = data.get("Replicas") or []
        kwargs["replicas"] = [Replica.from_dict(r) for r in replicas if isinstance(r, dict)]
        return cls(**kwargs)


@dataclass
class Stats:
    """Numeric per-scrape volume statistics consumed by the catalogue"""
    got: bool = False
    cas_type: str = ""
    iqn: str = ""
    name: str = ""
    address: str = ""
    reads: float = 0.0
    writes: float = 0.0
    total_read_bytes: float = 0.0
    total_write_bytes: float = 0.0
    total_read_time: float = 0.0
    total_write_time: float = 0.0
    total_read_block_count: float = 0.0
    total_write_block_count: float = 0.0
    size: float = 0.0
    sector_size: float = 0.0
    logical_size: float = 0.0
    actual_used: float = 0.0
    uptime: float = 0.0
    revision_count: float = 0.0
    total_replica_count: float = 0.0
    healthy_replica_count: float = 0.0
    degraded_replica_count: float = 0.0
    replicas: List[Replica] = field(default_factory=list)
    status: str = ""

    @classmethod
    def from_volume_stats(
        cls, raw: VolumeStats, cas_type: str, on_error: Optional[Callable[[], None]] = None
    ) -> "Stats":
        """Parse the engine independent part of a raw snapshot"""
        stats = cls(got=True, cas_type=cas_type, iqn=raw.iqn)
        stats.reads = parse_float(raw.reads, on_error)
        stats.writes = parse_float(raw.writes, on_error)
        stats.total_read_bytes = parse_float(raw.total_read_bytes, on_error)
        stats.total_write_bytes = parse_float(raw.total_write_bytes, on_error)
        stats.total_read_time = parse_float(raw.total_read_time, on_error)
        stats.total_write_time = parse_float(raw.total_write_time, on_error)
        stats.total_read_block_count = parse_float(raw.total_read_block_count, on_error)
        stats.total_write_block_count = parse_float(raw.total_write_block_count, on_error)
        stats.sector_size = parse_float(raw.sector_size, on_error)
        stats.uptime = parse_float(raw.uptime, on_error)
        stats.revision_count = parse_float(raw.revision_counter, on_error)
        stats.total_replica_count = parse_float(raw.replica_counter, on_error)

        used_blocks = parse_float(raw.used_blocks, on_error)
        used_logical_blocks = parse_float(raw.used_logical_blocks, on_error)
        stats.logical_size = used_blocks * stats.sector_size / BYTES_TO_GB
        stats.actual_used = used_logical_blocks * stats.sector_size / BYTES_TO_GB
        stats.size = parse_float(raw.size, on_error) / BYTES_TO_GB

        stats.replicas = list(raw.replicas)
        stats.status = raw.target_status
        return stats

    def count_replicas(self) -> None:
        """Tally healthy and degraded replicas from their modes"""
        healthy = degraded = 0
        for replica in self.replicas:
            mode = replica.mode.upper()
            if mode in HEALTHY_REPLICA_MODES:
                healthy += 1
            elif mode in DEGRADED_REPLICA_MODES:
                degraded += 1
            else:
                logger.error(f"Unknown replica mode: {replica.mode}")
        self.healthy_replica_count = float(healthy)
        self.degraded_replica_count = float(degraded)

    def volume_status(self) -> VolumeStatus:
        """Map the target status, or derive it from replicas when absent"""
        if self.status:
            return TARGET_STATUS.get(self.status.upper(), VolumeStatus.UNKNOWN)
        if not self.replicas:
            return VolumeStatus.UNKNOWN
        if self.degraded_replica_count > 0:
            return VolumeStatus.DEGRADED
        return VolumeStatus.HEALTHY


@dataclass
class PoolEntry:
    """One row of ``zpool list -Hp``"""
    name: str
    size: float = 0.0
    used: float = 0.0
    free: float = 0.0
    used_percent: float = 0.0
    status: str = ""

    @property
    def status_code(self) -> Optional[int]:
        return POOL_STATUS.get(self.status)


@dataclass
class DatasetEntry:
    """One row of ``zfs list -Hp``"""
    name: str
    used: float = 0.0
    available: float = 0.0


@dataclass
class DatasetStats:
    """One element of the ``zfs stats`` array"""
    name: str = ""
    status: str = ""
    rebuild_status: str = ""
    sync_count: float = 0.0
    read_count: float = 0.0
    write_count: float = 0.0
    read_bytes: float = 0.0
    write_bytes: float = 0.0
    sync_latency: float = 0.0
    read_latency: float = 0.0
    write_latency: float = 0.0
    rebuild_count: float = 0.0
    rebuild_bytes: float = 0.0
    inflight_io_count: float = 0.0
    dispatched_io_count: float = 0.0
    rebuild_done_count: float = 0.0
    rebuild_failed_count: float = 0.0

    FIELDS = {
        "name": "name",
        "status": "status",
        "rebuildStatus": "rebuild_status",
        "syncCount": "sync_count",
        "readCount": "read_count",
        "writeCount": "write_count",
        "readByte": "read_bytes",
        "writeByte": "write_bytes",
        "syncLatency": "sync_latency",
        "readLatency": "read_latency",
        "writeLatency": "write_latency",
        "rebuildCnt": "rebuild_count",
        "rebuildBytes": "rebuild_bytes",
        "inflightIOCnt": "inflight_io_count",
        "dispatchedIOCnt": "dispatched_io_count",
        "rebuildDoneCnt": "rebuild_done_count",
        "rebuildFailedCnt": "rebuild_failed_count",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], on_error: Optional[Callable[[], None]] = None) -> "DatasetStats":
        kwargs = {}
        for key, attr in cls.FIELDS.items():
            if key not in data:
                continue
            if attr in ("name", "status", "rebuild_status"):
                kwargs[attr] = str(data[key] or "")
            else:
                kwargs[attr] = parse_float(data[key], on_error)
        return cls(**kwargs)

    @property
    def pool(self) -> str:
        return self.name.split("/", 1)[0]

    @property
    def volume(self) -> str:
        parts = self.name.split("/", 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def status_code(self) -> int:
        return REPLICA_STATUS.get(self.status, 0)

    @property
    def rebuild_status_code(self) -> int:
        return REBUILD_STATUS.get(self.rebuild_status.strip(), REBUILD_STATUS["UNKNOWN"])


@dataclass
class PoolLiveness:
    """Last sync timestamp of a pool as reported by ``zfs get``"""
    name: str
    last_sync_time: float = 0.0
    state_unknown: float = 0.0
    command_error: float = 0.0
