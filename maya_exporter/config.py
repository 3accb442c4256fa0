"""Configuration management for the maya exporter"""
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import Field, validator
from pydantic_settings import BaseSettings


STORAGE_ENGINES = ("jiva", "cstor", "pool")


class Config(BaseSettings):
    """Exporter settings, read from ``MAYA_EXPORTER_*`` environment variables.

    Command line flags are applied on top by ``main``.
    """

    # Server settings
    listen_address: str = Field(default=":9500", description="Address on which to expose metrics")
    metrics_path: str = Field(default="/metrics", description="Path under which to expose metrics")

    # Storage engine selection
    storage_engine: str = Field(default="jiva", description="Storage engine: jiva, cstor or pool")

    # Jiva
    controller_address: str = Field(default="http://localhost:9501", description="Jiva controller URL")
    request_timeout: float = Field(default=1.0, gt=0, description="Jiva stats request timeout in seconds")

    # cStor
    socket_path: str = Field(default="/var/run/istgt_ctl_sock", description="istgt control socket path")
    socket_io_timeout: Optional[float] = Field(default=None, gt=0, description="Socket read/write deadline in seconds")

    # Pool
    command_timeout: float = Field(default=5.0, gt=0, description="zpool/zfs command timeout in seconds")
    liveness_timeout: float = Field(default=1.0, gt=0, description="zfs get livenesstimestamp timeout in seconds")
    wait_for_pool: bool = Field(default=True, description="Block start-up until a pool is imported")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")

    include_runtime_metrics: bool = Field(default=True, description="Export process and python runtime metrics")

    class Config:
        env_prefix = "MAYA_EXPORTER_"
        case_sensitive = False

    @validator('metrics_path')
    def normalize_metrics_path(cls, v):
        """Leading slash, no trailing slash"""
        path = "/" + v.strip().strip("/")
        if path == "/":
            raise ValueError("metrics path must not be the root path")
        return path

    @validator('listen_address')
    def validate_listen_address(cls, v):
        """Accept ``host:port`` or ``:port``"""
        split_listen_address(v)
        return v

    @validator('log_level', pre=True)
    def upper_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @validator('log_file')
    def ensure_log_directory(cls, v):
        """Ensure the parent directory of the log file exists"""
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def listen_host(self) -> str:
        return split_listen_address(self.listen_address)[0]

    @property
    def listen_port(self) -> int:
        return split_listen_address(self.listen_address)[1]

    def is_known_engine(self) -> bool:
        return self.storage_engine in STORAGE_ENGINES


def split_listen_address(address: str) -> Tuple[str, int]:
    """Split ``host:port``; an empty host binds every interface"""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"listen address {address!r} must be of the form host:port")
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}")
    if not 0 < port_number < 65536:
        raise ValueError(f"port out of range in listen address {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, port_number
