#!/usr/bin/env python3
"""Main entry point for the maya exporter"""
import argparse
import sys
from typing import List, Optional

import uvicorn

from maya_exporter.app.server import MetricsServer
from maya_exporter.collectors.base import BaseCollector
from maya_exporter.collectors.liveness import PoolLivenessCollector
from maya_exporter.collectors.pool import PoolCollector, wait_for_pool
from maya_exporter.collectors.runner import CommandRunner
from maya_exporter.collectors.volume import VolumeCollector, build_source
from maya_exporter.collectors.zvol import DatasetListCollector, DatasetStatsCollector
from maya_exporter.config import Config
from maya_exporter.logging_config import get_logger, log_error, log_server_startup, setup_structured_logging
from maya_exporter.metrics.registry import MetricsRegistry


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="maya-exporter",
        description="Collects OpenEBS volume and pool metrics and exposes them for Prometheus",
    )
    parser.add_argument("-a", "--listen.addr", dest="listen_address",
                        help="Address on which to expose metrics and web interface (default :9500)")
    parser.add_argument("-m", "--listen.path", dest="metrics_path",
                        help="Path under which to expose metrics (default /metrics)")
    parser.add_argument("-c", "--controller.addr", dest="controller_address",
                        help="IP address of the jiva controller (default http://localhost:9501)")
    parser.add_argument("-e", "--storage.engine", dest="storage_engine",
                        help="Storage engine: jiva, cstor or pool (default jiva)")
    parser.add_argument("--socket.path", dest="socket_path",
                        help="istgt control socket for the cstor engine")
    parser.add_argument("--log.level", dest="log_level",
                        help="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    parser.add_argument("--wait-for-pool", dest="wait_for_pool", action=argparse.BooleanOptionalAction,
                        default=None, help="Wait for a pool to be imported before serving (pool engine)")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Environment settings with command line flags applied on top"""
    overrides = {key: value for key, value in vars(args).items() if value is not None}
    return Config(**overrides)


def build_collectors(config: Config) -> List[BaseCollector]:
    """Collectors for the configured storage engine"""
    logger = get_logger(__name__)
    engine = config.storage_engine

    if not config.is_known_engine():
        logger.warning("Unsupported storage engine, no exporter registered", storage_engine=engine)
        return []

    if engine in ("jiva", "cstor"):
        collectors = [VolumeCollector(build_source(config), config)]
        logger.info(f"Registered maya exporter for {engine}", storage_engine=engine)
        return collectors

    if config.wait_for_pool:
        wait_for_pool(CommandRunner("zpool", "status", timeout=config.command_timeout))
    collectors = [
        PoolCollector(config=config),
        DatasetStatsCollector(config=config),
        DatasetListCollector(config=config),
        PoolLivenessCollector(config=config),
    ]
    logger.info("Registered maya exporter for cstor pool", storage_engine=engine)
    return collectors


def main(argv: Optional[List[str]] = None):
    """Main application entry point"""
    try:
        config = build_config(parse_args(argv))

        setup_structured_logging(config)
        logger = get_logger(__name__)
        log_server_startup(logger, config)

        registry = MetricsRegistry(config)
        for collector in build_collectors(config):
            registry.register_collector(collector)

        server = MetricsServer(config, registry)
        app = server.get_app()

        uvicorn.run(
            app,
            host=config.listen_host,
            port=config.listen_port,
            log_config=None  # We handle logging ourselves
        )

    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)


if __name__ == '__main__':
    main()
