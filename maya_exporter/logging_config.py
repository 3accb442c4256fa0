"""Structured logging configuration for the maya exporter"""
import logging
import os
import sys
from typing import Any, Dict

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, StackInfoRenderer, TimeStamper
from structlog.stdlib import LoggerFactory, ProcessorFormatter

from maya_exporter.config import Config


def setup_structured_logging(config: Config) -> None:
    """Setup structured logging with JSON format for production and console for development"""
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # Use JSON renderer for production, console for development
    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    renderer = ConsoleRenderer() if is_development else JSONRenderer()

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level] + shared_processors
        + [ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Records from plain logging.getLogger() loggers go through the same renderer
    formatter = ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    level = getattr(logging, config.log_level.upper())
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    handlers.append(console_handler)

    if config.log_file is not None:
        handlers.append(logging.FileHandler(str(config.log_file)))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(level)

    # Set specific logger levels to reduce noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('fastapi').setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def log_collection(logger: structlog.stdlib.BoundLogger, collectors_count: int, families_count: int,
                   collection_time: float) -> None:
    """Log one scrape of the registry"""
    logger.debug(
        "Metrics collection completed",
        collectors_count=collectors_count,
        families_count=families_count,
        collection_time_seconds=round(collection_time, 3),
        event_type="metrics_collection"
    )


def log_server_startup(logger: structlog.stdlib.BoundLogger, config: Config) -> None:
    """Log server startup with configuration details"""
    logger.info(
        "Starting maya-exporter",
        listen_address=config.listen_address,
        metrics_path=config.metrics_path,
        storage_engine=config.storage_engine,
        controller_address=config.controller_address if config.storage_engine == "jiva" else None,
        socket_path=config.socket_path if config.storage_engine == "cstor" else None,
        event_type="server_startup"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: Exception, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=True
    )
