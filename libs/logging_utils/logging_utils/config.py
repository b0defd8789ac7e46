"""Logging configuration shared by the fulfillment services."""

import sys
from typing import Optional

from loguru import logger as loguru_logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_configured_level: Optional[str] = None


def setup_service_logger(
    service_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> loguru_logger:
    """Configure the process-wide loguru sinks and return a service-bound logger.

    Sinks are installed once per log level, so every module of a service can
    call this on import without duplicating output.

    Args:
        service_name: Name of the service (e.g. 'sales-service')
        log_level: Logging level (default: INFO)
        log_file: Optional path to a rotating log file

    Returns:
        logger: loguru logger bound with the service name
    """
    global _configured_level

    if _configured_level != log_level:
        loguru_logger.remove()
        loguru_logger.configure(extra={"service": "-"})
        loguru_logger.add(
            sys.stderr,
            level=log_level,
            format=LOG_FORMAT,
            colorize=True,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        _configured_level = log_level

    if log_file:
        loguru_logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[service]} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
            compression="gz",
        )

    return loguru_logger.bind(service=service_name)


def get_kafka_logger(service_name: str) -> loguru_logger:
    """Get a logger for broker operations of a service.

    Args:
        service_name: Name of the service

    Returns:
        logger: Logger bound with '<service>.kafka'
    """
    if _configured_level is None:
        setup_service_logger(service_name)
    return loguru_logger.bind(service=f"{service_name}.kafka")
