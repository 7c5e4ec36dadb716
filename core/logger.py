"""
Service Logger Setup

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("purchase_service")
"""

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LoggingConfig

_configured: set = set()


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure and return the logger for a service.

    Handlers are attached to the service logger once; module loggers
    (``logging.getLogger(__name__)``) propagate to the root logger, which gets
    the same format so library and module output line up.

    Args:
        service_name: Logger name, usually the service name
        level: Optional level override (e.g. "DEBUG")
        config: Optional LoggingConfig, loaded from env when omitted
    """
    config = config or LoggingConfig.from_env()
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=config.log_format)

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)

    if service_name in _configured:
        return logger

    formatter = logging.Formatter(config.log_format)

    if config.log_file:
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.log_file_max_bytes,
            backupCount=config.log_file_backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Console output goes through the root handler installed by basicConfig
    if not config.enable_console:
        logger.propagate = False

    _configured.add(service_name)
    return logger
