#!/usr/bin/env python3
"""
Core Module for the Purchase Platform

Shared infrastructure used by the microservices.

COMPONENTS:
    - config/: Modular dataclass configuration loaded from environment files
    - config_manager.py: Per-service configuration access
    - logger.py: Service logger setup
    - postgres_client.py: Async PostgreSQL client (asyncpg pool)
    - nats_client.py: NATS JetStream event bus

USAGE:
    from core.config_manager import ConfigManager
    from core.logger import setup_service_logger

    config = ConfigManager("purchase_service")
    logger = setup_service_logger("purchase_service")
"""

from .config_manager import ConfigManager, Environment
from .logger import setup_service_logger

__all__ = [
    "ConfigManager",
    "Environment",
    "setup_service_logger",
]

__version__ = "2.0.0"
