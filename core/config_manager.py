"""
Configuration Manager

Per-service entry point to the modular configuration in ``core.config``.

Usage:
    from core.config_manager import ConfigManager

    config_manager = ConfigManager("purchase_service")
    config = config_manager.get_service_config()
    infra = config_manager.get_infra_config()
"""

import os
from enum import Enum
from typing import Optional

from .config import (
    InfraConfig,
    LoggingConfig,
    PurchaseServiceConfig,
)


class Environment(str, Enum):
    """Deployment environment"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def current(cls) -> "Environment":
        raw = (os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")).lower()
        aliases = {"dev": "development", "test": "testing", "prod": "production"}
        try:
            return cls(aliases.get(raw, raw))
        except ValueError:
            return cls.DEVELOPMENT


class ConfigManager:
    """Configuration access for a single service"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.environment = Environment.current()
        self._service_config: Optional[PurchaseServiceConfig] = None
        self._infra_config: Optional[InfraConfig] = None
        self._logging_config: Optional[LoggingConfig] = None

    def get_service_config(self) -> PurchaseServiceConfig:
        """Service identity and settlement tunables"""
        if self._service_config is None:
            config = PurchaseServiceConfig.from_env()
            if not os.getenv("SERVICE_NAME"):
                config.service_name = self.service_name
            self._service_config = config
        return self._service_config

    def get_infra_config(self) -> InfraConfig:
        """Infrastructure endpoints (PostgreSQL, NATS)"""
        if self._infra_config is None:
            self._infra_config = InfraConfig.from_env()
        return self._infra_config

    def get_logging_config(self) -> LoggingConfig:
        """Logging configuration"""
        if self._logging_config is None:
            config = LoggingConfig.from_env()
            if not os.getenv("SERVICE_NAME"):
                config.service_name = self.service_name
            self._logging_config = config
        return self._logging_config

    def print_config_summary(self):
        """Print configuration summary for debugging"""
        service = self.get_service_config()
        infra = self.get_infra_config()
        print(f"=== {self.service_name} configuration ({self.environment.value}) ===")
        print(f"  listen:            {service.service_host}:{service.service_port}")
        print(f"  debug:             {service.debug}")
        print(f"  log level:         {service.log_level}")
        print(f"  postgres:          {infra.postgres_host}:{infra.postgres_port}/{infra.postgres_db}")
        print(f"  nats:              {'enabled ' + infra.nats_servers if infra.nats_enabled else 'disabled'}")
        print(f"  account service:   {service.account_service_url}")
        print(f"  store timeout:     {service.store_timeout_seconds}s")
        print(f"  release attempts:  {service.release_max_attempts}")
