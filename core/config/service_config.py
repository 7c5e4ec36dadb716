#!/usr/bin/env python3
"""Purchase service configuration

Service identity, peer service endpoints and the settlement tunables
(store timeouts, compensation retry policy).
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class PurchaseServiceConfig:
    """Purchase service settings"""

    # ===========================================
    # Service identity
    # ===========================================
    service_name: str = "purchase_service"
    service_host: str = "0.0.0.0"
    service_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # ===========================================
    # Peer services
    # ===========================================
    account_service_url: str = "http://localhost:8202"
    account_service_timeout: float = 5.0

    # ===========================================
    # Settlement
    # ===========================================
    # Upper bound for any single store/resolver call
    store_timeout_seconds: float = 5.0
    release_max_attempts: int = 3
    release_backoff_seconds: float = 0.2

    @classmethod
    def from_env(cls) -> 'PurchaseServiceConfig':
        """Load service configuration from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            service_name=os.getenv("SERVICE_NAME", "purchase_service"),
            service_host=os.getenv("SERVICE_HOST", "0.0.0.0"),
            service_port=_int(os.getenv("SERVICE_PORT") or os.getenv("PORT", "8000"), 8000),
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),

            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            account_service_timeout=_float(os.getenv("ACCOUNT_SERVICE_TIMEOUT", "5.0"), 5.0),

            store_timeout_seconds=_float(os.getenv("PURCHASE_STORE_TIMEOUT_SECONDS", "5.0"), 5.0),
            release_max_attempts=_int(os.getenv("PURCHASE_RELEASE_MAX_ATTEMPTS", "3"), 3),
            release_backoff_seconds=_float(os.getenv("PURCHASE_RELEASE_BACKOFF_SECONDS", "0.2"), 0.2),
        )
