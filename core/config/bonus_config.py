#!/usr/bin/env python3
"""Bonus service configuration

Service identity, peer service endpoints and lifecycle defaults for the
bonus service. Infrastructure and logging settings are composed in.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig

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
class BonusServiceConfig:
    """Bonus service settings"""

    service_name: str = "bonus_service"
    service_port: int = 9003
    debug: bool = False
    log_level: str = "INFO"

    # ===========================================
    # Peer services
    # ===========================================
    wallet_service_url: str = "http://localhost:8208"
    account_service_url: str = "http://localhost:8202"
    http_timeout: float = 10.0

    # ===========================================
    # Lifecycle defaults
    # ===========================================
    expiry_sweep_minutes: int = 5
    default_expiration_days: int = 30
    trial_expiration_days: int = 7

    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> 'BonusServiceConfig':
        """Load bonus service config from environment variables"""
        logging_config = LoggingConfig.from_env()
        return cls(
            service_name=os.getenv("SERVICE_NAME", "bonus_service"),
            service_port=_int(os.getenv("BONUS_SERVICE_PORT") or os.getenv("PORT", "9003"), 9003),
            debug=_bool(os.getenv("DEBUG", "false")),
            log_level=logging_config.log_level,
            wallet_service_url=os.getenv("WALLET_SERVICE_URL", "http://localhost:8208"),
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            http_timeout=_float(os.getenv("HTTP_TIMEOUT", "10"), 10.0),
            expiry_sweep_minutes=_int(os.getenv("BONUS_EXPIRY_SWEEP_MINUTES", "5"), 5),
            default_expiration_days=_int(os.getenv("BONUS_DEFAULT_EXPIRATION_DAYS", "30"), 30),
            trial_expiration_days=_int(os.getenv("BONUS_TRIAL_EXPIRATION_DAYS", "7"), 7),
            infra=InfraConfig.from_env(),
            logging=logging_config,
        )
