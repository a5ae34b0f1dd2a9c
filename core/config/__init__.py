#!/usr/bin/env python3
"""Configuration for the bonus service

Layers, each a dataclass filled from environment variables:
- infra_config: PostgreSQL and NATS endpoints
- logging_config: Level, format and sinks
- bonus_config: Service identity, peer services and lifecycle defaults

Environment files are looked up in the project root: `.env.<ENV>` (for
example `.env.test`) and then `.env`. Variables already set in the process
always win.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .bonus_config import BonusServiceConfig

PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_ALIASES = {
    "dev": "development",
    "testing": "test",
    "prod": "production",
}


def load_environment(env: Optional[str] = None) -> str:
    """Load env files for `env` (default: $ENV); returns the normalized name"""
    env = env or os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
    env = ENV_ALIASES.get(env, env)
    for name in (f".env.{env}", ".env"):
        path = PROJECT_ROOT / name
        if path.exists():
            load_dotenv(path, override=False)
    return env


load_environment()

# Create global settings instance
settings = BonusServiceConfig.from_env()


def get_settings() -> BonusServiceConfig:
    """Get global settings instance"""
    return settings


def reload_settings() -> BonusServiceConfig:
    """Reload settings from environment"""
    global settings
    settings = BonusServiceConfig.from_env()
    return settings


__all__ = [
    'BonusServiceConfig',
    'InfraConfig',
    'LoggingConfig',
    'get_settings',
    'load_environment',
    'reload_settings',
    'settings',
]
