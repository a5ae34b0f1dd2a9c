#!/usr/bin/env python3
"""Logging settings for the bonus service"""
import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty client libraries held at WARNING unless LOG_QUIET_LOGGERS says otherwise
DEFAULT_QUIET_LOGGERS = ["nats", "asyncpg", "httpx", "httpcore", "apscheduler"]


@dataclass
class LoggingConfig:
    """Level, format and sinks for the service process"""
    log_level: str = "INFO"
    log_format: str = DEFAULT_FORMAT
    log_file: str = ""
    enable_console: bool = True
    quiet_loggers: List[str] = field(default_factory=lambda: list(DEFAULT_QUIET_LOGGERS))

    environment: str = "development"

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        """Load logging config from environment variables"""
        environment = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        quiet = os.getenv("LOG_QUIET_LOGGERS")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if environment == "development" else "INFO"),
            log_format=os.getenv("LOG_FORMAT", DEFAULT_FORMAT),
            log_file=os.getenv("LOG_FILE", ""),
            enable_console=os.getenv("LOG_CONSOLE", "true").lower() == "true",
            quiet_loggers=(
                [name.strip() for name in quiet.split(",") if name.strip()]
                if quiet is not None else list(DEFAULT_QUIET_LOGGERS)
            ),
            environment=environment,
        )
