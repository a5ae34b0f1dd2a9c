"""
Service logger setup

Configures stdlib logging once per service process: a console handler and,
when LOG_FILE is set, a file handler, both using the configured format.
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    level: str = "INFO",
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """Configure root logging and return the service logger."""
    global _configured

    config = config or LoggingConfig.from_env()
    root = logging.getLogger()

    if not _configured:
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        for name in config.quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

        _configured = True

    root.setLevel(level.upper())
    logger = logging.getLogger(service_name)
    logger.debug(f"Logging configured for {service_name} ({config.environment}) at {level.upper()}")
    return logger
