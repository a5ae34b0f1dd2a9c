#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure components:
    - config/: dotenv-backed dataclass configuration
    - logger.py: service logger setup
    - nats_client.py: NATS event bus and event envelope
    - postgres_client.py: asyncpg pool wrapper

USAGE:
    from core.config import get_settings
    from core.nats_client import Event, get_event_bus
"""

__version__ = "2.0.0"
