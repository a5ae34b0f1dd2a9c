"""
Integration Test Configuration and Fixtures

Shared fixtures for tests that talk to real PostgreSQL and NATS.
Fixtures yield None (and tests skip) when the infrastructure is not reachable.
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../.."))

from core.nats_client import Event, NATSEventBus


# ==================== Environment ====================

class TestConfig:
    """Integration test configuration"""

    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))

    NATS_URL = os.getenv("NATS_URL", "nats://localhost:4222")

    EVENT_WAIT_TIMEOUT = int(os.getenv("EVENT_WAIT_TIMEOUT", "10"))


# ==================== Event Collector ====================

class EventCollector:
    """Collects events from NATS so tests can assert on publication"""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()

    async def collect(self, event: Event):
        async with self._lock:
            self.events.append({
                "id": event.id,
                "type": event.type,
                "source": event.source,
                "data": event.data,
                "timestamp": event.timestamp,
                "received_at": datetime.now(timezone.utc).isoformat(),
            })

    def get_by_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]

    def _find(self, event_type: str, data_match: Optional[Dict] = None) -> Optional[Dict[str, Any]]:
        for event in self.get_by_type(event_type):
            if data_match is None or all(event["data"].get(k) == v for k, v in data_match.items()):
                return event
        return None

    async def wait_for_event(
        self,
        event_type: str,
        timeout: float = 10.0,
        data_match: Optional[Dict] = None
    ) -> Optional[Dict[str, Any]]:
        """Poll until a matching event arrives or the timeout passes"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            event = self._find(event_type, data_match)
            if event:
                return event
            await asyncio.sleep(0.1)
        return None

    def clear(self):
        self.events.clear()


# ==================== Pytest Fixtures ====================

@pytest.fixture(scope="session")
def config():
    """Test configuration"""
    return TestConfig()


@pytest_asyncio.fixture(scope="function")
async def event_bus(config: TestConfig) -> AsyncGenerator[Optional[NATSEventBus], None]:
    """Dedicated NATS connection (not the process-wide singleton)"""
    bus = NATSEventBus(service_name="bonus_integration_test", servers=config.NATS_URL)
    try:
        await bus.connect()
    except Exception as e:
        print(f"Warning: Could not connect to NATS: {e}")
        yield None
        return

    yield bus
    await bus.close()


@pytest_asyncio.fixture(scope="function")
async def event_collector(event_bus) -> AsyncGenerator[EventCollector, None]:
    """Collector subscribed to every bonus.* event"""
    collector = EventCollector()

    if event_bus:
        await event_bus.subscribe_to_events(pattern="bonus.>", handler=collector.collect)
        await asyncio.sleep(0.5)  # let the subscription settle

    yield collector

    collector.clear()


# ==================== Pytest Markers ====================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_nats: marks tests that require NATS connection"
    )
    config.addinivalue_line(
        "markers", "requires_db: marks tests that require database connection"
    )

