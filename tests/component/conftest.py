"""
Component Test Layer Configuration

Structure:
    tests/component/
    ├── bonus/       Bonus engine and handler tests
    └── mocks/       In-memory repository, ledger, account and event bus mocks

Usage:
    pytest tests/component -v
    pytest tests/component/bonus -v -k "turnover"
"""
import os
import sys

import pytest

# Set testing environment BEFORE any service imports
os.environ["ENV"] = "test"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tests.component.mocks import MockEventBus


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


# =============================================================================
# Event Bus Mocks
# =============================================================================

@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Mock NATS event bus"""
    return MockEventBus()
