"""
Root conftest.py - configuration shared by all test layers.

Test Layers:
- api/        : API contract tests (in-process ASGI app, mocked engine stores)
- integration/: Repository and event bus tests (real PostgreSQL / NATS, skipped when absent)
- component/  : Component tests (engine and handlers with in-memory stores)
- unit/       : Unit tests (pure functions, no I/O)

Shared test data lives in tests/contracts/bonus (BonusTestDataFactory).
"""
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

# Keep the config loader away from real infrastructure during tests
os.environ.setdefault("ENV", "test")
os.environ.setdefault("NATS_ENABLED", "false")


def pytest_configure(config):
    """Register test layer markers"""
    config.addinivalue_line("markers", "unit: pure function tests")
    config.addinivalue_line("markers", "component: engine tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: tests against real PostgreSQL/NATS")
    config.addinivalue_line("markers", "api: HTTP contract tests")
