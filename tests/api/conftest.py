"""
API Test Layer Configuration

Layer 1: API Contract Tests
- Drive the FastAPI app in-process through httpx.ASGITransport
- The engine dependency is overridden with in-memory stores
- Validates HTTP contracts: status codes, error bodies and response schemas

Usage:
    pytest tests/api -v                    # Run all API tests
    pytest tests/api -v -k "award"         # Run award API tests
    pytest tests/api -v --tb=short         # Short traceback
"""

import os
import sys

import httpx
import pytest

# Set testing environment BEFORE the app module is imported
os.environ["ENV"] = "test"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "api: marks tests as API contract tests")


# =============================================================================
# Assertion Helpers
# =============================================================================


class APIAssertions:
    """API-specific assertion helpers"""

    @staticmethod
    def assert_success(response: httpx.Response, expected_status: int = 200):
        """Assert response is successful"""
        assert response.status_code == expected_status, (
            f"Expected {expected_status}, got {response.status_code}: {response.text}"
        )

    @staticmethod
    def assert_not_found(response: httpx.Response):
        """Assert resource not found"""
        assert response.status_code == 404, f"Expected 404, got {response.status_code}"

    @staticmethod
    def assert_validation_error(response: httpx.Response):
        """Assert validation error"""
        assert response.status_code == 422, f"Expected 422, got {response.status_code}"

    @staticmethod
    def assert_error_code(response: httpx.Response, status_code: int, code: str):
        """Assert a service error mapped to status_code with the given error code"""
        assert response.status_code == status_code, (
            f"Expected {status_code}, got {response.status_code}: {response.text}"
        )
        assert response.json()["detail"]["code"] == code

    @staticmethod
    def assert_has_fields(data: dict, fields: list):
        """Assert response has required fields"""
        missing = [f for f in fields if f not in data]
        assert not missing, f"Missing fields: {missing}"


@pytest.fixture
def api_assert() -> APIAssertions:
    """Provide API assertion helpers"""
    return APIAssertions()
