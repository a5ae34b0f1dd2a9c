"""
Bonus Service Integration Test Fixtures

BonusRepository against a real PostgreSQL database (POSTGRES_* env vars).
Tests are skipped when the database cannot be reached.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from core.config import BonusServiceConfig
from microservices.bonus_service.bonus_repository import BonusRepository
from tests.contracts.bonus.data_contract import BonusTestDataFactory


@pytest_asyncio.fixture(scope="function")
async def bonus_repo() -> AsyncGenerator[BonusRepository, None]:
    """
    Repository with the bonus schema created

    Every test works on fresh user and template ids, so rows are left in place.
    """
    repository = BonusRepository(config=BonusServiceConfig.from_env())
    try:
        await repository.initialize()
    except Exception as e:
        await repository.close()
        pytest.skip(f"PostgreSQL not available: {e}")

    yield repository
    await repository.close()


@pytest.fixture(scope="session")
def data_factory():
    return BonusTestDataFactory
