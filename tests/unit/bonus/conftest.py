"""
Bonus unit test fixtures
"""
import pytest

from tests.contracts.bonus.data_contract import BonusTestDataFactory


@pytest.fixture
def data_factory():
    """Provide data factory for test data generation"""
    return BonusTestDataFactory
