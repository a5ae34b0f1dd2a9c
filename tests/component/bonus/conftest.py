"""
Bonus Service Component Test Fixtures

Wires the in-memory mocks from tests.component.mocks into a BonusEngine.
"""

import pytest

from tests.component.mocks import (
    MockAccountClient,
    MockApprovalRepository,
    MockEventBus,
    MockLedgerClient,
    MockTemplateRepository,
    MockTransactionRepository,
    MockUserBonusRepository,
)
from tests.contracts.bonus.data_contract import BonusTestDataFactory


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def template_repo():
    return MockTemplateRepository()


@pytest.fixture
def transaction_repo():
    return MockTransactionRepository()


@pytest.fixture
def user_bonus_repo(transaction_repo):
    """Turnover updates write their transaction rows into transaction_repo"""
    return MockUserBonusRepository(transactions=transaction_repo)


@pytest.fixture
def approval_repo():
    return MockApprovalRepository()


@pytest.fixture
def mock_event_bus():
    """Create mock event bus"""
    return MockEventBus()


@pytest.fixture
def mock_ledger():
    return MockLedgerClient()


@pytest.fixture
def mock_account_client():
    """Create mock account client"""
    return MockAccountClient()


@pytest.fixture
def bonus_engine(
    template_repo,
    user_bonus_repo,
    transaction_repo,
    approval_repo,
    mock_event_bus,
    mock_ledger,
    mock_account_client,
):
    """Create bonus engine with mocked dependencies"""
    from microservices.bonus_service.bonus_engine import BonusEngine

    return BonusEngine(
        templates=template_repo,
        user_bonuses=user_bonus_repo,
        transactions=transaction_repo,
        ledger_client=mock_ledger,
        event_bus=mock_event_bus,
        approvals=approval_repo,
        account_client=mock_account_client,
    )


@pytest.fixture
def data_factory():
    """Provide data factory for test data generation"""
    return BonusTestDataFactory
