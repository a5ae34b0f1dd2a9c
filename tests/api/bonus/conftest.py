"""
Bonus Service API Test Configuration

Runs the bonus_service app in-process; get_bonus_engine is overridden with an
engine built on the in-memory component mocks.
"""
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from microservices.bonus_service.bonus_engine import BonusEngine
from microservices.bonus_service.main import app, get_bonus_engine
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

BONUS_API_PATH = "/api/v1/bonuses"


class BonusBackend:
    """The in-memory stores behind the overridden engine"""

    def __init__(self):
        self.templates = MockTemplateRepository()
        self.transactions = MockTransactionRepository()
        self.user_bonuses = MockUserBonusRepository(transactions=self.transactions)
        self.approvals = MockApprovalRepository()
        self.event_bus = MockEventBus()
        self.ledger = MockLedgerClient()
        self.accounts = MockAccountClient()
        self.engine = BonusEngine(
            templates=self.templates,
            user_bonuses=self.user_bonuses,
            transactions=self.transactions,
            ledger_client=self.ledger,
            event_bus=self.event_bus,
            approvals=self.approvals,
            account_client=self.accounts,
        )


@pytest.fixture
def backend() -> BonusBackend:
    return BonusBackend()


@pytest_asyncio.fixture
async def bonus_api(backend: BonusBackend) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the bonus app, engine dependency overridden"""

    async def override_engine() -> BonusEngine:
        return backend.engine

    app.dependency_overrides[get_bonus_engine] = override_engine
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=f"http://test{BONUS_API_PATH}") as client:
        yield client
    app.dependency_overrides.pop(get_bonus_engine, None)


@pytest_asyncio.fixture
async def raw_api() -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client without the engine override"""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def data_factory():
    return BonusTestDataFactory
