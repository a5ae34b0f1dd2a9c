"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, NATS, HTTP).
"""

from .bonus_mocks import (
    MockAccountClient,
    MockApprovalRepository,
    MockLedgerClient,
    MockTemplateRepository,
    MockTransactionRepository,
    MockUserBonusRepository,
)
from .nats_mock import MockEventBus

__all__ = [
    'MockAccountClient',
    'MockApprovalRepository',
    'MockEventBus',
    'MockLedgerClient',
    'MockTemplateRepository',
    'MockTransactionRepository',
    'MockUserBonusRepository',
]
