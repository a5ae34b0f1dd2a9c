"""
Bonus Service Factory

Factory for creating BonusEngine with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional

from core.config import BonusServiceConfig

from .bonus_engine import BonusEngine
from .bonus_repository import BonusRepository
from .clients import AccountClient, LedgerClient
from .registry import create_default_registry

logger = logging.getLogger(__name__)


def create_bonus_engine(
    config: Optional[BonusServiceConfig] = None,
    repository: Optional[BonusRepository] = None,
    event_bus=None,
    ledger_client=None,
    account_client=None,
) -> BonusEngine:
    """
    Create BonusEngine with all real dependencies

    Args:
        config: Optional service config (loaded from the environment if not provided)
        repository: Optional repository (creates a PostgreSQL one if not provided)
        event_bus: Optional event bus for event publishing
        ledger_client: Optional wallet ledger client (creates default if not provided)
        account_client: Optional account client (creates default if not provided)

    Returns:
        Fully wired BonusEngine instance
    """
    if config is None:
        config = BonusServiceConfig.from_env()

    if repository is None:
        repository = BonusRepository(config=config)

    if ledger_client is None:
        ledger_client = LedgerClient(config=config)
        logger.info("✅ LedgerClient initialized for bonus service")

    if account_client is None:
        try:
            account_client = AccountClient(config=config)
            logger.info("✅ AccountClient initialized for bonus service")
        except Exception as e:
            logger.warning(f"⚠️ Failed to initialize AccountClient: {e}")
            logger.warning("Bonus service will operate without account lookups")

    return BonusEngine(
        templates=repository.templates,
        user_bonuses=repository.user_bonuses,
        transactions=repository.transactions,
        approvals=repository.approvals,
        ledger_client=ledger_client,
        registry=create_default_registry(trial_expiration_days=config.trial_expiration_days),
        event_bus=event_bus,
        account_client=account_client,
        default_expiration_days=config.default_expiration_days,
    )


__all__ = ["create_bonus_engine"]
