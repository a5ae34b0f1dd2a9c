"""
Bonus Service Contracts

This module provides the contracts for bonus_service testing.
"""

from .data_contract import (
    BonusTestDataFactory,
    TemplateBuilder,
)

__all__ = [
    "BonusTestDataFactory",
    "TemplateBuilder",
]
