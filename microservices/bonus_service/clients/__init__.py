"""
Bonus Service Client Module

HTTP clients for the wallet ledger and account_service.
"""

from .account_client import AccountClient
from .ledger_client import LedgerClient

__all__ = [
    "AccountClient",
    "LedgerClient",
]
