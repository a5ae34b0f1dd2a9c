"""
Wallet Ledger HTTP Client

Async HTTP client for the wallet service ledger. Implements
LedgerClientProtocol: every failure is raised as LedgerTransferError so the
engine can abort the transition it was about to make.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..protocols import LedgerTransferError

logger = logging.getLogger(__name__)


class LedgerClient:
    """Async HTTP client for wallet_service bonus transfers"""

    def __init__(self, base_url: str = "http://localhost:8208", timeout: float = 10.0, config=None):
        """
        Initialize LedgerClient

        Args:
            base_url: Base URL for wallet_service
            timeout: Request timeout in seconds
            config: BonusServiceConfig (overrides base_url and timeout)
        """
        if config:
            base_url = config.wallet_service_url
            timeout = config.http_timeout
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)
        logger.info(f"LedgerClient initialized with base_url: {self.base_url}")

    async def record_bonus_conversion_transfer(
        self,
        user_id: str,
        amount: float,
        currency: str,
        tenant_id: str,
        bonus_id: str,
        description: str,
    ) -> Dict[str, Any]:
        """Move a converted bonus's value from the bonus balance to the real balance"""
        return await self._transfer(
            "conversion",
            bonus_id,
            {
                "user_id": user_id,
                "tenant_id": tenant_id,
                "bonus_id": bonus_id,
                "amount": amount,
                "currency": currency,
                "description": description,
            },
        )

    async def record_bonus_forfeit_transfer(
        self,
        user_id: str,
        amount: float,
        currency: str,
        tenant_id: str,
        bonus_id: str,
        reason: str,
        description: str,
    ) -> Dict[str, Any]:
        """Remove a forfeited or expired bonus's value from the bonus balance"""
        return await self._transfer(
            "forfeit",
            bonus_id,
            {
                "user_id": user_id,
                "tenant_id": tenant_id,
                "bonus_id": bonus_id,
                "amount": amount,
                "currency": currency,
                "reason": reason,
                "description": description,
            },
        )

    async def _transfer(self, operation: str, bonus_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # The wallet service deduplicates on this key, so a retried call cannot pay twice
        headers = {
            "X-Internal-Call": "true",
            "Idempotency-Key": f"bonus:{bonus_id}:{operation}",
        }
        try:
            response = await self.client.post(
                f"{self.base_url}/api/v1/wallets/ledger/bonus-{operation}",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Ledger rejected bonus {operation} for {bonus_id}: {e.response.status_code}")
            raise LedgerTransferError(
                f"Ledger rejected bonus {operation}",
                bonus_id=bonus_id,
                operation=operation,
                reason=f"HTTP {e.response.status_code}: {e.response.text}",
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error recording bonus {operation} for {bonus_id}: {e}")
            raise LedgerTransferError(
                f"Ledger unreachable for bonus {operation}",
                bonus_id=bonus_id,
                operation=operation,
                reason=str(e),
            ) from e

        result: Optional[Dict[str, Any]] = response.json() if response.content else {}
        if result and result.get("success") is False:
            raise LedgerTransferError(
                f"Ledger refused bonus {operation}",
                bonus_id=bonus_id,
                operation=operation,
                reason=result.get("error") or result.get("message"),
            )

        logger.debug(f"Ledger recorded bonus {operation} for {bonus_id}")
        return result or {}

    async def close(self):
        """Close the HTTP client connection"""
        await self.client.aclose()
        logger.info("LedgerClient connection closed")
