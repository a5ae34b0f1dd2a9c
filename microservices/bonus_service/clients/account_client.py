"""
Account Service HTTP Client

Provides async HTTP client for communicating with account_service.
Implements AccountClientProtocol for dependency injection.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class AccountClient:
    """Async HTTP client for account_service"""

    def __init__(self, base_url: str = "http://localhost:8202", timeout: float = 10.0, config=None):
        """
        Initialize AccountClient

        Args:
            base_url: Base URL for account_service
            timeout: Request timeout in seconds
            config: BonusServiceConfig (overrides base_url and timeout)
        """
        if config:
            base_url = config.account_service_url
            timeout = config.http_timeout
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)
        logger.info(f"AccountClient initialized with base_url: {self.base_url}")

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user from account_service

        Returns:
            User data dictionary or None if not found or unreachable
        """
        try:
            response = await self.client.get(
                f"{self.base_url}/api/v1/users/{user_id}",
                headers={"X-Internal-Call": "true"}
            )
            if response.status_code == 404:
                logger.info(f"User not found: {user_id}")
                return None
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error getting user {user_id}: {e.response.status_code}")
            return None
        except httpx.RequestError as e:
            logger.error(f"Request error getting user {user_id}: {e}")
            return None

    async def has_user_flag(self, user_id: str, flag: str) -> bool:
        """
        Whether the account carries a first-time flag such as has_made_first_deposit.

        Flags are read from the user record or its metadata. An unreachable
        account service counts as "flag not set"; the claim-key index still
        stops a second first-time award.
        """
        user = await self.get_user(user_id)
        if not user:
            return False
        if user.get(flag) is not None:
            return bool(user[flag])
        return bool((user.get("metadata") or {}).get(flag, False))

    async def close(self):
        """Close the HTTP client connection"""
        await self.client.aclose()
        logger.info("AccountClient connection closed")
