"""
Account Service Client for Purchase Service

HTTP client for buyer lookup against account_service
"""

import httpx
import logging
from typing import Optional, Dict, Any

from ..models import Buyer
from ..protocols import ResolverUnavailableError

logger = logging.getLogger(__name__)


class AccountClient:
    """Client for account_service (identity resolver)"""

    def __init__(
        self,
        base_url: str = "http://localhost:8202",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Account Service client

        Args:
            base_url: Account service base URL
            timeout: Request timeout in seconds
            client: Optional pre-built httpx client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"AccountClient initialized with base_url: {self.base_url}")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_account_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get user account profile

        Args:
            user_id: User ID

        Returns:
            User profile, or None if the user does not exist

        Raises:
            ResolverUnavailableError: account_service could not answer
        """
        try:
            response = await self.client.get(
                f"{self.base_url}/api/v1/account/users/{user_id}/profile"
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info(f"User {user_id} not found")
                return None
            logger.error(f"Failed to get account profile: {e.response.status_code}")
            raise ResolverUnavailableError(
                f"account_service returned {e.response.status_code} for {user_id}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Error getting account profile: {e}")
            raise ResolverUnavailableError(f"account_service unreachable: {e}") from e

    async def resolve_buyer(self, buyer_id: str) -> Optional[Buyer]:
        """
        Resolve a buyer id to a confirmed buyer

        Inactive accounts resolve to None, like unknown ones.
        """
        profile = await self.get_account_profile(buyer_id)
        if not profile:
            return None
        if profile.get("is_active") is False:
            logger.info(f"User {buyer_id} is inactive")
            return None

        name = profile.get("name") or profile.get("email") or buyer_id
        return Buyer(buyer_id=profile.get("user_id") or buyer_id, name=name)

    async def health_check(self) -> bool:
        """Check if account service is healthy"""
        try:
            response = await self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
