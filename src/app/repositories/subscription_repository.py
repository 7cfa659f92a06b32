"""Subscription Repository Interface

Defines the contract for subscription persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from src.domain.subscription import Subscription


class SubscriptionRepository(ABC):
    """
    Repository interface for Subscription persistence

    Subscriptions are keyed by (provider, provider_subscription_id) and are
    only written by payment settlement and user cancellation.
    """

    @abstractmethod
    async def upsert_active(
        self,
        user_id: int,
        product_id: int,
        provider: str,
        provider_subscription_id: Optional[str],
        period_start: datetime,
        period_end: datetime,
    ) -> int:
        """
        Insert or re-activate a subscription

        On conflict the product and period are replaced, status is forced to
        active and any cancellation timestamp is cleared.

        Returns:
            Subscription ID
        """
        pass

    @abstractmethod
    async def cancel_by_provider_id(
        self, provider: str, provider_subscription_id: str, canceled_at: datetime
    ) -> int:
        """
        Mark the provider's subscription as canceled, keeping its period

        Returns:
            Number of rows updated (0 when unknown)
        """
        pass

    @abstractmethod
    async def cancel_for_user(
        self, user_id: int, subscription_id: int, canceled_at: datetime
    ) -> bool:
        """
        User-initiated cancellation

        Returns:
            True if the subscription exists and belongs to the user
        """
        pass

    @abstractmethod
    async def get_effective(
        self, user_id: int, now: datetime
    ) -> Optional[Tuple[Subscription, int]]:
        """
        Subscription that grants quota at `now`

        Newest active or canceled subscription whose period has not ended.

        Returns:
            (Subscription, product monthly_credits) or None
        """
        pass

    @abstractmethod
    async def list_for_user(self, user_id: int) -> List[Subscription]:
        pass

    @abstractmethod
    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        pass
