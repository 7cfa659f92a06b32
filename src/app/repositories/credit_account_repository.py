"""Credit Account Repository Interface

Defines the contract for reading and atomically mutating user balances.
Every mutation is a single conditional UPDATE so concurrent requests can
never drive a balance below zero or double-apply a reset.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from src.domain.credit_account import CreditAccount, CreditKind


class CreditAccountRepository(ABC):
    """Repository interface for CreditAccount persistence"""

    @abstractmethod
    async def get_by_id(self, user_id: int, for_update: bool = False) -> Optional[CreditAccount]:
        """
        Retrieve account by user ID with optional row-level locking

        Args:
            user_id: User identifier
            for_update: If True, locks the row with SELECT FOR UPDATE

        Returns:
            CreditAccount if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[CreditAccount]:
        """Retrieve account by email (case-insensitive)"""
        pass

    @abstractmethod
    async def create(self, account: CreditAccount) -> CreditAccount:
        pass

    @abstractmethod
    async def grant_one_time(self, user_id: int, amount: int) -> None:
        """
        Add one-time credits

        Args:
            user_id: User identifier
            amount: Credits to add (credits += amount)
        """
        pass

    @abstractmethod
    async def set_monthly_quota(self, user_id: int, amount: int, reset_at: datetime) -> None:
        """
        Set (not add) the monthly quota and schedule the next reset

        Args:
            user_id: User identifier
            amount: New monthly quota
            reset_at: When the quota resets next
        """
        pass

    @abstractmethod
    async def reset_quota_if_due(
        self, user_id: int, amount: int, now: datetime, reset_at: datetime
    ) -> bool:
        """
        Reset the monthly quota only when quota_reset_at is NULL or <= now

        Returns:
            True if this call performed the reset
        """
        pass

    @abstractmethod
    async def consume(self, user_id: int, kind: CreditKind) -> None:
        """
        Charge one use against the given balance

        Counters are decremented by one and floored at zero; the free
        allowance flips free_generation_used instead.
        """
        pass
