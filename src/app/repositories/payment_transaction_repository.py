"""Payment Transaction Repository Interface

Defines the contract for the transaction ledger. Idempotency rests on the
unique (provider, provider_order_id) key and on transitions that only
succeed while the row is still pending.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional
from src.domain.payment_transaction import PaymentTransaction, TransactionStatus


class PaymentTransactionRepository(ABC):
    """Repository interface for PaymentTransaction persistence"""

    @abstractmethod
    async def get_by_order_id(self, provider: str, order_id: str) -> Optional[PaymentTransaction]:
        """
        Retrieve transaction by its provider order id

        Args:
            provider: Payment provider name
            order_id: Provider order/contract id

        Returns:
            PaymentTransaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_parent_reference(
        self, provider: str, parent_order_id: str
    ) -> Optional[PaymentTransaction]:
        """
        Retrieve a transaction of the contract `parent_order_id`

        Matches the originating row (provider_order_id == parent) or any
        recurring row that carries it as provider_parent_order_id.
        """
        pass

    @abstractmethod
    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """
        Create a new transaction

        Raises:
            IntegrityError: If (provider, provider_order_id) already exists
        """
        pass

    @abstractmethod
    async def insert_if_absent(self, transaction: PaymentTransaction) -> bool:
        """
        Insert the transaction unless its order id is already recorded

        Returns:
            True if a row was inserted
        """
        pass

    @abstractmethod
    async def transition(
        self,
        transaction_id: int,
        status: TransactionStatus,
        payload: Dict[str, Any],
        paid_at: Optional[datetime] = None,
        parent_order_id: Optional[str] = None,
    ) -> bool:
        """
        Move a pending transaction to `status`

        The update only applies while the row is still pending; a concurrent
        delivery that already settled it makes this a no-op.

        Args:
            transaction_id: Transaction ID
            status: Terminal status to set
            payload: Full audit payload to store
            paid_at: Settlement timestamp (successful payments)
            parent_order_id: Filled in when the row has none yet

        Returns:
            True if this call performed the transition
        """
        pass

    @abstractmethod
    async def update_pending_payload(self, transaction_id: int, payload: Dict[str, Any]) -> bool:
        """Replace the audit payload of a still-pending transaction"""
        pass

    @abstractmethod
    async def link_subscription(self, transaction_id: int, subscription_id: int) -> None:
        pass
