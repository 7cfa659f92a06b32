"""SQLAlchemy implementation of PaymentTransactionRepository

Idempotency is enforced by the database: the unique
(provider, provider_order_id) constraint rejects duplicate rows and status
transitions are guarded by `WHERE status = 'pending'`.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import func, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.repositories.dialect import conflict_insert
from src.app.repositories.payment_transaction_repository import PaymentTransactionRepository
from src.domain.payment_transaction import PaymentTransaction, TransactionStatus


class SqlAlchemyPaymentTransactionRepository(PaymentTransactionRepository):
    """
    SQLAlchemy implementation of PaymentTransactionRepository

    Features:
    - INSERT ... ON CONFLICT DO NOTHING for webhook-synthesized rows
    - Conditional pending -> terminal transitions
    - Reads refresh identity-map state so replays see committed statuses
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_order_id(self, provider: str, order_id: str) -> Optional[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(
                PaymentTransaction.provider == provider,
                PaymentTransaction.provider_order_id == order_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_parent_reference(
        self, provider: str, parent_order_id: str
    ) -> Optional[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(
                PaymentTransaction.provider == provider,
                or_(
                    PaymentTransaction.provider_order_id == parent_order_id,
                    PaymentTransaction.provider_parent_order_id == parent_order_id,
                ),
            )
            .order_by(PaymentTransaction.id.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """
        Create a new payment transaction

        Args:
            transaction: PaymentTransaction entity to persist

        Returns:
            Created PaymentTransaction with generated ID

        Raises:
            IntegrityError: If the provider order id is already recorded
        """
        self.session.add(transaction)
        await self.session.flush()
        await self.session.refresh(transaction)
        return transaction

    async def insert_if_absent(self, transaction: PaymentTransaction) -> bool:
        now = datetime.utcnow()
        stmt = conflict_insert(self.session, PaymentTransaction).values(
            user_id=transaction.user_id,
            product_id=transaction.product_id,
            subscription_id=transaction.subscription_id,
            provider=transaction.provider,
            provider_order_id=transaction.provider_order_id,
            provider_parent_order_id=transaction.provider_parent_order_id,
            transaction_type=transaction.transaction_type,
            status=transaction.status,
            amount=transaction.amount,
            currency=transaction.currency,
            payload=transaction.payload,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(
            index_elements=["provider", "provider_order_id"],
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def transition(
        self,
        transaction_id: int,
        status: TransactionStatus,
        payload: Dict[str, Any],
        paid_at: Optional[datetime] = None,
        parent_order_id: Optional[str] = None,
    ) -> bool:
        values = {
            "status": status,
            "payload": payload,
            "updated_at": datetime.utcnow(),
        }
        if paid_at is not None:
            values["paid_at"] = paid_at
        if parent_order_id is not None:
            values["provider_parent_order_id"] = func.coalesce(
                PaymentTransaction.provider_parent_order_id, parent_order_id
            )

        stmt = (
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == transaction_id,
                PaymentTransaction.status == TransactionStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update_pending_payload(self, transaction_id: int, payload: Dict[str, Any]) -> bool:
        stmt = (
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == transaction_id,
                PaymentTransaction.status == TransactionStatus.PENDING,
            )
            .values(payload=payload, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def link_subscription(self, transaction_id: int, subscription_id: int) -> None:
        stmt = (
            update(PaymentTransaction)
            .where(PaymentTransaction.id == transaction_id)
            .values(subscription_id=subscription_id, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
