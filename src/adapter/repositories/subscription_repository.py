"""SQLAlchemy Subscription Repository Implementation

Implements subscription persistence using SQLAlchemy async session.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.repositories.dialect import conflict_insert
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.product import Product
from src.domain.subscription import EFFECTIVE_STATUSES, Subscription, SubscriptionStatus


class SqlAlchemySubscriptionRepository(SubscriptionRepository):
    """
    SQLAlchemy implementation of SubscriptionRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

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
        Insert or re-activate a subscription with INSERT ... ON CONFLICT

        Args:
            user_id: Subscriber
            product_id: Subscribed product
            provider: Payment provider name
            provider_subscription_id: Parent contract id at the provider
            period_start: Start of the paid period
            period_end: End of the paid period

        Returns:
            Subscription ID
        """
        now = datetime.utcnow()
        insert_stmt = conflict_insert(self.session, Subscription).values(
            user_id=user_id,
            product_id=product_id,
            provider=provider,
            provider_subscription_id=provider_subscription_id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=period_start,
            current_period_end=period_end,
            canceled_at=None,
            created_at=now,
            updated_at=now,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=["provider", "provider_subscription_id"],
            set_={
                "product_id": insert_stmt.excluded.product_id,
                "status": insert_stmt.excluded.status,
                "current_period_start": insert_stmt.excluded.current_period_start,
                "current_period_end": insert_stmt.excluded.current_period_end,
                "canceled_at": None,
                "updated_at": insert_stmt.excluded.updated_at,
            },
        ).returning(Subscription.id)

        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def cancel_by_provider_id(
        self, provider: str, provider_subscription_id: str, canceled_at: datetime
    ) -> int:
        stmt = (
            update(Subscription)
            .where(
                Subscription.provider == provider,
                Subscription.provider_subscription_id == provider_subscription_id,
            )
            .values(
                status=SubscriptionStatus.CANCELED,
                canceled_at=canceled_at,
                updated_at=canceled_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def cancel_for_user(
        self, user_id: int, subscription_id: int, canceled_at: datetime
    ) -> bool:
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.user_id == user_id,
            )
            .values(
                status=SubscriptionStatus.CANCELED,
                canceled_at=canceled_at,
                updated_at=canceled_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_effective(
        self, user_id: int, now: datetime
    ) -> Optional[Tuple[Subscription, int]]:
        """
        Subscription that grants quota at `now`

        A canceled subscription still counts until its period ends.

        Returns:
            (Subscription, monthly_credits) or None
        """
        statement = (
            select(Subscription, Product.monthly_credits)
            .join(Product, Product.id == Subscription.product_id)
            .where(
                Subscription.user_id == user_id,
                Subscription.status.in_(EFFECTIVE_STATUSES),
                or_(
                    Subscription.current_period_end.is_(None),
                    Subscription.current_period_end > now,
                ),
            )
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        row = result.first()
        if row is None:
            return None
        subscription, monthly_credits = row
        return subscription, monthly_credits or 0

    async def list_for_user(self, user_id: int) -> List[Subscription]:
        statement = (
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        statement = (
            select(Subscription)
            .where(Subscription.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()
