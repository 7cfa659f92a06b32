"""SQLAlchemy implementation of CreditAccountRepository

Balance mutations are single UPDATE statements evaluated by the database,
so concurrent requests never read-modify-write a stale balance.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import case, func, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.domain.credit_account import CreditAccount, CreditKind


class SqlAlchemyCreditAccountRepository(CreditAccountRepository):
    """
    SQLAlchemy implementation of CreditAccountRepository

    Features:
    - Atomic increments and floored decrements
    - Conditional quota reset (only one concurrent caller wins)
    - Reads bypass stale identity-map state
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int, for_update: bool = False) -> Optional[CreditAccount]:
        """
        Retrieve account by user ID with optional row-level locking

        Args:
            user_id: User identifier
            for_update: If True, locks the row with SELECT FOR UPDATE

        Returns:
            CreditAccount if found, None otherwise
        """
        stmt = (
            select(CreditAccount)
            .where(CreditAccount.id == user_id)
            .execution_options(populate_existing=True)
        )

        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[CreditAccount]:
        stmt = (
            select(CreditAccount)
            .where(func.lower(CreditAccount.email) == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create(self, account: CreditAccount) -> CreditAccount:
        self.session.add(account)
        await self.session.flush()
        await self.session.refresh(account)
        return account

    async def grant_one_time(self, user_id: int, amount: int) -> None:
        await self._update(
            user_id,
            credits=CreditAccount.credits + amount,
        )

    async def set_monthly_quota(self, user_id: int, amount: int, reset_at: datetime) -> None:
        await self._update(
            user_id,
            monthly_quota=amount,
            quota_reset_at=reset_at,
        )

    async def reset_quota_if_due(
        self, user_id: int, amount: int, now: datetime, reset_at: datetime
    ) -> bool:
        stmt = (
            update(CreditAccount)
            .where(
                CreditAccount.id == user_id,
                or_(
                    CreditAccount.quota_reset_at.is_(None),
                    CreditAccount.quota_reset_at <= now,
                ),
            )
            .values(monthly_quota=amount, quota_reset_at=reset_at, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def consume(self, user_id: int, kind: CreditKind) -> None:
        if kind == CreditKind.MONTHLY:
            await self._update(
                user_id,
                monthly_quota=case(
                    (CreditAccount.monthly_quota > 0, CreditAccount.monthly_quota - 1),
                    else_=0,
                ),
            )
        elif kind == CreditKind.FREE:
            await self._update(user_id, free_generation_used=True)
        else:
            await self._update(
                user_id,
                credits=case(
                    (CreditAccount.credits > 0, CreditAccount.credits - 1),
                    else_=0,
                ),
            )

    async def _update(self, user_id: int, **values) -> None:
        stmt = (
            update(CreditAccount)
            .where(CreditAccount.id == user_id)
            .values(updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
