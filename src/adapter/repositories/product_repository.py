"""SQLAlchemy implementation of ProductRepository"""

from typing import List, Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.product_repository import ProductRepository
from src.domain.product import Product


class SqlAlchemyProductRepository(ProductRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, product_id: int) -> Optional[Product]:
        statement = select(Product).where(Product.id == product_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str, active_only: bool = True) -> Optional[Product]:
        statement = select(Product).where(Product.slug == slug)
        if active_only:
            statement = statement.where(Product.is_active == True)  # noqa: E712
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_offer_id(self, offer_id: str) -> Optional[Product]:
        statement = select(Product).where(Product.provider_offer_id == offer_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Product]:
        statement = (
            select(Product)
            .where(Product.is_active == True)  # noqa: E712
            .order_by(Product.price.asc(), Product.id.asc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
