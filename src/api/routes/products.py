"""Product Catalog Routes"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.payments.dtos import ProductDTO
from src.app.use_cases.payments.list_products import ListProducts
from src.adapter.repositories.product_repository import SqlAlchemyProductRepository
from src.depends import get_session, subscriptions_enabled
from src.api.error import ClientError

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=List[ProductDTO],
    status_code=status.HTTP_200_OK,
)
async def list_products(
    session: AsyncSession = Depends(get_session),
    enabled: bool = Depends(subscriptions_enabled),
):
    """
    List purchasable products.

    Subscription plans are hidden while subscriptions are disabled.

    **Returns:**
    - 200: Active products, cheapest first
    """
    use_case = ListProducts(SqlAlchemyProductRepository(session), subscriptions_enabled=enabled)
    result = await use_case.execute()

    if result.is_err():
        raise ClientError(result.error)

    return result.value
