"""List Products Use Case"""

from typing import List
from libs.result import Result, Return
from src.app.repositories.product_repository import ProductRepository
from src.domain.product import ProductType
from .dtos import ProductDTO


class ListProducts:
    """
    Read-only catalog listing

    Subscription products are hidden while subscription sales are disabled.
    """

    def __init__(self, product_repo: ProductRepository, subscriptions_enabled: bool = True):
        self.product_repo = product_repo
        self.subscriptions_enabled = subscriptions_enabled

    async def execute(self) -> Result[List[ProductDTO]]:
        products = await self.product_repo.list_active()
        if not self.subscriptions_enabled:
            products = [p for p in products if p.product_type != ProductType.SUBSCRIPTION]

        return Return.ok(
            [
                ProductDTO(
                    id=p.id,
                    slug=p.slug,
                    name=p.name,
                    description=p.description,
                    product_type=p.product_type.value,
                    price=p.price,
                    currency=p.currency,
                    credits_granted=p.credits_granted,
                    monthly_credits=p.monthly_credits,
                )
                for p in products
            ]
        )
