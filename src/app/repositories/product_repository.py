"""Product Repository Interface

Read-only access to the product catalog.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from src.domain.product import Product


class ProductRepository(ABC):
    """Repository interface for catalog lookups"""

    @abstractmethod
    async def get_by_id(self, product_id: int) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_by_slug(self, slug: str, active_only: bool = True) -> Optional[Product]:
        """
        Retrieve product by its business key

        Args:
            slug: Product slug
            active_only: Ignore products that are no longer on sale

        Returns:
            Product if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_offer_id(self, offer_id: str) -> Optional[Product]:
        """
        Retrieve product by the provider's offer identifier

        Used to resolve webhooks that arrive without a local purchase intent.
        """
        pass

    @abstractmethod
    async def list_active(self) -> List[Product]:
        """Active products, cheapest first"""
        pass
