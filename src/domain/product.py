"""Product Domain Entity

Catalog entry sold through the payment provider. The catalog is maintained
outside of the billing core; the ledger only reads it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import Numeric, String, Text
from src.domain.base import BaseModel, IdType


class ProductType(str, Enum):
    """Purchase models"""
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"


class Product(BaseModel, table=True):
    """
    Product - Credit pack or subscription plan

    Domain Rules:
    - slug is the immutable business key
    - one_time products carry credits_granted
    - subscription products carry monthly_credits
    - provider_offer_id maps the product to the provider's offer
    """

    __tablename__ = "products"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique product identifier (auto-increment)"
    )

    slug: str = Field(
        sa_column=Column(String(100), nullable=False, unique=True, index=True),
        description="Immutable business key"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Display name"
    )

    description: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )

    product_type: ProductType = Field(
        description="Purchase model (one_time, subscription)"
    )

    price: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Price in currency units"
    )

    currency: str = Field(
        sa_column=Column(String(3), nullable=False),
        description="ISO currency code"
    )

    credits_granted: Optional[int] = Field(
        default=None,
        description="Credits added per purchase (one_time only)"
    )

    monthly_credits: Optional[int] = Field(
        default=None,
        description="Quota granted each period (subscription only)"
    )

    provider_offer_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True, unique=True, index=True),
        description="Offer identifier at the payment provider"
    )

    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def is_subscription(self) -> bool:
        return self.product_type == ProductType.SUBSCRIPTION

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "slug": "pack-3",
                "name": "3 clean videos",
                "product_type": "one_time",
                "price": "4.99",
                "currency": "USD",
                "credits_granted": 3,
                "monthly_credits": None,
                "provider_offer_id": "d31384b8-e412-4be5-a2ec-297ae6666c8f",
                "is_active": True,
            }
        }
