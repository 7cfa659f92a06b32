"""Data Transfer Objects for Payment Use Cases

Pydantic models for command inputs, configuration and response outputs.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class PaymentWebhookConfig(BaseModel):
    """
    Settings the reconciler is constructed with

    Built once by the API layer from application config.
    """

    provider: str = Field(
        default="lava",
        description="Provider name stored on transactions and subscriptions"
    )

    webhook_secret: str = Field(
        ...,
        description="Shared secret the provider sends with every webhook"
    )

    subscription_period_days: int = Field(
        default=30,
        gt=0,
        description="Length of a paid subscription period and of the quota cycle"
    )

    store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for the store work of one webhook"
    )


class WebhookCommandDTO(BaseModel):
    """
    Command DTO for an inbound payment webhook

    Secrets from the header and query string are passed separately; a secret
    embedded in the body is read after decoding.
    """

    body: bytes = Field(..., description="Raw request body")

    content_type: Optional[str] = Field(
        default=None,
        description="Content-Type header, used as a decoding hint"
    )

    header_secret: Optional[str] = Field(
        default=None,
        description="Value of the X-Api-Key header"
    )

    query_secret: Optional[str] = Field(
        default=None,
        description="api_key / apiKey query parameter"
    )


class WebhookAckDTO(BaseModel):
    """
    Acknowledgement returned to the provider

    Exactly one marker is set when the event had no (new) effect.
    """

    ok: bool = True
    ignored: Optional[bool] = None
    idempotent: Optional[bool] = None
    canceled: Optional[bool] = None
    missing_product: Optional[bool] = None
    transaction_id: Optional[int] = None
    reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {"ok": True, "transaction_id": 10}
        }


class RegisterPaymentIntentCommandDTO(BaseModel):
    """Command DTO for recording a checkout before the provider redirect"""

    user_id: int = Field(..., description="Buyer")

    product_slug: str = Field(..., description="Product being purchased")

    provider_order_id: str = Field(
        ...,
        description="Order/contract id returned by the provider's invoice API"
    )


class PaymentIntentResponseDTO(BaseModel):
    transaction_id: int
    provider: str
    provider_order_id: str
    provider_parent_order_id: Optional[str] = None
    amount: Decimal
    currency: str
    status: str
    created_at: datetime


class ProductDTO(BaseModel):
    """Catalog entry as exposed to clients"""

    id: int
    slug: str
    name: str
    description: Optional[str] = None
    product_type: str
    price: Decimal
    currency: str
    credits_granted: Optional[int] = None
    monthly_credits: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": 2,
                "slug": "pro-monthly",
                "name": "Pro",
                "description": "12 clean videos every month",
                "product_type": "subscription",
                "price": "9.99",
                "currency": "USD",
                "credits_granted": None,
                "monthly_credits": 12,
            }
        }
