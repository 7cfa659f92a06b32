"""Request schemas for Billing API

Pydantic models for validating incoming HTTP requests.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

from src.domain.credit_account import CreditKind


class ConsumeRequestSchema(BaseModel):
    """
    Request schema for consuming one credit

    Used for POST /billing/credits/consume endpoint.
    """

    user_id: int = Field(
        ...,
        gt=0,
        description="User identifier"
    )

    credit_kind: Optional[CreditKind] = Field(
        default=None,
        description="Balance to charge; picked automatically when omitted"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "credit_kind": "monthly"
            }
        }


class PaymentIntentRequestSchema(BaseModel):
    """
    Request schema for registering a purchase before the provider redirect

    Used for POST /billing/payments/intents endpoint.
    """

    user_id: int = Field(
        ...,
        gt=0,
        description="Buyer"
    )

    product_slug: str = Field(
        ...,
        min_length=1,
        description="Catalog slug of the product being bought"
    )

    provider_order_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Order/contract id returned by the provider's invoice API"
    )

    @field_validator('product_slug', 'provider_order_id')
    @classmethod
    def strip_identifiers(cls, v):
        """Reject identifiers made of whitespace only"""
        v = v.strip()
        if not v:
            raise ValueError("Identifier must not be blank")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "product_slug": "pro-monthly",
                "provider_order_id": "a1b2c3d4-0000-4000-8000-000000000001"
            }
        }
