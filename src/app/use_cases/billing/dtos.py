"""Data Transfer Objects for Billing Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from src.domain.credit_account import CreditKind
from src.domain.subscription import Subscription


class ConsumeCommandDTO(BaseModel):
    """
    Command DTO for charging one feature use

    Used as input to ConsumeCredit use case.
    """

    user_id: int = Field(
        ...,
        description="User identifier"
    )

    credit_kind: Optional[CreditKind] = Field(
        default=None,
        description="Balance to charge; picked automatically (monthly, one_time, free) when omitted"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "credit_kind": None,
            }
        }


class CreditAvailabilityDTO(BaseModel):
    """
    Response DTO for the credit availability check

    credit_kind is None when the user has nothing left to spend.
    """

    user_id: int
    credit_kind: Optional[CreditKind] = None
    can_consume: bool

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "credit_kind": "monthly",
                "can_consume": True,
            }
        }


class BalanceResponseDTO(BaseModel):
    """
    Response DTO for credit balances

    Returned by GetBalance and ConsumeCredit.
    """

    user_id: int = Field(
        ...,
        description="User identifier"
    )

    credits: int = Field(
        ...,
        description="One-time credit balance"
    )

    monthly_quota: int = Field(
        ...,
        description="Remaining subscription quota for the current period"
    )

    quota_reset_at: Optional[datetime] = Field(
        default=None,
        description="Next scheduled quota reset"
    )

    free_generation_used: bool = Field(
        ...,
        description="Whether the complimentary use is spent"
    )

    last_updated: datetime = Field(
        ...,
        description="Timestamp of last balance update"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": 42,
                "credits": 3,
                "monthly_quota": 11,
                "quota_reset_at": "2024-02-01T00:00:00Z",
                "free_generation_used": True,
                "last_updated": "2024-01-05T10:00:00Z"
            }
        }


class ConsumeResponseDTO(BaseModel):
    """Response DTO for ConsumeCredit"""

    credit_kind: CreditKind = Field(
        ...,
        description="Balance that was charged"
    )

    balance: BalanceResponseDTO


class SubscriptionDTO(BaseModel):
    id: int
    user_id: int
    product_id: int
    provider: str
    provider_subscription_id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, subscription: Subscription) -> "SubscriptionDTO":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            product_id=subscription.product_id,
            provider=subscription.provider,
            provider_subscription_id=subscription.provider_subscription_id,
            status=subscription.status.value,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            canceled_at=subscription.canceled_at,
            created_at=subscription.created_at,
        )


class EffectiveSubscriptionDTO(BaseModel):
    """
    Subscription currently granting quota

    Returned by GetEffectiveSubscription.
    """

    subscription: SubscriptionDTO

    monthly_credits: int = Field(
        ...,
        description="Quota the subscription's product grants per period"
    )
