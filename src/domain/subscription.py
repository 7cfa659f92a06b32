"""Subscription Domain Entity

Tracks a user's standing access to a subscription product.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, String, UniqueConstraint
from src.domain.base import BaseModel, IdType


class SubscriptionStatus(str, Enum):
    """Subscription status types"""
    ACTIVE = "active"
    CANCELED = "canceled"


# Statuses that can still grant quota while the period runs
EFFECTIVE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED)


class Subscription(BaseModel, table=True):
    """
    Subscription - User access to a subscription product

    Domain Rules:
    - (provider, provider_subscription_id) is unique; the provider id is the
      parent contract id and stays the same across renewals
    - Status transitions: active -> canceled; a renewal re-activates
    - A canceled subscription keeps granting quota until current_period_end
    - Cancellation never touches the period window
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint('provider', 'provider_subscription_id', name='uq_subscriptions_provider_id'),
        Index('ix_subscriptions_user_id', 'user_id'),
        Index('ix_subscriptions_status', 'status'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique subscription identifier (auto-increment)"
    )

    user_id: int = Field(
        sa_column=Column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        description="Subscriber"
    )

    product_id: int = Field(
        sa_column=Column(IdType, ForeignKey("products.id"), nullable=False),
        description="Subscribed product"
    )

    provider: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Payment provider name"
    )

    provider_subscription_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Parent contract id at the provider"
    )

    status: SubscriptionStatus = Field(
        description="Subscription status (active, canceled)"
    )

    current_period_start: Optional[datetime] = Field(default=None)

    current_period_end: Optional[datetime] = Field(default=None)

    canceled_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Subscription creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last update timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 1,
                "user_id": 42,
                "product_id": 2,
                "provider": "lava",
                "provider_subscription_id": "7ea82675-4ded-4133-95a7-a6efbaf165cc",
                "status": "active",
                "current_period_start": "2024-01-01T00:00:00Z",
                "current_period_end": "2024-01-31T00:00:00Z",
                "canceled_at": None,
            }
        }
