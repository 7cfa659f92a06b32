"""Credit Account Domain Entity

Credit fields of a user account. The account row itself belongs to the
auth/account service; the billing core mutates only the credit fields.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import CheckConstraint, String
from src.domain.base import BaseModel, IdType


class CreditKind(str, Enum):
    """Balance a single feature use is charged against"""
    MONTHLY = "monthly"
    ONE_TIME = "one_time"
    FREE = "free"


class CreditAccount(BaseModel, table=True):
    """
    Credit Account - Balances that gate the processing feature

    Domain Rules:
    - credits and monthly_quota are never negative
    - monthly_quota is reset (set, not added) from the effective subscription
    - quota_reset_at NULL means the quota resets on the next check
    - free_generation_used flips once per account lifetime
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint('credits >= 0', name='credits_non_negative'),
        CheckConstraint('monthly_quota >= 0', name='monthly_quota_non_negative'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="User identifier"
    )

    email: str = Field(
        sa_column=Column(String(320), nullable=False, unique=True, index=True),
        description="Login email, also the buyer email at the provider"
    )

    credits: int = Field(
        default=0,
        description="One-time credit balance"
    )

    monthly_quota: int = Field(
        default=0,
        description="Subscription-sourced balance for the current period"
    )

    quota_reset_at: Optional[datetime] = Field(
        default=None,
        description="Next scheduled quota reset"
    )

    free_generation_used: bool = Field(
        default=False,
        description="Complimentary use consumed"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)

    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def available_kind(self) -> Optional[CreditKind]:
        """Balance to charge next: monthly, then one-time, then the free use"""
        if self.monthly_quota > 0:
            return CreditKind.MONTHLY
        if self.credits > 0:
            return CreditKind.ONE_TIME
        if not self.free_generation_used:
            return CreditKind.FREE
        return None

    def has_balance(self, kind: CreditKind) -> bool:
        """Whether one use can be charged to `kind`"""
        if kind == CreditKind.MONTHLY:
            return self.monthly_quota > 0
        if kind == CreditKind.ONE_TIME:
            return self.credits > 0
        return not self.free_generation_used

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 42,
                "email": "buyer@example.com",
                "credits": 3,
                "monthly_quota": 12,
                "quota_reset_at": "2024-02-01T00:00:00Z",
                "free_generation_used": True,
            }
        }
