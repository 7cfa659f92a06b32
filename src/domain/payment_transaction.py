"""Payment Transaction Domain Entity

One purchase attempt at the payment provider. The row is the idempotency
anchor for every webhook that references its order id.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import ForeignKey, JSON, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from src.domain.base import BaseModel, IdType


ORDER_ID_MAX_LENGTH = 255
CURRENCY_LENGTH = 3
# Largest value of Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


class TransactionStatus(str, Enum):
    """Transaction settlement states"""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionType(str, Enum):
    """Direction of money movement"""
    PAYMENT = "payment"
    REFUND = "refund"


TERMINAL_STATUSES = (TransactionStatus.SUCCEEDED, TransactionStatus.FAILED)

AuditPayload = JSON().with_variant(JSONB(), "postgresql")


def append_observation(payload: Optional[Dict[str, Any]], raw: Any) -> Dict[str, Any]:
    """
    Return a copy of the audit payload with `raw` appended to its events

    Keys other than "events" (e.g. the checkout "intent") are preserved as-is.
    """
    merged = dict(payload or {})
    events = list(merged.get("events") or [])
    events.append(raw)
    merged["events"] = events
    return merged


class PaymentTransaction(BaseModel, table=True):
    """
    Payment Transaction - Purchase attempt and its settlement

    Domain Rules:
    - (provider, provider_order_id) is unique: one row per provider payment
    - status only advances pending -> succeeded | failed
    - succeeded and failed are terminal and never change again
    - provider_parent_order_id links recurring charges to the subscription contract
    - payload accumulates every observed provider event for audit
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint('provider', 'provider_order_id', name='uq_transactions_provider_order'),
        Index('ix_transactions_parent_order', 'provider', 'provider_parent_order_id'),
        Index('ix_transactions_user_id', 'user_id'),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique transaction identifier (auto-increment)"
    )

    user_id: int = Field(
        sa_column=Column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        description="Buyer"
    )

    product_id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, ForeignKey("products.id", ondelete="SET NULL"), nullable=True),
        description="Purchased product (None once decoupled from the catalog)"
    )

    subscription_id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True),
        description="Subscription activated or renewed by this payment"
    )

    provider: str = Field(
        sa_column=Column(String(50), nullable=False),
        description="Payment provider name"
    )

    provider_order_id: str = Field(
        sa_column=Column(String(ORDER_ID_MAX_LENGTH), nullable=False),
        description="Order/contract id at the provider"
    )

    provider_parent_order_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(ORDER_ID_MAX_LENGTH), nullable=True),
        description="Originating contract id for recurring charges"
    )

    transaction_type: TransactionType = Field(default=TransactionType.PAYMENT)

    status: TransactionStatus = Field(default=TransactionStatus.PENDING)

    amount: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Charged amount"
    )

    currency: str = Field(
        sa_column=Column(String(CURRENCY_LENGTH), nullable=False),
    )

    payload: Optional[Dict[str, Any]] = Field(
        default=None,
        sa_column=Column(AuditPayload, nullable=True),
        description="Checkout intent and observed provider events"
    )

    paid_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Transaction creation timestamp"
    )

    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": 10,
                "user_id": 42,
                "product_id": 1,
                "provider": "lava",
                "provider_order_id": "7ea82675-4ded-4133-95a7-a6efbaf165cc",
                "provider_parent_order_id": None,
                "status": "succeeded",
                "amount": "4.99",
                "currency": "USD",
                "payload": {"intent": {"product_slug": "pack-3"}, "events": []},
                "paid_at": "2024-01-01T00:00:00Z",
            }
        }
