"""Payment Event Value Objects

Canonical, provider-agnostic view of a payment webhook and the semantic
labels the classifier attaches to it.
"""

from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from src.domain.product import ProductType


class EventOutcome(str, Enum):
    """What the event says happened to the payment"""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLATION = "cancellation"
    INDETERMINATE = "indeterminate"


class PaymentKind(str, Enum):
    """Which purchase stage the event belongs to"""
    FIRST_PAYMENT = "first_payment"
    RECURRING_PAYMENT = "recurring_payment"
    UNCLASSIFIED = "unclassified"

    def accepts(self, product_type: ProductType) -> bool:
        """
        Whether a product of `product_type` may be settled by this kind

        A subscription's first charge arrives as a plain payment event, so
        first payments accept both product types; recurring charges only
        make sense for subscriptions.
        """
        if self == PaymentKind.RECURRING_PAYMENT:
            return product_type == ProductType.SUBSCRIPTION
        if self == PaymentKind.FIRST_PAYMENT:
            return product_type in (ProductType.ONE_TIME, ProductType.SUBSCRIPTION)
        return True


class PaymentEvent(BaseModel):
    """
    Canonical payment webhook

    Every field is optional; `raw` keeps the full decoded body so nothing
    the provider sent is lost.
    """

    event_type: Optional[str] = None
    order_id: Optional[str] = None
    parent_order_id: Optional[str] = None
    status: Optional[str] = None
    paid: Optional[bool] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    buyer_email: Optional[str] = None
    product_offer_id: Optional[str] = None
    custom_fields: Optional[Any] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    def custom_field(self, name: str) -> Optional[str]:
        """Scalar custom field as a trimmed string, if present"""
        if not isinstance(self.custom_fields, dict):
            return None
        value = self.custom_fields.get(name)
        if value is None or isinstance(value, (dict, list)):
            return None
        if isinstance(value, bool):
            value = "true" if value else "false"
        value = str(value).strip()
        return value or None

    @property
    def contract_id(self) -> Optional[str]:
        """Subscription contract this event refers to"""
        return self.parent_order_id or self.order_id
