from .base import BaseModel, IdType
from .product import Product, ProductType
from .credit_account import CreditAccount, CreditKind
from .subscription import Subscription, SubscriptionStatus
from .payment_transaction import PaymentTransaction, TransactionStatus, TransactionType
from .payment_event import PaymentEvent, EventOutcome, PaymentKind

__all__ = [
    "BaseModel",
    "IdType",
    "Product",
    "ProductType",
    "CreditAccount",
    "CreditKind",
    "Subscription",
    "SubscriptionStatus",
    "PaymentTransaction",
    "TransactionStatus",
    "TransactionType",
    "PaymentEvent",
    "EventOutcome",
    "PaymentKind",
]
