from .product_repository import ProductRepository
from .credit_account_repository import CreditAccountRepository
from .subscription_repository import SubscriptionRepository
from .payment_transaction_repository import PaymentTransactionRepository

__all__ = [
    "ProductRepository",
    "CreditAccountRepository",
    "SubscriptionRepository",
    "PaymentTransactionRepository",
]
