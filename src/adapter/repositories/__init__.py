from .product_repository import SqlAlchemyProductRepository
from .credit_account_repository import SqlAlchemyCreditAccountRepository
from .subscription_repository import SqlAlchemySubscriptionRepository
from .payment_transaction_repository import SqlAlchemyPaymentTransactionRepository

__all__ = [
    "SqlAlchemyProductRepository",
    "SqlAlchemyCreditAccountRepository",
    "SqlAlchemySubscriptionRepository",
    "SqlAlchemyPaymentTransactionRepository",
]
