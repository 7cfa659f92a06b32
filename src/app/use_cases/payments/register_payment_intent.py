"""RegisterPaymentIntent Use Case

Records the pending transaction of a checkout before the buyer is sent to
the provider, so the provider's webhook finds a local match.
"""

import logging
from sqlalchemy.exc import IntegrityError

from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.repositories.payment_transaction_repository import PaymentTransactionRepository
from src.app.repositories.product_repository import ProductRepository
from src.domain.payment_transaction import PaymentTransaction, TransactionStatus, TransactionType
from src.domain.product import ProductType
from .dtos import PaymentIntentResponseDTO, RegisterPaymentIntentCommandDTO

logger = logging.getLogger(__name__)


class RegisterPaymentIntent:
    """
    Use Case: Register a purchase intent

    Business Rules:
    1. Product must exist and be on sale
    2. Subscriptions can be switched off globally
    3. A subscription's order id doubles as its contract (parent) id
    4. Order ids are unique per provider
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: PaymentTransactionRepository,
        product_repo: ProductRepository,
        account_repo: CreditAccountRepository,
        provider: str,
        subscriptions_enabled: bool = True,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.product_repo = product_repo
        self.account_repo = account_repo
        self.provider = provider
        self.subscriptions_enabled = subscriptions_enabled

    async def execute(
        self, command: RegisterPaymentIntentCommandDTO
    ) -> Result[PaymentIntentResponseDTO]:
        """
        Execute intent registration

        Errors:
            PRODUCT_NOT_FOUND: Unknown or inactive product
            USER_NOT_FOUND: Unknown buyer
            SUBSCRIPTIONS_DISABLED: Subscription sales are switched off
            DUPLICATE_ORDER: Order id already recorded
            REGISTER_INTENT_FAILED: Storage failure
        """
        try:
            product = await self.product_repo.get_by_slug(command.product_slug)
            if product is None:
                return Return.err(
                    Error(
                        code="PRODUCT_NOT_FOUND",
                        message=f"Product {command.product_slug} not found",
                    )
                )

            if product.product_type == ProductType.SUBSCRIPTION and not self.subscriptions_enabled:
                return Return.err(
                    Error(
                        code="SUBSCRIPTIONS_DISABLED",
                        message="Subscriptions are temporarily disabled",
                    )
                )

            account = await self.account_repo.get_by_id(command.user_id)
            if account is None:
                return Return.err(
                    Error(
                        code="USER_NOT_FOUND",
                        message=f"User {command.user_id} not found",
                    )
                )

            parent_order_id = None
            if product.product_type == ProductType.SUBSCRIPTION:
                parent_order_id = command.provider_order_id

            transaction = PaymentTransaction(
                user_id=account.id,
                product_id=product.id,
                provider=self.provider,
                provider_order_id=command.provider_order_id,
                provider_parent_order_id=parent_order_id,
                transaction_type=TransactionType.PAYMENT,
                status=TransactionStatus.PENDING,
                amount=product.price,
                currency=product.currency,
                payload={
                    "intent": {
                        "user_id": account.id,
                        "buyer_email": account.email,
                        "product_slug": product.slug,
                        "product_type": product.product_type.value,
                        "provider_offer_id": product.provider_offer_id,
                    },
                    "events": [],
                },
            )

            try:
                created = await self.transaction_repo.create(transaction)
            except IntegrityError:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="DUPLICATE_ORDER",
                        message=f"Order {command.provider_order_id} is already registered",
                    )
                )

            await self.uow.commit()
            logger.info(
                f"Registered {product.product_type.value} intent {created.provider_order_id} "
                f"for user {account.id}"
            )

            return Return.ok(
                PaymentIntentResponseDTO(
                    transaction_id=created.id,
                    provider=created.provider,
                    provider_order_id=created.provider_order_id,
                    provider_parent_order_id=created.provider_parent_order_id,
                    amount=created.amount,
                    currency=created.currency,
                    status=created.status.value,
                    created_at=created.created_at,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="REGISTER_INTENT_FAILED",
                    message="Failed to register payment intent",
                    reason=str(e),
                )
            )
