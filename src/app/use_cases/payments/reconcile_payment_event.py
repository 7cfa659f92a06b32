"""ReconcilePaymentEvent Use Case

Applies payment provider webhooks to the transaction ledger with
exactly-once business effects. Providers deliver at least once, in any
order, and sometimes for orders this service never saw, so every branch
that cannot be applied is acknowledged instead of failed: only an invalid
secret, an undecodable body or a storage error is reported as an error.
"""

import asyncio
import hmac
import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.credit_account_repository import CreditAccountRepository
from src.app.repositories.payment_transaction_repository import PaymentTransactionRepository
from src.app.repositories.product_repository import ProductRepository
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.domain.base import MAX_ID
from src.domain.credit_account import CreditAccount
from src.domain.payment_event import EventOutcome, PaymentEvent, PaymentKind
from src.domain.payment_transaction import (
    CURRENCY_LENGTH,
    MAX_AMOUNT,
    ORDER_ID_MAX_LENGTH,
    PaymentTransaction,
    TransactionStatus,
    TransactionType,
    append_observation,
)
from src.domain.product import Product, ProductType
from .classifier import classify_kind, classify_outcome
from .dtos import PaymentWebhookConfig, WebhookAckDTO, WebhookCommandDTO
from .normalizer import PayloadParseError, extract_api_key, normalize_payload, parse_body

logger = logging.getLogger(__name__)


class ReconcilePaymentEvent:
    """
    Use Case: Reconcile a payment webhook with the ledger

    Business Rules:
    1. Authentication: the shared secret (header, then query, then body) must match
    2. Idempotency: effects apply once per (provider, provider_order_id)
    3. Terminal rows (succeeded/failed) are never modified again
    4. A new order id under a settled contract gets its own row
    5. Status flip and credit/subscription effects commit as one unit of work
    6. Unknown, foreign or ambiguous events are acknowledged without effect

    Flow:
    1. Decode body, check secret, normalize and classify
    2. Cancellation: cancel the contract's subscription and acknowledge
    3. Match by order id, then by parent contract id
    4. No match: synthesize a pending row from buyer/product hints
    5. Terminal match with a different order id: open a fresh pending row
    6. Terminal row for this order id: acknowledge as idempotent
    7. Failure: pending -> failed
    8. Success: pending -> succeeded, then grant credits or renew subscription
    """

    def __init__(
        self,
        uow: UnitOfWork,
        transaction_repo: PaymentTransactionRepository,
        subscription_repo: SubscriptionRepository,
        account_repo: CreditAccountRepository,
        product_repo: ProductRepository,
        config: PaymentWebhookConfig,
    ):
        self.uow = uow
        self.transaction_repo = transaction_repo
        self.subscription_repo = subscription_repo
        self.account_repo = account_repo
        self.product_repo = product_repo
        self.config = config

    async def execute(self, command: WebhookCommandDTO) -> Result[WebhookAckDTO]:
        """
        Execute webhook reconciliation

        Args:
            command: WebhookCommandDTO with raw body and transport-level secrets

        Returns:
            Result[WebhookAckDTO]: Acknowledgement, or one of the errors below

        Errors:
            INVALID_PAYLOAD: Body is neither a JSON object nor form data
            UNAUTHORIZED: Shared secret missing or wrong
            WEBHOOK_PROCESSING_FAILED: Storage failure or timeout (provider should retry)
        """
        try:
            raw = parse_body(command.body, command.content_type)
        except PayloadParseError as e:
            logger.warning(f"Rejected {self.config.provider} webhook: {e}")
            return Return.err(
                Error(
                    code="INVALID_PAYLOAD",
                    message="Webhook body must be a JSON object or form data",
                    reason=str(e),
                )
            )

        provided_secret = _first_present(
            command.header_secret,
            command.query_secret,
            extract_api_key(raw),
        )
        if not self._secret_matches(provided_secret):
            logger.warning(f"Rejected {self.config.provider} webhook: invalid secret")
            return Return.err(
                Error(
                    code="UNAUTHORIZED",
                    message="Invalid webhook secret",
                )
            )

        event = normalize_payload(raw)
        logger.info(
            f"{self.config.provider} webhook: type={event.event_type} order_id={event.order_id} "
            f"parent_order_id={event.parent_order_id} status={event.status} paid={event.paid}"
        )

        try:
            ack = await asyncio.wait_for(
                self._reconcile(event),
                timeout=self.config.store_timeout_seconds,
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(
                f"Failed to reconcile {self.config.provider} order {event.order_id}: "
                f"{type(e).__name__}: {e}"
            )
            return Return.err(
                Error(
                    code="WEBHOOK_PROCESSING_FAILED",
                    message="Failed to process payment webhook",
                    reason=str(e) or type(e).__name__,
                )
            )

        return Return.ok(ack)

    def _secret_matches(self, provided: Optional[str]) -> bool:
        expected = self.config.webhook_secret
        if not provided or not expected:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

    async def _reconcile(self, event: PaymentEvent) -> WebhookAckDTO:
        outcome = classify_outcome(event)
        kind = classify_kind(event)

        if outcome == EventOutcome.CANCELLATION:
            return await self._cancel_subscription(event)

        transaction = await self._match(event)

        if transaction is None:
            if outcome != EventOutcome.SUCCESS:
                logger.info(
                    f"Ignoring {outcome.value} event for unknown order {event.order_id}"
                )
                return WebhookAckDTO(ignored=True, reason="unknown order")
            transaction = await self._synthesize(event, kind)
            if transaction is None:
                return WebhookAckDTO(ignored=True, reason="unresolved order")

        elif (
            transaction.is_terminal()
            and outcome in (EventOutcome.SUCCESS, EventOutcome.FAILURE)
            and event.order_id
            and transaction.provider_order_id != event.order_id
        ):
            # New charge under an already settled contract
            transaction = await self._open_renewal(transaction, event)
            if transaction is None:
                return WebhookAckDTO(ignored=True, reason="unresolved order")

        if transaction.is_terminal():
            logger.info(
                f"Order {transaction.provider_order_id} already {transaction.status.value}, "
                f"skipping replay"
            )
            return WebhookAckDTO(idempotent=True, transaction_id=transaction.id)

        if outcome == EventOutcome.FAILURE:
            return await self._fail(transaction, event)

        if outcome == EventOutcome.SUCCESS:
            return await self._settle(transaction, event, kind)

        await self.transaction_repo.update_pending_payload(
            transaction.id, append_observation(transaction.payload, event.raw)
        )
        await self.uow.commit()
        logger.info(f"Indeterminate event for order {transaction.provider_order_id} recorded")
        return WebhookAckDTO(
            ignored=True, reason="indeterminate outcome", transaction_id=transaction.id
        )

    async def _cancel_subscription(self, event: PaymentEvent) -> WebhookAckDTO:
        contract_id = event.contract_id
        if contract_id is None:
            logger.warning("Cancellation event without contract id")
            return WebhookAckDTO(canceled=True)

        updated = await self.subscription_repo.cancel_by_provider_id(
            self.config.provider, contract_id, datetime.utcnow()
        )
        await self.uow.commit()

        if updated:
            logger.info(f"Subscription {contract_id} canceled by provider")
        else:
            logger.info(f"Cancellation for unknown subscription {contract_id}")
        return WebhookAckDTO(canceled=True)

    async def _match(self, event: PaymentEvent) -> Optional[PaymentTransaction]:
        provider = self.config.provider
        if event.order_id:
            transaction = await self.transaction_repo.get_by_order_id(provider, event.order_id)
            if transaction is not None:
                return transaction
        if event.parent_order_id:
            return await self.transaction_repo.get_by_parent_reference(
                provider, event.parent_order_id
            )
        return None

    async def _synthesize(
        self, event: PaymentEvent, kind: PaymentKind
    ) -> Optional[PaymentTransaction]:
        """Create the pending row for a payment that has no local purchase intent"""
        if not _fits_order_id(event.order_id):
            logger.warning(f"Ignoring successful payment with unusable order id {event.order_id!r}")
            return None

        account = await self._resolve_account(event)
        if account is None:
            logger.warning(
                f"Ignoring order {event.order_id}: buyer not found "
                f"(email={event.buyer_email}, user_id={event.custom_field('user_id')})"
            )
            return None

        product = await self._resolve_product(event)
        if product is None:
            logger.warning(
                f"Ignoring order {event.order_id}: product not found "
                f"(offer_id={event.product_offer_id}, slug={event.custom_field('product_slug')})"
            )
            return None

        if not kind.accepts(product.product_type):
            logger.warning(
                f"Ignoring order {event.order_id}: {kind.value} event for "
                f"{product.product_type.value} product {product.slug}"
            )
            return None

        transaction = PaymentTransaction(
            user_id=account.id,
            product_id=product.id,
            provider=self.config.provider,
            provider_order_id=event.order_id,
            provider_parent_order_id=(
                _stored_parent(event)
            ),
            transaction_type=TransactionType.PAYMENT,
            status=TransactionStatus.PENDING,
            amount=_parse_amount(event.amount) or product.price,
            currency=_currency_code(event.currency) or product.currency,
            payload={"events": []},
        )
        if await self.transaction_repo.insert_if_absent(transaction):
            logger.info(f"Created transaction for walk-up order {event.order_id}")

        return await self.transaction_repo.get_by_order_id(self.config.provider, event.order_id)

    async def _open_renewal(
        self, settled: PaymentTransaction, event: PaymentEvent
    ) -> Optional[PaymentTransaction]:
        """Fresh pending row for a new order id of a settled contract"""
        if not _fits_order_id(event.order_id):
            logger.warning(f"Ignoring renewal with unusable order id {event.order_id!r}")
            return None

        renewal = PaymentTransaction(
            user_id=settled.user_id,
            product_id=settled.product_id,
            provider=self.config.provider,
            provider_order_id=event.order_id,
            provider_parent_order_id=(
                _stored_parent(event)
                or settled.provider_parent_order_id
                or settled.provider_order_id
            ),
            transaction_type=TransactionType.PAYMENT,
            status=TransactionStatus.PENDING,
            amount=_parse_amount(event.amount) or settled.amount,
            currency=_currency_code(event.currency) or settled.currency,
            payload={"events": []},
        )
        if await self.transaction_repo.insert_if_absent(renewal):
            logger.info(
                f"Created transaction for order {event.order_id} "
                f"under contract {renewal.provider_parent_order_id}"
            )

        return await self.transaction_repo.get_by_order_id(self.config.provider, event.order_id)

    async def _resolve_account(self, event: PaymentEvent) -> Optional[CreditAccount]:
        user_id = _parse_user_id(event.custom_field("user_id"))
        if user_id is not None:
            account = await self.account_repo.get_by_id(user_id)
            if account is not None:
                return account
        if event.buyer_email:
            return await self.account_repo.get_by_email(event.buyer_email)
        return None

    async def _resolve_product(self, event: PaymentEvent) -> Optional[Product]:
        if event.product_offer_id:
            product = await self.product_repo.get_by_offer_id(event.product_offer_id)
            if product is not None:
                return product
        slug = event.custom_field("product_slug")
        if slug:
            return await self.product_repo.get_by_slug(slug, active_only=False)
        return None

    async def _fail(self, transaction: PaymentTransaction, event: PaymentEvent) -> WebhookAckDTO:
        # Rollback expires loaded rows
        transaction_id = transaction.id
        order_id = transaction.provider_order_id

        moved = await self.transaction_repo.transition(
            transaction_id,
            TransactionStatus.FAILED,
            append_observation(transaction.payload, event.raw),
            parent_order_id=_stored_parent(event),
        )
        if not moved:
            await self.uow.rollback()
            return WebhookAckDTO(idempotent=True, transaction_id=transaction_id)

        await self.uow.commit()
        logger.info(f"Order {order_id} failed")
        return WebhookAckDTO(transaction_id=transaction_id)

    async def _settle(
        self, transaction: PaymentTransaction, event: PaymentEvent, kind: PaymentKind
    ) -> WebhookAckDTO:
        transaction_id = transaction.id
        product = None
        if transaction.product_id is not None:
            product = await self.product_repo.get_by_id(transaction.product_id)

        if product is not None and not kind.accepts(product.product_type):
            logger.warning(
                f"Ignoring order {transaction.provider_order_id}: {kind.value} event for "
                f"{product.product_type.value} product {product.slug}"
            )
            await self.uow.rollback()
            return WebhookAckDTO(
                ignored=True, reason="product type mismatch", transaction_id=transaction_id
            )

        now = datetime.utcnow()
        moved = await self.transaction_repo.transition(
            transaction_id,
            TransactionStatus.SUCCEEDED,
            append_observation(transaction.payload, event.raw),
            paid_at=now,
            parent_order_id=_stored_parent(event),
        )
        if not moved:
            # A concurrent delivery settled it first
            await self.uow.rollback()
            return WebhookAckDTO(idempotent=True, transaction_id=transaction_id)

        if product is None:
            await self.uow.commit()
            logger.warning(
                f"Order {transaction.provider_order_id} settled without product, no credits granted"
            )
            return WebhookAckDTO(missing_product=True, transaction_id=transaction.id)

        if product.product_type == ProductType.ONE_TIME:
            if product.credits_granted:
                await self.account_repo.grant_one_time(transaction.user_id, product.credits_granted)
        else:
            period_end = now + timedelta(days=self.config.subscription_period_days)
            subscription_id = await self.subscription_repo.upsert_active(
                user_id=transaction.user_id,
                product_id=product.id,
                provider=self.config.provider,
                provider_subscription_id=(
                    _stored_parent(event)
                    or transaction.provider_parent_order_id
                    or transaction.provider_order_id
                ),
                period_start=now,
                period_end=period_end,
            )
            await self.transaction_repo.link_subscription(transaction.id, subscription_id)
            if product.monthly_credits is not None:
                await self.account_repo.set_monthly_quota(
                    transaction.user_id, product.monthly_credits, period_end
                )

        await self.uow.commit()
        logger.info(
            f"Order {transaction.provider_order_id} succeeded: "
            f"{product.product_type.value} product {product.slug} for user {transaction.user_id}"
        )
        return WebhookAckDTO(transaction_id=transaction.id)


def _first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _parse_amount(text: Optional[str]) -> Optional[Decimal]:
    if text is None:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0 or amount > MAX_AMOUNT:
        return None
    return amount


def _parse_user_id(text: Optional[str]) -> Optional[int]:
    """Positive id that fits the id column, from ASCII digits only"""
    if text is None or not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if 0 < value <= MAX_ID else None


def _currency_code(text: Optional[str]) -> Optional[str]:
    if text is None or len(text) != CURRENCY_LENGTH or not (text.isascii() and text.isalpha()):
        return None
    return text.upper()


def _fits_order_id(text: Optional[str]) -> bool:
    return bool(text) and len(text) <= ORDER_ID_MAX_LENGTH


def _stored_parent(event: PaymentEvent) -> Optional[str]:
    """Parent order id if it fits the column, else None"""
    return event.parent_order_id if _fits_order_id(event.parent_order_id) else None
