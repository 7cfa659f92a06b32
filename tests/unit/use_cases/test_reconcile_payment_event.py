"""Unit tests for ReconcilePaymentEvent use case

Tests cover:
- Authentication and body decoding errors
- Settlement of matched pending transactions (one-time and subscription)
- Idempotent replays and lost races
- Fresh row for a new order id under a settled contract
- Cancellation fast path
- Unknown, unresolved, indeterminate and mismatched events
- Storage failures and timeouts
"""

import asyncio
import json
import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.payments.dtos import PaymentWebhookConfig, WebhookCommandDTO
from src.app.use_cases.payments.reconcile_payment_event import ReconcilePaymentEvent
from src.domain.credit_account import CreditAccount
from src.domain.payment_transaction import PaymentTransaction, TransactionStatus
from src.domain.product import Product, ProductType

SECRET = "s3cret"


@pytest.fixture
def transaction_repo():
    repo = MagicMock()
    repo.get_by_order_id = AsyncMock(return_value=None)
    repo.get_by_parent_reference = AsyncMock(return_value=None)
    repo.insert_if_absent = AsyncMock(return_value=True)
    repo.transition = AsyncMock(return_value=True)
    repo.update_pending_payload = AsyncMock(return_value=True)
    repo.link_subscription = AsyncMock()
    return repo


@pytest.fixture
def subscription_repo():
    repo = MagicMock()
    repo.upsert_active = AsyncMock(return_value=55)
    repo.cancel_by_provider_id = AsyncMock(return_value=1)
    return repo


@pytest.fixture
def account_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=None)
    repo.get_by_email = AsyncMock(return_value=None)
    repo.grant_one_time = AsyncMock()
    repo.set_monthly_quota = AsyncMock()
    return repo


@pytest.fixture
def product_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=None)
    repo.get_by_offer_id = AsyncMock(return_value=None)
    repo.get_by_slug = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def config():
    return PaymentWebhookConfig(provider="lava", webhook_secret=SECRET, subscription_period_days=30)


@pytest.fixture
def use_case(mock_uow, transaction_repo, subscription_repo, account_repo, product_repo, config):
    return ReconcilePaymentEvent(
        uow=mock_uow,
        transaction_repo=transaction_repo,
        subscription_repo=subscription_repo,
        account_repo=account_repo,
        product_repo=product_repo,
        config=config,
    )


@pytest.fixture
def credit_pack():
    return Product(
        id=1,
        slug="pack-3",
        name="3 credits",
        product_type=ProductType.ONE_TIME,
        price=Decimal("4.99"),
        currency="USD",
        credits_granted=3,
        provider_offer_id="offer-pack-10",
    )


@pytest.fixture
def pro_plan():
    return Product(
        id=2,
        slug="pro-monthly",
        name="Pro",
        product_type=ProductType.SUBSCRIPTION,
        price=Decimal("9.99"),
        currency="USD",
        monthly_credits=12,
        provider_offer_id="offer-pro-monthly",
    )


@pytest.fixture
def buyer():
    return CreditAccount(id=7, email="buyer@example.com")


def make_transaction(order_id, status=TransactionStatus.PENDING, product_id=1, parent=None, tx_id=10):
    return PaymentTransaction(
        id=tx_id,
        user_id=7,
        product_id=product_id,
        provider="lava",
        provider_order_id=order_id,
        provider_parent_order_id=parent,
        status=status,
        amount=Decimal("4.99"),
        currency="USD",
        payload={"intent": {"product_slug": "pack-3"}, "events": []},
    )


def command(payload, header_secret=SECRET, query_secret=None, content_type="application/json"):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return WebhookCommandDTO(
        body=body,
        content_type=content_type,
        header_secret=header_secret,
        query_secret=query_secret,
    )


@pytest.mark.asyncio
class TestAuthenticationAndDecoding:

    async def test_wrong_secret_is_rejected(self, use_case, transaction_repo, test_data):
        result = await use_case.execute(command(test_data.load("payment_success"), header_secret="nope"))

        assert result.is_err()
        assert result.error.code == "UNAUTHORIZED"
        transaction_repo.get_by_order_id.assert_not_called()

    async def test_missing_secret_is_rejected(self, use_case, test_data):
        result = await use_case.execute(command(test_data.load("payment_success"), header_secret=None))

        assert result.is_err()
        assert result.error.code == "UNAUTHORIZED"

    async def test_header_secret_takes_precedence_over_body(self, use_case, test_data):
        payload = test_data.webhook("payment_success", apiKey=SECRET)

        result = await use_case.execute(command(payload, header_secret="wrong"))

        assert result.is_err()
        assert result.error.code == "UNAUTHORIZED"

    async def test_query_secret_is_accepted(self, use_case, test_data):
        result = await use_case.execute(
            command(test_data.load("payment_failed"), header_secret=None, query_secret=SECRET)
        )

        assert result.is_ok()

    async def test_body_secret_is_accepted(self, use_case, test_data):
        payload = test_data.webhook("payment_failed", apiKey=SECRET)

        result = await use_case.execute(command(payload, header_secret=None))

        assert result.is_ok()

    async def test_undecodable_body(self, use_case, mock_uow):
        result = await use_case.execute(command(b"\x00\x01 not a body", content_type="text/plain"))

        assert result.is_err()
        assert result.error.code == "INVALID_PAYLOAD"
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestSettlement:

    async def test_one_time_success_grants_credits(
        self, use_case, transaction_repo, product_repo, account_repo, mock_uow, credit_pack, test_data
    ):
        """
        Given: Pending transaction for a one-time pack
        When: payment.success arrives for its order id
        Then: Transaction succeeds and credits_granted is added once
        """
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-1001"))
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.is_ok()
        assert result.value.transaction_id == 10
        assert result.value.idempotent is None
        args, kwargs = transaction_repo.transition.call_args
        assert args[0] == 10
        assert args[1] == TransactionStatus.SUCCEEDED
        assert args[2]["intent"] == {"product_slug": "pack-3"}
        assert args[2]["events"][-1]["contractId"] == "order-1001"
        assert isinstance(kwargs["paid_at"], datetime)
        account_repo.grant_one_time.assert_called_once_with(7, 3)
        account_repo.set_monthly_quota.assert_not_called()
        mock_uow.commit.assert_called_once()

    async def test_subscription_first_payment_activates_and_sets_quota(
        self, use_case, transaction_repo, product_repo, subscription_repo, account_repo, pro_plan, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(
            return_value=make_transaction("order-2001", product_id=2, parent="order-2001")
        )
        product_repo.get_by_id = AsyncMock(return_value=pro_plan)
        payload = test_data.webhook(
            "payment_success", contractId="order-2001", product={"id": "offer-pro-monthly"}
        )

        result = await use_case.execute(command(payload))

        assert result.is_ok()
        kwargs = subscription_repo.upsert_active.call_args.kwargs
        assert kwargs["user_id"] == 7
        assert kwargs["product_id"] == 2
        assert kwargs["provider"] == "lava"
        assert kwargs["provider_subscription_id"] == "order-2001"
        assert (kwargs["period_end"] - kwargs["period_start"]).days == 30
        transaction_repo.link_subscription.assert_called_once_with(10, 55)
        account_repo.set_monthly_quota.assert_called_once_with(7, 12, kwargs["period_end"])
        account_repo.grant_one_time.assert_not_called()

    async def test_failure_marks_failed_without_effects(
        self, use_case, transaction_repo, account_repo, subscription_repo, mock_uow, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-1001"))

        result = await use_case.execute(command(test_data.load("payment_failed")))

        assert result.is_ok()
        assert transaction_repo.transition.call_args.args[1] == TransactionStatus.FAILED
        account_repo.grant_one_time.assert_not_called()
        subscription_repo.upsert_active.assert_not_called()
        mock_uow.commit.assert_called_once()

    async def test_missing_product_settles_without_effects(
        self, use_case, transaction_repo, account_repo, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(
            return_value=make_transaction("order-1001", product_id=None)
        )

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.is_ok()
        assert result.value.missing_product is True
        transaction_repo.transition.assert_called_once()
        account_repo.grant_one_time.assert_not_called()

    async def test_kind_mismatch_is_ignored(
        self, use_case, transaction_repo, product_repo, account_repo, mock_uow, credit_pack, test_data
    ):
        """Recurring charge reported for a one-time product"""
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-2002"))
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)

        result = await use_case.execute(command(test_data.load("recurring_success")))

        assert result.is_ok()
        assert result.value.ignored is True
        assert result.value.reason == "product type mismatch"
        transaction_repo.transition.assert_not_called()
        account_repo.grant_one_time.assert_not_called()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestIdempotency:

    async def test_replay_of_settled_order(
        self, use_case, transaction_repo, account_repo, mock_uow, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(
            return_value=make_transaction("order-1001", status=TransactionStatus.SUCCEEDED)
        )

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.is_ok()
        assert result.value.idempotent is True
        transaction_repo.transition.assert_not_called()
        account_repo.grant_one_time.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_failed_order_is_not_revived_by_late_success(
        self, use_case, transaction_repo, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(
            return_value=make_transaction("order-1001", status=TransactionStatus.FAILED)
        )

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.value.idempotent is True
        transaction_repo.transition.assert_not_called()

    async def test_lost_race_grants_nothing(
        self, use_case, transaction_repo, product_repo, account_repo, mock_uow, credit_pack, test_data
    ):
        """A concurrent delivery settled the row between read and update"""
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-1001"))
        transaction_repo.transition = AsyncMock(return_value=False)
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.value.idempotent is True
        account_repo.grant_one_time.assert_not_called()
        mock_uow.rollback.assert_called_once()
        mock_uow.commit.assert_not_called()


@pytest.mark.asyncio
class TestRenewal:

    async def test_new_order_under_settled_contract_gets_fresh_row(
        self, use_case, transaction_repo, product_repo, subscription_repo, account_repo, pro_plan, test_data
    ):
        """
        Given: Parent contract order-2001 already succeeded
        When: A recurring success arrives with a new order id order-2002
        Then: A new pending row is inserted, settled, and the subscription renewed
        """
        settled = make_transaction(
            "order-2001", status=TransactionStatus.SUCCEEDED, product_id=2, parent="order-2001", tx_id=10
        )
        renewal = make_transaction("order-2002", product_id=2, parent="order-2001", tx_id=11)
        transaction_repo.get_by_order_id = AsyncMock(side_effect=[None, renewal])
        transaction_repo.get_by_parent_reference = AsyncMock(return_value=settled)
        product_repo.get_by_id = AsyncMock(return_value=pro_plan)

        result = await use_case.execute(command(test_data.load("recurring_success")))

        assert result.is_ok()
        assert result.value.transaction_id == 11
        inserted = transaction_repo.insert_if_absent.call_args.args[0]
        assert inserted.provider_order_id == "order-2002"
        assert inserted.provider_parent_order_id == "order-2001"
        assert inserted.status == TransactionStatus.PENDING
        assert inserted.amount == Decimal("9.99")
        assert transaction_repo.transition.call_args.args[0] == 11
        assert subscription_repo.upsert_active.call_args.kwargs["provider_subscription_id"] == "order-2001"
        account_repo.set_monthly_quota.assert_called_once()

    async def test_pending_parent_is_settled_by_child_event(
        self, use_case, transaction_repo, product_repo, pro_plan, test_data
    ):
        parent = make_transaction("order-2001", product_id=2, parent="order-2001")
        transaction_repo.get_by_parent_reference = AsyncMock(return_value=parent)
        product_repo.get_by_id = AsyncMock(return_value=pro_plan)

        result = await use_case.execute(command(test_data.load("recurring_success")))

        assert result.value.transaction_id == 10
        transaction_repo.insert_if_absent.assert_not_called()
        assert transaction_repo.transition.call_args.args[0] == 10


@pytest.mark.asyncio
class TestCancellation:

    async def test_cancels_by_contract_id(self, use_case, subscription_repo, mock_uow, test_data):
        result = await use_case.execute(command(test_data.load("subscription_cancelled")))

        assert result.is_ok()
        assert result.value.canceled is True
        args = subscription_repo.cancel_by_provider_id.call_args.args
        assert args[0] == "lava"
        assert args[1] == "order-2001"
        mock_uow.commit.assert_called_once()

    async def test_unknown_subscription_is_still_acknowledged(
        self, use_case, subscription_repo, test_data
    ):
        subscription_repo.cancel_by_provider_id = AsyncMock(return_value=0)

        result = await use_case.execute(command(test_data.load("subscription_cancelled")))

        assert result.value.canceled is True


@pytest.mark.asyncio
class TestUnmatchedEvents:

    async def test_unknown_order_failure_is_ignored(self, use_case, transaction_repo, test_data):
        result = await use_case.execute(command(test_data.load("payment_failed")))

        assert result.value.ignored is True
        assert result.value.reason == "unknown order"
        transaction_repo.insert_if_absent.assert_not_called()

    async def test_unresolvable_buyer_is_ignored(self, use_case, transaction_repo, mock_uow, test_data):
        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.value.ignored is True
        assert result.value.reason == "unresolved order"
        transaction_repo.insert_if_absent.assert_not_called()
        transaction_repo.transition.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_walk_up_order_is_synthesized(
        self, use_case, transaction_repo, product_repo, account_repo, buyer, credit_pack, test_data
    ):
        """User from custom field, product from offer id"""
        synthesized = make_transaction("order-3001", tx_id=12)
        transaction_repo.get_by_order_id = AsyncMock(side_effect=[None, synthesized])
        account_repo.get_by_id = AsyncMock(return_value=buyer)
        product_repo.get_by_offer_id = AsyncMock(return_value=credit_pack)
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)

        result = await use_case.execute(command(test_data.load("wrapped_payment")))

        assert result.value.transaction_id == 12
        account_repo.get_by_id.assert_any_call(7)
        inserted = transaction_repo.insert_if_absent.call_args.args[0]
        assert inserted.user_id == 7
        assert inserted.product_id == 1
        assert inserted.amount == Decimal("4.99")
        assert inserted.currency == "EUR"
        account_repo.grant_one_time.assert_called_once_with(7, 3)

    async def test_walk_up_with_mismatched_kind_is_ignored(
        self, use_case, transaction_repo, product_repo, account_repo, buyer, credit_pack, test_data
    ):
        account_repo.get_by_email = AsyncMock(return_value=buyer)
        product_repo.get_by_offer_id = AsyncMock(return_value=credit_pack)

        result = await use_case.execute(command(test_data.load("recurring_success")))

        assert result.value.ignored is True
        transaction_repo.insert_if_absent.assert_not_called()

    async def test_walk_up_product_from_slug_custom_field(
        self, use_case, transaction_repo, product_repo, account_repo, buyer, credit_pack
    ):
        synthesized = make_transaction("order-3002", tx_id=13)
        transaction_repo.get_by_order_id = AsyncMock(side_effect=[None, synthesized])
        account_repo.get_by_id = AsyncMock(return_value=buyer)
        product_repo.get_by_slug = AsyncMock(return_value=credit_pack)
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)
        payload = {
            "eventType": "payment.success",
            "orderId": "order-3002",
            "status": "success",
            "customFields": {"user_id": "7", "product_slug": "pack-3"},
        }

        result = await use_case.execute(command(payload))

        assert result.value.transaction_id == 13
        product_repo.get_by_offer_id.assert_not_called()
        product_repo.get_by_slug.assert_called_once_with("pack-3", active_only=False)
        inserted = transaction_repo.insert_if_absent.call_args.args[0]
        assert inserted.product_id == 1
        assert inserted.amount == credit_pack.price
        assert inserted.currency == credit_pack.currency
        account_repo.grant_one_time.assert_called_once_with(7, 3)

    @pytest.mark.parametrize("user_id", ["99999999999999999999", "²", "-7", "0", "7.0"])
    async def test_walk_up_with_unusable_user_id_is_ignored(
        self, use_case, transaction_repo, account_repo, product_repo, credit_pack, mock_uow, user_id
    ):
        product_repo.get_by_offer_id = AsyncMock(return_value=credit_pack)
        payload = {
            "eventType": "payment.success",
            "orderId": "order-3003",
            "status": "success",
            "productId": "offer-pack-10",
            "customFields": {"user_id": user_id},
        }

        result = await use_case.execute(command(payload))

        assert result.is_ok()
        assert result.value.ignored is True
        assert result.value.reason == "unresolved order"
        account_repo.get_by_id.assert_not_called()
        transaction_repo.insert_if_absent.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_walk_up_with_oversized_order_id_is_ignored(
        self, use_case, transaction_repo, account_repo, product_repo, buyer, credit_pack
    ):
        account_repo.get_by_id = AsyncMock(return_value=buyer)
        product_repo.get_by_offer_id = AsyncMock(return_value=credit_pack)
        payload = {
            "eventType": "payment.success",
            "orderId": "o" * 300,
            "status": "success",
            "productId": "offer-pack-10",
            "customFields": {"user_id": "7"},
        }

        result = await use_case.execute(command(payload))

        assert result.value.ignored is True
        assert result.value.reason == "unresolved order"
        transaction_repo.insert_if_absent.assert_not_called()

    @pytest.mark.parametrize("amount, currency", [
        ("1e20", "EURO"),
        ("-4.99", "12$"),
        ("NaN", "€€€"),
    ])
    async def test_walk_up_falls_back_to_product_price_and_currency(
        self, use_case, transaction_repo, account_repo, product_repo, buyer, credit_pack,
        amount, currency,
    ):
        synthesized = make_transaction("order-3004", tx_id=14)
        transaction_repo.get_by_order_id = AsyncMock(side_effect=[None, synthesized])
        account_repo.get_by_id = AsyncMock(return_value=buyer)
        product_repo.get_by_offer_id = AsyncMock(return_value=credit_pack)
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)
        payload = {
            "eventType": "payment.success",
            "orderId": "order-3004",
            "parentOrderId": "p" * 300,
            "status": "success",
            "productId": "offer-pack-10",
            "amount": amount,
            "currency": currency,
            "customFields": {"user_id": "7"},
        }

        result = await use_case.execute(command(payload))

        assert result.value.transaction_id == 14
        inserted = transaction_repo.insert_if_absent.call_args.args[0]
        assert inserted.amount == credit_pack.price
        assert inserted.currency == credit_pack.currency
        assert inserted.provider_parent_order_id is None
        assert transaction_repo.transition.call_args.kwargs["parent_order_id"] is None

    async def test_indeterminate_event_only_records_payload(
        self, use_case, transaction_repo, account_repo, mock_uow, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-1001"))
        payload = test_data.webhook("payment_success", eventType="payment.pending", status="processing")

        result = await use_case.execute(command(payload))

        assert result.value.ignored is True
        assert result.value.reason == "indeterminate outcome"
        transaction_repo.update_pending_payload.assert_called_once()
        transaction_repo.transition.assert_not_called()
        account_repo.grant_one_time.assert_not_called()
        mock_uow.commit.assert_called_once()


@pytest.mark.asyncio
class TestStorageFailures:

    async def test_error_during_effects_rolls_back(
        self, use_case, transaction_repo, product_repo, account_repo, mock_uow, credit_pack, test_data
    ):
        transaction_repo.get_by_order_id = AsyncMock(return_value=make_transaction("order-1001"))
        product_repo.get_by_id = AsyncMock(return_value=credit_pack)
        account_repo.grant_one_time = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.is_err()
        assert result.error.code == "WEBHOOK_PROCESSING_FAILED"
        assert "connection reset" in result.error.reason
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_called_once()

    async def test_timeout_surfaces_as_processing_failure(
        self, mock_uow, transaction_repo, subscription_repo, account_repo, product_repo, test_data
    ):
        async def slow_lookup(*args, **kwargs):
            await asyncio.sleep(1)

        transaction_repo.get_by_order_id = AsyncMock(side_effect=slow_lookup)
        use_case = ReconcilePaymentEvent(
            uow=mock_uow,
            transaction_repo=transaction_repo,
            subscription_repo=subscription_repo,
            account_repo=account_repo,
            product_repo=product_repo,
            config=PaymentWebhookConfig(webhook_secret=SECRET, store_timeout_seconds=0.01),
        )

        result = await use_case.execute(command(test_data.load("payment_success")))

        assert result.is_err()
        assert result.error.code == "WEBHOOK_PROCESSING_FAILED"
        mock_uow.rollback.assert_called_once()
