"""Integration tests for webhook reconciliation against a real database"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock
from sqlmodel import select

from src.domain.credit_account import CreditAccount
from src.domain.payment_transaction import PaymentTransaction, TransactionStatus
from src.domain.subscription import Subscription, SubscriptionStatus


async def fetch_transactions(session):
    result = await session.execute(
        select(PaymentTransaction)
        .order_by(PaymentTransaction.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def fetch_subscriptions(session):
    result = await session.execute(
        select(Subscription).order_by(Subscription.id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def fetch_account(session, user_id):
    return await session.get(CreditAccount, user_id, populate_existing=True)


async def add_transaction(session, **values):
    transaction = PaymentTransaction(
        provider="lava",
        amount=Decimal("9.99"),
        currency="USD",
        payload={"events": []},
        **values,
    )
    session.add(transaction)
    await session.commit()
    await session.refresh(transaction)
    return transaction


@pytest.mark.asyncio
class TestOneTimePurchase:

    async def test_walk_up_purchase_grants_credits(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        """
        Given: Known buyer email, one-time product with credits_granted=3
        When: payment.success arrives for an order id never seen before
        Then: Transaction succeeded and one-time credits become 3
        """
        user_id = buyer.id

        result = await deliver(test_data.load("payment_success"))

        assert result.is_ok()
        assert result.value.ignored is None
        transactions = await fetch_transactions(db_session)
        assert len(transactions) == 1
        assert transactions[0].status == TransactionStatus.SUCCEEDED
        assert transactions[0].provider_order_id == "order-1001"
        assert transactions[0].paid_at is not None
        assert transactions[0].amount == Decimal("4.99")
        account = await fetch_account(db_session, user_id)
        assert account.credits == 3
        assert account.monthly_quota == 0

    async def test_repeated_delivery_grants_once(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        user_id = buyer.id
        payload = test_data.load("payment_success")

        first = await deliver(payload)
        second = await deliver(payload)
        third = await deliver(payload)

        assert first.value.idempotent is None
        assert second.value.idempotent is True
        assert third.value.idempotent is True
        assert second.value.transaction_id == first.value.transaction_id
        assert len(await fetch_transactions(db_session)) == 1
        account = await fetch_account(db_session, user_id)
        assert account.credits == 3

    async def test_late_failure_does_not_change_settled_order(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        await deliver(test_data.load("payment_success"))

        result = await deliver(test_data.load("payment_failed"))

        assert result.value.idempotent is True
        transactions = await fetch_transactions(db_session)
        assert transactions[0].status == TransactionStatus.SUCCEEDED

    async def test_failure_on_registered_intent(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        user_id = buyer.id
        await add_transaction(
            db_session,
            user_id=user_id,
            product_id=credit_pack.id,
            provider_order_id="order-1001",
            status=TransactionStatus.PENDING,
        )

        result = await deliver(test_data.load("payment_failed"))

        assert result.is_ok()
        transactions = await fetch_transactions(db_session)
        assert transactions[0].status == TransactionStatus.FAILED
        assert transactions[0].payload["events"][0]["errorMessage"] == "card declined"
        account = await fetch_account(db_session, user_id)
        assert account.credits == 0

    async def test_storage_failure_leaves_nothing_durable(
        self, db_session, reconciler, deliver, buyer, credit_pack, test_data
    ):
        """Status flip and credit grant commit together or not at all"""
        user_id = buyer.id
        transaction = await add_transaction(
            db_session,
            user_id=user_id,
            product_id=credit_pack.id,
            provider_order_id="order-1001",
            status=TransactionStatus.PENDING,
        )
        transaction_id = transaction.id
        reconciler.account_repo.grant_one_time = AsyncMock(side_effect=RuntimeError("disk full"))

        result = await deliver(test_data.load("payment_success"))

        assert result.is_err()
        assert result.error.code == "WEBHOOK_PROCESSING_FAILED"
        stored = await db_session.get(PaymentTransaction, transaction_id, populate_existing=True)
        assert stored.status == TransactionStatus.PENDING
        assert stored.paid_at is None
        assert stored.payload == {"events": []}


@pytest.mark.asyncio
class TestSubscriptionLifecycle:

    @pytest.fixture
    def settled_parent(self, db_session, buyer, pro_plan):
        async def _create():
            return await add_transaction(
                db_session,
                user_id=buyer.id,
                product_id=pro_plan.id,
                provider_order_id="order-2001",
                provider_parent_order_id="order-2001",
                status=TransactionStatus.SUCCEEDED,
            )

        return _create

    async def test_renewal_creates_new_row(
        self, db_session, deliver, buyer, settled_parent, test_data
    ):
        """
        Given: Succeeded parent transaction order-2001 for a 12-credit plan
        When: A recurring success arrives with child order order-2002
        Then: New succeeded row, active subscription keyed by the parent with
              a 30-day window, monthly quota 12
        """
        user_id = buyer.id
        parent = await settled_parent()
        parent_id = parent.id

        result = await deliver(test_data.load("recurring_success"))

        assert result.is_ok()
        transactions = await fetch_transactions(db_session)
        assert len(transactions) == 2
        old, new = transactions
        assert old.id == parent_id
        assert old.status == TransactionStatus.SUCCEEDED
        assert old.payload == {"events": []}
        assert new.provider_order_id == "order-2002"
        assert new.provider_parent_order_id == "order-2001"
        assert new.status == TransactionStatus.SUCCEEDED
        assert new.id == result.value.transaction_id

        subscriptions = await fetch_subscriptions(db_session)
        assert len(subscriptions) == 1
        subscription = subscriptions[0]
        assert subscription.provider_subscription_id == "order-2001"
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.current_period_end - subscription.current_period_start == timedelta(days=30)
        assert new.subscription_id == subscription.id

        account = await fetch_account(db_session, user_id)
        assert account.monthly_quota == 12
        assert account.quota_reset_at == subscription.current_period_end

    async def test_replayed_renewal_is_idempotent(
        self, db_session, deliver, buyer, settled_parent, test_data
    ):
        user_id = buyer.id
        await settled_parent()
        payload = test_data.load("recurring_success")
        await deliver(payload)

        result = await deliver(payload)

        assert result.is_ok()
        assert result.value.idempotent is True
        assert len(await fetch_transactions(db_session)) == 2
        account = await fetch_account(db_session, user_id)
        assert account.monthly_quota == 12

    async def test_second_renewal_sets_quota_instead_of_adding(
        self, db_session, deliver, buyer, settled_parent, test_data
    ):
        user_id = buyer.id
        await settled_parent()
        await deliver(test_data.load("recurring_success"))

        await deliver(test_data.webhook("recurring_success", contractId="order-2003"))

        assert len(await fetch_transactions(db_session)) == 3
        assert len(await fetch_subscriptions(db_session)) == 1
        account = await fetch_account(db_session, user_id)
        assert account.monthly_quota == 12

    async def test_cancellation_keeps_period(
        self, db_session, deliver, buyer, settled_parent, test_data
    ):
        await settled_parent()
        await deliver(test_data.load("recurring_success"))
        period_end = (await fetch_subscriptions(db_session))[0].current_period_end

        result = await deliver(test_data.load("subscription_cancelled"))

        assert result.value.canceled is True
        subscription = (await fetch_subscriptions(db_session))[0]
        assert subscription.status == SubscriptionStatus.CANCELED
        assert subscription.canceled_at is not None
        assert subscription.current_period_end == period_end

    async def test_renewal_after_cancellation_reactivates(
        self, db_session, deliver, buyer, settled_parent, test_data
    ):
        await settled_parent()
        await deliver(test_data.load("recurring_success"))
        await deliver(test_data.load("subscription_cancelled"))

        await deliver(test_data.webhook("recurring_success", contractId="order-2003"))

        subscription = (await fetch_subscriptions(db_session))[0]
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.canceled_at is None

    async def test_first_payment_of_registered_subscription(
        self, db_session, deliver, buyer, pro_plan, test_data
    ):
        user_id = buyer.id
        await add_transaction(
            db_session,
            user_id=user_id,
            product_id=pro_plan.id,
            provider_order_id="order-2001",
            provider_parent_order_id="order-2001",
            status=TransactionStatus.PENDING,
        )

        result = await deliver(
            test_data.webhook("payment_success", contractId="order-2001", product={"id": "offer-pro-monthly"})
        )

        assert result.is_ok()
        subscription = (await fetch_subscriptions(db_session))[0]
        assert subscription.provider_subscription_id == "order-2001"
        account = await fetch_account(db_session, user_id)
        assert account.monthly_quota == 12
        assert account.credits == 0


@pytest.mark.asyncio
class TestIgnoredEvents:

    async def test_unknown_buyer_creates_nothing(self, db_session, deliver, test_data):
        payload = test_data.webhook(
            "payment_success",
            contractId="order-unknown",
            buyer={"email": "stranger@example.com"},
            product={"id": "offer-missing"},
        )

        result = await deliver(payload)

        assert result.is_ok()
        assert result.value.ignored is True
        assert await fetch_transactions(db_session) == []
        assert await fetch_subscriptions(db_session) == []

    async def test_recurring_event_for_one_time_product_is_ignored(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        user_id = buyer.id
        payload = test_data.webhook(
            "recurring_success", parentContractId="order-9000", product={"id": "offer-pack-10"}
        )

        result = await deliver(payload)

        assert result.value.ignored is True
        assert await fetch_transactions(db_session) == []
        account = await fetch_account(db_session, user_id)
        assert account.credits == 0

    async def test_indeterminate_event_is_recorded_without_effect(
        self, db_session, deliver, buyer, credit_pack, test_data
    ):
        user_id = buyer.id
        await add_transaction(
            db_session,
            user_id=user_id,
            product_id=credit_pack.id,
            provider_order_id="order-1001",
            status=TransactionStatus.PENDING,
        )

        result = await deliver(test_data.webhook("payment_success", eventType="payment.pending", status="processing"))

        assert result.value.ignored is True
        transaction = (await fetch_transactions(db_session))[0]
        assert transaction.status == TransactionStatus.PENDING
        assert len(transaction.payload["events"]) == 1
        account = await fetch_account(db_session, user_id)
        assert account.credits == 0
