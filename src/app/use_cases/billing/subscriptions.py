"""Subscription Use Cases

Read and cancel operations used by the account management UI.
"""

import logging
from datetime import datetime
from typing import List
from libs.result import Result, Return, Error
from src.app.services.unit_of_work import UnitOfWork
from src.app.repositories.subscription_repository import SubscriptionRepository
from .dtos import EffectiveSubscriptionDTO, SubscriptionDTO

logger = logging.getLogger(__name__)


class GetEffectiveSubscription:
    """
    Subscription that grants quota right now

    A canceled subscription still counts until its paid period ends.
    """

    def __init__(self, subscription_repo: SubscriptionRepository):
        self.subscription_repo = subscription_repo

    async def execute(self, user_id: int) -> Result[EffectiveSubscriptionDTO]:
        effective = await self.subscription_repo.get_effective(user_id, datetime.utcnow())
        if effective is None:
            return Return.err(
                Error(
                    code="NO_EFFECTIVE_SUBSCRIPTION",
                    message=f"User {user_id} has no effective subscription",
                )
            )

        subscription, monthly_credits = effective
        return Return.ok(
            EffectiveSubscriptionDTO(
                subscription=SubscriptionDTO.from_entity(subscription),
                monthly_credits=monthly_credits,
            )
        )


class ListSubscriptions:

    def __init__(self, subscription_repo: SubscriptionRepository):
        self.subscription_repo = subscription_repo

    async def execute(self, user_id: int) -> Result[List[SubscriptionDTO]]:
        subscriptions = await self.subscription_repo.list_for_user(user_id)
        return Return.ok([SubscriptionDTO.from_entity(s) for s in subscriptions])


class CancelSubscription:
    """
    Use Case: User-initiated cancellation

    Business Rules:
    1. Only the owner can cancel
    2. status=canceled, canceled_at=now; the paid period is left untouched,
       so quota keeps flowing until current_period_end
    3. Canceling twice is harmless
    """

    def __init__(self, uow: UnitOfWork, subscription_repo: SubscriptionRepository):
        self.uow = uow
        self.subscription_repo = subscription_repo

    async def execute(self, user_id: int, subscription_id: int) -> Result[SubscriptionDTO]:
        """
        Errors:
            SUBSCRIPTION_NOT_FOUND: Unknown subscription or not owned by the user
            CANCEL_SUBSCRIPTION_FAILED: Storage failure
        """
        try:
            canceled = await self.subscription_repo.cancel_for_user(
                user_id, subscription_id, datetime.utcnow()
            )
            if not canceled:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="SUBSCRIPTION_NOT_FOUND",
                        message=f"Subscription {subscription_id} not found for user {user_id}",
                    )
                )

            await self.uow.commit()
            logger.info(f"User {user_id} canceled subscription {subscription_id}")

            subscription = await self.subscription_repo.get_by_id(subscription_id)
            return Return.ok(SubscriptionDTO.from_entity(subscription))

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="CANCEL_SUBSCRIPTION_FAILED",
                    message="Failed to cancel subscription",
                    reason=str(e),
                )
            )
