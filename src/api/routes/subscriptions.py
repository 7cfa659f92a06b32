"""Subscription API Routes"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.billing.dtos import EffectiveSubscriptionDTO, SubscriptionDTO
from src.app.use_cases.billing.subscriptions import (
    CancelSubscription,
    GetEffectiveSubscription,
    ListSubscriptions,
)
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session
from src.api.error import ClientError

router = APIRouter(prefix="/billing/subscriptions", tags=["Subscriptions"])


@router.get(
    "/{user_id}",
    response_model=List[SubscriptionDTO],
    status_code=status.HTTP_200_OK,
)
async def list_subscriptions(
    user_id: int,
    session: AsyncSession = Depends(get_session)
):
    """List every subscription of a user, newest first."""
    use_case = ListSubscriptions(SqlAlchemySubscriptionRepository(session))
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error)

    return result.value


@router.get(
    "/{user_id}/effective",
    response_model=EffectiveSubscriptionDTO,
    status_code=status.HTTP_200_OK,
    responses={404: {"description": "No subscription grants quota right now"}}
)
async def get_effective_subscription(
    user_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    Get the subscription that currently grants monthly quota.

    A canceled subscription stays effective until its paid period ends.

    **Returns:**
    - 200: Effective subscription and its monthly credits
    - 404: None
    """
    use_case = GetEffectiveSubscription(SqlAlchemySubscriptionRepository(session))
    result = await use_case.execute(user_id)

    if result.is_err():
        raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)

    return result.value


@router.post(
    "/{user_id}/{subscription_id}/cancel",
    response_model=SubscriptionDTO,
    status_code=status.HTTP_200_OK,
    responses={404: {"description": "Unknown subscription or not owned by the user"}}
)
async def cancel_subscription(
    user_id: int,
    subscription_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    Cancel a subscription at the end of its paid period.

    **Returns:**
    - 200: Subscription canceled
    - 404: Unknown subscription or not owned by the user
    """
    use_case = CancelSubscription(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemySubscriptionRepository(session),
    )
    result = await use_case.execute(user_id, subscription_id)

    if result.is_err():
        if result.error.code == "SUBSCRIPTION_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value
