"""Billing API Routes

FastAPI routes for credit management operations.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import ConsumeRequestSchema
from src.app.use_cases.billing.dtos import (
    BalanceResponseDTO,
    ConsumeCommandDTO,
    ConsumeResponseDTO,
    CreditAvailabilityDTO,
)
from src.app.use_cases.billing.check_credit_availability import CheckCreditAvailability
from src.app.use_cases.billing.consume_credit import ConsumeCredit
from src.app.use_cases.billing.get_balance import GetBalance
from src.app.use_cases.billing.refresh_monthly_quota import RefreshMonthlyQuota
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session, get_subscription_period_days
from src.api.error import ClientError

router = APIRouter(prefix="/billing/credits", tags=["Billing"])

ACCOUNT_NOT_FOUND_RESPONSE = {
    "description": "Unknown user",
    "content": {
        "application/json": {
            "example": {
                "error": {
                    "code": "ACCOUNT_NOT_FOUND",
                    "message": "No credit account found for user 42"
                }
            }
        }
    }
}


@router.get(
    "/availability/{user_id}",
    response_model=CreditAvailabilityDTO,
    status_code=status.HTTP_200_OK,
    responses={404: ACCOUNT_NOT_FOUND_RESPONSE}
)
async def check_availability(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    period_days: int = Depends(get_subscription_period_days),
):
    """
    Tell whether the user can run one more paid feature use.

    An elapsed monthly quota period is refreshed first. `credit_kind` names
    the balance the next use would be charged to: monthly quota, then
    one-time credits, then the single free use.

    **Returns:**
    - 200: Availability decision
    - 404: Unknown user
    """
    account_repo = SqlAlchemyCreditAccountRepository(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    use_case = CheckCreditAvailability(
        SqlAlchemyUnitOfWork(session),
        account_repo,
        RefreshMonthlyQuota(account_repo, subscription_repo, period_days),
    )
    result = await use_case.execute(user_id)

    if result.is_err():
        if result.error.code == "ACCOUNT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value


@router.post(
    "/consume",
    response_model=ConsumeResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        402: {
            "description": "No credits left",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "INSUFFICIENT_CREDIT",
                            "message": "No credits available"
                        }
                    }
                }
            }
        },
        404: ACCOUNT_NOT_FOUND_RESPONSE,
    }
)
async def consume_credit(
    request: ConsumeRequestSchema,
    session: AsyncSession = Depends(get_session),
    period_days: int = Depends(get_subscription_period_days),
):
    """
    Charge one feature use.

    **Request body:**
    - `user_id` (required): User identifier
    - `credit_kind` (optional): `monthly`, `one_time` or `free`; picked
      automatically when omitted

    **Returns:**
    - 200: Credit consumed, new balances included
    - 402: Nothing left to charge
    - 404: Unknown user
    """
    account_repo = SqlAlchemyCreditAccountRepository(session)
    subscription_repo = SqlAlchemySubscriptionRepository(session)

    command = ConsumeCommandDTO(
        user_id=request.user_id,
        credit_kind=request.credit_kind,
    )

    use_case = ConsumeCredit(
        SqlAlchemyUnitOfWork(session),
        account_repo,
        RefreshMonthlyQuota(account_repo, subscription_repo, period_days),
    )
    result = await use_case.execute(command)

    if result.is_err():
        if result.error.code == "INSUFFICIENT_CREDIT":
            raise ClientError(result.error, status_code=status.HTTP_402_PAYMENT_REQUIRED)
        if result.error.code == "ACCOUNT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return result.value


@router.get(
    "/balance/{user_id}",
    response_model=BalanceResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={404: ACCOUNT_NOT_FOUND_RESPONSE}
)
async def get_balance(
    user_id: int,
    session: AsyncSession = Depends(get_session)
):
    """
    Get the stored balances of a user.

    **Returns:**
    - 200: Balance retrieved successfully
    - 404: Unknown user
    """
    use_case = GetBalance(SqlAlchemyCreditAccountRepository(session))
    result = await use_case.execute(user_id)

    if result.is_err():
        if result.error.code == "ACCOUNT_NOT_FOUND":
            raise ClientError(result.error, status_code=status.HTTP_404_NOT_FOUND)
        raise ClientError(result.error)

    return result.value
