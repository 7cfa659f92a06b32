"""Payment Intent Routes

Called by the checkout flow right after the provider created an invoice.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.api.schemas.billing_request import PaymentIntentRequestSchema
from src.app.use_cases.payments.dtos import (
    PaymentIntentResponseDTO,
    PaymentWebhookConfig,
    RegisterPaymentIntentCommandDTO,
)
from src.app.use_cases.payments.register_payment_intent import RegisterPaymentIntent
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.payment_transaction_repository import SqlAlchemyPaymentTransactionRepository
from src.adapter.repositories.product_repository import SqlAlchemyProductRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session, get_webhook_config, subscriptions_enabled
from src.api.error import ClientError

router = APIRouter(prefix="/billing/payments", tags=["Payments"])

ERROR_STATUS = {
    "PRODUCT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SUBSCRIPTIONS_DISABLED": status.HTTP_400_BAD_REQUEST,
    "DUPLICATE_ORDER": status.HTTP_409_CONFLICT,
}


@router.post(
    "/intents",
    response_model=PaymentIntentResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {
            "description": "Unknown product or user",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "PRODUCT_NOT_FOUND",
                            "message": "Product pro-monthly not found"
                        }
                    }
                }
            }
        },
        409: {
            "description": "Order id already registered",
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": "DUPLICATE_ORDER",
                            "message": "Order a1b2 is already registered"
                        }
                    }
                }
            }
        }
    }
)
async def register_payment_intent(
    request: PaymentIntentRequestSchema,
    session: AsyncSession = Depends(get_session),
    config: PaymentWebhookConfig = Depends(get_webhook_config),
    enabled: bool = Depends(subscriptions_enabled),
):
    """
    Record a pending purchase before redirecting the buyer to the provider.

    The webhook that later reports the payment is matched against this
    record by `provider_order_id`.

    **Returns:**
    - 201: Pending transaction created
    - 400: Subscriptions are disabled
    - 404: Unknown product or user
    - 409: Order id already registered
    """
    command = RegisterPaymentIntentCommandDTO(
        user_id=request.user_id,
        product_slug=request.product_slug,
        provider_order_id=request.provider_order_id,
    )

    use_case = RegisterPaymentIntent(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyPaymentTransactionRepository(session),
        product_repo=SqlAlchemyProductRepository(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        provider=config.provider,
        subscriptions_enabled=enabled,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(
            result.error,
            status_code=ERROR_STATUS.get(result.error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        )

    return result.value
