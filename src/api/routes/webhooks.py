"""Payment Webhook Routes

Inbound notifications from the payment provider.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.use_cases.payments.dtos import PaymentWebhookConfig, WebhookAckDTO, WebhookCommandDTO
from src.app.use_cases.payments.reconcile_payment_event import ReconcilePaymentEvent
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.payment_transaction_repository import SqlAlchemyPaymentTransactionRepository
from src.adapter.repositories.product_repository import SqlAlchemyProductRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_session, get_webhook_config
from src.api.error import ClientError

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

ERROR_STATUS = {
    "INVALID_PAYLOAD": status.HTTP_400_BAD_REQUEST,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
}


@router.post(
    "/lava",
    response_model=WebhookAckDTO,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"description": "Body is neither JSON nor form data"},
        401: {"description": "Shared secret missing or wrong"},
        500: {"description": "Event could not be stored; the provider should retry"},
    },
)
async def lava_webhook(
    request: Request,
    session: AsyncSession = Depends(get_session),
    config: PaymentWebhookConfig = Depends(get_webhook_config),
):
    """
    Reconcile one payment notification.

    Accepts JSON or `application/x-www-form-urlencoded` bodies. The shared
    secret is read from the `X-Api-Key` header, the `api_key` / `apiKey`
    query parameter or the body, in that order.

    **Returns:**
    - 200: Event processed or safely ignored (see the ack markers)
    - 400: Unparseable body
    - 401: Secret mismatch
    - 500: Storage failure, nothing was persisted
    """
    command = WebhookCommandDTO(
        body=await request.body(),
        content_type=request.headers.get("content-type"),
        header_secret=request.headers.get("x-api-key"),
        query_secret=request.query_params.get("api_key") or request.query_params.get("apiKey"),
    )

    use_case = ReconcilePaymentEvent(
        uow=SqlAlchemyUnitOfWork(session),
        transaction_repo=SqlAlchemyPaymentTransactionRepository(session),
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        account_repo=SqlAlchemyCreditAccountRepository(session),
        product_repo=SqlAlchemyProductRepository(session),
        config=config,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise ClientError(
            result.error,
            status_code=ERROR_STATUS.get(result.error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        )

    return result.value
