from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.app.use_cases.payments.dtos import PaymentWebhookConfig

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_webhook_config() -> PaymentWebhookConfig:
    return PaymentWebhookConfig(
        provider=ApplicationConfig.PAYMENT_PROVIDER,
        webhook_secret=ApplicationConfig.PAYMENT_WEBHOOK_SECRET,
        subscription_period_days=ApplicationConfig.SUBSCRIPTION_PERIOD_DAYS,
        store_timeout_seconds=ApplicationConfig.WEBHOOK_STORE_TIMEOUT_SECONDS,
    )


def get_subscription_period_days() -> int:
    return ApplicationConfig.SUBSCRIPTION_PERIOD_DAYS


def subscriptions_enabled() -> bool:
    return not ApplicationConfig.DISABLE_SUBSCRIPTIONS
