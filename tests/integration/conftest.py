import json
import pytest
import pytest_asyncio
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import src.domain  # noqa: F401
from tests.fixtures.json_loader import TestDataLoader
from src.depends import get_session, get_webhook_config
from src.adapter.repositories.credit_account_repository import SqlAlchemyCreditAccountRepository
from src.adapter.repositories.payment_transaction_repository import SqlAlchemyPaymentTransactionRepository
from src.adapter.repositories.product_repository import SqlAlchemyProductRepository
from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.use_cases.payments.dtos import PaymentWebhookConfig, WebhookCommandDTO
from src.app.use_cases.payments.reconcile_payment_event import ReconcilePaymentEvent
from src.domain.credit_account import CreditAccount
from src.domain.product import Product, ProductType

WEBHOOK_SECRET = "integration-secret"


@pytest_asyncio.fixture
def test_data():
    return TestDataLoader()


@pytest_asyncio.fixture(scope="function")
async def engine():
    """In-memory SQLite database shared by every connection of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Create a new database session for each test"""
    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with Session() as session:
        yield session


@pytest.fixture
def webhook_config():
    return PaymentWebhookConfig(
        provider="lava",
        webhook_secret=WEBHOOK_SECRET,
        subscription_period_days=30,
        store_timeout_seconds=5,
    )


@pytest.fixture
def reconciler(db_session, webhook_config):
    """ReconcilePaymentEvent wired to the test database"""
    return ReconcilePaymentEvent(
        uow=SqlAlchemyUnitOfWork(db_session),
        transaction_repo=SqlAlchemyPaymentTransactionRepository(db_session),
        subscription_repo=SqlAlchemySubscriptionRepository(db_session),
        account_repo=SqlAlchemyCreditAccountRepository(db_session),
        product_repo=SqlAlchemyProductRepository(db_session),
        config=webhook_config,
    )


@pytest.fixture
def deliver(reconciler, webhook_config):
    """Send one JSON webhook through the reconciler"""

    async def _deliver(payload):
        return await reconciler.execute(
            WebhookCommandDTO(
                body=json.dumps(payload).encode("utf-8"),
                content_type="application/json",
                header_secret=webhook_config.webhook_secret,
            )
        )

    return _deliver


@pytest_asyncio.fixture
async def buyer(db_session):
    account = CreditAccount(email="buyer@example.com")
    db_session.add(account)
    await db_session.commit()
    await db_session.refresh(account)
    return account


@pytest_asyncio.fixture
async def credit_pack(db_session):
    product = Product(
        slug="pack-3",
        name="3 credits",
        product_type=ProductType.ONE_TIME,
        price=Decimal("4.99"),
        currency="USD",
        credits_granted=3,
        provider_offer_id="offer-pack-10",
    )
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest_asyncio.fixture
async def pro_plan(db_session):
    product = Product(
        slug="pro-monthly",
        name="Pro",
        product_type=ProductType.SUBSCRIPTION,
        price=Decimal("9.99"),
        currency="USD",
        monthly_credits=12,
        provider_offer_id="offer-pro-monthly",
    )
    db_session.add(product)
    await db_session.commit()
    await db_session.refresh(product)
    return product


@pytest.fixture
def app(db_session, webhook_config):
    """Application with database session and webhook config overrides"""
    from src.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    # Override the session dependency to use test session
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_webhook_config] = lambda: webhook_config
    return app


@pytest_asyncio.fixture
async def client(app):
    """Create test client for the application"""
    # Use ASGITransport for httpx AsyncClient
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
