"""Shared fixtures: fake bot adapter, transport errors and an in-memory database."""
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.features.conversations.models import ConversationReferenceModel
from api.features.notifications.cards import AdaptiveCardService
from api.features.notifications.credentials import BotCredentialProvider
from api.features.notifications.dispatcher import NotificationDispatcher
from api.features.notifications.retry import RetryPolicy
from api.shared.entities.registry import BaseEntity
from tests.fakes import FakeAdapter, RecordingSleep


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, base_delay=1.5, max_delay=4.5)


@pytest.fixture
def credentials() -> BotCredentialProvider:
    return BotCredentialProvider(app_id="app-123", app_password="secret")


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def dispatcher(adapter, credentials, retry_policy, sleep) -> NotificationDispatcher:
    return NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep, batch_size=2)


@pytest.fixture
def card_service() -> AdaptiveCardService:
    return AdaptiveCardService(app_base_uri="https://timesheet.example.com/", manifest_id="manifest-1")


@pytest.fixture
def target() -> ConversationReferenceModel:
    return ConversationReferenceModel(
        user_id="u1",
        conversation_id="c1",
        service_url="https://smba.example.com",
        installed_on=datetime(2025, 9, 1, tzinfo=timezone.utc),
    )


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
