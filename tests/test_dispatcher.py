import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botbuilder.core import BotFrameworkAdapter
from botbuilder.schema import ResourceResponse

from api.features.conversations.models import ConversationReferenceModel
from api.features.notifications.cards import CardKind, NotificationCard
from api.features.notifications.credentials import _TRUSTED_SERVICE_URLS
from api.features.notifications.dispatcher import NotificationDispatcher
from infra.resources import BotAdapterResource
from tests.fakes import FakeAdapter, transport_error


@pytest.fixture
def card() -> NotificationCard:
    return NotificationCard(
        kind=CardKind.APPROVED,
        title="Approved",
        content={"type": "AdaptiveCard", "version": "1.2", "body": []},
    )


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field", ["user_id", "conversation_id", "service_url"]
    )
    async def test_incomplete_target_is_a_silent_noop(self, dispatcher, adapter, target, card, field):
        incomplete = target.model_copy(update={field: ""})

        with patch("api.features.notifications.dispatcher.logger") as log:
            await dispatcher.send_notification(incomplete, card)

        assert adapter.call_count == 0
        log.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_card_is_a_silent_noop(self, dispatcher, adapter, target):
        await dispatcher.send_notification(target, None)
        assert adapter.call_count == 0

    @pytest.mark.asyncio
    async def test_missing_target_is_a_silent_noop(self, dispatcher, adapter, card):
        await dispatcher.send_notification(None, card)
        assert adapter.call_count == 0


@pytest.mark.asyncio
async def test_throttled_twice_then_delivered(credentials, retry_policy, sleep, target, card):
    adapter = FakeAdapter(failures=[transport_error(429), transport_error(429)])
    dispatcher = NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep)

    with patch("api.features.notifications.dispatcher.logger") as log:
        result = await dispatcher.send_notification(target, card)

    assert result is None
    assert adapter.call_count == 3
    assert len(sleep.delays) == 2
    assert all(1.5 <= delay <= 4.5 for delay in sleep.delays)
    log.error.assert_not_called()

    assert len(adapter.sent_activities) == 1
    attachment = adapter.sent_activities[0].attachments[0]
    assert attachment.content_type == "application/vnd.microsoft.card.adaptive"
    assert attachment.content == card.content


@pytest.mark.asyncio
async def test_conversation_reference_addresses_teams_bot(dispatcher, adapter, target, card):
    await dispatcher.send_notification(target, card)

    reference, bot_id = adapter.calls[0]
    assert bot_id == "app-123"
    assert reference.bot.id == "28:app-123"
    assert reference.channel_id == "msteams"
    assert reference.conversation.id == "c1"
    assert reference.service_url == "https://smba.example.com"


@pytest.mark.asyncio
async def test_service_url_is_trusted_before_send(dispatcher, target, card):
    url = "https://smba.trusted-before-send.example.com"
    await dispatcher.send_notification(target.model_copy(update={"service_url": url}), card)
    assert url in _TRUSTED_SERVICE_URLS


@pytest.mark.asyncio
async def test_unclassified_failure_is_logged_and_swallowed(credentials, retry_policy, sleep, target, card):
    adapter = FakeAdapter(failures=[RuntimeError("connection reset")])
    dispatcher = NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep)

    with patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, card)

    assert adapter.call_count == 1
    log.error.assert_called_once()
    assert log.error.call_args.kwargs["user_id"] == "u1"


@pytest.mark.asyncio
async def test_retry_exhaustion_is_logged_and_swallowed(credentials, retry_policy, sleep, target, card):
    adapter = FakeAdapter(failures=[transport_error(502) for _ in range(3)])
    dispatcher = NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep)

    with patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, card)

    assert adapter.call_count == 3
    assert log.error.call_args.kwargs["status_code"] == 502


@pytest.mark.asyncio
async def test_not_found_is_not_retried(credentials, retry_policy, sleep, target, card):
    adapter = FakeAdapter(failures=[transport_error(404)])
    dispatcher = NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep)

    await dispatcher.send_notification(target, card)

    assert adapter.call_count == 1
    assert sleep.delays == []


def test_trusting_a_url_twice_is_idempotent(credentials):
    url = "https://smba.idempotent.example.com"

    assert credentials.trust_service_url(url) is True
    assert credentials.trust_service_url(url) is False
    assert url in _TRUSTED_SERVICE_URLS


@pytest.mark.asyncio
async def test_background_dispatch_does_not_block_caller(dispatcher, adapter, target, card):
    task = dispatcher.dispatch_in_background(target, card)
    assert isinstance(task, asyncio.Task)

    await dispatcher.drain()

    assert adapter.call_count == 1
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_background_failure_never_surfaces(credentials, retry_policy, sleep, target, card):
    adapter = FakeAdapter(failures=[ValueError("bad payload")])
    dispatcher = NotificationDispatcher(adapter, credentials, retry_policy, sleep=sleep)

    task = dispatcher.dispatch_in_background(target, card)
    await dispatcher.drain()

    assert task.exception() is None


@pytest.mark.asyncio
async def test_broadcast_sends_every_delivery_in_batches(dispatcher, adapter, card):
    targets = [
        ConversationReferenceModel(
            user_id=f"u{i}", conversation_id=f"c{i}", service_url="https://smba.example.com"
        )
        for i in range(5)
    ]

    attempted = await dispatcher.broadcast((t, card) for t in targets)

    assert attempted == 5
    assert [ref.conversation.id for ref, _ in adapter.calls] == [f"c{i}" for i in range(5)]


@pytest.fixture
def bot_adapter() -> BotFrameworkAdapter:
    adapter = BotAdapterResource(app_id="app-123", app_password="secret").init()
    adapter.on_turn_error = AsyncMock()
    return adapter


@pytest.mark.asyncio
async def test_bot_framework_adapter_throttling_is_retried(
    bot_adapter, credentials, retry_policy, sleep, target, card
):
    bot_adapter.send_activities = AsyncMock(
        side_effect=[transport_error(429), transport_error(429), [ResourceResponse(id="m1")]]
    )
    dispatcher = NotificationDispatcher(bot_adapter, credentials, retry_policy, sleep=sleep)

    with patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, card)

    assert bot_adapter.send_activities.await_count == 3
    assert len(sleep.delays) == 2
    log.error.assert_not_called()
    bot_adapter.on_turn_error.assert_not_awaited()
    _, activities = bot_adapter.send_activities.await_args.args
    assert activities[0].attachments[0].content == card.content
    assert activities[0].conversation.id == "c1"


@pytest.mark.asyncio
async def test_bot_framework_adapter_fatal_error_is_logged_with_user(
    bot_adapter, credentials, retry_policy, sleep, target, card
):
    bot_adapter.send_activities = AsyncMock(side_effect=transport_error(404))
    dispatcher = NotificationDispatcher(bot_adapter, credentials, retry_policy, sleep=sleep)

    with patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, card)

    assert bot_adapter.send_activities.await_count == 1
    assert sleep.delays == []
    bot_adapter.on_turn_error.assert_not_awaited()
    assert log.error.call_args.kwargs["user_id"] == "u1"
    assert log.error.call_args.kwargs["status_code"] == 404


@pytest.mark.asyncio
async def test_card_rendering_failure_is_logged_and_swallowed(dispatcher, adapter, target):
    broken = MagicMock(spec=NotificationCard)
    broken.kind = CardKind.WELCOME
    broken.to_attachment.side_effect = ValueError("bad card")

    with patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, broken)

    assert adapter.call_count == 0
    assert log.error.call_args.kwargs["user_id"] == "u1"


@pytest.mark.asyncio
async def test_trust_failure_is_logged_and_swallowed(dispatcher, adapter, target, card):
    with patch(
        "api.features.notifications.credentials.MicrosoftAppCredentials.trust_service_url",
        side_effect=RuntimeError("registry unavailable"),
    ), patch("api.features.notifications.dispatcher.logger") as log:
        await dispatcher.send_notification(target, card)

    assert adapter.call_count == 0
    log.error.assert_called_once()
