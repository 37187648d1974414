"""Proactive delivery of cards into users' bot conversations.

Delivery is best effort: `send_notification` never raises, so a lost
notification can never fail the business action that triggered it.
"""
import asyncio
import random
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set, Tuple

import structlog
from botbuilder.core import BotAdapter, MessageFactory, TurnContext
from botbuilder.schema import (
    Activity,
    ChannelAccount,
    ConversationAccount,
    ConversationReference,
)

from api.features.conversations.models import ConversationReferenceModel
from api.features.notifications.cards import NotificationCard
from api.features.notifications.credentials import TEAMS_CHANNEL_ID, BotCredentialProvider
from api.features.notifications.retry import (
    RetryPolicy,
    execute_with_retry,
    transport_status_code,
)
from api.shared.utils import batched

logger = structlog.get_logger("notifications.dispatcher")

Delivery = Tuple[Optional[ConversationReferenceModel], Optional[NotificationCard]]


class NotificationDispatcher:
    """Single entry point for sending a card to a user."""

    def __init__(
        self,
        adapter: BotAdapter,
        credentials: BotCredentialProvider,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        batch_size: int = 40,
    ):
        self.adapter = adapter
        self.credentials = credentials
        self.policy = policy
        self.sleep = sleep
        self.rng = rng
        self.batch_size = batch_size
        self._pending: Set[asyncio.Task] = set()

    def build_reference(self, target: ConversationReferenceModel) -> ConversationReference:
        return ConversationReference(
            bot=ChannelAccount(id=self.credentials.bot_id),
            channel_id=TEAMS_CHANNEL_ID,
            conversation=ConversationAccount(id=target.conversation_id),
            service_url=target.service_url,
        )

    async def _continue_with(self, reference: ConversationReference, activity: Activity) -> None:
        """Send one activity into an existing conversation.

        The adapter routes errors raised inside a turn to its on_turn_error
        handler, so a failed send is captured in the callback and raised here.
        """
        failures: List[BaseException] = []

        async def send_card(turn_context: TurnContext):
            try:
                await turn_context.send_activity(activity)
            except Exception as e:
                failures.append(e)

        await self.adapter.continue_conversation(reference, send_card, self.credentials.app_id)
        if failures:
            raise failures[0]

    async def send_notification(
        self,
        target: Optional[ConversationReferenceModel],
        card: Optional[NotificationCard],
    ) -> None:
        """Send card to the user addressed by target.

        Incomplete addressing or a missing card is a silent no-op. Terminal
        failures are logged with the user id and swallowed.
        """
        if target is None or card is None or not target.is_addressable():
            return

        try:
            self.credentials.trust_service_url(target.service_url)
            reference = self.build_reference(target)
            activity = MessageFactory.attachment(card.to_attachment())
            await execute_with_retry(
                lambda: self._continue_with(reference, activity),
                self.policy,
                sleep=self.sleep,
                rng=self.rng,
            )
        except Exception as e:
            logger.error(
                "notification.send_failed",
                user_id=target.user_id,
                card_kind=card.kind.value,
                status_code=transport_status_code(e),
                error=str(e),
                exc_info=True,
            )
            return

        logger.debug(
            "notification.sent", user_id=target.user_id, card_kind=card.kind.value
        )

    def dispatch_in_background(
        self,
        target: Optional[ConversationReferenceModel],
        card: Optional[NotificationCard],
    ) -> asyncio.Task:
        """Start a send without waiting for it; must be called inside a running loop."""
        task = asyncio.create_task(self.send_notification(target, card))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def broadcast(self, deliveries: Iterable[Delivery]) -> int:
        """Send many cards, at most batch_size concurrently.

        Returns the number of deliveries attempted.
        """
        attempted = 0
        for batch in batched(deliveries, self.batch_size):
            await asyncio.gather(
                *(self.send_notification(target, card) for target, card in batch)
            )
            attempted += len(batch)
        logger.info("notification.broadcast.finished", attempted=attempted)
        return attempted

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for background sends started by this dispatcher."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
