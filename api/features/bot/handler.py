"""Teams activity handlers for bot install and conversation updates."""
from datetime import datetime, timezone

import structlog
from botbuilder.core import MessageFactory, TurnContext
from botbuilder.core.teams import TeamsActivityHandler

from api.features.conversations.service import ConversationService
from api.features.notifications.cards import AdaptiveCardService
from infra.resources import DatabaseResource

logger = structlog.get_logger("bot")

PERSONAL_CONVERSATION_TYPE = "personal"


class AppLifecycleHandler:
    """Stores the user's conversation when the bot is installed."""

    def __init__(
        self,
        conversation_service: ConversationService,
        card_service: AdaptiveCardService,
        database: DatabaseResource,
    ):
        self.conversation_service = conversation_service
        self.card_service = card_service
        self.database = database

    async def on_bot_installed_in_personal(self, turn_context: TurnContext) -> bool:
        """Upsert the installing user's conversation reference.

        The welcome card is sent on first install only. Returns True for a
        first install.
        """
        activity = turn_context.activity
        user_id = activity.from_property.aad_object_id
        logger.info("bot.installed.personal", user_id=user_id)

        session = self.database.get_session()
        try:
            existing = await self.conversation_service.get_reference(user_id, session)
            if existing is None:
                welcome = self.card_service.welcome_card()
                await turn_context.send_activity(
                    MessageFactory.attachment(welcome.to_attachment())
                )
            await self.conversation_service.upsert_reference(
                user_id=user_id,
                conversation_id=activity.conversation.id,
                service_url=activity.service_url,
                installed_on=datetime.now(timezone.utc),
                db_session=session,
            )
        finally:
            await session.close()

        logger.info("bot.installed.stored", user_id=user_id, first_install=existing is None)
        return existing is None


class TimesheetActivityHandler(TeamsActivityHandler):
    """Routes conversation updates of the timesheet bot."""

    def __init__(self, lifecycle_handler: AppLifecycleHandler):
        super().__init__()
        self.lifecycle_handler = lifecycle_handler

    async def on_conversation_update_activity(self, turn_context: TurnContext):
        activity = turn_context.activity
        members_added = activity.members_added or []
        logger.info(
            "bot.conversation_update",
            conversation_type=activity.conversation.conversation_type,
            members_added=len(members_added),
            members_removed=len(activity.members_removed or []),
        )
        try:
            if activity.conversation.conversation_type == PERSONAL_CONVERSATION_TYPE and any(
                member.id == activity.recipient.id for member in members_added
            ):
                await self.lifecycle_handler.on_bot_installed_in_personal(turn_context)
        except Exception as e:
            logger.error("bot.conversation_update.failed", error=str(e), exc_info=True)
            raise
