"""Repository for conversation reference persistence."""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from api.features.conversations.entities.conversation import Conversation
from api.shared.base import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """Keyed access to conversation references by user id."""

    model = Conversation

    async def get_by_user_id(self, user_id: str) -> Optional[Conversation]:
        """Get the conversation reference stored for a user."""
        return await self.get_one_by_field("user_id", user_id)

    async def list_by_user_ids(self, user_ids: Iterable[str]) -> List[Conversation]:
        """Get the stored references for a set of users; unknown users are skipped."""
        return await self.get_by_field_in("user_id", set(user_ids))

    async def upsert(
        self,
        *,
        user_id: str,
        conversation_id: str,
        service_url: str,
        installed_on: Optional[datetime] = None,
    ) -> tuple[Conversation, bool]:
        """Insert or refresh the single reference for a user.

        Returns the entity and whether it was newly created.
        """
        installed_on = installed_on or datetime.now(timezone.utc)
        existing = await self.get_by_user_id(user_id)
        if existing is not None:
            existing.conversation_id = conversation_id
            existing.service_url = service_url
            existing.bot_installed_on = installed_on
            return await self.update(existing), False

        entity = Conversation(
            user_id=user_id,
            conversation_id=conversation_id,
            service_url=service_url,
            bot_installed_on=installed_on,
        )
        return await self.create(entity), True
