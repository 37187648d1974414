"""Models for the Conversations feature."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from api.features.conversations.entities.conversation import Conversation


class ConversationReferenceModel(BaseModel):
    """Addressing record for a proactive message to one user.

    Empty strings are allowed here; the dispatcher treats an incomplete
    reference as nothing to send.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: str = Field(default="", description="Stable user identifier")
    conversation_id: str = Field(default="", description="Bot conversation id")
    service_url: str = Field(default="", description="Messaging service base URL")
    installed_on: Optional[datetime] = Field(
        default=None, description="When the bot binding was created or refreshed"
    )

    @classmethod
    def from_entity(cls, entity: Conversation) -> "ConversationReferenceModel":
        """Create model from database entity."""
        return cls(
            user_id=entity.user_id,
            conversation_id=entity.conversation_id,
            service_url=entity.service_url,
            installed_on=entity.bot_installed_on,
        )

    def is_addressable(self) -> bool:
        return bool(self.user_id and self.conversation_id and self.service_url)
