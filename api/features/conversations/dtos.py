"""DTOs for the Conversations feature."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.features.conversations.entities.conversation import (
    CONVERSATION_ID_MAX_LENGTH,
    SERVICE_URL_MAX_LENGTH,
)
from api.shared.dtos import BaseDTO


class ConversationDTO(BaseDTO):
    """Stored conversation reference."""

    user_id: str = Field(description="User identifier")
    conversation_id: str = Field(description="Bot conversation id")
    service_url: str = Field(description="Messaging service base URL")
    installed_on: Optional[datetime] = Field(
        default=None, description="Bot install timestamp"
    )


class UpsertConversationRequest(BaseDTO):
    """Create or refresh the conversation reference of a user."""

    conversation_id: str = Field(
        min_length=1, max_length=CONVERSATION_ID_MAX_LENGTH, description="Bot conversation id"
    )
    service_url: str = Field(
        min_length=1, max_length=SERVICE_URL_MAX_LENGTH, description="Messaging service base URL"
    )
    installed_on: Optional[datetime] = Field(
        default=None, description="Install timestamp, defaults to now"
    )


class ConversationLookupRequest(BaseDTO):
    """Look up the references of several users at once."""

    user_ids: List[str] = Field(min_length=1, description="User identifiers")


class ConversationListResponse(BaseDTO):
    """Conversation references found for a lookup."""

    items: List[ConversationDTO] = Field(description="Stored references")
    missing: List[str] = Field(
        default_factory=list, description="Requested users with no stored reference"
    )
    total: int = Field(description="Number of references found")
