"""Conversation reference entity: how to reach a user through the bot."""
from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity

CONVERSATION_ID_MAX_LENGTH = 255
SERVICE_URL_MAX_LENGTH = 2048


class Conversation(BaseEntity):
    """Bot-user conversation details, one row per user."""

    # AAD object id of the user; never reused
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    conversation_id: Mapped[str] = mapped_column(
        String(CONVERSATION_ID_MAX_LENGTH), nullable=False
    )
    service_url: Mapped[str] = mapped_column(
        String(SERVICE_URL_MAX_LENGTH), nullable=False
    )
    bot_installed_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("ix_conversation_user_id", "user_id", unique=True),
    )
