"""Service layer for the Conversations feature."""
from datetime import datetime
from typing import Dict, Iterable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversations.exceptions import (
    ConversationNotFoundError,
    InvalidConversationReferenceError,
)
from api.features.conversations.models import ConversationReferenceModel
from api.features.conversations.repository import ConversationRepository
from api.shared.exceptions import DatabaseError

logger = structlog.get_logger("conversations.service")


class ConversationService:
    """Lookup and upsert of per-user conversation references."""

    def __init__(self, repository_class: type[ConversationRepository] = ConversationRepository):
        self.repository_class = repository_class

    async def get_reference(
        self, user_id: str, db_session: AsyncSession
    ) -> Optional[ConversationReferenceModel]:
        """Get the stored reference for a user, or None."""
        entity = await self.repository_class(db_session).get_by_user_id(user_id)
        return ConversationReferenceModel.from_entity(entity) if entity else None

    async def require_reference(
        self, user_id: str, db_session: AsyncSession
    ) -> ConversationReferenceModel:
        reference = await self.get_reference(user_id, db_session)
        if reference is None:
            raise ConversationNotFoundError(user_id)
        return reference

    async def get_references(
        self, user_ids: Iterable[str], db_session: AsyncSession
    ) -> Dict[str, ConversationReferenceModel]:
        """Map user id to stored reference; users without one are absent."""
        entities = await self.repository_class(db_session).list_by_user_ids(user_ids)
        return {
            entity.user_id: ConversationReferenceModel.from_entity(entity)
            for entity in entities
        }

    async def upsert_reference(
        self,
        *,
        user_id: str,
        conversation_id: str,
        service_url: str,
        db_session: AsyncSession,
        installed_on: Optional[datetime] = None,
    ) -> tuple[ConversationReferenceModel, bool]:
        """Store the reference for a user, replacing any previous one.

        Returns the stored reference and whether this was the first install.
        """
        missing = [
            name
            for name, value in (
                ("user_id", user_id),
                ("conversation_id", conversation_id),
                ("service_url", service_url),
            )
            if not value
        ]
        if missing:
            raise InvalidConversationReferenceError(
                "Conversation reference is missing required fields",
                {"missing": missing},
            )

        try:
            entity, created = await self.repository_class(db_session).upsert(
                user_id=user_id,
                conversation_id=conversation_id,
                service_url=service_url,
                installed_on=installed_on,
            )
            await db_session.commit()
        except SQLAlchemyError as e:
            await db_session.rollback()
            logger.error("conversation.upsert_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to store conversation for user '{user_id}'") from e

        logger.info("conversation.upserted", user_id=user_id, created=created)
        return ConversationReferenceModel.from_entity(entity), created
