"""Controller for the Conversations feature."""
from typing import List

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversations.dtos import (
    ConversationDTO,
    ConversationListResponse,
    ConversationLookupRequest,
    UpsertConversationRequest,
)
from api.features.conversations.exceptions import (
    ConversationNotFoundError,
    InvalidConversationReferenceError,
)
from api.features.conversations.models import ConversationReferenceModel
from api.features.conversations.service import ConversationService
from api.shared.exceptions import DatabaseError
from api.shared.response import ResponseModel

logger = structlog.get_logger("conversations")


def _to_dto(reference: ConversationReferenceModel) -> ConversationDTO:
    return ConversationDTO(
        user_id=reference.user_id,
        conversation_id=reference.conversation_id,
        service_url=reference.service_url,
        installed_on=reference.installed_on,
    )


class ConversationController:
    """Controller for conversation reference operations."""

    def __init__(self, conversation_service: ConversationService):
        self.conversation_service = conversation_service

    async def get_conversation(
        self, user_id: str, db_session: AsyncSession
    ) -> ResponseModel[ConversationDTO]:
        try:
            reference = await self.conversation_service.require_reference(user_id, db_session)
            return ResponseModel.success(
                data=_to_dto(reference), message="Conversation retrieved successfully"
            )
        except ConversationNotFoundError as e:
            logger.warning("conversation.not_found", user_id=user_id)
            raise HTTPException(status_code=404, detail=e.message)

    async def lookup_conversations(
        self, request: ConversationLookupRequest, db_session: AsyncSession
    ) -> ResponseModel[ConversationListResponse]:
        references = await self.conversation_service.get_references(
            request.user_ids, db_session
        )
        missing: List[str] = [u for u in dict.fromkeys(request.user_ids) if u not in references]
        return ResponseModel.success(
            data=ConversationListResponse(
                items=[_to_dto(r) for r in references.values()],
                missing=missing,
                total=len(references),
            ),
            message="Conversations retrieved successfully",
        )

    async def upsert_conversation(
        self, user_id: str, request: UpsertConversationRequest, db_session: AsyncSession
    ) -> ResponseModel[ConversationDTO]:
        try:
            reference, created = await self.conversation_service.upsert_reference(
                user_id=user_id,
                conversation_id=request.conversation_id,
                service_url=request.service_url,
                installed_on=request.installed_on,
                db_session=db_session,
            )
        except InvalidConversationReferenceError as e:
            logger.warning("conversation.invalid_reference", user_id=user_id, details=e.details)
            raise HTTPException(status_code=400, detail=e.message)
        except DatabaseError as e:
            raise HTTPException(status_code=500, detail=e.message)

        return ResponseModel.success(
            data=_to_dto(reference),
            message="Conversation created" if created else "Conversation updated",
        )
