"""Router for the Conversations feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversations.controller import ConversationController
from api.features.conversations.dtos import (
    ConversationDTO,
    ConversationListResponse,
    ConversationLookupRequest,
    UpsertConversationRequest,
)
from api.shared.db import get_db_session
from api.shared.response import ResponseModel
from di.container import ApplicationContainer

router = APIRouter()


@router.get("/{user_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def get_conversation(
    user_id: str,
    controller: ConversationController = Depends(
        Provide[ApplicationContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Get the stored bot conversation of a user."""
    return await controller.get_conversation(user_id, db_session)


@router.post("/lookup", response_model=ResponseModel[ConversationListResponse])
@inject
async def lookup_conversations(
    request: ConversationLookupRequest,
    controller: ConversationController = Depends(
        Provide[ApplicationContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Get the stored conversations of several users."""
    return await controller.lookup_conversations(request, db_session)


@router.put("/{user_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def upsert_conversation(
    user_id: str,
    request: UpsertConversationRequest,
    controller: ConversationController = Depends(
        Provide[ApplicationContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Create or refresh the bot conversation of a user."""
    return await controller.upsert_conversation(user_id, request, db_session)
