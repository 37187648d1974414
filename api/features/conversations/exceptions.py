"""Exceptions for the Conversations feature."""
from typing import Any, Dict, Optional

from api.shared.exceptions import TimesheetAppException


class ConversationException(TimesheetAppException):
    """Base exception for conversation reference operations."""
    pass


class ConversationNotFoundError(ConversationException):
    """Raised when no conversation reference is stored for a user."""

    def __init__(self, user_id: str):
        message = f"No conversation stored for user '{user_id}'"
        super().__init__(message, "CONVERSATION_NOT_FOUND", {"user_id": user_id})


class InvalidConversationReferenceError(ConversationException):
    """Raised when a conversation reference is missing addressing fields."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_CONVERSATION_REFERENCE", details)
