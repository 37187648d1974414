from api.features.conversations.entities.conversation import Conversation

__all__ = ["Conversation"]
