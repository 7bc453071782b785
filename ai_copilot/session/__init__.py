"""Conversation state and chat client."""
from .chat import ChatClient
from .conversation import MAX_HISTORY, ConversationStore

__all__ = ["ChatClient", "ConversationStore", "MAX_HISTORY"]
