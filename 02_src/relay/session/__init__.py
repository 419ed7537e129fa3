"""Conversation session module."""

from .conversation import ConversationSession, IConversationSession

__all__ = ["ConversationSession", "IConversationSession"]
