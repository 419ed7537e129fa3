"""Core data models for the relay."""

from .conversation import BackendReply, ConversationContext, TranscriptMessage
from .requests import ChatRequest, MessageHandle, RequestOutcome, RequestState
from .usage import UsageRecord

__all__ = [
    # Conversation
    "ConversationContext",
    "BackendReply",
    "TranscriptMessage",
    # Requests
    "ChatRequest",
    "MessageHandle",
    "RequestOutcome",
    "RequestState",
    # Usage
    "UsageRecord",
]
