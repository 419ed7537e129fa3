"""Conversation-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


@dataclass(frozen=True)
class ConversationContext:
    """Continuation state a backend needs to carry on a multi-turn exchange.

    Both fields absent means "start a fresh conversation".
    """

    conversation_id: str | None = None
    parent_message_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.conversation_id is None and self.parent_message_id is None


@dataclass(frozen=True)
class BackendReply:
    """Final result of one backend exchange."""

    text: str
    context: ConversationContext


@dataclass
class TranscriptMessage:
    """A single turn stored for backends that keep their own history."""

    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    parent_id: str | None = None
