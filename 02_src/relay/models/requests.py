"""Request and notification data models."""

from dataclasses import dataclass
from enum import Enum


class RequestState(str, Enum):
    """Lifecycle of one request inside the pipeline."""

    ARRIVED = "arrived"
    QUEUED = "queued"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChatRequest:
    """An inbound user message to be answered by a backend."""

    chat_id: int
    message_id: int
    text: str
    user_id: int | None = None
    username: str | None = None
    chat_type: str = "private"
    chat_title: str | None = None

    @property
    def key(self) -> str:
        """Correlation key: source chat plus source message."""
        return f"{self.chat_id}:{self.message_id}"

    def describe_sender(self) -> str:
        user = f"@{self.username or ''} ({self.user_id})"
        if self.chat_type == "private":
            return f"{user} in private chat"
        return f"{user} in group {self.chat_title} ({self.chat_id})"


@dataclass(frozen=True)
class MessageHandle:
    """Identifies a message already delivered through the notification channel."""

    chat_id: int
    message_id: int
    text: str = ""


@dataclass(frozen=True)
class RequestOutcome:
    """What happened to a request once its dispatch task settled."""

    key: str
    state: RequestState
    text: str | None = None
    tokens: int = 0
