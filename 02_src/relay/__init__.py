"""Queued chat relay core."""

from .app import Application, IApplication
from .config import Settings
from .dispatch import DispatchQueue, SequentialDispatchQueue
from .errors import BackendError, ConfigError, FormatError, NotificationError, RelayError
from .llm import AnthropicBackend, EchoBackend, IConversationBackend
from .models import (
    BackendReply,
    ChatRequest,
    ConversationContext,
    MessageHandle,
    RequestOutcome,
    RequestState,
    TranscriptMessage,
    UsageRecord,
)
from .notify import INotificationChannel, TelegramChannel
from .pipeline import IRequestPipeline, RequestPipeline
from .session import ConversationSession, IConversationSession
from .storage import IStorage, Storage
from .throttle import ThrottledEmitter
from .tracker import IPositionTracker, QueuePositionTracker
from .usage import IUsageLedger, UsageLedger

__all__ = [
    # Application
    "Application",
    "IApplication",
    "Settings",
    # Errors
    "RelayError",
    "BackendError",
    "NotificationError",
    "FormatError",
    "ConfigError",
    # Models
    "ConversationContext",
    "BackendReply",
    "TranscriptMessage",
    "ChatRequest",
    "MessageHandle",
    "RequestOutcome",
    "RequestState",
    "UsageRecord",
    # Components
    "ThrottledEmitter",
    "DispatchQueue",
    "SequentialDispatchQueue",
    "IPositionTracker",
    "QueuePositionTracker",
    "IConversationSession",
    "ConversationSession",
    "IRequestPipeline",
    "RequestPipeline",
    "IUsageLedger",
    "UsageLedger",
    "IConversationBackend",
    "AnthropicBackend",
    "EchoBackend",
    "INotificationChannel",
    "TelegramChannel",
    "IStorage",
    "Storage",
]
