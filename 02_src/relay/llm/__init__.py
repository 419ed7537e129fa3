"""Conversation backends module."""

from .backend import IConversationBackend, PartialCallback
from .anthropic_backend import AnthropicBackend
from .echo_backend import EchoBackend

__all__ = [
    "IConversationBackend",
    "PartialCallback",
    "AnthropicBackend",
    "EchoBackend",
]
