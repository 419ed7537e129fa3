"""Notification channel module."""

from .channel import INotificationChannel
from .formatting import MAX_MESSAGE_LENGTH, escape_markdown_v2, split_message
from .telegram import TelegramChannel

__all__ = [
    "INotificationChannel",
    "TelegramChannel",
    "MAX_MESSAGE_LENGTH",
    "escape_markdown_v2",
    "split_message",
]
