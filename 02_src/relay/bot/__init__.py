"""Inbound message routing module."""

from .router import MessageRouter, ParsedMessage
from .updates import MessageEntity, TelegramChat, TelegramMessage, TelegramUser, Update

__all__ = [
    "MessageRouter",
    "ParsedMessage",
    "Update",
    "TelegramMessage",
    "TelegramChat",
    "TelegramUser",
    "MessageEntity",
]
