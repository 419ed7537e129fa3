"""Notification channel interface."""

from typing import Protocol

from ..models import MessageHandle


class INotificationChannel(Protocol):
    """Sends and edits user-visible messages. Calls may fail transiently."""

    async def create(
        self,
        chat_id: int,
        text: str,
        reply_to: int | None = None,
        parse_mode: str | None = None,
    ) -> MessageHandle:
        """Send a new message. Raises FormatError or NotificationError like edit()."""
        ...

    async def edit(
        self, handle: MessageHandle, text: str, parse_mode: str | None = None
    ) -> MessageHandle | None:
        """Replace a message's text; None when the channel reports no change.

        Raises FormatError when the channel rejects the formatting, and
        NotificationError on any other failure.
        """
        ...

    async def send_typing(self, chat_id: int) -> None:
        """Show a "typing" indicator in the chat."""
        ...
