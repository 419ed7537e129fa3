"""Conversation backend interface."""

from typing import Callable, Protocol

from ..models import BackendReply, ConversationContext

PartialCallback = Callable[[str], None]


class IConversationBackend(Protocol):
    """A stateful remote conversation service that handles one exchange at a time."""

    @property
    def name(self) -> str:
        """Backend name used for routing and user-facing notices."""
        ...

    async def send(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None = None,
    ) -> BackendReply:
        """Send ``text`` continuing ``context``.

        Every partial snapshot of the response is passed to ``on_partial``.
        Raises BackendError when the exchange fails.
        """
        ...
