"""Echo backend for local runs without a remote service."""

import asyncio
import uuid

from ..logging_config import get_logger
from ..models import BackendReply, ConversationContext
from .backend import PartialCallback

logger = get_logger(__name__)


class EchoBackend:
    """Answers with the input text, streamed back word by word."""

    def __init__(self, name: str = "echo", delay: float = 0.2, prefix: str = "Echo: "):
        self._name = name
        self._delay = delay
        self._prefix = prefix
        self._turns: dict[str, int] = {}  # conversation_id -> turns so far

    @property
    def name(self) -> str:
        return self._name

    async def send(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None = None,
    ) -> BackendReply:
        conversation_id = context.conversation_id or str(uuid.uuid4())
        turn = self._turns.get(conversation_id, 0) + 1
        self._turns[conversation_id] = turn

        words = f"{self._prefix}{text}".split(" ")
        partial = ""
        for word in words:
            partial = f"{partial} {word}" if partial else word
            if on_partial:
                on_partial(partial)
            await asyncio.sleep(self._delay)

        logger.debug("EchoBackend %s answered turn %s of %s", self._name, turn, conversation_id)

        return BackendReply(
            text=partial,
            context=ConversationContext(
                conversation_id=conversation_id,
                parent_message_id=f"{conversation_id}:{turn}",
            ),
        )
