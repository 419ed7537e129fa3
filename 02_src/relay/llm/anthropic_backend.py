"""Conversation backend using the Anthropic Claude API."""

import os
import uuid
from datetime import datetime, timezone

import anthropic

from ..errors import BackendError
from ..logging_config import get_logger
from ..models import BackendReply, ConversationContext, TranscriptMessage
from ..storage import IStorage
from .backend import PartialCallback

logger = get_logger(__name__)


class AnthropicBackend:
    """Claude API backend.

    The Messages API is stateless, so the transcript lives in Storage keyed by
    conversation id; the last turn id is the id of the assistant message.
    """

    def __init__(
        self,
        storage: IStorage,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 1024,
        system: str | None = None,
        name: str = "anthropic",
    ):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._storage = storage
        self._model = model
        self._max_tokens = max_tokens
        self._system = system
        self._name = name
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    @property
    def name(self) -> str:
        return self._name

    async def _history(self, context: ConversationContext) -> list[TranscriptMessage]:
        """Transcript of the thread ending at the context's last turn."""
        if not context.conversation_id:
            return []

        messages = await self._storage.get_messages(context.conversation_id)
        if not context.parent_message_id:
            return messages

        by_id = {msg.id: msg for msg in messages}
        if context.parent_message_id not in by_id:
            return messages

        thread = []
        current = by_id.get(context.parent_message_id)
        while current is not None:
            thread.append(current)
            current = by_id.get(current.parent_id) if current.parent_id else None
        thread.reverse()
        return thread

    async def send(
        self,
        text: str,
        context: ConversationContext,
        on_partial: PartialCallback | None = None,
    ) -> BackendReply:
        """Stream one exchange from Claude and record it in the transcript."""
        conversation_id = context.conversation_id or str(uuid.uuid4())

        try:
            history = await self._history(context)
            messages = [{"role": msg.role, "content": msg.content} for msg in history]
            messages.append({"role": "user", "content": text})

            params = {
                "model": self._model,
                "max_tokens": self._max_tokens,
                "messages": messages,
            }
            if self._system:
                params["system"] = self._system

            partial = ""
            async with self._client.messages.stream(**params) as stream:
                async for delta in stream.text_stream:
                    partial += delta
                    if on_partial:
                        on_partial(partial)
                final = await stream.get_final_message()

            reply_text = "".join(
                block.text for block in final.content if block.type == "text"
            )

            user_message = TranscriptMessage(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                role="user",
                content=text,
                timestamp=datetime.now(timezone.utc),
                parent_id=context.parent_message_id,
            )
            await self._storage.save_message(user_message)
            await self._storage.save_message(
                TranscriptMessage(
                    id=final.id,
                    conversation_id=conversation_id,
                    role="assistant",
                    content=reply_text,
                    timestamp=datetime.now(timezone.utc),
                    parent_id=user_message.id,
                )
            )

        except Exception as e:
            raise BackendError(f"Anthropic API error: {e}", e) from e

        return BackendReply(
            text=reply_text,
            context=ConversationContext(
                conversation_id=conversation_id,
                parent_message_id=final.id,
            ),
        )
