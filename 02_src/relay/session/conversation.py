"""ConversationSession: owns the continuation context of one backend."""

import asyncio
from typing import Protocol

from ..errors import BackendError
from ..llm import IConversationBackend, PartialCallback
from ..logging_config import get_logger
from ..models import BackendReply, ConversationContext

logger = get_logger(__name__)


class IConversationSession(Protocol):
    """Single owner of a backend's conversation context."""

    @property
    def backend_name(self) -> str:
        ...

    @property
    def context(self) -> ConversationContext:
        ...

    async def send(self, text: str, on_partial: PartialCallback | None = None) -> BackendReply:
        """Forward text with the stored context; adopt the reply's context."""
        ...

    def reset_thread(self) -> None:
        """Forget the stored context."""
        ...


class ConversationSession:
    """Forwards messages to one backend and keeps its continuation context.

    The context is captured when send() starts and replaced as a whole only
    after a successful reply. A reset while a send is in flight wins: the
    in-flight reply's context is discarded so the next send starts fresh.
    """

    def __init__(self, backend: IConversationBackend, timeout: float | None = None):
        self._backend = backend
        self._timeout = timeout
        self._context = ConversationContext()
        self._generation = 0

    @property
    def backend_name(self) -> str:
        return self._backend.name

    @property
    def context(self) -> ConversationContext:
        return self._context

    async def send(self, text: str, on_partial: PartialCallback | None = None) -> BackendReply:
        context = self._context
        generation = self._generation

        try:
            reply = await asyncio.wait_for(
                self._backend.send(text, context, on_partial),
                timeout=self._timeout,
            )
        except BackendError:
            raise
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"{self._backend.name} did not answer within {self._timeout}s", e
            ) from e
        except Exception as e:
            raise BackendError(f"{self._backend.name} error: {e}", e) from e

        if generation == self._generation:
            self._context = reply.context
        else:
            logger.info(
                "Thread of %s was reset during the exchange; reply context dropped",
                self._backend.name,
            )
        return reply

    def reset_thread(self) -> None:
        self._context = ConversationContext()
        self._generation += 1
