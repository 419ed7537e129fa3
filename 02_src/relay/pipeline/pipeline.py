"""RequestPipeline: one user request from arrival to final answer."""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Protocol

from ..dispatch import DispatchQueue, SequentialDispatchQueue
from ..errors import BackendError, FormatError, NotificationError
from ..logging_config import get_logger
from ..models import ChatRequest, MessageHandle, RequestOutcome, RequestState
from ..notify import (
    MAX_MESSAGE_LENGTH,
    INotificationChannel,
    escape_markdown_v2,
    split_message,
)
from ..session import IConversationSession
from ..throttle import ThrottledEmitter
from ..tracker import IPositionTracker, QueuePositionTracker
from ..usage import IUsageLedger
from .texts import backend_failure, render_position

logger = get_logger(__name__)

_SETTLED = (RequestState.FINALIZING, RequestState.DONE, RequestState.FAILED)


@dataclass
class PendingRequest:
    """Pipeline-side state of a request that has not settled yet."""

    request: ChatRequest
    state: RequestState = RequestState.ARRIVED
    handle: MessageHandle | None = None
    displayed: str = ""
    streaming: bool = False
    ready: asyncio.Event = field(default_factory=asyncio.Event)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def key(self) -> str:
        return self.request.key


class IRequestPipeline(Protocol):
    """Serializes requests to one backend and keeps every waiter informed."""

    @property
    def backend_name(self) -> str:
        ...

    async def handle(self, request: ChatRequest) -> RequestOutcome | None:
        """Queue a request and wait for its outcome."""
        ...

    def reset_thread(self) -> None:
        """Start a fresh conversation for the next dispatched request."""
        ...

    def queue_snapshot(self) -> dict:
        """Queue depth and positions, for observability."""
        ...


class RequestPipeline:
    """Runs requests for one backend strictly one at a time, in arrival order.

    Waiting callers see their position in line; the running caller sees the
    partial answer, refreshed at most once per throttle interval, and finally
    the complete answer. Position updates for other waiters go through a
    separate, wider queue so they never wait behind a backend exchange.
    """

    def __init__(
        self,
        session: IConversationSession,
        channel: INotificationChannel,
        ledger: IUsageLedger,
        throttle_interval: float = 3.0,
        dispatch: DispatchQueue | None = None,
        updates: DispatchQueue | None = None,
        formatter: Callable[[str], str] = escape_markdown_v2,
        debug: int = 1,
    ):
        self._session = session
        self._channel = channel
        self._ledger = ledger
        self._throttle_interval = throttle_interval
        self._dispatch = dispatch or SequentialDispatchQueue(f"{session.backend_name}-requests")
        self._updates = updates or DispatchQueue(f"{session.backend_name}-updates", max_concurrency=20)
        self._formatter = formatter
        self._debug = debug

        self._positions: IPositionTracker = QueuePositionTracker(
            on_change=self._on_position_change
        )
        self._pending: dict[str, PendingRequest] = {}

    @property
    def backend_name(self) -> str:
        return self._session.backend_name

    @property
    def positions(self) -> IPositionTracker:
        return self._positions

    def reset_thread(self) -> None:
        self._session.reset_thread()
        logger.info("Conversation thread of %s reset", self.backend_name)

    def queue_snapshot(self) -> dict:
        return {
            "backend": self.backend_name,
            "pending": len(self._pending),
            "waiting": self._dispatch.waiting,
            "positions": self._positions.snapshot(),
        }

    async def handle(self, request: ChatRequest) -> RequestOutcome | None:
        """Queue ``request`` and wait until its exchange settled.

        Returns None when there is nothing to do (empty text, or the same
        source message is already being handled).
        """
        if not request.text.strip():
            return None
        if request.key in self._pending:
            logger.warning("Request %s is already queued; ignoring duplicate", request.key)
            return None

        if self._debug >= 1:
            logger.info("📩 Message from %s: %s", request.describe_sender(), request.text)

        entry = PendingRequest(request=request)
        self._pending[entry.key] = entry

        # Registering and enqueueing happen without a suspension point in
        # between, so queue order and position order always agree.
        position = self._positions.register(entry.key)
        entry.state = RequestState.ACTIVE if position == 0 else RequestState.QUEUED
        outcome = self._dispatch.add(lambda: self._process(entry))

        logger.info(
            "Request queued",
            extra={"context": {"key": entry.key, "backend": self.backend_name, "position": position}},
        )

        await self._announce(entry, position)
        return await outcome

    async def _announce(self, entry: PendingRequest, position: int) -> None:
        """Create the message this request's progress is rendered into."""
        request = entry.request
        text = render_position(position)
        try:
            entry.handle = await self._channel.create(
                request.chat_id, text, reply_to=request.message_id
            )
            entry.displayed = text
        except (NotificationError, FormatError) as e:
            logger.error("Could not acknowledge %s: %s", entry.key, e)
            entry.state = RequestState.FAILED
        finally:
            entry.ready.set()

        # Position may have moved while the message was being created
        current = self._positions.position(entry.key)
        if entry.handle and current is not None and current != position:
            await self._show_position(entry, current)

    async def _process(self, entry: PendingRequest) -> RequestOutcome:
        """Dispatch task: runs inside the single-concurrency queue."""
        request = entry.request
        try:
            await entry.ready.wait()
            if entry.state == RequestState.FAILED:
                return RequestOutcome(key=entry.key, state=RequestState.FAILED)

            entry.state = RequestState.ACTIVE
            logger.info(
                "Dispatching request",
                extra={"context": {"key": entry.key, "backend": self.backend_name}},
            )
            await self._typing(request.chat_id)

            emitter = ThrottledEmitter(
                self._throttle_interval,
                lambda text: self._relay_partial(entry, text),
            )
            try:
                reply = await self._session.send(request.text, emitter.notify)
            finally:
                await emitter.close()

            entry.state = RequestState.FINALIZING
            await self._show_final(entry, reply.text)
            tokens = await self._record_usage(entry, reply.text)
            entry.state = RequestState.DONE

            if self._debug >= 1:
                logger.info("📨 Response: %s", reply.text, extra={"context": {"key": entry.key}})
            return RequestOutcome(
                key=entry.key, state=RequestState.DONE, text=reply.text, tokens=tokens
            )

        except BackendError as e:
            logger.error(
                "⛔️ %s API error: %s",
                self.backend_name,
                e.message,
                extra={"context": {"key": entry.key}},
            )
            entry.state = RequestState.FAILED
            await self._notify_failure(entry)
            return RequestOutcome(key=entry.key, state=RequestState.FAILED)

        finally:
            self._finish(entry)

    def _finish(self, entry: PendingRequest) -> None:
        self._pending.pop(entry.key, None)
        self._positions.complete(entry.key)

    def _on_position_change(self, key: str, position: int) -> None:
        """Cascade from QueuePositionTracker.complete()."""
        entry = self._pending.get(key)
        if entry is None or entry.handle is None:
            return
        if position == 0 and entry.state == RequestState.QUEUED:
            entry.state = RequestState.ACTIVE
        self._updates.add(lambda: self._show_position(entry, position))

    async def _show_position(self, entry: PendingRequest, position: int) -> None:
        await self._edit(
            entry,
            render_position(position),
            guard=lambda: not entry.streaming and entry.state not in _SETTLED,
        )

    async def _relay_partial(self, entry: PendingRequest, text: str) -> None:
        entry.streaming = True
        if await self._edit(entry, text, markdown=True):
            await self._typing(entry.request.chat_id)

    async def _edit(
        self,
        entry: PendingRequest,
        text: str,
        markdown: bool = False,
        guard: Callable[[], bool] | None = None,
    ) -> bool:
        """Show ``text`` in the request's message; True if the edit went through.

        Blank text and text identical to what is displayed are skipped. Text
        that cannot be formatted is sent plain; on any other channel failure
        the previous message stays as it is.
        """
        if not text.strip():
            return False

        async with entry.lock:
            if guard is not None and not guard():
                return False
            if entry.handle is None or text == entry.displayed:
                return False

            handle = entry.handle
            shown = text
            try:
                if markdown:
                    try:
                        updated = await self._channel.edit(
                            handle, self._formatter(text), parse_mode="MarkdownV2"
                        )
                    except FormatError as e:
                        logger.warning("Formatting rejected, sending plain text: %s", e)
                        shown = text[:MAX_MESSAGE_LENGTH]
                        updated = await self._channel.edit(handle, shown)
                else:
                    updated = await self._channel.edit(handle, text)
            except (NotificationError, FormatError) as e:
                logger.warning(
                    "⛔️ Edit message error: %s", e, extra={"context": {"key": entry.key}}
                )
                if self._debug >= 2:
                    logger.debug("⛔️ Message text: %s", text)
                return False

            entry.handle = updated or handle
            entry.displayed = shown
            return True

    async def _show_final(self, entry: PendingRequest, text: str) -> None:
        """Edit the final answer in; what does not fit follows as replies to it."""
        first, *rest = split_message(text)
        await self._edit(entry, first, markdown=True)
        for chunk in rest:
            await self._send_followup(entry, chunk)

    async def _send_followup(self, entry: PendingRequest, text: str) -> None:
        request = entry.request
        reply_to = entry.handle.message_id if entry.handle else request.message_id
        try:
            try:
                await self._channel.create(
                    request.chat_id,
                    self._formatter(text),
                    reply_to=reply_to,
                    parse_mode="MarkdownV2",
                )
            except FormatError as e:
                logger.warning("Formatting rejected, sending plain text: %s", e)
                await self._channel.create(request.chat_id, text, reply_to=reply_to)
        except (NotificationError, FormatError) as e:
            logger.error(
                "Could not send continuation of %s: %s", entry.key, e,
                extra={"context": {"length": len(text)}},
            )

    async def _typing(self, chat_id: int) -> None:
        try:
            await self._channel.send_typing(chat_id)
        except NotificationError as e:
            logger.debug("Typing indicator failed: %s", e)

    async def _notify_failure(self, entry: PendingRequest) -> None:
        try:
            await self._channel.create(
                entry.request.chat_id, backend_failure(self.backend_name)
            )
        except (NotificationError, FormatError) as e:
            logger.error("Could not send failure notice for %s: %s", entry.key, e)

    async def _record_usage(self, entry: PendingRequest, reply_text: str) -> int:
        """Charge the exchange to the chat; failures are logged only."""
        try:
            tokens = self._ledger.count_exchange(entry.request.text, reply_text)
            await self._ledger.charge(str(entry.request.chat_id), tokens)
        except Exception as e:
            logger.error("Usage accounting failed for %s: %s", entry.key, e, exc_info=True)
            return 0
        return tokens

    async def drain(self) -> None:
        """Wait for every queued request and position update to settle."""
        await self._dispatch.join()
        await self._updates.join()

    async def close(self) -> None:
        """Cancel queued work; requests not yet dispatched are dropped."""
        await self._dispatch.close()
        await self._updates.close()
