"""ThrottledEmitter: coalesce a fast stream of partial results."""

import asyncio
import time
from typing import Awaitable, Callable, Generic, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sink = Callable[[T], Awaitable[None]]


class ThrottledEmitter(Generic[T]):
    """Re-emit a stream of values at most once per interval.

    The first value after an idle period is delivered immediately. Values that
    arrive inside the current window only replace the pending value; when the
    window ends the latest pending value is delivered and a new window starts
    from that delivery. close() never flushes: the caller is expected to push
    the true final value to the sink directly.

    Deliveries run as tasks, one at a time and in emission order. A failing
    sink is logged and never propagates into notify().
    """

    def __init__(
        self,
        interval: float,
        sink: Sink,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._interval = interval
        self._sink = sink
        self._clock = clock

        self._window_start: float | None = None
        self._pending: T | None = None
        self._has_pending = False
        self._timer: asyncio.TimerHandle | None = None
        self._deliveries: set[asyncio.Task] = set()
        self._order = asyncio.Lock()
        self._closed = False

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def notify(self, value: T) -> None:
        """Offer a new value; must be called from the event loop thread."""
        if self._closed:
            return

        now = self._clock()
        window_open = (
            self._window_start is not None
            and now - self._window_start < self._interval
        )
        if self._timer is None and not window_open:
            self._emit(value)
            return

        self._pending = value
        self._has_pending = True
        if self._timer is None:
            delay = self._interval - (now - self._window_start)
            self._timer = asyncio.get_running_loop().call_later(
                max(delay, 0.0), self._on_window_end
            )

    def _on_window_end(self) -> None:
        self._timer = None
        if self._closed or not self._has_pending:
            return

        value = self._pending
        self._pending = None
        self._has_pending = False
        self._emit(value)

    def _emit(self, value: T) -> None:
        self._window_start = self._clock()
        task = asyncio.get_running_loop().create_task(self._deliver(value))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, value: T) -> None:
        async with self._order:
            try:
                await self._sink(value)
            except Exception as e:
                logger.warning("Throttled delivery failed: %s", e, exc_info=True)

    async def close(self) -> None:
        """Drop any pending value and wait for deliveries already started."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self._has_pending = False

        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
