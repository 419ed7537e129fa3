"""FIFO executors with bounded concurrency."""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Protocol, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[T]]


class IDispatchQueue(Protocol):
    """Runs zero-argument async tasks in arrival order."""

    def add(self, task: TaskFactory) -> asyncio.Future:
        """Enqueue a task and return a future settled with its outcome."""
        ...

    async def join(self) -> None:
        """Wait until every task added so far has settled."""
        ...


class DispatchQueue:
    """FIFO executor running at most ``max_concurrency`` tasks at once.

    Tasks start strictly in the order they were added. The queue is unbounded
    and a failing task only fails its own future.
    """

    def __init__(self, name: str, max_concurrency: int = 1):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self._name = name
        self._max_concurrency = max_concurrency
        self._waiting: deque[tuple[TaskFactory, asyncio.Future]] = deque()
        self._workers: set[asyncio.Task] = set()
        self._unsettled: set[asyncio.Future] = set()

    @property
    def waiting(self) -> int:
        """Tasks added but not yet started."""
        return len(self._waiting)

    @property
    def unsettled(self) -> int:
        """Tasks added whose future has not settled (waiting plus running)."""
        return len(self._unsettled)

    def add(self, task: TaskFactory) -> asyncio.Future:
        """Enqueue ``task`` and return a future settled with its outcome."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._unsettled.add(future)
        future.add_done_callback(self._unsettled.discard)

        self._waiting.append((task, future))
        if len(self._workers) < self._max_concurrency:
            worker = loop.create_task(self._work())
            self._workers.add(worker)
        return future

    async def _work(self) -> None:
        # Membership in self._workers is dropped synchronously once the deque
        # is empty, so add() never sees an exiting worker as busy.
        try:
            while self._waiting:
                # Runs even if the caller stopped waiting, keeping FIFO order for others
                factory, future = self._waiting.popleft()
                try:
                    result = await factory()
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as e:
                    logger.debug("DispatchQueue[%s] task failed: %s", self._name, e)
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            self._workers.discard(asyncio.current_task())

    async def join(self) -> None:
        """Wait until every task added so far has settled."""
        while self._unsettled:
            await asyncio.gather(*list(self._unsettled), return_exceptions=True)

    async def close(self) -> None:
        """Cancel running workers and every task not yet started."""
        while self._waiting:
            _, future = self._waiting.popleft()
            future.cancel()

        workers = list(self._workers)
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)


class SequentialDispatchQueue(DispatchQueue):
    """Single-concurrency FIFO: the next task starts only after the previous one settled."""

    def __init__(self, name: str):
        super().__init__(name, max_concurrency=1)

