"""QueuePositionTracker: live "position in line" for every pending request."""

from typing import Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


PositionCallback = Callable[[str, int], None]


class IPositionTracker(Protocol):
    """Position table for queued-or-running requests, keyed by request key."""

    def register(self, key: str) -> int:
        """Enter a request and return its position (0 means running)."""
        ...

    def complete(self, key: str) -> dict[str, int]:
        """Remove a request and shift everyone behind it forward by one."""
        ...

    def position(self, key: str) -> int | None:
        """Current position of a request, or None if not tracked."""
        ...

    def snapshot(self) -> dict[str, int]:
        """Copy of the position table."""
        ...

    def __len__(self) -> int:
        ...


class QueuePositionTracker:
    """Tracks the position of every request between arrival and settlement.

    Positions follow registration order: the first active entry gets 0
    ("running"), later ones 1, 2, 3 and so on. Methods are synchronous, so on
    the event loop no two register/complete calls can interleave.
    """

    def __init__(self, on_change: PositionCallback | None = None):
        self._positions: dict[str, int] = {}
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, key: object) -> bool:
        return key in self._positions

    def register(self, key: str) -> int:
        """Enter a request and return its position (0 means running)."""
        if key in self._positions:
            raise ValueError(f"Request {key} is already tracked")

        position = len(self._positions)
        self._positions[key] = position
        logger.debug("Registered %s at position %s", key, position)
        return position

    def complete(
        self, key: str, on_change: PositionCallback | None = None
    ) -> dict[str, int]:
        """Remove ``key`` and move every request behind it one place forward.

        The callback (argument, else the one given at construction) is invoked
        once per moved request with its new position. Returns the moved
        requests and their new positions.
        """
        removed = self._positions.pop(key, None)
        if removed is None:
            return {}

        callback = on_change or self._on_change
        changed: dict[str, int] = {}
        for other, position in self._positions.items():
            if position <= removed:
                continue
            self._positions[other] = position - 1
            changed[other] = position - 1

        for other, position in changed.items():
            if callback:
                try:
                    callback(other, position)
                except Exception as e:
                    logger.error("Position callback failed for %s: %s", other, e)

        return changed

    def position(self, key: str) -> int | None:
        """Current position of a request, or None if not tracked."""
        return self._positions.get(key)

    def snapshot(self) -> dict[str, int]:
        """Copy of the position table."""
        return dict(self._positions)
