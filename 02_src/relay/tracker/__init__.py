"""Queue position tracking module."""

from .position_tracker import IPositionTracker, PositionCallback, QueuePositionTracker

__all__ = ["IPositionTracker", "PositionCallback", "QueuePositionTracker"]
