"""Dispatch module."""

from .queue import DispatchQueue, IDispatchQueue, SequentialDispatchQueue, TaskFactory

__all__ = ["DispatchQueue", "IDispatchQueue", "SequentialDispatchQueue", "TaskFactory"]
