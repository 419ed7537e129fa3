"""Throttling module."""

from .emitter import Sink, ThrottledEmitter

__all__ = ["Sink", "ThrottledEmitter"]
