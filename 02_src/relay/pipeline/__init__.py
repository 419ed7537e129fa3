"""Request pipeline module."""

from .pipeline import IRequestPipeline, PendingRequest, RequestPipeline

__all__ = ["IRequestPipeline", "PendingRequest", "RequestPipeline"]
