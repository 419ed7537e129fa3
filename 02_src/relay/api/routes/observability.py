"""Observability API routes."""

from datetime import datetime

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ...app import Application


class UsageResponse(BaseModel):
    """Response model for usage counters."""

    identity: str
    updated: datetime
    daily_tokens: int
    monthly_tokens: int
    total_tokens: int


class QueueResponse(BaseModel):
    """Response model for one backend's queue."""

    backend: str
    pending: int
    waiting: int
    positions: dict[str, int]


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/usage/{identity}", response_model=UsageResponse)
    async def get_usage(identity: str) -> dict:
        """Token counters of one chat."""
        record = app.ledger.read(identity)
        if record is None:
            raise HTTPException(status_code=404, detail="No usage recorded")
        return {
            "identity": record.identity,
            "updated": record.updated,
            "daily_tokens": record.daily_tokens,
            "monthly_tokens": record.monthly_tokens,
            "total_tokens": record.total_tokens,
        }

    @router.get("/queue", response_model=list[QueueResponse])
    async def get_queues() -> list[dict]:
        """Pending requests and their positions, per backend."""
        return [pipeline.queue_snapshot() for pipeline in app.pipelines.values()]

    return router
