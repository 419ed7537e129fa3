"""Control API routes."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...app import Application
from ..security import require_secret_token


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(
        prefix="/api/control",
        tags=["control"],
        dependencies=[Depends(require_secret_token(app))],
    )

    @router.post("/reset", response_model=StatusResponse)
    async def reset_threads() -> dict:
        """Start fresh conversation threads on every backend."""
        await app.reset()
        return {"status": "ok"}

    return router
