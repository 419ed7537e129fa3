"""Telegram webhook route."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...app import Application
from ...bot import Update
from ..security import require_secret_token


class AcceptedResponse(BaseModel):
    """Response model for an accepted update."""

    ok: bool


def create_telegram_router(app: Application) -> APIRouter:
    """Create webhook router."""
    router = APIRouter(
        prefix="/api/telegram",
        tags=["telegram"],
        dependencies=[Depends(require_secret_token(app))],
    )

    @router.post("/webhook", response_model=AcceptedResponse)
    async def receive_update(update: Update) -> dict:
        """Accept an Update and route it in the background."""
        app.submit_update(update)
        return {"ok": True}

    return router
