"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..app import Application
from .routes import control, observability, telegram


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Chat Relay API",
        description="Webhook and control surface for the queued chat relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.include_router(telegram.create_telegram_router(application))
    fastapi_app.include_router(control.create_control_router(application))
    fastapi_app.include_router(observability.create_observability_router(application))

    return fastapi_app
