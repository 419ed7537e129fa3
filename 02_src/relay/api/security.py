"""Shared-secret check for routes that change bot state."""

import hmac
from typing import Awaitable, Callable

from fastapi import Header, HTTPException

from ..app import Application
from ..logging_config import get_logger

logger = get_logger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def require_secret_token(app: Application) -> Callable[..., Awaitable[None]]:
    """Dependency rejecting requests without the configured webhook secret.

    Telegram sends the secret registered with setWebhook in SECRET_HEADER.
    Without a configured secret every request is rejected.
    """

    async def verify(
        token: str | None = Header(default=None, alias=SECRET_HEADER),
    ) -> None:
        secret = app.settings.telegram_webhook_secret
        if not secret or not token or not hmac.compare_digest(token, secret):
            logger.warning("Rejected request without a valid %s header", SECRET_HEADER)
            raise HTTPException(status_code=403, detail="Invalid secret token")

    return verify
