"""Telegram Bot API notification channel."""

from typing import Any

import httpx

from ..errors import FormatError, NotificationError
from ..logging_config import get_logger
from ..models import MessageHandle

logger = get_logger(__name__)


class TelegramChannel:
    """Sends, edits and decorates chat messages through the Bot API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        if not token:
            raise ValueError("TELEGRAM_TOKEN environment variable not set")

        self._base_url = f"{api_url.rstrip('/')}/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(f"{self._base_url}/{method}", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"Telegram {method} failed: {e}", e) from e

        if not data.get("ok"):
            description = data.get("description", f"HTTP {response.status_code}")
            if "can't parse entities" in description:
                raise FormatError(f"Telegram {method} rejected formatting: {description}")
            raise NotificationError(f"Telegram {method} failed: {description}")

        return data.get("result")

    async def get_me(self) -> dict:
        """Bot account info (username, id)."""
        return await self._call("getMe", {})

    async def set_webhook(self, url: str, secret_token: str) -> None:
        """Point the bot at ``url``; Telegram echoes ``secret_token`` in a header."""
        await self._call(
            "setWebhook",
            {"url": url, "secret_token": secret_token, "allowed_updates": ["message"]},
        )
        logger.info("Webhook registered at %s", url)

    async def create(
        self,
        chat_id: int,
        text: str,
        reply_to: int | None = None,
        parse_mode: str | None = None,
    ) -> MessageHandle:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to is not None:
            payload["reply_to_message_id"] = reply_to
        if parse_mode:
            payload["parse_mode"] = parse_mode

        result = await self._call("sendMessage", payload)
        return MessageHandle(
            chat_id=result["chat"]["id"],
            message_id=result["message_id"],
            text=result.get("text", text),
        )

    async def edit(
        self, handle: MessageHandle, text: str, parse_mode: str | None = None
    ) -> MessageHandle | None:
        payload: dict[str, Any] = {
            "chat_id": handle.chat_id,
            "message_id": handle.message_id,
            "text": text,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            result = await self._call("editMessageText", payload)
        except NotificationError as e:
            if "message is not modified" in e.message:
                return None
            raise

        # Bot API answers True instead of a Message for inline messages
        if not isinstance(result, dict):
            return None

        return MessageHandle(
            chat_id=handle.chat_id,
            message_id=result.get("message_id", handle.message_id),
            text=result.get("text", text),
        )

    async def send_typing(self, chat_id: int) -> None:
        await self._call("sendChatAction", {"chat_id": chat_id, "action": "typing"})
