"""MessageRouter: authentication, command parsing and routing to pipelines."""

import re
from dataclasses import dataclass

from ..errors import NotificationError
from ..logging_config import get_logger
from ..models import ChatRequest
from ..notify import INotificationChannel
from ..pipeline import IRequestPipeline
from ..usage import IUsageLedger
from .updates import TelegramMessage, Update

logger = get_logger(__name__)

UNAUTHORIZED = "⛔️ Sorry, you are not allowed to chat with me or run my commands."
UNSUPPORTED = "⚠️ Unsupported command. Run /help to see the usage."
THREAD_RESET = "🔄 The chat thread has been reset. A new thread has started."


@dataclass(frozen=True)
class ParsedMessage:
    text: str
    command: str
    is_mentioned: bool


class MessageRouter:
    """Turns incoming chat messages into pipeline requests or command replies."""

    def __init__(
        self,
        pipelines: dict[str, IRequestPipeline],
        channel: INotificationChannel,
        ledger: IUsageLedger,
        default_backend: str,
        chat_command: str = "/chat",
        allowed_user_ids: list[int] | None = None,
        allowed_group_ids: list[int] | None = None,
        admin_ids: list[int] | None = None,
        bot_username: str = "",
        debug: int = 1,
    ):
        if default_backend not in pipelines:
            raise ValueError(f"Unknown default backend {default_backend!r}")

        self._pipelines = pipelines
        self._channel = channel
        self._ledger = ledger
        self._default_backend = default_backend
        self._chat_command = chat_command
        self._allowed_user_ids = set(allowed_user_ids or [])
        self._allowed_group_ids = set(allowed_group_ids or [])
        self._admin_ids = set(admin_ids or [])
        self.bot_username = bot_username
        self._debug = debug

    def authenticate(self, msg: TelegramMessage) -> bool:
        """Allowed users in private chats, allowed groups elsewhere; admins everywhere.

        An empty allow-list leaves its chat type unrestricted.
        """
        user_id = msg.from_user.id if msg.from_user else None
        if user_id is not None and user_id in self._admin_ids:
            return True
        if msg.chat.type == "private":
            return not self._allowed_user_ids or user_id in self._allowed_user_ids
        return not self._allowed_group_ids or msg.chat.id in self._allowed_group_ids

    def parse(self, msg: TelegramMessage) -> ParsedMessage:
        """Split a leading bot command (with optional @mention) from the text."""
        text = msg.text or ""
        command = ""
        is_mentioned = False

        for entity in msg.entities:
            if entity.type == "bot_command" and entity.offset == 0:
                command = text[: entity.length]
                text = text[entity.length :].strip()
                if self.bot_username:
                    mention = re.compile(f"@{re.escape(self.bot_username)}$")
                    is_mentioned = bool(mention.search(command))
                    command = mention.sub("", command)
                break

        return ParsedMessage(text=text, command=command, is_mentioned=is_mentioned)

    def _is_reply_to_bot(self, msg: TelegramMessage) -> bool:
        replied = msg.reply_to_message
        if replied is None or replied.from_user is None:
            return False
        return replied.from_user.is_bot and replied.from_user.username == self.bot_username

    async def handle_update(self, update: Update) -> None:
        msg = update.message
        if msg is None:
            return
        if self._debug >= 2:
            logger.debug("Update: %s", update.model_dump())

        if not self.authenticate(msg):
            await self._reply(msg.chat.id, UNAUTHORIZED)
            logger.info("Rejected message from unauthorized chat %s", msg.chat.id)
            return

        parsed = self.parse(msg)
        if not parsed.command:
            # Direct messages in private chats, replies to the bot anywhere
            if msg.chat.type == "private" or self._is_reply_to_bot(msg):
                await self._dispatch(self._default_backend, msg, parsed.text)
            return

        backend = self._backend_for(parsed.command)
        if backend is not None:
            await self._dispatch(backend, msg, parsed.text)
            return

        await self.handle_command(msg, parsed)

    def _backend_for(self, command: str) -> str | None:
        if command == self._chat_command:
            return self._default_backend
        name = command.lstrip("/")
        return name if name in self._pipelines else None

    async def _dispatch(self, backend: str, msg: TelegramMessage, text: str) -> None:
        request = ChatRequest(
            chat_id=msg.chat.id,
            message_id=msg.message_id,
            text=text,
            user_id=msg.from_user.id if msg.from_user else None,
            username=msg.from_user.username if msg.from_user else None,
            chat_type=msg.chat.type,
            chat_title=msg.chat.title,
        )
        await self._pipelines[backend].handle(request)

    async def handle_command(self, msg: TelegramMessage, parsed: ParsedMessage) -> None:
        user = msg.from_user
        user_info = f"@{user.username or ''} ({user.id})" if user else "unknown user"
        if self._debug >= 1:
            logger.info(
                "👨‍💻️ User %s issued command %s in chat %s (mentioned=%s)",
                user_info,
                parsed.command,
                msg.chat.id,
                parsed.is_mentioned,
            )

        # Commands in groups must mention the bot
        if msg.chat.type != "private" and not parsed.is_mentioned:
            return

        chat_id = msg.chat.id
        if parsed.command == "/help":
            await self._reply(chat_id, self.help_text())

        elif parsed.command == "/reset":
            for pipeline in self._pipelines.values():
                pipeline.reset_thread()
            await self._reply(chat_id, THREAD_RESET)
            logger.info("🔄 Chat thread reset by %s", user_info)

        elif parsed.command == "/usage":
            await self._reply(chat_id, self.usage_text(str(chat_id)))

        else:
            await self._reply(chat_id, UNSUPPORTED)

    def help_text(self) -> str:
        backends = ", ".join(f"/{name}" for name in self._pipelines)
        mention = f"/help@{self.bot_username}" if self.bot_username else "/help@<bot>"
        return (
            "You can:\n"
            "  • send me a message directly (private chats only)\n"
            f"  • start a message with {self._chat_command}\n"
            "  • reply to my last message\n"
            f"  • ask a specific backend with {backends}\n\n"
            "Commands (mention me in groups, e.g. " + mention + "):\n"
            "  • /help show this help\n"
            "  • /reset start a new conversation\n"
            "  • /usage show token usage of this chat\n"
        )

    def usage_text(self, identity: str) -> str:
        record = self._ledger.read(identity)
        if record is None:
            return "No usage recorded for this chat yet."
        return (
            "Token usage for this chat:\n"
            f"  • today: {record.daily_tokens}\n"
            f"  • this month: {record.monthly_tokens}\n"
            f"  • total: {record.total_tokens}"
        )

    async def _reply(self, chat_id: int, text: str) -> None:
        try:
            await self._channel.create(chat_id, text)
        except NotificationError as e:
            logger.error("Could not reply to chat %s: %s", chat_id, e)
