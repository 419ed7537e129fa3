"""Application bootstrap and lifecycle management."""

import asyncio
from typing import Protocol

from .bot import MessageRouter, Update
from .config import Settings
from .dispatch import DispatchQueue, SequentialDispatchQueue
from .errors import ConfigError, NotificationError
from .llm import AnthropicBackend, EchoBackend, IConversationBackend
from .logging_config import get_logger
from .notify import INotificationChannel, TelegramChannel
from .pipeline import RequestPipeline
from .session import ConversationSession
from .storage import IStorage, Storage
from .usage import ITokenizer, UsageLedger

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Start fresh conversation threads on every backend."""
        ...


class Application:
    """Wires storage, ledger, backends, pipelines and the router together."""

    def __init__(
        self,
        settings: Settings | None = None,
        channel: INotificationChannel | None = None,
        backends: dict[str, IConversationBackend] | None = None,
        tokenizer: ITokenizer | None = None,
    ):
        self._settings = settings or Settings.from_env()
        self._injected_channel = channel
        self._injected_backends = backends
        self._tokenizer = tokenizer

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._ledger: UsageLedger | None = None
        self._channel: INotificationChannel | None = None
        self._pipelines: dict[str, RequestPipeline] = {}
        self._router: MessageRouter | None = None
        self._inflight: set[asyncio.Task] = set()

    def _build_backend(self, name: str) -> IConversationBackend:
        if name == "anthropic":
            return AnthropicBackend(
                storage=self.storage,
                api_key=self._settings.anthropic_api_key,
                model=self._settings.anthropic_model,
                max_tokens=self._settings.max_tokens,
                system=self._settings.system_prompt,
            )
        if name == "echo":
            return EchoBackend()
        raise ConfigError(f"Unknown backend {name!r}")

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._settings.db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. UsageLedger (depends on Storage)
        self._ledger = UsageLedger(self._storage, tokenizer=self._tokenizer)
        await self._ledger.load()

        # 3. Notification channel
        self._channel = self._injected_channel or TelegramChannel(
            token=self._settings.telegram_token,
            api_url=self._settings.telegram_api_url,
        )

        # 4. One session, request queue and pipeline per backend
        backends = self._injected_backends or {
            name: self._build_backend(name) for name in self._settings.backends
        }
        for name, backend in backends.items():
            session = ConversationSession(backend, timeout=self._settings.backend_timeout)
            self._pipelines[name] = RequestPipeline(
                session=session,
                channel=self._channel,
                ledger=self._ledger,
                throttle_interval=self._settings.throttle_interval,
                dispatch=SequentialDispatchQueue(f"{name}-requests"),
                updates=DispatchQueue(
                    f"{name}-updates", max_concurrency=self._settings.update_concurrency
                ),
                debug=self._settings.debug,
            )
            logger.info("Pipeline for backend %s started", name)

        # 5. Router (depends on pipelines, channel, ledger)
        self._router = MessageRouter(
            pipelines=dict(self._pipelines),
            channel=self._channel,
            ledger=self._ledger,
            default_backend=next(iter(self._pipelines)),
            chat_command=self._settings.chat_command,
            allowed_user_ids=self._settings.allowed_user_ids,
            allowed_group_ids=self._settings.allowed_group_ids,
            admin_ids=self._settings.admin_ids,
            debug=self._settings.debug,
        )
        if isinstance(self._channel, TelegramChannel):
            try:
                me = await self._channel.get_me()
                self._router.bot_username = me.get("username", "")
                logger.info("🤖 Bot @%s has started", self._router.bot_username)
            except NotificationError as e:
                logger.warning("Could not read bot account: %s", e)

            if self._settings.telegram_webhook_url:
                await self._channel.set_webhook(
                    self._settings.telegram_webhook_url,
                    self._settings.telegram_webhook_secret,
                )

        logger.info("All components initialized successfully")

    def submit_update(self, update: Update) -> asyncio.Task:
        """Route an update in the background; the webhook must answer quickly."""
        task = asyncio.get_running_loop().create_task(self.router.handle_update(update))
        self._inflight.add(task)
        task.add_done_callback(self._on_update_done)
        return task

    def _on_update_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception():
            logger.error("Update handling failed: %s", task.exception(), exc_info=task.exception())

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for task in list(self._inflight):
            task.cancel()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

        for pipeline in self._pipelines.values():
            await pipeline.close()
        if isinstance(self._channel, TelegramChannel):
            await self._channel.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Start fresh conversation threads on every backend."""
        for pipeline in self._pipelines.values():
            pipeline.reset_thread()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def ledger(self) -> UsageLedger:
        """Get usage ledger instance."""
        if not self._ledger:
            raise RuntimeError("Application not started")
        return self._ledger

    @property
    def router(self) -> MessageRouter:
        """Get message router instance."""
        if not self._router:
            raise RuntimeError("Application not started")
        return self._router

    @property
    def pipelines(self) -> dict[str, RequestPipeline]:
        return self._pipelines
