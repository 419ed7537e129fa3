"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from relay.errors import BackendError, FormatError, NotificationError  # noqa: E402
from relay.models import BackendReply, ConversationContext, MessageHandle  # noqa: E402


class FakeChannel:
    """In-memory notification channel recording every call."""

    def __init__(self):
        self.created: list[tuple[int, str, int | None]] = []
        self.edits: list[tuple[int, str, str | None]] = []
        self.typing: list[int] = []
        self.fail_create = False
        self.fail_edits = False
        self.reject_markdown = False
        self._next_id = 100

    async def create(self, chat_id, text, reply_to=None, parse_mode=None):
        if self.fail_create:
            raise NotificationError("create failed")
        if self.reject_markdown and parse_mode:
            raise FormatError("can't parse entities")
        self._next_id += 1
        self.created.append((chat_id, text, reply_to))
        return MessageHandle(chat_id=chat_id, message_id=self._next_id, text=text)

    async def edit(self, handle, text, parse_mode=None):
        if self.reject_markdown and parse_mode:
            raise FormatError("can't parse entities")
        if self.fail_edits:
            raise NotificationError("edit failed")
        self.edits.append((handle.message_id, text, parse_mode))
        return MessageHandle(chat_id=handle.chat_id, message_id=handle.message_id, text=text)

    async def send_typing(self, chat_id):
        self.typing.append(chat_id)

    def edits_for(self, message_id: int) -> list[str]:
        return [text for mid, text, _ in self.edits if mid == message_id]

    def handle_id_for(self, reply_to: int) -> int:
        """Message id of the notification created in reply to ``reply_to``."""
        for index, (_, _, replied) in enumerate(self.created):
            if replied == reply_to:
                return 101 + index
        raise KeyError(reply_to)


class ScriptedBackend:
    """Backend whose exchanges are released by the test, one gate per call."""

    def __init__(self, name: str = "scripted"):
        self._name = name
        self.calls: list[tuple[str, ConversationContext]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.partials: dict[str, list[str]] = {}
        self.replies: dict[str, str] = {}
        self.failures: set[str] = set()
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return self._name

    def gate(self, text: str) -> asyncio.Event:
        return self.gates.setdefault(text, asyncio.Event())

    async def send(self, text, context, on_partial=None):
        self.calls.append((text, context))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for partial in self.partials.get(text, []):
                if on_partial:
                    on_partial(partial)
                await asyncio.sleep(0)
            if text in self.gates:
                await self.gates[text].wait()
            if text in self.failures:
                raise BackendError(f"backend failed on {text}")
            turn = len(self.calls)
            return BackendReply(
                text=self.replies.get(text, f"answer to {text}"),
                context=ConversationContext(conversation_id="conv", parent_message_id=f"turn-{turn}"),
            )
        finally:
            self.active -= 1


class WordTokenizer:
    """Counts whitespace-separated words."""

    def count(self, text: str) -> int:
        return len(text.split())


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from relay.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def tokenizer():
    return WordTokenizer()


@pytest_asyncio.fixture
async def ledger(storage, tokenizer):
    from relay.usage import UsageLedger

    lg = UsageLedger(storage, tokenizer=tokenizer)
    await lg.load()
    return lg


@pytest.fixture
def session(backend):
    from relay.session import ConversationSession

    return ConversationSession(backend)


@pytest_asyncio.fixture
async def pipeline(session, channel, ledger):
    """RequestPipeline with no throttling delay and identity formatting."""
    from relay.pipeline import RequestPipeline

    pl = RequestPipeline(
        session=session,
        channel=channel,
        ledger=ledger,
        throttle_interval=0.05,
        formatter=lambda text: text,
    )
    yield pl
    await pl.close()
