"""Tests for conversation backends."""

from unittest.mock import Mock, patch

import pytest

from relay.errors import BackendError
from relay.llm import AnthropicBackend, EchoBackend
from relay.models import ConversationContext


class TestEchoBackend:
    """Tests for EchoBackend."""

    async def test_streams_words_cumulatively(self):
        """Test that partials grow word by word up to the reply."""
        backend = EchoBackend(delay=0)
        partials = []

        reply = await backend.send("hello big world", ConversationContext(), partials.append)

        assert partials == ["Echo:", "Echo: hello", "Echo: hello big", "Echo: hello big world"]
        assert reply.text == "Echo: hello big world"

    async def test_new_conversation_gets_id(self):
        """Test that an empty context starts a new conversation."""
        backend = EchoBackend(delay=0)

        reply = await backend.send("hi", ConversationContext())

        assert reply.context.conversation_id
        assert reply.context.parent_message_id == f"{reply.context.conversation_id}:1"

    async def test_continues_conversation(self):
        """Test that passing the reply context continues the same conversation."""
        backend = EchoBackend(delay=0)
        first = await backend.send("one", ConversationContext())

        second = await backend.send("two", first.context)

        assert second.context.conversation_id == first.context.conversation_id
        assert second.context.parent_message_id.endswith(":2")


class FakeStream:
    """Stands in for the SDK's message stream context manager."""

    def __init__(self, deltas, final=None, error=None):
        self._deltas = deltas
        self._final = final
        self._error = error

    async def __aenter__(self):
        if self._error:
            raise self._error
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        async def gen():
            for delta in self._deltas:
                yield delta

        return gen()

    async def get_final_message(self):
        return self._final


def final_message(message_id: str, text: str) -> Mock:
    message = Mock()
    message.id = message_id
    message.content = [Mock(type="text", text=text)]
    return message


@pytest.fixture
def mock_client():
    client = Mock()
    client.messages.stream = Mock(
        return_value=FakeStream(["Hel", "lo"], final_message("msg_1", "Hello"))
    )
    return client


@pytest.fixture
def anthropic_backend(storage, mock_client):
    with patch(
        "relay.llm.anthropic_backend.anthropic.AsyncAnthropic",
        return_value=mock_client,
    ):
        yield AnthropicBackend(storage, api_key="test_key", system="Be brief")


class TestAnthropicBackendInit:
    """Tests for AnthropicBackend initialization."""

    def test_init_without_api_key(self, storage, monkeypatch):
        """Test initialization without API key raises error."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with patch("relay.llm.anthropic_backend.anthropic.AsyncAnthropic"):
            with pytest.raises(ValueError):
                AnthropicBackend(storage)

    def test_init_reads_env_key(self, storage, monkeypatch):
        """Test that the key falls back to the environment."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env_key")

        with patch("relay.llm.anthropic_backend.anthropic.AsyncAnthropic") as client_cls:
            AnthropicBackend(storage)

        client_cls.assert_called_once_with(api_key="env_key")


class TestAnthropicBackendSend:
    """Tests for AnthropicBackend.send() method."""

    async def test_streams_partials_and_returns_final(self, anthropic_backend):
        """Test that text deltas are accumulated into partial snapshots."""
        partials = []

        reply = await anthropic_backend.send("Hi", ConversationContext(), partials.append)

        assert partials == ["Hel", "Hello"]
        assert reply.text == "Hello"
        assert reply.context.parent_message_id == "msg_1"
        assert reply.context.conversation_id

    async def test_sends_system_prompt(self, anthropic_backend, mock_client):
        """Test the request parameters."""
        await anthropic_backend.send("Hi", ConversationContext())

        kwargs = mock_client.messages.stream.call_args.kwargs
        assert kwargs["system"] == "Be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]

    async def test_records_transcript(self, anthropic_backend, storage):
        """Test that both sides of the exchange are stored."""
        reply = await anthropic_backend.send("Hi", ConversationContext())

        messages = await storage.get_messages(reply.context.conversation_id)

        assert [(m.role, m.content) for m in messages] == [("user", "Hi"), ("assistant", "Hello")]
        assert messages[1].parent_id == messages[0].id

    async def test_continuation_sends_history(self, anthropic_backend, mock_client):
        """Test that the context's thread is replayed to the API."""
        first = await anthropic_backend.send("Hi", ConversationContext())
        mock_client.messages.stream.return_value = FakeStream(
            ["Fine"], final_message("msg_2", "Fine")
        )

        second = await anthropic_backend.send("How are you?", first.context)

        kwargs = mock_client.messages.stream.call_args.kwargs
        assert kwargs["messages"] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "How are you?"},
        ]
        assert second.context.conversation_id == first.context.conversation_id

    async def test_fresh_context_ignores_history(self, anthropic_backend, mock_client):
        """Test that an empty context starts without history."""
        await anthropic_backend.send("Hi", ConversationContext())
        mock_client.messages.stream.return_value = FakeStream(
            ["New"], final_message("msg_2", "New")
        )

        await anthropic_backend.send("Again", ConversationContext())

        kwargs = mock_client.messages.stream.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Again"}]

    async def test_api_error_becomes_backend_error(self, anthropic_backend, mock_client, storage):
        """Test that SDK failures surface as BackendError and store nothing."""
        mock_client.messages.stream.return_value = FakeStream(
            [], error=RuntimeError("overloaded")
        )

        with pytest.raises(BackendError, match="overloaded"):
            await anthropic_backend.send("Hi", ConversationContext(conversation_id="c1"))

        assert await storage.get_messages("c1") == []
