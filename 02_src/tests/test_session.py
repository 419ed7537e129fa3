"""Tests for ConversationSession."""

import asyncio

import pytest

from relay.errors import BackendError
from relay.models import ConversationContext
from relay.session import ConversationSession

from conftest import wait_until


class TestSessionSend:
    """Tests for ConversationSession.send() method."""

    async def test_first_send_uses_empty_context(self, session, backend):
        """Test that a new session starts a fresh conversation."""
        await session.send("hello")

        assert backend.calls[0] == ("hello", ConversationContext())

    async def test_reply_context_replaces_stored_context(self, session, backend):
        """Test that each send continues from the previous reply."""
        first = await session.send("one")
        await session.send("two")

        assert session.context == ConversationContext("conv", "turn-2")
        assert backend.calls[1][1] == first.context

    async def test_partials_forwarded(self, session, backend):
        """Test that partial results reach the callback."""
        backend.partials["hi"] = ["a", "a b"]
        seen = []

        reply = await session.send("hi", seen.append)

        assert seen == ["a", "a b"]
        assert reply.text == "answer to hi"

    async def test_backend_name(self, session):
        """Test that the session reports its backend's name."""
        assert session.backend_name == "scripted"


class TestSessionFailure:
    """Tests for failed exchanges."""

    async def test_failure_keeps_previous_context(self, session, backend):
        """Test that a failed send leaves the stored context untouched."""
        await session.send("one")
        before = session.context
        backend.failures.add("two")

        with pytest.raises(BackendError):
            await session.send("two")

        assert session.context == before

    async def test_unexpected_error_becomes_backend_error(self):
        """Test that arbitrary exceptions are reported as BackendError."""

        class Broken:
            name = "broken"

            async def send(self, text, context, on_partial=None):
                raise RuntimeError("socket closed")

        session = ConversationSession(Broken())

        with pytest.raises(BackendError) as exc_info:
            await session.send("x")
        assert isinstance(exc_info.value.original, RuntimeError)

    async def test_timeout_becomes_backend_error(self, backend):
        """Test that a backend that never answers is given up on."""
        session = ConversationSession(backend, timeout=0.05)
        backend.gate("stuck")

        with pytest.raises(BackendError, match="did not answer"):
            await session.send("stuck")

        assert session.context.is_empty


class TestSessionReset:
    """Tests for ConversationSession.reset_thread() method."""

    async def test_reset_clears_context(self, session):
        """Test that the next send after a reset starts fresh."""
        await session.send("one")

        session.reset_thread()

        assert session.context.is_empty

    async def test_reset_during_send_discards_reply_context(self, session, backend):
        """Test that a reset while a send is in flight wins over its reply."""
        gate = backend.gate("slow")
        task = asyncio.create_task(session.send("slow"))
        await wait_until(lambda: backend.active == 1)

        session.reset_thread()
        gate.set()
        reply = await task

        assert reply.text == "answer to slow"
        assert session.context.is_empty

        await session.send("next")
        assert backend.calls[-1][1] == ConversationContext()
