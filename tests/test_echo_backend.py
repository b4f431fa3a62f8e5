"""Tests for the local echo backend."""

import json

import pytest

from chorus.conversation import ChatMessage, Member
from chorus.models import EchoBackend
from chorus.models.types import InvokeOptions, PromptMessage
from chorus.orchestrator.history import format_member_list, format_supervisor_history


class TestEchoBackend:
    """Tests for EchoBackend."""

    @pytest.mark.asyncio
    async def test_supervisor_skips_last_author(self) -> None:
        """Test that every other agent is picked."""
        roster = [Member(agent_id="A1", title="Alice"), Member(agent_id="A2", title="Bob")]
        history = format_supervisor_history([
            ChatMessage.user("Hi"),
            ChatMessage.assistant("Hello", agent_id="A1"),
        ])
        messages = [
            PromptMessage.system(format_member_list(roster)),
            PromptMessage.user(history),
        ]

        raw = await EchoBackend().complete("m", "p", messages, InvokeOptions(purpose="supervisor"))
        assert json.loads(raw) == ["A2"]

    @pytest.mark.asyncio
    async def test_supervisor_max_speakers(self) -> None:
        """Test capping the number of picked agents."""
        roster = [Member(agent_id="A1"), Member(agent_id="A2"), Member(agent_id="A3")]
        messages = [PromptMessage.system(format_member_list(roster))]

        raw = await EchoBackend(max_speakers=2).complete("m", "p", messages, InvokeOptions(purpose="supervisor"))
        assert json.loads(raw) == ["A1", "A2"]

    @pytest.mark.asyncio
    async def test_agent_reply_streams_words(self) -> None:
        """Test the echoed reply and the closing usage chunk."""
        messages = [
            PromptMessage.system('You are "Alice" (id: A1), one of several participants.'),
            PromptMessage.user("(User): How are you?"),
        ]

        chunks = [chunk async for chunk in EchoBackend().invoke("m", "p", messages)]
        text = "".join(chunk.text for chunk in chunks)

        assert text == "Alice heard: How are you?"
        assert len(chunks) > 2
        assert chunks[-1].is_complete
        assert chunks[-1].usage is not None
        assert chunks[-1].usage.total_tokens > 0
