"""Pytest configuration and fixtures for Chorus tests."""

import asyncio
import json
import re
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator, Generator, Optional, Union

import pytest
import pytest_asyncio

from chorus.config import Settings, reset_settings
from chorus.conversation import InMemoryPersistence, Member
from chorus.conversation.state import GroupSnapshot
from chorus.models.base import ModelBackend
from chorus.models.types import (
    FinishReason,
    InvokeOptions,
    PromptMessage,
    StreamChunk,
    Usage,
)
from chorus.orchestrator import Orchestrator

AGENT_ID_PATTERN = re.compile(r"\(id: ([^)]+)\)")

Decision = Union[list[str], str, Exception]
Reply = Union[str, Exception]


class ScriptedBackend(ModelBackend):
    """Backend that replays scripted supervisor decisions and agent replies."""

    def __init__(
        self,
        decisions: Optional[list[Decision]] = None,
        replies: Optional[dict[str, Reply]] = None,
        default_decision: Optional[Decision] = None,
    ):
        self.decisions = list(decisions or [])
        self.default_decision = default_decision if default_decision is not None else []
        self.replies = replies or {}
        self.supervisor_delay = 0.0
        self.stream_delay = 0.0
        self.supervisor_calls = 0
        self.agent_calls: list[str] = []
        self.prompts: dict[str, list[PromptMessage]] = {}
        self.last_agent_options: Optional[InvokeOptions] = None

    async def invoke(
        self,
        model: str,
        provider: str,
        messages: list[PromptMessage],
        options: Optional[InvokeOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        options = options or InvokeOptions()

        if options.purpose == "supervisor":
            self.supervisor_calls += 1
            if self.supervisor_delay:
                await asyncio.sleep(self.supervisor_delay)
            decision = self.decisions.pop(0) if self.decisions else self.default_decision
            if isinstance(decision, Exception):
                raise decision
            yield StreamChunk(text=decision if isinstance(decision, str) else json.dumps(decision))
            yield StreamChunk(is_complete=True, finish_reason=FinishReason.STOP)
            return

        agent_id = AGENT_ID_PATTERN.search(messages[0].content).group(1)
        self.agent_calls.append(agent_id)
        self.last_agent_options = options
        self.prompts[agent_id] = messages
        reply = self.replies.get(agent_id, f"Reply from {agent_id}")
        if isinstance(reply, Exception):
            raise reply

        for i, word in enumerate(reply.split(" ")):
            if self.stream_delay:
                await asyncio.sleep(self.stream_delay)
            yield StreamChunk(text=word if i == 0 else f" {word}")

        yield StreamChunk(
            usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            is_complete=True,
            finish_reason=FinishReason.STOP,
        )


def make_settings(**orchestration: Any) -> Settings:
    """Create settings with fast timeouts for tests."""
    values: dict[str, Any] = {"supervisor_timeout": 1.0, "agent_timeout": 2.0}
    values.update(orchestration)
    return Settings(orchestration=values)


@pytest.fixture(autouse=True)
def clean_settings() -> Generator[None, None, None]:
    """Make sure no cached settings leak between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings with short timeouts."""
    return make_settings()


@pytest.fixture
def roster() -> list[Member]:
    """The two-agent roster used across tests."""
    return [
        Member(agent_id="A1", title="Alice"),
        Member(agent_id="A2", title="Bob"),
    ]


@pytest.fixture
def backend() -> ScriptedBackend:
    """Create a scripted backend with no decisions queued."""
    return ScriptedBackend()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    """Create an empty in-memory store."""
    return InMemoryPersistence()


@pytest.fixture
def orchestrator(
    backend: ScriptedBackend,
    test_settings: Settings,
    persistence: InMemoryPersistence,
) -> Orchestrator:
    """Create an orchestrator wired to the scripted backend."""
    return Orchestrator(backend, test_settings, persistence)


@pytest_asyncio.fixture
async def group(orchestrator: Orchestrator, roster: list[Member]) -> GroupSnapshot:
    """Create a sequential group with Alice and Bob and a bound of 3."""
    return await orchestrator.create_group(
        title="Test Group",
        config={"responseOrder": "sequential", "maxResponseInRow": 3},
        members=roster,
    )
