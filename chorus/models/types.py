"""Message and stream types exchanged with model backends."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


class PromptRole(str, Enum):
    """Role of a model-ready message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Reason why the model stopped generating."""

    STOP = "stop"
    TOOL_USE = "tool_use"
    LENGTH = "length"
    ERROR = "error"
    CONTENT_FILTER = "content_filter"


@dataclass
class ToolCall:
    """A tool call made by an AI model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class PromptMessage:
    """A message in the form sent to a model backend."""

    role: PromptRole
    content: str
    name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "PromptMessage":
        """Create a system message."""
        return cls(role=PromptRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str, name: Optional[str] = None) -> "PromptMessage":
        """Create a user message."""
        return cls(role=PromptRole.USER, content=content, name=name)

    @classmethod
    def assistant(cls, content: str, name: Optional[str] = None) -> "PromptMessage":
        """Create an assistant message."""
        return cls(role=PromptRole.ASSISTANT, content=content, name=name)


@dataclass
class Usage:
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_estimate: Optional[float] = None

    def __add__(self, other: "Usage") -> "Usage":
        """Add two usage objects together."""
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost_estimate=(
                (self.cost_estimate or 0) + (other.cost_estimate or 0)
                if self.cost_estimate is not None or other.cost_estimate is not None
                else None
            ),
        )


@dataclass
class StreamChunk:
    """A chunk from a streaming response.

    A backend yields any number of content chunks and finishes with one
    chunk where ``is_complete`` is True. Failures are raised from the
    iterator instead of being encoded as chunks.
    """

    text: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    grounding: Optional[dict[str, Any]] = None
    usage: Optional[Usage] = None
    is_complete: bool = False
    finish_reason: Optional[FinishReason] = None


@dataclass
class InvokeOptions:
    """Per-call options passed to a backend."""

    purpose: Literal["supervisor", "agent"] = "agent"
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    request_headers: dict[str, str] = field(default_factory=dict)
    trace_id: Optional[str] = None
