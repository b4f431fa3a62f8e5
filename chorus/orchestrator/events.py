"""Orchestrator event types.

Events are yielded by the orchestrator to communicate state changes
to the UI layer while a round is running.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional

from chorus.conversation.models import ChatMessage
from chorus.models.types import ToolCall, Usage


class EventType(Enum):
    """Types of events emitted by the orchestrator."""

    ROUND_START = auto()  # A new message was accepted

    # Decision phase
    SUPERVISOR_THINKING = auto()  # Asking the supervisor who speaks next
    SUPERVISOR_DECISION = auto()  # Responders picked (by mention or supervisor)
    WILL_SPEAK = auto()  # Agent is next in line

    # Response generation phase
    RESPONSE_START = auto()  # Agent starting to generate response
    RESPONSE_CHUNK = auto()  # Streaming text chunk received
    THINKING_CHUNK = auto()  # Streaming reasoning chunk received
    TOOL_CALL = auto()  # Agent emitted tool calls
    GROUNDING = auto()  # Agent emitted grounding/search metadata
    RESPONSE_COMPLETE = auto()  # Message finished (complete, partial or error)

    # Completion/error phase
    ERROR = auto()  # Error occurred
    ROUND_COMPLETE = auto()  # Round finished, scheduler back to idle


class SchedulerState(str, Enum):
    """Lifecycle of a group's turn scheduler."""

    IDLE = "idle"
    AWAITING_SUPERVISOR = "awaiting_supervisor"
    DISPATCHING = "dispatching"
    AGENT_RESPONDING = "agent_responding"
    ROUND_COMPLETE = "round_complete"
    ERROR = "error"


# ERROR is reachable from every state and always resolves to IDLE
TRANSITIONS: dict[SchedulerState, set[SchedulerState]] = {
    SchedulerState.IDLE: {
        SchedulerState.AWAITING_SUPERVISOR,
        SchedulerState.DISPATCHING,
        SchedulerState.ROUND_COMPLETE,
    },
    SchedulerState.AWAITING_SUPERVISOR: {
        SchedulerState.DISPATCHING,
        SchedulerState.ROUND_COMPLETE,
    },
    SchedulerState.DISPATCHING: {
        SchedulerState.AGENT_RESPONDING,
        SchedulerState.AWAITING_SUPERVISOR,
        SchedulerState.ROUND_COMPLETE,
    },
    SchedulerState.AGENT_RESPONDING: {
        SchedulerState.DISPATCHING,
        SchedulerState.ROUND_COMPLETE,
    },
    SchedulerState.ROUND_COMPLETE: {SchedulerState.IDLE},
    SchedulerState.ERROR: {SchedulerState.IDLE},
}


@dataclass
class SupervisorDecision:
    """Ordered list of agents that should speak next.

    Advisory: the scheduler still applies ``max_response_in_row``.
    """

    next_speakers: list[str] = field(default_factory=list)
    reason: str = ""
    raw: Optional[str] = None
    from_mentions: bool = False

    @classmethod
    def mentioned(cls, agent_ids: list[str]) -> "SupervisorDecision":
        """Create a decision from explicit mentions."""
        return cls(
            next_speakers=list(agent_ids),
            reason="Directly mentioned",
            from_mentions=True,
        )

    @classmethod
    def nobody(cls, reason: str) -> "SupervisorDecision":
        return cls(next_speakers=[], reason=reason)

    @property
    def is_empty(self) -> bool:
        return not self.next_speakers


@dataclass
class OrchestratorEvent:
    """Event emitted by the orchestrator while a round runs.

    The type field determines which other fields are populated:
    - ROUND_START: message
    - SUPERVISOR_THINKING: just the type
    - SUPERVISOR_DECISION: decision
    - WILL_SPEAK: agent_id
    - RESPONSE_START: agent_id, message_id
    - RESPONSE_CHUNK / THINKING_CHUNK: agent_id, message_id, content
    - TOOL_CALL: agent_id, tool_calls
    - GROUNDING: agent_id, data
    - RESPONSE_COMPLETE: agent_id, message
    - ERROR: error, optionally agent_id and exception
    - ROUND_COMPLETE: messages, usage (aggregated), data with cancelled/halted flags
    """

    type: EventType
    group_id: Optional[str] = None
    round_id: Optional[str] = None
    agent_id: Optional[str] = None
    message_id: Optional[str] = None
    content: Optional[str] = None
    message: Optional[ChatMessage] = None
    decision: Optional[SupervisorDecision] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    exception: Optional[Exception] = None
    usage: Optional[Usage] = None
    messages: list[ChatMessage] = field(default_factory=list)

    @classmethod
    def round_start(cls, group_id: str, round_id: str, message: ChatMessage) -> "OrchestratorEvent":
        """Create a ROUND_START event."""
        return cls(type=EventType.ROUND_START, group_id=group_id, round_id=round_id, message=message)

    @classmethod
    def supervisor_thinking(cls, group_id: str, round_id: str) -> "OrchestratorEvent":
        """Create a SUPERVISOR_THINKING event."""
        return cls(type=EventType.SUPERVISOR_THINKING, group_id=group_id, round_id=round_id)

    @classmethod
    def supervisor_decision(
        cls, group_id: str, round_id: str, decision: SupervisorDecision
    ) -> "OrchestratorEvent":
        """Create a SUPERVISOR_DECISION event."""
        return cls(
            type=EventType.SUPERVISOR_DECISION,
            group_id=group_id,
            round_id=round_id,
            decision=decision,
        )

    @classmethod
    def will_speak(cls, group_id: str, round_id: str, agent_id: str) -> "OrchestratorEvent":
        """Create a WILL_SPEAK event."""
        return cls(type=EventType.WILL_SPEAK, group_id=group_id, round_id=round_id, agent_id=agent_id)

    @classmethod
    def response_start(
        cls, group_id: str, round_id: str, agent_id: str, message_id: str
    ) -> "OrchestratorEvent":
        """Create a RESPONSE_START event."""
        return cls(
            type=EventType.RESPONSE_START,
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            message_id=message_id,
        )

    @classmethod
    def response_chunk(
        cls, group_id: str, round_id: str, agent_id: str, message_id: str, content: str
    ) -> "OrchestratorEvent":
        """Create a RESPONSE_CHUNK event."""
        return cls(
            type=EventType.RESPONSE_CHUNK,
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            message_id=message_id,
            content=content,
        )

    @classmethod
    def thinking_chunk(
        cls, group_id: str, round_id: str, agent_id: str, message_id: str, content: str
    ) -> "OrchestratorEvent":
        """Create a THINKING_CHUNK event."""
        return cls(
            type=EventType.THINKING_CHUNK,
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            message_id=message_id,
            content=content,
        )

    @classmethod
    def tool_call(
        cls, group_id: str, round_id: str, agent_id: str, tool_calls: list[ToolCall]
    ) -> "OrchestratorEvent":
        """Create a TOOL_CALL event."""
        return cls(
            type=EventType.TOOL_CALL,
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            tool_calls=list(tool_calls),
        )

    @classmethod
    def grounding(
        cls, group_id: str, round_id: str, agent_id: str, data: dict[str, Any]
    ) -> "OrchestratorEvent":
        """Create a GROUNDING event."""
        return cls(type=EventType.GROUNDING, group_id=group_id, round_id=round_id, agent_id=agent_id, data=data)

    @classmethod
    def response_complete(cls, group_id: str, round_id: str, message: ChatMessage) -> "OrchestratorEvent":
        """Create a RESPONSE_COMPLETE event."""
        return cls(
            type=EventType.RESPONSE_COMPLETE,
            group_id=group_id,
            round_id=round_id,
            agent_id=message.agent_id,
            message_id=message.id,
            message=message,
        )

    @classmethod
    def error_event(
        cls,
        error: str,
        group_id: Optional[str] = None,
        round_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        exception: Optional[Exception] = None,
    ) -> "OrchestratorEvent":
        """Create an ERROR event."""
        return cls(
            type=EventType.ERROR,
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            error=error,
            exception=exception,
        )

    @classmethod
    def round_complete(
        cls,
        group_id: str,
        round_id: str,
        messages: list[ChatMessage],
        usage: Optional[Usage] = None,
        cancelled: bool = False,
        halted: bool = False,
    ) -> "OrchestratorEvent":
        """Create a ROUND_COMPLETE event."""
        return cls(
            type=EventType.ROUND_COMPLETE,
            group_id=group_id,
            round_id=round_id,
            messages=list(messages),
            usage=usage,
            data={"cancelled": cancelled, "halted": halted},
        )


@dataclass
class RoundResult:
    """Everything a finished round produced."""

    group_id: str
    round_id: str
    messages: list[ChatMessage] = field(default_factory=list)
    decisions: list[SupervisorDecision] = field(default_factory=list)
    errors: list[OrchestratorEvent] = field(default_factory=list)
    events: list[OrchestratorEvent] = field(default_factory=list)
    usage: Optional[Usage] = None
    cancelled: bool = False
    halted: bool = False

    @property
    def speakers(self) -> list[str]:
        """Agent ids in the order they spoke."""
        return [m.agent_id for m in self.messages if m.agent_id]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
