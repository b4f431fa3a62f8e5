"""Data models for groups, members and chat messages.

Field names are snake_case; every model also accepts (and can dump) the
camelCase names used by front-end clients, e.g. ``maxResponseInRow``.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chorus.config.settings import GroupDefaultsConfig


def new_id(prefix: str = "") -> str:
    """Generate a short random identifier."""
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Role of a message sender."""

    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Final state of a message."""

    COMPLETE = "complete"
    PARTIAL = "partial"  # Stream was cancelled mid-way
    ERROR = "error"


class ResponseOrder(str, Enum):
    """Policy applied between agent turns of a round."""

    SEQUENTIAL = "sequential"
    NATURAL = "natural"


class ResponseSpeed(str, Enum):
    """How long agents pause between turns in natural order."""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


# Older clients send these; they all mean "not strictly sequential".
LEGACY_RESPONSE_ORDERS = {
    "random": ResponseOrder.NATURAL,
    "smart": ResponseOrder.NATURAL,
}

# Settings slider positions 1-3
SLIDER_RESPONSE_ORDERS = {
    1: ResponseOrder.SEQUENTIAL,
    2: ResponseOrder.NATURAL,
    3: ResponseOrder.NATURAL,
}


class ChorusModel(BaseModel):
    """Base model accepting snake_case or camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class GroupConfig(ChorusModel):
    """Chat behaviour of a group."""

    max_response_in_row: int = Field(default=1, ge=0)
    orchestrator_model: str = "gemini-2.5-flash"
    orchestrator_provider: str = "google"
    response_order: ResponseOrder = ResponseOrder.NATURAL
    response_speed: ResponseSpeed = ResponseSpeed.FAST
    reveal_dm: bool = False

    @field_validator("response_order", mode="before")
    @classmethod
    def normalize_response_order(cls, v: Any) -> Any:
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            if v not in SLIDER_RESPONSE_ORDERS:
                raise ValueError("slider position must be 1, 2 or 3")
            return SLIDER_RESPONSE_ORDERS[v]
        if isinstance(v, str):
            return LEGACY_RESPONSE_ORDERS.get(v.strip().lower(), v.strip().lower())
        return v

    @field_validator("orchestrator_model", "orchestrator_provider")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @classmethod
    def from_defaults(cls, defaults: GroupDefaultsConfig) -> "GroupConfig":
        """Build a group config from application defaults."""
        return cls.model_validate(defaults.model_dump())


class Group(ChorusModel):
    """A conversation with one or more agent participants."""

    id: str = Field(default_factory=lambda: new_id("grp_"))
    title: str = ""
    description: str = ""
    config: GroupConfig = Field(default_factory=GroupConfig)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def display_name(self) -> str:
        """Get a display name for this group."""
        if self.title:
            return self.title
        return f"Group {self.id[:8]}"


class Member(ChorusModel):
    """An agent participating in a group."""

    agent_id: str
    title: str = ""
    avatar: Optional[str] = None
    role: str = "participant"
    order: int = 0
    enabled: bool = True
    # Per-agent model; falls back to the group's orchestrator model
    model: Optional[str] = None
    provider: Optional[str] = None
    system_role: str = ""

    @field_validator("agent_id")
    @classmethod
    def validate_agent_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("agent_id cannot be empty")
        return v.strip()

    @property
    def display_name(self) -> str:
        """Title if set, else the agent id."""
        return self.title or self.agent_id


class ChatMessage(ChorusModel):
    """A message in a group conversation. Immutable once created."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(default_factory=lambda: new_id("msg_"))
    group_id: Optional[str] = None
    role: MessageRole
    content: str = ""
    agent_id: Optional[str] = None  # Author when role is assistant
    target_id: Optional[str] = None  # Direct-message recipient
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: MessageStatus = MessageStatus.COMPLETE
    error: Optional[str] = None
    round_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def user(
        cls,
        content: str,
        group_id: Optional[str] = None,
        target_id: Optional[str] = None,
    ) -> "ChatMessage":
        """Create a user message."""
        return cls(
            role=MessageRole.USER,
            content=content,
            group_id=group_id,
            target_id=target_id,
        )

    @classmethod
    def assistant(
        cls,
        content: str,
        agent_id: Optional[str] = None,
        group_id: Optional[str] = None,
        **kwargs: Any,
    ) -> "ChatMessage":
        """Create an assistant message."""
        return cls(
            role=MessageRole.ASSISTANT,
            content=content,
            agent_id=agent_id,
            group_id=group_id,
            **kwargs,
        )

    @property
    def is_user_message(self) -> bool:
        """Check if this is a user message."""
        return self.role == MessageRole.USER

    @property
    def is_assistant_message(self) -> bool:
        """Check if this is an assistant message."""
        return self.role == MessageRole.ASSISTANT

    @property
    def is_direct_message(self) -> bool:
        """Check if this message is addressed to a single participant."""
        return self.target_id is not None
