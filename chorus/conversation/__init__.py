"""Group, roster and message state for Chorus."""

from .models import (
    ChatMessage,
    Group,
    GroupConfig,
    Member,
    MessageRole,
    MessageStatus,
    ResponseOrder,
    ResponseSpeed,
)
from .persistence import InMemoryPersistence, Persistence
from .state import GroupRegistry, GroupSnapshot, GroupState

__all__ = [
    # Models
    "ChatMessage",
    "Group",
    "GroupConfig",
    "Member",
    "MessageRole",
    "MessageStatus",
    "ResponseOrder",
    "ResponseSpeed",
    # Persistence
    "Persistence",
    "InMemoryPersistence",
    # State
    "GroupRegistry",
    "GroupSnapshot",
    "GroupState",
]
