"""Persistence interface used by the orchestrator.

The orchestration core only creates and reads records; schema, storage
engine and any update/delete paths belong to the application embedding it.
``InMemoryPersistence`` is a process-local store for tests, the CLI and
embedders that keep history elsewhere.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from chorus.errors import GroupNotFoundError

from .models import ChatMessage, Group, Member


class Persistence(ABC):
    """Create/read access to groups, members and messages."""

    @abstractmethod
    async def create_group(self, group: Group) -> Group:
        """Store a new group."""
        ...

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        """Get a group by id, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def create_member(self, group_id: str, member: Member) -> Member:
        """Store a member record for a group."""
        ...

    @abstractmethod
    async def list_members(self, group_id: str) -> list[Member]:
        """List member records of a group in creation order."""
        ...

    @abstractmethod
    async def create_message(self, message: ChatMessage) -> ChatMessage:
        """Append a message to its group's history."""
        ...

    @abstractmethod
    async def list_messages(
        self,
        group_id: str,
        limit: Optional[int] = None,
    ) -> list[ChatMessage]:
        """List a group's messages in insertion order.

        Args:
            group_id: Group to read
            limit: If set, only the most recent ``limit`` messages

        Returns:
            Messages, oldest first
        """
        ...


class InMemoryPersistence(Persistence):
    """Dictionary-backed store. Not shared across processes."""

    def __init__(self) -> None:
        self._groups: dict[str, Group] = {}
        self._members: dict[str, list[Member]] = {}
        self._messages: dict[str, list[ChatMessage]] = {}
        self._lock = asyncio.Lock()

    async def create_group(self, group: Group) -> Group:
        async with self._lock:
            self._groups[group.id] = group.model_copy(deep=True)
            self._members.setdefault(group.id, [])
            self._messages.setdefault(group.id, [])
        return group

    async def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def create_member(self, group_id: str, member: Member) -> Member:
        async with self._lock:
            if group_id not in self._groups:
                raise GroupNotFoundError(group_id)
            self._members[group_id].append(member.model_copy(deep=True))
        return member

    async def list_members(self, group_id: str) -> list[Member]:
        return [m.model_copy(deep=True) for m in self._members.get(group_id, [])]

    async def create_message(self, message: ChatMessage) -> ChatMessage:
        if not message.group_id:
            raise ValueError("message.group_id is required")
        async with self._lock:
            if message.group_id not in self._groups:
                raise GroupNotFoundError(message.group_id)
            self._messages[message.group_id].append(message)
        return message

    async def list_messages(
        self,
        group_id: str,
        limit: Optional[int] = None,
    ) -> list[ChatMessage]:
        messages = list(self._messages.get(group_id, []))
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages
