"""In-memory authoritative state for each group.

A ``GroupState`` owns the roster, config, speaking flags and active
side-thread pointer of one group. Only the orchestrator's command handlers
and the turn scheduler write to it; everything else reads snapshots.
``GroupRegistry`` keeps one independent ``GroupState`` per group id.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from chorus.errors import (
    ConfigValidationError,
    GroupNotFoundError,
    MemberNotFoundError,
    SpeakingConflictError,
)

from .models import Group, GroupConfig, Member, utc_now

logger = logging.getLogger(__name__)

MemberInput = Union[Member, dict[str, Any]]

MEMBER_UPDATABLE_FIELDS = ("enabled", "order", "role")


def _validation_to_config_error(
    error: ValidationError,
    group_id: str,
    payload: Any = None,
) -> ConfigValidationError:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "value"
    value = first.get("input", payload)
    return ConfigValidationError(loc, value, first.get("msg", str(error)), group_id=group_id)


@dataclass(frozen=True)
class GroupSnapshot:
    """Consistent, detached view of a group's state."""

    group: Group
    members: tuple[Member, ...]
    speaking: dict[str, bool] = field(default_factory=dict)
    active_thread_agent_id: Optional[str] = None

    @property
    def group_id(self) -> str:
        return self.group.id

    @property
    def config(self) -> GroupConfig:
        return self.group.config

    @property
    def enabled_members(self) -> list[Member]:
        """Members that may be dispatched or mentioned."""
        return [m for m in self.members if m.enabled]

    @property
    def speaking_agents(self) -> list[str]:
        return [agent_id for agent_id, speaking in self.speaking.items() if speaking]

    def get_member(self, agent_id: str) -> Optional[Member]:
        for member in self.members:
            if member.agent_id == agent_id:
                return member
        return None


class GroupState:
    """Single-writer state object for one group."""

    def __init__(self, group: Group, members: Iterable[MemberInput] = ()):
        self._group = group.model_copy(deep=True)
        self._members: dict[str, Member] = {}
        self._speaking: dict[str, bool] = {}
        self._active_thread: Optional[str] = None
        if members:
            self.add_members(members)

    @property
    def group_id(self) -> str:
        return self._group.id

    @property
    def config(self) -> GroupConfig:
        return self._group.config.model_copy()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> GroupSnapshot:
        """Get a deep-copied view of the whole group."""
        return GroupSnapshot(
            group=self._group.model_copy(deep=True),
            members=tuple(self.roster()),
            speaking=dict(self._speaking),
            active_thread_agent_id=self._active_thread,
        )

    def roster(self, enabled_only: bool = False) -> list[Member]:
        """Get members sorted by ``order``, ties kept in insertion order."""
        members = sorted(self._members.values(), key=lambda m: m.order)
        if enabled_only:
            members = [m for m in members if m.enabled]
        return [m.model_copy(deep=True) for m in members]

    def get_member(self, agent_id: str) -> Member:
        member = self._members.get(agent_id)
        if member is None:
            raise MemberNotFoundError(self.group_id, agent_id)
        return member.model_copy(deep=True)

    def has_member(self, agent_id: str, enabled_only: bool = False) -> bool:
        member = self._members.get(agent_id)
        if member is None:
            return False
        return member.enabled or not enabled_only

    # ------------------------------------------------------------------
    # Group config and meta
    # ------------------------------------------------------------------

    def update_config(self, changes: dict[str, Any]) -> GroupConfig:
        """Validate and apply a partial config update.

        Accepts snake_case or camelCase keys. Nothing is applied if any
        value is invalid.

        Raises:
            ConfigValidationError: If the resulting config is invalid
        """
        merged = self._group.config.model_dump()
        known = {}
        for name in GroupConfig.model_fields:
            known[name] = name
            known[to_camel(name)] = name
        for key, value in changes.items():
            if key not in known:
                raise ConfigValidationError(key, value, "unknown config field", group_id=self.group_id)
            merged[known[key]] = value

        try:
            config = GroupConfig.model_validate(merged)
        except ValidationError as e:
            raise _validation_to_config_error(e, self.group_id, changes) from e

        self._group = self._group.model_copy(update={"config": config, "updated_at": utc_now()})
        logger.debug(f"Group {self.group_id} config updated: {sorted(changes)}")
        return config.model_copy()

    def update_meta(
        self,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Group:
        """Update title and/or description."""
        update: dict[str, Any] = {"updated_at": utc_now()}
        if title is not None:
            update["title"] = title.strip()
        if description is not None:
            update["description"] = description
        self._group = self._group.model_copy(update=update)
        return self._group.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def add_members(self, members: Iterable[MemberInput]) -> list[Member]:
        """Add members to the roster.

        Members without an explicit ``order`` are appended after the
        current last member. The whole batch is validated first.

        Raises:
            ConfigValidationError: On invalid data or duplicate agent ids
        """
        parsed: list[Member] = []
        seen: set[str] = set()
        for raw in members:
            try:
                member = raw if isinstance(raw, Member) else Member.model_validate(raw)
            except ValidationError as e:
                raise _validation_to_config_error(e, self.group_id, raw) from e
            if member.agent_id in self._members or member.agent_id in seen:
                raise ConfigValidationError(
                    "agent_id",
                    member.agent_id,
                    "agent is already a member of this group",
                    group_id=self.group_id,
                )
            seen.add(member.agent_id)
            parsed.append(member)

        next_order = max((m.order for m in self._members.values()), default=-1) + 1
        added = []
        for member in parsed:
            if "order" not in member.model_fields_set:
                member = member.model_copy(update={"order": next_order})
                next_order += 1
            else:
                next_order = max(next_order, member.order + 1)
            self._members[member.agent_id] = member.model_copy(deep=True)
            added.append(member)

        logger.debug(f"Group {self.group_id}: added {[m.agent_id for m in added]}")
        return added

    def remove_members(self, agent_ids: Iterable[str]) -> list[str]:
        """Remove members by agent id.

        Raises:
            MemberNotFoundError: If any id is not a member (nothing removed)
        """
        ids = list(dict.fromkeys(agent_ids))
        for agent_id in ids:
            if agent_id not in self._members:
                raise MemberNotFoundError(self.group_id, agent_id)

        for agent_id in ids:
            del self._members[agent_id]
            if self._active_thread == agent_id:
                self._active_thread = None

        logger.debug(f"Group {self.group_id}: removed {ids}")
        return ids

    def update_member(self, agent_id: str, **updates: Any) -> Member:
        """Update a member's ``enabled``, ``order`` or ``role``.

        Raises:
            MemberNotFoundError: If the agent is not a member
            ConfigValidationError: On an unsupported field or invalid value
        """
        member = self._members.get(agent_id)
        if member is None:
            raise MemberNotFoundError(self.group_id, agent_id)

        for key in updates:
            if key not in MEMBER_UPDATABLE_FIELDS:
                raise ConfigValidationError(
                    key,
                    updates[key],
                    f"only {', '.join(MEMBER_UPDATABLE_FIELDS)} can be updated",
                    group_id=self.group_id,
                )

        data = member.model_dump()
        data.update(updates)
        try:
            updated = Member.model_validate(data)
        except ValidationError as e:
            raise _validation_to_config_error(e, self.group_id, updates) from e

        if not updated.role.strip():
            raise ConfigValidationError("role", updated.role, "role cannot be empty", group_id=self.group_id)

        self._members[agent_id] = updated
        return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Speaking status
    # ------------------------------------------------------------------

    def is_speaking(self, agent_id: str) -> bool:
        return self._speaking.get(agent_id, False)

    def speaking_status(self) -> dict[str, bool]:
        return dict(self._speaking)

    def set_speaking(self, agent_id: str, speaking: bool) -> None:
        """Mark an agent as speaking or done.

        Raises:
            SpeakingConflictError: If the agent is already speaking
            MemberNotFoundError: If marking a non-member as speaking
        """
        if not speaking:
            # Members can be removed mid-turn; clearing must always succeed
            self._speaking.pop(agent_id, None)
            return

        if agent_id not in self._members:
            raise MemberNotFoundError(self.group_id, agent_id)
        if self._speaking.get(agent_id):
            raise SpeakingConflictError(self.group_id, agent_id)
        self._speaking[agent_id] = True

    # ------------------------------------------------------------------
    # Side threads
    # ------------------------------------------------------------------

    @property
    def active_thread(self) -> Optional[str]:
        return self._active_thread

    def set_active_thread(self, agent_id: Optional[str]) -> None:
        """Point the side-thread view at an agent, or clear it with None."""
        if agent_id and agent_id not in self._members:
            raise ConfigValidationError(
                "active_thread",
                agent_id,
                "agent is not a member of this group",
                group_id=self.group_id,
            )
        self._active_thread = agent_id or None


class GroupRegistry:
    """Arena of independent group states keyed by group id."""

    def __init__(self) -> None:
        self._groups: dict[str, GroupState] = {}

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def group_ids(self) -> list[str]:
        return list(self._groups)

    def create(self, group: Group, members: Iterable[MemberInput] = ()) -> GroupState:
        """Register a new group.

        Raises:
            ConfigValidationError: If the id is already registered
        """
        if group.id in self._groups:
            raise ConfigValidationError("id", group.id, "group already exists", group_id=group.id)
        state = GroupState(group, members)
        self._groups[group.id] = state
        return state

    def get(self, group_id: str) -> GroupState:
        state = self._groups.get(group_id)
        if state is None:
            raise GroupNotFoundError(group_id)
        return state

    def remove(self, group_id: str) -> None:
        if group_id not in self._groups:
            raise GroupNotFoundError(group_id)
        del self._groups[group_id]
