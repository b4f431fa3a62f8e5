"""Tests for per-group state."""

import pytest

from chorus.conversation import Group, GroupRegistry, GroupState, Member
from chorus.errors import (
    ConfigValidationError,
    GroupNotFoundError,
    MemberNotFoundError,
    SpeakingConflictError,
)


@pytest.fixture
def state() -> GroupState:
    return GroupState(
        Group(id="g1", title="Team"),
        [
            Member(agent_id="A1", title="Alice"),
            {"agentId": "A2", "title": "Bob"},
        ],
    )


class TestRoster:
    """Tests for roster management."""

    def test_members_get_increasing_order(self, state: GroupState) -> None:
        """Test that members without an order are appended."""
        assert [(m.agent_id, m.order) for m in state.roster()] == [("A1", 0), ("A2", 1)]

    def test_explicit_order(self, state: GroupState) -> None:
        """Test that the roster is sorted by order."""
        state.add_members([Member(agent_id="A0", order=-1)])
        assert [m.agent_id for m in state.roster()] == ["A0", "A1", "A2"]

    def test_duplicate_rejected(self, state: GroupState) -> None:
        """Test that an existing agent can't be added again."""
        with pytest.raises(ConfigValidationError):
            state.add_members([Member(agent_id="A1")])

    def test_duplicate_in_batch_rejected(self, state: GroupState) -> None:
        """Test that a batch is validated as a whole."""
        with pytest.raises(ConfigValidationError):
            state.add_members([Member(agent_id="A3"), Member(agent_id="A3")])
        assert not state.has_member("A3")

    def test_invalid_member_data(self, state: GroupState) -> None:
        """Test that bad member data becomes a config error."""
        with pytest.raises(ConfigValidationError):
            state.add_members([{"agentId": ""}])

    def test_remove_members(self, state: GroupState) -> None:
        """Test removing members."""
        assert state.remove_members(["A1"]) == ["A1"]
        assert [m.agent_id for m in state.roster()] == ["A2"]

    def test_remove_unknown_is_atomic(self, state: GroupState) -> None:
        """Test that nothing is removed if any id is unknown."""
        with pytest.raises(MemberNotFoundError):
            state.remove_members(["A1", "ghost"])
        assert state.has_member("A1")

    def test_update_member(self, state: GroupState) -> None:
        """Test toggling enabled and changing role."""
        member = state.update_member("A1", enabled=False, role="moderator")
        assert member.enabled is False
        assert member.role == "moderator"
        assert not state.has_member("A1", enabled_only=True)
        assert state.has_member("A1")
        assert [m.agent_id for m in state.roster(enabled_only=True)] == ["A2"]

    def test_update_member_rejects_other_fields(self, state: GroupState) -> None:
        """Test that only enabled, order and role are updatable."""
        with pytest.raises(ConfigValidationError):
            state.update_member("A1", title="Eve")

    def test_update_member_blank_role(self, state: GroupState) -> None:
        """Test that the role can't be blank."""
        with pytest.raises(ConfigValidationError):
            state.update_member("A1", role="  ")

    @pytest.mark.parametrize("field", ["role", "order", "enabled"])
    def test_update_member_rejects_none(self, state: GroupState, field: str) -> None:
        """Test that None is an error rather than a silent no-op."""
        with pytest.raises(ConfigValidationError) as exc_info:
            state.update_member("A1", **{field: None})
        assert exc_info.value.details["field"] == field
        assert state.get_member("A1").role == "participant"

    def test_update_unknown_member(self, state: GroupState) -> None:
        """Test updating an agent that isn't a member."""
        with pytest.raises(MemberNotFoundError):
            state.update_member("ghost", enabled=False)

    def test_roster_returns_copies(self, state: GroupState) -> None:
        """Test that callers can't mutate the roster."""
        state.roster()[0].enabled = False
        assert state.get_member("A1").enabled is True


class TestConfig:
    """Tests for config updates."""

    def test_partial_update(self, state: GroupState) -> None:
        """Test that only the given keys change."""
        config = state.update_config({"maxResponseInRow": 4, "response_speed": "slow"})
        assert config.max_response_in_row == 4
        assert config.response_speed.value == "slow"
        assert state.config.orchestrator_model == "gemini-2.5-flash"

    def test_invalid_value_not_applied(self, state: GroupState) -> None:
        """Test that an invalid update leaves the config unchanged."""
        with pytest.raises(ConfigValidationError) as exc_info:
            state.update_config({"max_response_in_row": 2, "response_order": "chaotic"})
        assert exc_info.value.details["group_id"] == "g1"
        assert state.config.max_response_in_row == 1

    def test_unknown_field(self, state: GroupState) -> None:
        """Test that unknown keys are rejected."""
        with pytest.raises(ConfigValidationError):
            state.update_config({"volume": 11})

    def test_update_meta(self, state: GroupState) -> None:
        """Test title and description updates."""
        group = state.update_meta(title="  Core team ", description="Weekly sync")
        assert group.title == "Core team"
        assert state.snapshot().group.description == "Weekly sync"


class TestSpeaking:
    """Tests for speaking flags."""

    def test_set_and_clear(self, state: GroupState) -> None:
        """Test marking an agent as speaking and done."""
        state.set_speaking("A1", True)
        assert state.is_speaking("A1")
        assert state.snapshot().speaking_agents == ["A1"]
        state.set_speaking("A1", False)
        assert not state.is_speaking("A1")
        assert state.speaking_status() == {}

    def test_double_speaking_conflict(self, state: GroupState) -> None:
        """Test that an agent can't start speaking twice."""
        state.set_speaking("A1", True)
        with pytest.raises(SpeakingConflictError):
            state.set_speaking("A1", True)

    def test_non_member_cannot_speak(self, state: GroupState) -> None:
        """Test that only members can be marked speaking."""
        with pytest.raises(MemberNotFoundError):
            state.set_speaking("ghost", True)
        state.set_speaking("ghost", False)


class TestActiveThread:
    """Tests for the side-thread pointer."""

    def test_set_and_clear(self, state: GroupState) -> None:
        """Test pointing at a member and clearing."""
        state.set_active_thread("A2")
        assert state.snapshot().active_thread_agent_id == "A2"
        state.set_active_thread(None)
        assert state.active_thread is None

    def test_unknown_agent(self, state: GroupState) -> None:
        """Test that the thread must point at a member."""
        with pytest.raises(ConfigValidationError):
            state.set_active_thread("ghost")

    def test_cleared_on_removal(self, state: GroupState) -> None:
        """Test that removing the member clears the pointer."""
        state.set_active_thread("A2")
        state.remove_members(["A2"])
        assert state.active_thread is None


class TestSnapshot:
    """Tests for detached snapshots."""

    def test_snapshot_is_detached(self, state: GroupState) -> None:
        """Test that later changes don't leak into a snapshot."""
        snapshot = state.snapshot()
        state.update_config({"max_response_in_row": 9})
        state.update_member("A1", enabled=False)
        assert snapshot.config.max_response_in_row == 1
        assert [m.agent_id for m in snapshot.enabled_members] == ["A1", "A2"]
        assert snapshot.get_member("A2").title == "Bob"
        assert snapshot.get_member("ghost") is None


class TestGroupRegistry:
    """Tests for the group arena."""

    def test_create_and_get(self) -> None:
        """Test registering and looking up groups."""
        registry = GroupRegistry()
        state = registry.create(Group(id="g1"), [Member(agent_id="A1")])
        assert registry.get("g1") is state
        assert "g1" in registry
        assert len(registry) == 1
        assert registry.group_ids() == ["g1"]

    def test_duplicate_id(self) -> None:
        """Test that ids are unique."""
        registry = GroupRegistry()
        registry.create(Group(id="g1"))
        with pytest.raises(ConfigValidationError):
            registry.create(Group(id="g1"))

    def test_missing_group(self) -> None:
        """Test lookups and removal of unknown groups."""
        registry = GroupRegistry()
        with pytest.raises(GroupNotFoundError):
            registry.get("nope")
        with pytest.raises(GroupNotFoundError):
            registry.remove("nope")

    def test_groups_are_independent(self) -> None:
        """Test that state is never shared between groups."""
        registry = GroupRegistry()
        first = registry.create(Group(id="g1"), [Member(agent_id="A1")])
        second = registry.create(Group(id="g2"), [Member(agent_id="A1")])
        first.set_speaking("A1", True)
        first.update_config({"max_response_in_row": 3})
        assert not second.is_speaking("A1")
        assert second.config.max_response_in_row == 1
