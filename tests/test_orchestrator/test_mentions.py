"""Tests for mention parsing."""

import pytest

from chorus.conversation import Member
from chorus.errors import ConfigValidationError
from chorus.orchestrator.mentions import MentionResolver, MentionSet


@pytest.fixture
def members() -> list[Member]:
    return [
        Member(agent_id="A1", title="Alice"),
        Member(agent_id="A2", title="Bob"),
        Member(agent_id="A3", title="Bob Smith"),
        Member(agent_id="A4", title="Dave", enabled=False),
    ]


class TestMentionResolver:
    """Tests for MentionResolver.resolve."""

    def test_mention_by_title(self, members: list[Member]) -> None:
        """Test parsing a single @Title mention."""
        assert MentionResolver().resolve("@Alice what do you think?", members) == ["A1"]

    def test_mention_by_id(self, members: list[Member]) -> None:
        """Test parsing a mention by agent id."""
        assert MentionResolver().resolve("over to you @A2", members) == ["A2"]

    def test_first_occurrence_order(self, members: list[Member]) -> None:
        """Test that order follows the text and duplicates collapse."""
        result = MentionResolver().resolve("@Bob, then @Alice, then @Bob again", members)
        assert result == ["A2", "A1"]

    def test_longest_title_wins(self, members: list[Member]) -> None:
        """Test that a multi-word title beats its prefix."""
        assert MentionResolver().resolve("@Bob Smith please", members) == ["A3"]
        assert MentionResolver().resolve("@Bob please", members) == ["A2"]

    def test_word_boundary(self, members: list[Member]) -> None:
        """Test that a partial token does not match."""
        assert MentionResolver().resolve("@Al and @Alicia", members) == []
        assert MentionResolver().resolve("@Alice's idea", members) == ["A1"]

    def test_disabled_member_ignored(self, members: list[Member]) -> None:
        """Test that disabled members can't be mentioned."""
        assert MentionResolver().resolve("@Dave @A4", members) == []

    def test_no_mentions(self, members: list[Member]) -> None:
        """Test message with no mentions."""
        assert MentionResolver().resolve("Just a regular message", members) == []
        assert MentionResolver().resolve("", members) == []

    def test_unknown_mention_dropped(self, members: list[Member]) -> None:
        """Test that unknown names are ignored."""
        assert MentionResolver().resolve("@Zed and @Alice", members) == ["A1"]

    def test_case_sensitivity(self, members: list[Member]) -> None:
        """Test case-sensitive and case-insensitive matching."""
        assert MentionResolver(case_sensitive=True).resolve("@alice", members) == []
        assert MentionResolver(case_sensitive=False).resolve("@alice", members) == ["A1"]

    @pytest.mark.parametrize(
        "mode,text,expected",
        [
            ("id", "@Alice @A2", ["A2"]),
            ("title", "@Alice @A2", ["A1"]),
            ("id_or_title", "@Alice @A2", ["A1", "A2"]),
        ],
    )
    def test_match_modes(
        self,
        members: list[Member],
        mode: str,
        text: str,
        expected: list[str],
    ) -> None:
        """Test which tokens each match mode recognises."""
        assert MentionResolver(match_mode=mode).resolve(text, members) == expected


class TestValidate:
    """Tests for validating explicit mentions."""

    def test_valid_ids_deduplicated(self, members: list[Member]) -> None:
        """Test that valid ids pass through in order."""
        assert MentionResolver.validate(["A2", "A1", "A2"], members) == ["A2", "A1"]

    def test_unknown_id_rejected(self, members: list[Member]) -> None:
        """Test that unknown ids raise."""
        with pytest.raises(ConfigValidationError) as exc_info:
            MentionResolver.validate(["A1", "ghost"], members, group_id="g1")
        assert exc_info.value.field == "mentions"
        assert exc_info.value.details["group_id"] == "g1"

    def test_disabled_id_rejected(self, members: list[Member]) -> None:
        """Test that disabled members raise."""
        with pytest.raises(ConfigValidationError):
            MentionResolver.validate(["A4"], members)


class TestMentionSet:
    """Tests for the consumable mention set."""

    def test_add_deduplicates(self) -> None:
        """Test insertion order and dedupe."""
        mentions = MentionSet()
        mentions.add("A2")
        mentions.add("A1")
        mentions.add("A2")
        assert list(mentions) == ["A2", "A1"]
        assert len(mentions) == 2
        assert "A1" in mentions

    def test_consume_clears(self) -> None:
        """Test that consume returns everything once."""
        mentions = MentionSet(["A1", "A2"])
        assert mentions.consume() == ["A1", "A2"]
        assert not mentions
        assert mentions.consume() == []

    def test_set_replaces(self) -> None:
        """Test replacing the contents."""
        mentions = MentionSet(["A1"])
        mentions.set(["A3", "A3", "A2"])
        assert mentions.peek() == ["A3", "A2"]

    def test_remove_and_clear(self) -> None:
        """Test removing one id and clearing all."""
        mentions = MentionSet(["A1", "A2"])
        mentions.remove("A1")
        mentions.remove("missing")
        assert mentions.peek() == ["A2"]
        mentions.clear()
        assert len(mentions) == 0

    def test_peek_is_a_copy(self) -> None:
        """Test that peek doesn't expose internal state."""
        mentions = MentionSet(["A1"])
        mentions.peek().append("A2")
        assert mentions.peek() == ["A1"]
