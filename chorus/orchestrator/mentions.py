"""@mention parsing for the orchestrator.

Handles addressing agents directly from a user message, supporting:
- @A1 - mention by agent id
- @Alice, @Code Reviewer - mention by (possibly multi-word) title

A mention must end at a word boundary, so ``@Al`` never matches ``Alice``.
Which tokens are recognised is controlled by ``orchestration.mention_match``
and ``orchestration.mention_case_sensitive``.
"""

import logging
from typing import Iterable, Iterator, Literal, Optional

from chorus.conversation.models import Member
from chorus.errors import ConfigValidationError

logger = logging.getLogger(__name__)

MentionMatch = Literal["id", "title", "id_or_title"]


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


class MentionResolver:
    """Resolves @mentions in message text against a group's roster."""

    def __init__(
        self,
        match_mode: MentionMatch = "id_or_title",
        case_sensitive: bool = True,
    ):
        self.match_mode = match_mode
        self.case_sensitive = case_sensitive

    def _normalize(self, text: str) -> str:
        return text if self.case_sensitive else text.casefold()

    def _candidates(self, roster: Iterable[Member]) -> list[tuple[str, str]]:
        """Build (token, agent_id) pairs, longest token first."""
        candidates = []
        for member in roster:
            if not member.enabled:
                continue
            if self.match_mode in ("id", "id_or_title"):
                candidates.append((self._normalize(member.agent_id), member.agent_id))
            if self.match_mode in ("title", "id_or_title") and member.title.strip():
                candidates.append((self._normalize(member.title.strip()), member.agent_id))
        # Longest first so "@Bob Smith" wins over "@Bob"
        candidates.sort(key=lambda pair: len(pair[0]), reverse=True)
        return candidates

    def resolve(self, text: str, roster: Iterable[Member]) -> list[str]:
        """Find the agents mentioned in a message.

        Args:
            text: Message content
            roster: Group members; disabled members are ignored

        Returns:
            Agent ids in first-occurrence order, deduplicated

        Examples:
            >>> alice = Member(agent_id="A1", title="Alice")
            >>> bob = Member(agent_id="A2", title="Bob")
            >>> MentionResolver().resolve("@Bob and @Alice, then @Bob", [alice, bob])
            ['A2', 'A1']
        """
        if "@" not in text:
            return []

        candidates = self._candidates(roster)
        haystack = self._normalize(text)
        found: list[str] = []

        start = haystack.find("@")
        while start != -1:
            pos = start + 1
            for token, agent_id in candidates:
                end = pos + len(token)
                if not haystack.startswith(token, pos):
                    continue
                if end < len(haystack) and _is_word_char(haystack[end]):
                    continue
                if agent_id not in found:
                    found.append(agent_id)
                break
            start = haystack.find("@", pos)

        if found:
            logger.debug(f"Resolved mentions: {found}")
        return found

    @staticmethod
    def validate(agent_ids: Iterable[str], roster: Iterable[Member], group_id: Optional[str] = None) -> list[str]:
        """Validate explicitly supplied mentions.

        Returns:
            The ids deduplicated in first-occurrence order

        Raises:
            ConfigValidationError: If an id is not an enabled member
        """
        enabled = {m.agent_id for m in roster if m.enabled}
        result: list[str] = []
        for agent_id in agent_ids:
            if agent_id not in enabled:
                raise ConfigValidationError(
                    "mentions",
                    agent_id,
                    "agent is not an enabled member of this group",
                    group_id=group_id,
                )
            if agent_id not in result:
                result.append(agent_id)
        return result


class MentionSet:
    """Ordered, deduplicated set of mentioned agent ids.

    Consumed by the next dispatch: ``consume()`` returns the ids and
    clears the set, so mentions never leak into a later round.
    """

    def __init__(self, agent_ids: Iterable[str] = ()):
        self._ids: list[str] = []
        self.set(agent_ids)

    def add(self, agent_id: str) -> None:
        if agent_id not in self._ids:
            self._ids.append(agent_id)

    def remove(self, agent_id: str) -> None:
        if agent_id in self._ids:
            self._ids.remove(agent_id)

    def clear(self) -> None:
        self._ids.clear()

    def set(self, agent_ids: Iterable[str]) -> None:
        """Replace the contents."""
        self._ids = []
        for agent_id in agent_ids:
            self.add(agent_id)

    def consume(self) -> list[str]:
        """Return the mentions and clear the set."""
        ids, self._ids = self._ids, []
        return ids

    def peek(self) -> list[str]:
        return list(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._ids

    def __repr__(self) -> str:
        return f"MentionSet({self._ids!r})"
