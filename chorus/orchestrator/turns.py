"""Turn management for the orchestrator.

Handles:
- Counting consecutive agent turns and enforcing ``max_response_in_row``
- The pause between two agent turns, which depends on the group's
  response order and speed
"""

import logging
import random
from typing import Optional

from chorus.config.settings import DelayBand, ResponseDelaysConfig
from chorus.conversation.models import ChatMessage, GroupConfig, ResponseOrder

logger = logging.getLogger(__name__)


class TurnManager:
    """Tracks agent turns for one group.

    The counter is reset by every user message and incremented by every
    agent-authored message. It survives the end of a round, so once the
    bound is reached nobody else speaks until the user writes again.
    """

    def __init__(
        self,
        delays: Optional[ResponseDelaysConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the turn manager.

        Args:
            delays: Delay bands per response speed
            rng: Random source for natural-order delays
        """
        self.delays = delays or ResponseDelaysConfig()
        self.rng = rng or random.Random()
        self._agent_turns = 0

    @property
    def agent_turns(self) -> int:
        """Consecutive agent messages since the last user message."""
        return self._agent_turns

    def record(self, message: ChatMessage) -> int:
        """Update the counter for a new message and return it."""
        if message.is_user_message:
            self._agent_turns = 0
        else:
            self._agent_turns += 1
        return self._agent_turns

    def reset(self) -> None:
        self._agent_turns = 0

    def bound_reached(self, config: GroupConfig) -> bool:
        return self._agent_turns >= config.max_response_in_row

    def remaining(self, config: GroupConfig) -> int:
        """How many more agents may speak before the next user message."""
        return max(0, config.max_response_in_row - self._agent_turns)

    def plan(self, responders: list[str], config: GroupConfig) -> list[str]:
        """Cut a responder list down to what the bound still allows.

        Args:
            responders: Candidate agent ids in speaking order
            config: Group config

        Returns:
            The first ``remaining`` responders
        """
        allowed = responders[:self.remaining(config)]
        if len(allowed) < len(responders):
            logger.debug(
                f"Turn bound {config.max_response_in_row} reached, "
                f"dropping {responders[len(allowed):]}"
            )
        return allowed

    def band(self, config: GroupConfig) -> DelayBand:
        return getattr(self.delays, config.response_speed.value, DelayBand())

    def delay_before(self, turn_index: int, config: GroupConfig) -> float:
        """Seconds to wait before an agent turn.

        The first turn of a round never waits. In sequential order agents
        follow each other immediately; in natural order each pause is
        drawn uniformly from the response speed's band.

        Args:
            turn_index: Zero-based index of the turn within the round
            config: Group config

        Returns:
            Delay in seconds
        """
        if turn_index == 0 or config.response_order == ResponseOrder.SEQUENTIAL:
            return 0.0
        band = self.band(config)
        if band.max_seconds <= band.min_seconds:
            return band.min_seconds
        return self.rng.uniform(band.min_seconds, band.max_seconds)
