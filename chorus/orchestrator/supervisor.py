"""Supervisor decisions for the orchestrator.

Determines which agents should speak next by:
1. Building a prompt with the member list and the recent transcript
2. Asking the group's orchestrator model under a deadline
3. Parsing the JSON array of agent ids from its reply
4. Keeping only enabled members, in order, without duplicates
"""

import asyncio
import json
import logging
import re
from typing import Any, Optional, Sequence

from chorus.config.settings import OrchestrationConfig
from chorus.conversation.models import ChatMessage
from chorus.conversation.state import GroupSnapshot
from chorus.errors import SupervisorDecisionError
from chorus.models.base import ModelBackend
from chorus.models.types import InvokeOptions, PromptMessage

from .events import SupervisorDecision
from .history import format_supervisor_history
from .prompts import format_supervisor_prompt

logger = logging.getLogger(__name__)


class Supervisor:
    """Asks an orchestrator model who should speak next.

    Failures never pick a speaker: any timeout, backend error or
    unparseable reply raises ``SupervisorDecisionError`` and the
    scheduler treats it as "nobody".
    """

    def __init__(self, backend: ModelBackend, config: Optional[OrchestrationConfig] = None):
        """Initialize the supervisor.

        Args:
            backend: Model backend used for the decision call
            config: Orchestration settings (timeout, temperature, history size)
        """
        self.backend = backend
        self.config = config or OrchestrationConfig()

    async def decide(
        self,
        snapshot: GroupSnapshot,
        messages: Sequence[ChatMessage],
        round_id: Optional[str] = None,
    ) -> SupervisorDecision:
        """Decide which agents speak next.

        Args:
            snapshot: Current group state
            messages: Group history, oldest first
            round_id: Round the decision belongs to, for error context

        Returns:
            SupervisorDecision with enabled member ids in speaking order

        Raises:
            SupervisorDecisionError: On timeout, backend failure or bad output
        """
        roster = snapshot.enabled_members
        if not roster:
            return SupervisorDecision.nobody("No enabled members")

        recent = list(messages)[-self.config.supervisor_history_limit:]
        system, user = format_supervisor_prompt(
            roster,
            format_supervisor_history(recent),
            self.config.user_label,
        )
        prompt = [PromptMessage.system(system), PromptMessage.user(user)]
        options = InvokeOptions(
            purpose="supervisor",
            temperature=self.config.supervisor_temperature,
            trace_id=round_id,
        )

        try:
            raw = await asyncio.wait_for(
                self.backend.complete(
                    snapshot.config.orchestrator_model,
                    snapshot.config.orchestrator_provider,
                    prompt,
                    options,
                ),
                timeout=self.config.supervisor_timeout,
            )
        except asyncio.TimeoutError as e:
            raise SupervisorDecisionError(
                f"timed out after {self.config.supervisor_timeout}s",
                group_id=snapshot.group_id,
                round_id=round_id,
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise SupervisorDecisionError(
                f"backend error: {e}",
                group_id=snapshot.group_id,
                round_id=round_id,
            ) from e

        candidates = self._extract_json_array(raw)
        if candidates is None:
            raise SupervisorDecisionError(
                f"unparseable response: {raw[:100]!r}",
                group_id=snapshot.group_id,
                round_id=round_id,
            )

        enabled = {m.agent_id for m in roster}
        speakers: list[str] = []
        for candidate in candidates:
            agent_id = self._candidate_id(candidate)
            if agent_id is None or agent_id not in enabled:
                logger.debug(f"Supervisor picked unknown agent {candidate!r}, ignoring")
                continue
            if agent_id not in speakers:
                speakers.append(agent_id)

        logger.debug(f"Supervisor decision for {snapshot.group_id}: {speakers}")
        return SupervisorDecision(
            next_speakers=speakers,
            reason="Supervisor decision" if speakers else "Supervisor chose nobody",
            raw=raw,
        )

    @staticmethod
    def _candidate_id(candidate: Any) -> Optional[str]:
        if isinstance(candidate, str):
            return candidate.strip()
        if isinstance(candidate, dict):
            value = candidate.get("id") or candidate.get("agent_id") or candidate.get("agentId")
            return str(value).strip() if value else None
        return None

    def _extract_json_array(self, content: str) -> Optional[list[Any]]:
        """Extract a JSON array from response content.

        Handles markdown code blocks and surrounding prose.

        Args:
            content: The response content

        Returns:
            Parsed list or None if parsing fails
        """
        content = content.strip()

        # Try direct JSON parsing first
        try:
            data = json.loads(content)
            if isinstance(data, list):
                return data
            if isinstance(data, dict) and isinstance(data.get("next_speakers"), list):
                return data["next_speakers"]
        except json.JSONDecodeError:
            pass

        # Try extracting from markdown code block
        match = re.search(r"```(?:json)?\s*(\[.*?\])\s*```", content, re.DOTALL)
        if match:
            try:
                return json.loads(match.group(1))
            except json.JSONDecodeError:
                pass

        # Take everything between the first "[" and the last "]"
        start, end = content.find("["), content.rfind("]")
        if start != -1 and end > start:
            snippet = content[start:end + 1]
            try:
                data = json.loads(snippet)
                if isinstance(data, list):
                    return data
            except json.JSONDecodeError:
                pass

            # Replace single quotes with double quotes
            try:
                data = json.loads(snippet.replace("'", '"'))
                if isinstance(data, list):
                    return data
            except json.JSONDecodeError:
                pass

        return None
