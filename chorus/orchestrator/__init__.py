"""Orchestration engine for Chorus group conversations.

This package provides the core logic that decides which agents respond
to a message, in what order, and how their streams reach observers.

Main components:
- Orchestrator: Command surface over all groups
- TurnScheduler: Per-group round state machine
- Supervisor: Asks a model who should speak next
- MentionResolver / MentionSet: Direct addressing with @mentions
- merge_completion_options: Fans one stream out to many observers
- consolidate_history: Builds model-ready transcripts
- OrchestratorEvent: Events emitted while a round runs
"""

from .callbacks import HOOK_NAMES, CompletionOptions, merge_completion_options
from .engine import Orchestrator, TurnScheduler, create_orchestrator
from .events import (
    EventType,
    OrchestratorEvent,
    RoundResult,
    SchedulerState,
    SupervisorDecision,
)
from .history import (
    author_name,
    consolidate_history,
    format_member_list,
    format_supervisor_history,
    to_prompt_messages,
    visible_messages,
)
from .mentions import MentionResolver, MentionSet
from .prompts import format_agent_system_prompt, format_supervisor_prompt
from .supervisor import Supervisor
from .turns import TurnManager

__all__ = [
    # Main orchestrator
    "Orchestrator",
    "TurnScheduler",
    "create_orchestrator",
    # Events
    "EventType",
    "OrchestratorEvent",
    "RoundResult",
    "SchedulerState",
    "SupervisorDecision",
    # Supervisor and turns
    "Supervisor",
    "TurnManager",
    # Mentions
    "MentionResolver",
    "MentionSet",
    # Callbacks
    "CompletionOptions",
    "merge_completion_options",
    "HOOK_NAMES",
    # History
    "author_name",
    "consolidate_history",
    "format_member_list",
    "format_supervisor_history",
    "to_prompt_messages",
    "visible_messages",
    # Prompts
    "format_agent_system_prompt",
    "format_supervisor_prompt",
]
