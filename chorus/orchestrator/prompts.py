"""Prompt templates for the orchestration engine.

These templates are used for:
- The supervisor's "who speaks next?" decision
- System prompts for each agent taking part in a group chat
"""

from typing import Iterable, Optional

from chorus.conversation.models import Member

from .history import USER_LABEL, format_member_list, format_members_json


SUPERVISOR_SYSTEM_PROMPT = """You are the conversation supervisor of a group chat between a user and several AI agents.

Your job is to decide which agents, if any, should speak next and in what order.

{member_list}

Rules:
- Only choose agents listed in <group_members>; never choose "user".
- Choose nobody when the conversation has reached a natural pause, when the
  last message does not need a reply, or when the user is addressed.
- Prefer the smallest set of agents that moves the conversation forward.
- An agent should not be chosen to reply to its own last message.

Respond with ONLY a JSON array of agent ids in speaking order, for example:
["agent_a", "agent_b"]
Respond with [] if nobody should speak."""


SUPERVISOR_USER_PROMPT = """<conversation_history>
{history}
</conversation_history>

Who should speak next?"""


AGENT_SYSTEM_PROMPT = """{system_role}

You are "{title}" (id: {agent_id}), one of several participants in a group chat.

{members}

Every message in the chat history is prefixed with its author in the form
"(Author): content". Do not prefix your own replies this way.

Guidelines:
- Stay in character as {title} and respond from your own perspective.
- Build on what the others have said instead of repeating it.
- Be concise: keep replies under 100 words unless asked for more detail.
- Address other participants by their title when replying to them.{dm_section}"""


DM_SECTION = """

This is a direct message from {sender} to you. Only the two of you can see it."""


def format_supervisor_prompt(
    roster: Iterable[Member],
    history: str,
    user_label: str = USER_LABEL,
) -> tuple[str, str]:
    """Format the supervisor's system and user prompts.

    Args:
        roster: Enabled members the supervisor can choose from
        history: Transcript from ``format_supervisor_history``
        user_label: Label used for human participants

    Returns:
        Tuple of (system prompt, user prompt)
    """
    system = SUPERVISOR_SYSTEM_PROMPT.format(
        member_list=format_member_list(roster, user_label),
    )
    user = SUPERVISOR_USER_PROMPT.format(history=history or "(No previous messages)")
    return system, user


def format_agent_system_prompt(
    member: Member,
    roster: Iterable[Member],
    user_label: str = USER_LABEL,
    dm_sender: Optional[str] = None,
) -> str:
    """Format the system prompt for one agent's turn.

    Args:
        member: The agent about to speak
        roster: Everyone in the group
        user_label: Label used for human participants
        dm_sender: Author name when the turn answers a direct message

    Returns:
        Formatted system prompt
    """
    return AGENT_SYSTEM_PROMPT.format(
        system_role=member.system_role or f"You are {member.display_name}.",
        title=member.display_name,
        agent_id=member.agent_id,
        members=format_members_json(roster, user_label),
        dm_section=DM_SECTION.format(sender=dm_sender) if dm_sender else "",
    ).strip()
