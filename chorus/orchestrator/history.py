"""History consolidation for group conversations.

Turns raw group messages plus the roster into model-ready text. Every
function here is pure: the same ``(messages, roster)`` always produces the
same output, which keeps supervisor calls reproducible.
"""

import json
from typing import Iterable, Optional, Sequence

from chorus.conversation.models import ChatMessage, Member, MessageRole
from chorus.models.types import PromptMessage

USER_LABEL = "User"
ASSISTANT_LABEL = "Assistant"


def _title_map(roster: Iterable[Member]) -> dict[str, str]:
    return {member.agent_id: member.title for member in roster}


def author_name(
    message: ChatMessage,
    titles: dict[str, str],
    user_label: str = USER_LABEL,
) -> str:
    """Resolve the display name of a message's author.

    Args:
        message: The message
        titles: Mapping of agent id to roster title
        user_label: Label for human messages

    Returns:
        ``user_label`` for user messages, the roster title for known
        agents, ``Agent {id}`` for agents no longer on the roster and
        ``Assistant`` for anonymous assistant messages
    """
    if message.role == MessageRole.USER:
        return user_label
    if message.agent_id:
        return titles.get(message.agent_id) or f"Agent {message.agent_id}"
    return ASSISTANT_LABEL


def has_content(message: ChatMessage) -> bool:
    return bool(message.content and message.content.strip())


def consolidate_history(
    messages: Sequence[ChatMessage],
    roster: Iterable[Member],
    user_label: str = USER_LABEL,
) -> str:
    """Consolidate group history into one ``(Author): content`` per line.

    Messages with empty or whitespace-only content are dropped.

    Args:
        messages: Messages in insertion order
        roster: Group members (any order; disabled members still resolve)
        user_label: Label for human messages

    Returns:
        The transcript, or an empty string if nothing remains
    """
    titles = _title_map(roster)
    return "\n".join(
        f"({author_name(message, titles, user_label)}): {message.content}"
        for message in messages
        if has_content(message)
    )


def visible_messages(
    messages: Sequence[ChatMessage],
    viewer_id: Optional[str],
    reveal_dm: bool,
) -> list[ChatMessage]:
    """Filter out direct messages the viewer shouldn't see.

    With ``reveal_dm`` off, a direct message is only visible to its author
    and its target. ``viewer_id=None`` is the omniscient view used for the
    supervisor and the user.
    """
    if reveal_dm or viewer_id is None:
        return list(messages)
    return [
        message for message in messages
        if message.target_id is None
        or message.target_id == viewer_id
        or (message.is_assistant_message and message.agent_id == viewer_id)
    ]


def format_member_list(
    roster: Iterable[Member],
    user_label: str = USER_LABEL,
) -> str:
    """Build the ``<group_members>`` block for the supervisor prompt."""
    lines = [f'  <member id="user" name="{user_label}" />']
    for member in roster:
        lines.append(f'  <member id="{member.agent_id}" name="{member.display_name}" />')
    return "<group_members>\n" + "\n".join(lines) + "\n</group_members>"


def format_supervisor_history(messages: Sequence[ChatMessage]) -> str:
    """Render history with raw author ids for the supervisor."""
    lines = []
    for message in messages:
        if not has_content(message):
            continue
        author = "user" if message.is_user_message else (message.agent_id or "assistant")
        role = message.role.value
        lines.append(f'<{role} author="{author}">{message.content}</{role}>')
    return "\n".join(lines)


def format_members_json(
    roster: Iterable[Member],
    user_label: str = USER_LABEL,
) -> str:
    """Build the ``<group_members>`` block given to agents."""
    members = [{"id": "user", "title": user_label}]
    members.extend({"id": m.agent_id, "title": m.display_name} for m in roster)
    return f"<group_members>\n{json.dumps(members, indent=2)}\n</group_members>"


def to_prompt_messages(
    messages: Sequence[ChatMessage],
    roster: Iterable[Member],
    viewer_id: str,
    user_label: str = USER_LABEL,
) -> list[PromptMessage]:
    """Convert group history into a chat for one agent.

    The agent's own messages become assistant turns; everything else is
    a user turn prefixed with its author so the agent can tell speakers
    apart.
    """
    titles = _title_map(roster)
    prompt: list[PromptMessage] = []
    for message in messages:
        if not has_content(message):
            continue
        if message.is_assistant_message and message.agent_id == viewer_id:
            prompt.append(PromptMessage.assistant(message.content))
        else:
            author = author_name(message, titles, user_label)
            prompt.append(PromptMessage.user(f"({author}): {message.content}", name=author))
    return prompt
