"""Local echo backend.

Answers without calling any provider, which makes it handy for the CLI's
``simulate`` command and for demos. The supervisor call picks every agent
in the member list except the author of the last message; agent calls
echo the last line of the conversation back word by word.
"""

import asyncio
import json
import logging
import re
from typing import AsyncIterator, Optional

from .base import ModelBackend
from .types import FinishReason, InvokeOptions, PromptMessage, PromptRole, StreamChunk, Usage

logger = logging.getLogger(__name__)

MEMBER_PATTERN = re.compile(r'<member id="([^"]+)"')
AUTHOR_PATTERN = re.compile(r'author="([^"]+)"')
TITLE_PATTERN = re.compile(r'You are "([^"]+)"')


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return max(1, len(text) // 4) if text else 0


class EchoBackend(ModelBackend):
    """Backend that fabricates replies from the prompt itself."""

    def __init__(self, chunk_delay: float = 0.0, max_speakers: Optional[int] = None):
        """Initialize the echo backend.

        Args:
            chunk_delay: Seconds to sleep between streamed words
            max_speakers: Cap on how many agents the supervisor picks
        """
        self.chunk_delay = chunk_delay
        self.max_speakers = max_speakers

    async def invoke(
        self,
        model: str,
        provider: str,
        messages: list[PromptMessage],
        options: Optional[InvokeOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Generate a streaming echo response."""
        options = options or InvokeOptions()
        logger.debug(
            f"Echo invoke {provider}/{model} ({options.purpose}):\n"
            f"{self._format_messages_for_logging(messages)}"
        )

        if options.purpose == "supervisor":
            text = self._decide(messages)
            words = [text]
        else:
            text = self._reply(messages)
            words = text.split(" ")

        for i, word in enumerate(words):
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield StreamChunk(text=word if i == 0 else f" {word}")

        prompt_tokens = sum(estimate_tokens(m.content) for m in messages)
        completion_tokens = estimate_tokens(text)
        yield StreamChunk(
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            is_complete=True,
            finish_reason=FinishReason.STOP,
        )

    def _decide(self, messages: list[PromptMessage]) -> str:
        prompt = "\n".join(m.content for m in messages)
        members = [m for m in MEMBER_PATTERN.findall(prompt) if m != "user"]
        authors = AUTHOR_PATTERN.findall(prompt)
        if authors and authors[-1] != "user":
            members = [m for m in members if m != authors[-1]]
        if self.max_speakers is not None:
            members = members[:self.max_speakers]
        return json.dumps(members)

    def _reply(self, messages: list[PromptMessage]) -> str:
        title = "I"
        for message in messages:
            if message.role == PromptRole.SYSTEM:
                match = TITLE_PATTERN.search(message.content)
                if match:
                    title = match.group(1)
                break

        last = next(
            (m.content for m in reversed(messages) if m.role != PromptRole.SYSTEM),
            "",
        )
        # Drop the "(Author): " prefix added by the history consolidator
        last = re.sub(r"^\([^)]*\):\s*", "", last)
        if not last:
            return f"{title} has nothing to add."
        return f"{title} heard: {last}"
