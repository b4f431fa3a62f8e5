"""Abstract base class for model backends."""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from .types import InvokeOptions, PromptMessage, StreamChunk

logger = logging.getLogger(__name__)


class ModelBackend(ABC):
    """Interface to whatever actually runs inference.

    One backend serves every provider; ``model`` and ``provider`` select
    the target per call. Implementations raise ``chorus.errors.ModelError``
    (or any exception) from the stream on failure.
    """

    @abstractmethod
    def invoke(
        self,
        model: str,
        provider: str,
        messages: list[PromptMessage],
        options: Optional[InvokeOptions] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Start a streaming completion.

        Args:
            model: Model identifier
            provider: Provider identifier
            messages: Model-ready messages, system prompt first
            options: Per-call options

        Yields:
            StreamChunk objects, the last one with ``is_complete=True``
        """
        ...

    async def complete(
        self,
        model: str,
        provider: str,
        messages: list[PromptMessage],
        options: Optional[InvokeOptions] = None,
    ) -> str:
        """Run a completion to the end and return its text."""
        parts: list[str] = []
        async for chunk in self.invoke(model, provider, messages, options):
            if chunk.text:
                parts.append(chunk.text)
            if chunk.is_complete:
                break
        return "".join(parts)

    def _format_messages_for_logging(self, messages: list[PromptMessage]) -> str:
        """Format messages for debug logging."""
        lines = []
        for msg in messages:
            content_preview = msg.content[:100] + "..." if len(msg.content) > 100 else msg.content
            lines.append(f"  [{msg.role.value}]: {content_preview}")
        return "\n".join(lines)
