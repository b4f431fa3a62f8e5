"""Model backend interface and stream types for Chorus."""

from .base import ModelBackend
from .echo import EchoBackend
from .types import (
    FinishReason,
    InvokeOptions,
    PromptMessage,
    PromptRole,
    StreamChunk,
    ToolCall,
    Usage,
)

__all__ = [
    # Backends
    "ModelBackend",
    "EchoBackend",
    # Types
    "FinishReason",
    "InvokeOptions",
    "PromptMessage",
    "PromptRole",
    "StreamChunk",
    "ToolCall",
    "Usage",
]
