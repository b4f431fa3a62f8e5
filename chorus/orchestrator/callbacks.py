"""Streaming callback multiplexing.

Several observers (UI event stream, persistence logger, usage accounting,
caller-supplied hooks) want to watch the same model stream. Each supplies
a ``CompletionOptions`` bundle; ``merge_completion_options`` folds them
into one bundle whose hooks fan out to every observer in order.

Ordering guarantees:
- For one firing of a hook, observers run in input order, each awaited
  before the next starts.
- If an observer's hook raises, the remaining observers are skipped for
  that firing only and ``CallbackHookError`` is raised.
- Different hook names are independent of each other.
"""

import inspect
from dataclasses import dataclass, field, fields
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from chorus.errors import CallbackHookError

Hook = Callable[..., Union[Awaitable[None], None]]

HOOK_NAMES = (
    "on_start",
    "on_text",
    "on_thinking",
    "on_tools_calling",
    "on_grounding",
    "on_completion",
    "on_final",
    "on_usage",
)


@dataclass
class CompletionOptions:
    """Observer hooks and headers for one model invocation.

    Hook signatures:
        on_start()
        on_text(text: str)
        on_thinking(text: str)
        on_tools_calling(tool_calls: list[ToolCall])
        on_grounding(grounding: dict)
        on_completion(content: str)
        on_final(message: ChatMessage)  # always fired, whatever the status
        on_usage(usage: Usage)

    Hooks may be plain functions or coroutine functions.
    """

    on_start: Optional[Hook] = None
    on_text: Optional[Hook] = None
    on_thinking: Optional[Hook] = None
    on_tools_calling: Optional[Hook] = None
    on_grounding: Optional[Hook] = None
    on_completion: Optional[Hook] = None
    on_final: Optional[Hook] = None
    on_usage: Optional[Hook] = None
    headers: dict[str, str] = field(default_factory=dict)
    request_headers: dict[str, str] = field(default_factory=dict)

    def hooks(self) -> dict[str, Hook]:
        """Get the hooks that are set, by name."""
        return {
            name: getattr(self, name)
            for name in HOOK_NAMES
            if getattr(self, name) is not None
        }

    async def fire(self, hook: str, *args: Any) -> None:
        """Invoke a hook by name if it is set."""
        if hook not in HOOK_NAMES:
            raise ValueError(f"Unknown hook: {hook}")
        fn = getattr(self, hook)
        if fn is None:
            return
        result = fn(*args)
        if inspect.isawaitable(result):
            await result


def _fan_out(name: str, hooks: list[tuple[int, Hook]]) -> Hook:
    async def merged(*args: Any) -> None:
        for index, hook in hooks:
            try:
                result = hook(*args)
                if inspect.isawaitable(result):
                    await result
            except CallbackHookError:
                raise
            except Exception as e:
                raise CallbackHookError(name, index, e) from e

    merged.__name__ = f"merged_{name}"
    return merged


def merge_completion_options(bundles: Sequence[CompletionOptions]) -> CompletionOptions:
    """Merge observer bundles into one.

    Args:
        bundles: Observer bundles in the order their hooks must run

    Returns:
        A bundle whose hooks invoke every input's same-named hook in order.
        Headers are shallow-merged, later bundles winning on collisions.

    Examples:
        >>> a = CompletionOptions(headers={"A": "1"})
        >>> b = CompletionOptions(headers={"A": "2", "B": "3"})
        >>> merge_completion_options([a, b]).headers
        {'A': '2', 'B': '3'}
    """
    merged = CompletionOptions()
    for f in fields(CompletionOptions):
        if f.name not in HOOK_NAMES:
            continue
        hooks = [
            (index, getattr(bundle, f.name))
            for index, bundle in enumerate(bundles)
            if getattr(bundle, f.name) is not None
        ]
        if hooks:
            setattr(merged, f.name, _fan_out(f.name, hooks))

    for bundle in bundles:
        merged.headers.update(bundle.headers)
        merged.request_headers.update(bundle.request_headers)
    return merged
