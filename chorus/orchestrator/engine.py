"""Main orchestration engine for Chorus.

The Orchestrator coordinates group conversations by:
1. Resolving @mentions (or direct-message targets) in new messages
2. Asking the supervisor who should speak when nobody was mentioned
3. Dispatching agents one at a time, bounded by ``max_response_in_row``
4. Fanning each agent stream out to observers through merged callbacks
5. Yielding events for UI rendering

Each group gets its own ``TurnScheduler``; groups never share mutable state.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional, Sequence, Union

from chorus.config import Settings, get_settings
from chorus.conversation.models import (
    ChatMessage,
    Group,
    GroupConfig,
    Member,
    MessageStatus,
    new_id,
)
from chorus.conversation.persistence import InMemoryPersistence, Persistence
from chorus.conversation.state import GroupRegistry, GroupSnapshot, GroupState, MemberInput
from chorus.errors import (
    AgentDispatchError,
    CallbackHookError,
    ConfigValidationError,
    OrchestrationError,
    RoundInProgressError,
    SupervisorDecisionError,
)
from chorus.models.base import ModelBackend
from chorus.models.types import InvokeOptions, PromptMessage, StreamChunk, ToolCall, Usage

from .callbacks import CompletionOptions, merge_completion_options
from .events import (
    TRANSITIONS,
    EventType,
    OrchestratorEvent,
    RoundResult,
    SchedulerState,
    SupervisorDecision,
)
from .history import to_prompt_messages, visible_messages
from .mentions import MentionResolver, MentionSet
from .prompts import format_agent_system_prompt
from .supervisor import Supervisor
from .turns import TurnManager

logger = logging.getLogger(__name__)

# Returned by TurnScheduler._race when the round was cancelled first
CANCELLED = object()


class _StreamCancelled(Exception):
    """Raised inside a turn when the round was cancelled mid-stream."""


async def _next_chunk(iterator: AsyncIterator[StreamChunk]) -> Optional[StreamChunk]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


@dataclass
class _Round:
    """Transient bookkeeping for the active round."""

    round_id: str
    trigger: ChatMessage
    messages: list[ChatMessage] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    turn_index: int = 0
    cancelled: bool = False
    halted: bool = False


@dataclass
class _TurnDraft:
    """Content accumulated from one agent stream."""

    message_id: str
    agent_id: str
    group_id: str
    round_id: str
    model: str
    provider: str
    parts: list[str] = field(default_factory=list)
    thinking: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    grounding: Optional[dict[str, Any]] = None
    persisted: bool = False

    @property
    def content(self) -> str:
        return "".join(self.parts)

    def to_message(self, status: MessageStatus, error: Optional[str] = None) -> ChatMessage:
        metadata: dict[str, Any] = {"model": self.model, "provider": self.provider}
        if self.thinking:
            metadata["thinking"] = "".join(self.thinking)
        if self.tool_calls:
            metadata["tool_calls"] = [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                for tc in self.tool_calls
            ]
        if self.grounding:
            metadata["grounding"] = self.grounding
        return ChatMessage.assistant(
            self.content,
            agent_id=self.agent_id,
            group_id=self.group_id,
            id=self.message_id,
            round_id=self.round_id,
            status=status,
            error=error,
            metadata=metadata,
        )


class TurnScheduler:
    """Runs rounds for a single group.

    State machine::

        IDLE -> AWAITING_SUPERVISOR -> DISPATCHING -> AGENT_RESPONDING
             -> ROUND_COMPLETE -> IDLE

    with ERROR reachable from any state. Only one round may be active at a
    time and only one agent speaks at a time.
    """

    def __init__(
        self,
        state: GroupState,
        backend: ModelBackend,
        persistence: Persistence,
        supervisor: Supervisor,
        resolver: MentionResolver,
        settings: Settings,
        rng: Optional[random.Random] = None,
    ):
        self.group_state = state
        self.backend = backend
        self.persistence = persistence
        self.supervisor = supervisor
        self.resolver = resolver
        self.settings = settings
        self.mentions = MentionSet()
        self.turns = TurnManager(settings.orchestration.response_delays, rng)
        self._state = SchedulerState.IDLE
        self._round: Optional[_Round] = None
        self._cancel_event = asyncio.Event()

    @property
    def group_id(self) -> str:
        return self.group_state.group_id

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._round is not None

    @property
    def round_id(self) -> Optional[str]:
        return self._round.round_id if self._round else None

    def _transition(self, target: SchedulerState) -> None:
        if target == self._state:
            return
        if target != SchedulerState.ERROR and target not in TRANSITIONS[self._state]:
            raise OrchestrationError(
                f"Illegal scheduler transition {self._state.value} -> {target.value}",
                code="ILLEGAL_TRANSITION",
                group_id=self.group_id,
                round_id=self.round_id,
            )
        logger.debug(f"Group {self.group_id}: {self._state.value} -> {target.value}")
        self._state = target

    def cancel(self) -> bool:
        """Request cancellation of the active round.

        Returns:
            True if a round was running
        """
        if self._round is None:
            return False
        logger.info(f"Cancelling round {self._round.round_id} in group {self.group_id}")
        self._cancel_event.set()
        return True

    async def _race(self, awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Await something unless the round is cancelled first.

        Returns:
            The awaited result, or ``CANCELLED``

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        task = asyncio.ensure_future(awaitable)
        stop = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, stop},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            stop.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if self._cancel_event.is_set():
            return CANCELLED
        raise asyncio.TimeoutError()

    async def run(
        self,
        message: ChatMessage,
        mentions: Optional[Sequence[str]] = None,
        observers: Sequence[CompletionOptions] = (),
    ) -> AsyncIterator[OrchestratorEvent]:
        """Run one round for a new message.

        Args:
            message: The new message (user- or agent-authored)
            mentions: Already-validated explicit mentions
            observers: Extra callback bundles for every agent stream

        Yields:
            OrchestratorEvent objects for UI rendering

        Raises:
            RoundInProgressError: If a round is already active
            CallbackHookError: If an observer hook fails
        """
        if self._round is not None:
            raise RoundInProgressError(self.group_id, self._round.round_id)

        round_id = new_id("rnd_")
        message = message.model_copy(update={"group_id": self.group_id, "round_id": round_id})
        current = _Round(round_id=round_id, trigger=message)
        self._round = current
        self._cancel_event = asyncio.Event()

        try:
            await self.persistence.create_message(message)
            self.turns.record(message)
            logger.info(f"Round {round_id} started in group {self.group_id}")
            yield OrchestratorEvent.round_start(self.group_id, round_id, message)

            self._collect_mentions(message, mentions)

            async for event in self._run_loop(current, list(observers)):
                yield event

            self._transition(SchedulerState.ROUND_COMPLETE)
            logger.info(
                f"Round {round_id} complete: {len(current.messages)} message(s)"
                f"{' (cancelled)' if current.cancelled else ''}"
            )
            yield OrchestratorEvent.round_complete(
                self.group_id,
                round_id,
                current.messages,
                usage=current.usage if current.usage.total_tokens > 0 else None,
                cancelled=current.cancelled,
                halted=current.halted,
            )

        except CallbackHookError as e:
            self._transition(SchedulerState.ERROR)
            logger.error(f"Observer failed in round {round_id}: {e}")
            raise e.bind(group_id=self.group_id, round_id=round_id)

        except BaseException:
            self._transition(SchedulerState.ERROR)
            raise

        finally:
            for agent_id in self.group_state.speaking_status():
                self.group_state.set_speaking(agent_id, False)
            self.mentions.clear()
            self._round = None
            self._state = SchedulerState.IDLE

    def _collect_mentions(self, message: ChatMessage, explicit: Optional[Sequence[str]]) -> None:
        if explicit:
            self.mentions.set(explicit)
        if not message.is_user_message:
            return

        roster = self.group_state.roster(enabled_only=True)
        for agent_id in self.resolver.resolve(message.content, roster):
            self.mentions.add(agent_id)
        if not self.mentions and message.target_id:
            if self.group_state.has_member(message.target_id, enabled_only=True):
                self.mentions.add(message.target_id)

    async def _run_loop(
        self,
        current: _Round,
        observers: list[CompletionOptions],
    ) -> AsyncIterator[OrchestratorEvent]:
        while not (current.cancelled or current.halted):
            config = self.group_state.config
            if self.turns.bound_reached(config):
                logger.debug(f"Group {self.group_id}: turn bound {config.max_response_in_row} reached")
                break

            if self.mentions:
                # Members may have been disabled since the mention was recorded
                ids = [
                    agent_id for agent_id in self.mentions.consume()
                    if self.group_state.has_member(agent_id, enabled_only=True)
                ]
                decision = SupervisorDecision.mentioned(ids)
            else:
                self._transition(SchedulerState.AWAITING_SUPERVISOR)
                yield OrchestratorEvent.supervisor_thinking(self.group_id, current.round_id)
                decision = None
                async for event in self._consult_supervisor(current):
                    if event.type == EventType.SUPERVISOR_DECISION:
                        decision = event.decision
                    else:
                        yield event
                if decision is None:
                    break

            yield OrchestratorEvent.supervisor_decision(self.group_id, current.round_id, decision)

            responders = self.turns.plan(decision.next_speakers, config)
            if not responders:
                break

            self._transition(SchedulerState.DISPATCHING)
            for agent_id in responders:
                async for event in self._dispatch_agent(current, agent_id, observers):
                    yield event
                if current.cancelled or current.halted:
                    break
                if self.turns.bound_reached(self.group_state.config):
                    break

    async def _consult_supervisor(self, current: _Round) -> AsyncIterator[OrchestratorEvent]:
        """Yield a SUPERVISOR_DECISION (or nothing if cancelled), plus any ERROR."""
        snapshot = self.group_state.snapshot()
        history = await self.persistence.list_messages(self.group_id)

        try:
            result = await self._race(self.supervisor.decide(snapshot, history, current.round_id))
        except SupervisorDecisionError as e:
            logger.warning(f"Group {self.group_id}: {e}")
            yield OrchestratorEvent.error_event(
                e.message, group_id=self.group_id, round_id=current.round_id, exception=e
            )
            result = SupervisorDecision.nobody(e.message)

        if result is CANCELLED:
            current.cancelled = True
            return
        yield OrchestratorEvent.supervisor_decision(self.group_id, current.round_id, result)

    async def _dispatch_agent(
        self,
        current: _Round,
        agent_id: str,
        observers: list[CompletionOptions],
    ) -> AsyncIterator[OrchestratorEvent]:
        snapshot = self.group_state.snapshot()
        member = snapshot.get_member(agent_id)
        if member is None or not member.enabled:
            logger.debug(f"Skipping {agent_id}: no longer an enabled member")
            return

        delay = self.turns.delay_before(current.turn_index, snapshot.config)
        if delay > 0:
            logger.debug(f"Waiting {delay:.2f}s before {agent_id}")
            if await self._race(asyncio.sleep(delay)) is CANCELLED:
                current.cancelled = True
                return

        current.turn_index += 1
        yield OrchestratorEvent.will_speak(self.group_id, current.round_id, agent_id)

        self._transition(SchedulerState.AGENT_RESPONDING)
        self.group_state.set_speaking(agent_id, True)
        try:
            async for event in self._run_turn(current, member, snapshot, observers):
                yield event
        finally:
            self.group_state.set_speaking(agent_id, False)
        self._transition(SchedulerState.DISPATCHING)

    def _round_observer(self, current: _Round, draft: _TurnDraft) -> CompletionOptions:
        """Persistence and usage accounting for one turn."""

        async def on_final(message: ChatMessage) -> None:
            await self.persistence.create_message(message)
            draft.persisted = True
            current.messages.append(message)
            self.turns.record(message)

        def on_usage(usage: Usage) -> None:
            current.usage = current.usage + usage

        return CompletionOptions(on_final=on_final, on_usage=on_usage)

    def _event_observer(
        self,
        current: _Round,
        agent_id: str,
        message_id: str,
        pending: list[OrchestratorEvent],
    ) -> CompletionOptions:
        """Turn hook invocations into queued UI events."""
        gid, rid = self.group_id, current.round_id
        return CompletionOptions(
            on_start=lambda: pending.append(
                OrchestratorEvent.response_start(gid, rid, agent_id, message_id)
            ),
            on_text=lambda text: pending.append(
                OrchestratorEvent.response_chunk(gid, rid, agent_id, message_id, text)
            ),
            on_thinking=lambda text: pending.append(
                OrchestratorEvent.thinking_chunk(gid, rid, agent_id, message_id, text)
            ),
            on_tools_calling=lambda tool_calls: pending.append(
                OrchestratorEvent.tool_call(gid, rid, agent_id, tool_calls)
            ),
            on_grounding=lambda data: pending.append(
                OrchestratorEvent.grounding(gid, rid, agent_id, data)
            ),
            on_final=lambda message: pending.append(
                OrchestratorEvent.response_complete(gid, rid, message)
            ),
        )

    async def _build_prompt(self, member: Member, snapshot: GroupSnapshot, trigger: ChatMessage) -> list[PromptMessage]:
        user_label = self.settings.orchestration.user_label
        history = await self.persistence.list_messages(self.group_id)
        history = visible_messages(history, member.agent_id, snapshot.config.reveal_dm)
        dm_sender = user_label if trigger.is_user_message and trigger.target_id == member.agent_id else None
        system = format_agent_system_prompt(member, snapshot.members, user_label, dm_sender)
        return [PromptMessage.system(system)] + to_prompt_messages(
            history, snapshot.members, member.agent_id, user_label
        )

    async def _run_turn(
        self,
        current: _Round,
        member: Member,
        snapshot: GroupSnapshot,
        observers: list[CompletionOptions],
    ) -> AsyncIterator[OrchestratorEvent]:
        """Stream one agent's response.

        Every hook firing may queue events; they are drained and yielded
        right after the firing returns.
        """
        config = snapshot.config
        draft = _TurnDraft(
            message_id=new_id("msg_"),
            agent_id=member.agent_id,
            group_id=self.group_id,
            round_id=current.round_id,
            model=member.model or config.orchestrator_model,
            provider=member.provider or config.orchestrator_provider,
        )
        pending: list[OrchestratorEvent] = []
        internal = [
            self._round_observer(current, draft),
            self._event_observer(current, member.agent_id, draft.message_id, pending),
        ]
        merged = merge_completion_options([*internal, *observers])

        async def fire(hook: str, *args: Any) -> list[OrchestratorEvent]:
            await merged.fire(hook, *args)
            drained = list(pending)
            pending.clear()
            return drained

        try:
            for event in await fire("on_start"):
                yield event

            status = MessageStatus.COMPLETE
            error: Optional[AgentDispatchError] = None
            try:
                prompt = await self._build_prompt(member, snapshot, current.trigger)
                options = InvokeOptions(
                    purpose="agent",
                    headers=dict(merged.headers),
                    request_headers=dict(merged.request_headers),
                    trace_id=current.round_id,
                )
                async for event in self._stream(draft, prompt, options, fire):
                    yield event
                for event in await fire("on_completion", draft.content):
                    yield event
            except _StreamCancelled:
                status = MessageStatus.PARTIAL
                current.cancelled = True
            except AgentDispatchError as e:
                status = MessageStatus.ERROR
                error = e
                current.halted = True

            if error is not None:
                logger.error(str(error))
                yield OrchestratorEvent.error_event(
                    error.message,
                    group_id=self.group_id,
                    round_id=current.round_id,
                    agent_id=member.agent_id,
                    exception=error,
                )

            message = draft.to_message(status, error.message if error else None)
            for event in await fire("on_final", message):
                yield event

        except CallbackHookError as e:
            # Keep what was already delivered
            if not draft.persisted and draft.content:
                message = draft.to_message(MessageStatus.PARTIAL, str(e))
                await self.persistence.create_message(message)
                current.messages.append(message)
                self.turns.record(message)
            e.rebase(len(internal))
            raise e.bind(group_id=self.group_id, round_id=current.round_id, agent_id=member.agent_id)

    async def _stream(
        self,
        draft: _TurnDraft,
        prompt: list[PromptMessage],
        options: InvokeOptions,
        fire: Callable[..., Awaitable[list[OrchestratorEvent]]],
    ) -> AsyncIterator[OrchestratorEvent]:
        """Pump the backend stream into hooks under the agent deadline."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.orchestration.agent_timeout
        def dispatch_error(reason: str, e: Optional[Exception] = None) -> AgentDispatchError:
            return AgentDispatchError(
                draft.agent_id,
                reason,
                group_id=self.group_id,
                round_id=draft.round_id,
                original_error=e,
            )

        try:
            iterator = self.backend.invoke(draft.model, draft.provider, prompt, options).__aiter__()
        except Exception as e:
            raise dispatch_error(str(e), e) from e

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise dispatch_error(f"timed out after {self.settings.orchestration.agent_timeout}s")
                try:
                    chunk = await self._race(_next_chunk(iterator), timeout=remaining)
                except asyncio.TimeoutError as e:
                    raise dispatch_error(
                        f"timed out after {self.settings.orchestration.agent_timeout}s", e
                    ) from e
                except Exception as e:
                    raise dispatch_error(str(e), e) from e

                if chunk is CANCELLED:
                    raise _StreamCancelled()
                if chunk is None:
                    break

                if chunk.text:
                    draft.parts.append(chunk.text)
                    for event in await fire("on_text", chunk.text):
                        yield event
                if chunk.thinking:
                    draft.thinking.append(chunk.thinking)
                    for event in await fire("on_thinking", chunk.thinking):
                        yield event
                if chunk.tool_calls:
                    draft.tool_calls.extend(chunk.tool_calls)
                    for event in await fire("on_tools_calling", list(chunk.tool_calls)):
                        yield event
                if chunk.grounding:
                    draft.grounding = chunk.grounding
                    for event in await fire("on_grounding", chunk.grounding):
                        yield event
                if chunk.usage:
                    for event in await fire("on_usage", chunk.usage):
                        yield event
                if chunk.is_complete:
                    break
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


class Orchestrator:
    """Command surface over all groups.

    Owns the group arena and one ``TurnScheduler`` per group. Group state
    is only written through these commands and the schedulers.
    """

    def __init__(
        self,
        backend: ModelBackend,
        settings: Optional[Settings] = None,
        persistence: Optional[Persistence] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the orchestrator.

        Args:
            backend: Model backend for supervisor and agent calls
            settings: Application settings (defaults to the loaded settings)
            persistence: Message store (defaults to in-memory)
            rng: Random source for natural-order delays
        """
        self.backend = backend
        self.settings = settings or get_settings()
        self.persistence = persistence or InMemoryPersistence()
        self.rng = rng
        self.registry = GroupRegistry()
        self.supervisor = Supervisor(backend, self.settings.orchestration)
        self.resolver = MentionResolver(
            match_mode=self.settings.orchestration.mention_match,
            case_sensitive=self.settings.orchestration.mention_case_sensitive,
        )
        self._schedulers: dict[str, TurnScheduler] = {}

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def create_group(
        self,
        title: str = "",
        description: str = "",
        config: Optional[dict[str, Any]] = None,
        members: Iterable[MemberInput] = (),
        group_id: Optional[str] = None,
    ) -> GroupSnapshot:
        """Create a group from the configured defaults plus overrides.

        Raises:
            ConfigValidationError: On invalid config or members
        """
        group = Group(title=title.strip(), description=description)
        if group_id:
            group = group.model_copy(update={"id": group_id})
        if group.id in self.registry:
            raise ConfigValidationError("id", group.id, "group already exists", group_id=group.id)

        # Validate everything on a scratch state before registering
        scratch = GroupState(group.model_copy(update={
            "config": GroupConfig.from_defaults(self.settings.group_defaults),
        }))
        if config:
            scratch.update_config(config)
        scratch.add_members(list(members))
        snapshot = scratch.snapshot()

        await self.persistence.create_group(snapshot.group)
        for member in snapshot.members:
            await self.persistence.create_member(snapshot.group_id, member)

        state = self.registry.create(snapshot.group, snapshot.members)
        self._schedulers[state.group_id] = TurnScheduler(
            state,
            self.backend,
            self.persistence,
            self.supervisor,
            self.resolver,
            self.settings,
            rng=self.rng,
        )
        logger.info(f"Created group {state.group_id} with {len(snapshot.members)} member(s)")
        return state.snapshot()

    def update_group(
        self,
        group_id: str,
        config: Optional[dict[str, Any]] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> GroupSnapshot:
        """Update a group's config and/or meta.

        Raises:
            GroupNotFoundError: If the group doesn't exist
            ConfigValidationError: If the config change is invalid
        """
        state = self.registry.get(group_id)
        if config:
            state.update_config(config)
        if title is not None or description is not None:
            state.update_meta(title=title, description=description)
        return state.snapshot()

    def snapshot(self, group_id: str) -> GroupSnapshot:
        return self.registry.get(group_id).snapshot()

    def scheduler(self, group_id: str) -> TurnScheduler:
        self.registry.get(group_id)
        return self._schedulers[group_id]

    async def history(self, group_id: str, viewer_id: Optional[str] = None) -> list[ChatMessage]:
        """Get a group's messages as seen by a member (or everyone)."""
        state = self.registry.get(group_id)
        messages = await self.persistence.list_messages(group_id)
        return visible_messages(messages, viewer_id, state.config.reveal_dm)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    async def add_members(self, group_id: str, members: Iterable[MemberInput]) -> list[Member]:
        state = self.registry.get(group_id)
        added = state.add_members(list(members))
        for member in added:
            await self.persistence.create_member(group_id, member)
        return added

    def remove_members(self, group_id: str, agent_ids: Iterable[str]) -> list[str]:
        state = self.registry.get(group_id)
        removed = state.remove_members(agent_ids)
        scheduler = self._schedulers[group_id]
        for agent_id in removed:
            scheduler.mentions.remove(agent_id)
        return removed

    def update_member(self, group_id: str, agent_id: str, **updates: Any) -> Member:
        return self.registry.get(group_id).update_member(agent_id, **updates)

    def set_mentions(self, group_id: str, agent_ids: Iterable[str]) -> list[str]:
        """Pre-set mentions for the next dispatch.

        Raises:
            ConfigValidationError: If an id is not an enabled member
        """
        state = self.registry.get(group_id)
        ids = self.resolver.validate(agent_ids, state.roster(), group_id=group_id)
        self._schedulers[group_id].mentions.set(ids)
        return ids

    def set_active_thread(self, group_id: str, agent_id: Optional[str]) -> None:
        self.registry.get(group_id).set_active_thread(agent_id)

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        group_id: str,
        message: Union[str, ChatMessage],
        mentions: Optional[Sequence[str]] = None,
        observers: Optional[Sequence[CompletionOptions]] = None,
    ) -> AsyncIterator[OrchestratorEvent]:
        """Process a new message and run a round.

        This is the main entry point for the orchestration flow.

        Args:
            group_id: Target group
            message: User text, or a prepared user/agent ChatMessage
            mentions: Explicit agent ids that must respond, skipping the supervisor
            observers: Extra callback bundles attached to every agent stream

        Yields:
            OrchestratorEvent objects for UI rendering

        Raises:
            GroupNotFoundError: If the group doesn't exist
            ConfigValidationError: If an explicit mention is invalid
            RoundInProgressError: If the group already has an active round
            CallbackHookError: If an observer hook fails
        """
        state = self.registry.get(group_id)
        scheduler = self._schedulers[group_id]
        if scheduler.is_active:
            raise RoundInProgressError(group_id, scheduler.round_id)

        validated = None
        if mentions:
            validated = self.resolver.validate(mentions, state.roster(), group_id=group_id)
        if isinstance(message, str):
            message = ChatMessage.user(message, group_id=group_id)

        async for event in scheduler.run(message, validated, observers or ()):
            yield event

    async def run_round(
        self,
        group_id: str,
        message: Union[str, ChatMessage],
        mentions: Optional[Sequence[str]] = None,
        observers: Optional[Sequence[CompletionOptions]] = None,
    ) -> RoundResult:
        """Run a round to completion and collect what it produced."""
        result: Optional[RoundResult] = None
        events: list[OrchestratorEvent] = []
        async for event in self.dispatch(group_id, message, mentions, observers):
            events.append(event)
            if event.type == EventType.ROUND_START:
                result = RoundResult(group_id=group_id, round_id=event.round_id or "")

        assert result is not None
        result.events = events
        for event in events:
            if event.type == EventType.SUPERVISOR_DECISION and event.decision is not None:
                result.decisions.append(event.decision)
            elif event.type == EventType.ERROR:
                result.errors.append(event)
            elif event.type == EventType.ROUND_COMPLETE:
                result.messages = list(event.messages)
                result.usage = event.usage
                flags = event.data or {}
                result.cancelled = bool(flags.get("cancelled"))
                result.halted = bool(flags.get("halted"))
        return result

    def cancel_round(self, group_id: str) -> bool:
        """Stop the group's active round, if any.

        Returns:
            True if a round was running
        """
        self.registry.get(group_id)
        return self._schedulers[group_id].cancel()

    def is_round_active(self, group_id: str) -> bool:
        return self.scheduler(group_id).is_active


def create_orchestrator(
    backend: ModelBackend,
    settings: Optional[Settings] = None,
    persistence: Optional[Persistence] = None,
) -> Orchestrator:
    """Factory function to create an orchestrator.

    Args:
        backend: Model backend
        settings: Application settings

    Returns:
        Configured Orchestrator instance
    """
    return Orchestrator(
        backend=backend,
        settings=settings or get_settings(),
        persistence=persistence or InMemoryPersistence(),
    )
