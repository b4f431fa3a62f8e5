"""Centralized exception hierarchy for Chorus.

This module defines all custom exceptions used throughout Chorus,
organized in a hierarchy for easy handling and specificity. Orchestration
errors carry the group, round and agent they relate to so callers can
render an inline failure next to the right message.
"""

from __future__ import annotations

from typing import Any, Optional


class ChorusError(Exception):
    """Base exception for all Chorus errors.

    Attributes:
        message: Human-readable error message.
        code: Optional error code for programmatic handling.
        details: Optional dictionary with additional error context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


def _context(
    group_id: Optional[str] = None,
    round_id: Optional[str] = None,
    agent_id: Optional[str] = None,
) -> dict[str, Any]:
    details: dict[str, Any] = {}
    if group_id:
        details["group_id"] = group_id
    if round_id:
        details["round_id"] = round_id
    if agent_id:
        details["agent_id"] = agent_id
    return details


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(ChorusError):
    """Raised when there's a configuration problem."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when application settings are invalid."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for '{field}': {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value)[:100], "reason": reason},
        )


class ConfigValidationError(ConfigurationError):
    """Raised when a group mutation is rejected before being applied.

    Covers bad group config values (e.g. a negative ``max_response_in_row``)
    and references to agents that are not enabled members of the group.
    """

    def __init__(
        self,
        field: str,
        value: Any,
        reason: str,
        group_id: Optional[str] = None,
    ):
        details = _context(group_id=group_id)
        details.update({"field": field, "value": str(value)[:100], "reason": reason})
        super().__init__(
            message=f"Invalid value for '{field}': {reason}",
            code="CONFIG_VALIDATION_ERROR",
            details=details,
        )
        self.field = field


# =============================================================================
# Model Errors
# =============================================================================

class ModelError(ChorusError):
    """Raised by model backends when an invocation fails."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        code: Optional[str] = "MODEL_ERROR",
    ):
        details: dict[str, Any] = {}
        if model:
            details["model"] = model
        if provider:
            details["provider"] = provider
        super().__init__(message, code, details)


# =============================================================================
# Conversation Errors
# =============================================================================

class ConversationError(ChorusError):
    """Base exception for group and roster errors."""
    pass


class GroupNotFoundError(ConversationError):
    """Raised when a group is not known to the registry or store."""

    def __init__(self, group_id: str):
        super().__init__(
            message=f"Group '{group_id}' not found",
            code="GROUP_NOT_FOUND",
            details={"group_id": group_id},
        )


class MemberNotFoundError(ConversationError):
    """Raised when an agent is not a member of a group."""

    def __init__(self, group_id: str, agent_id: str):
        super().__init__(
            message=f"Agent '{agent_id}' is not a member of group '{group_id}'",
            code="MEMBER_NOT_FOUND",
            details={"group_id": group_id, "agent_id": agent_id},
        )


# =============================================================================
# Orchestration Errors
# =============================================================================

class OrchestrationError(ChorusError):
    """Base exception for orchestration-related errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        group_id: Optional[str] = None,
        round_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        merged = _context(group_id, round_id, agent_id)
        merged.update(details or {})
        super().__init__(message, code, merged)
        self.group_id = group_id
        self.round_id = round_id
        self.agent_id = agent_id


class SupervisorDecisionError(OrchestrationError):
    """Raised when the supervisor call times out or returns garbage.

    Non-fatal: the scheduler falls back to an empty responder list.
    """

    def __init__(
        self,
        reason: str,
        group_id: Optional[str] = None,
        round_id: Optional[str] = None,
    ):
        super().__init__(
            message=f"Supervisor decision failed: {reason}",
            code="SUPERVISOR_DECISION_ERROR",
            group_id=group_id,
            round_id=round_id,
            details={"reason": reason},
        )


class AgentDispatchError(OrchestrationError):
    """Raised when a single agent turn fails; halts the rest of the round."""

    def __init__(
        self,
        agent_id: str,
        reason: str,
        group_id: Optional[str] = None,
        round_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: dict[str, Any] = {"reason": reason}
        if original_error:
            details["original_error"] = str(original_error)
            details["original_type"] = type(original_error).__name__
        super().__init__(
            message=f"Agent '{agent_id}' failed to respond: {reason}",
            code="AGENT_DISPATCH_ERROR",
            group_id=group_id,
            round_id=round_id,
            agent_id=agent_id,
            details=details,
        )


class CallbackHookError(OrchestrationError):
    """Raised when an observer hook fails during a multiplexed invocation."""

    def __init__(
        self,
        hook: str,
        index: int,
        original_error: Exception,
    ):
        super().__init__(
            message=f"Callback '{hook}' of observer #{index} failed: {original_error}",
            code="CALLBACK_HOOK_ERROR",
            details={
                "hook": hook,
                "observer_index": index,
                "original_type": type(original_error).__name__,
            },
        )
        self.hook = hook
        self.index: Optional[int] = index
        self.original_error = original_error

    def bind(
        self,
        group_id: Optional[str] = None,
        round_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> "CallbackHookError":
        """Attach dispatch context once the scheduler knows it."""
        self.group_id = group_id or self.group_id
        self.round_id = round_id or self.round_id
        self.agent_id = agent_id or self.agent_id
        self.details.update(_context(self.group_id, self.round_id, self.agent_id))
        return self

    def rebase(self, offset: int) -> "CallbackHookError":
        """Make ``index`` relative to the caller's observers.

        The first ``offset`` bundles of the merged list belong to the
        scheduler. A failure in one of those leaves ``index`` as None.
        """
        self.index = self.index - offset if self.index >= offset else None
        self.details["observer_index"] = self.index
        label = "internal observer" if self.index is None else f"observer #{self.index}"
        self.message = f"Callback '{self.hook}' of {label} failed: {self.original_error}"
        self.args = (self.message,)
        return self


class RoundInProgressError(OrchestrationError):
    """Raised when a group already has an active round."""

    def __init__(self, group_id: str, round_id: Optional[str] = None):
        super().__init__(
            message=f"Group '{group_id}' already has a round in progress",
            code="ROUND_IN_PROGRESS",
            group_id=group_id,
            round_id=round_id,
        )


class SpeakingConflictError(OrchestrationError):
    """Raised when an agent would be marked speaking twice in one group."""

    def __init__(self, group_id: str, agent_id: str):
        super().__init__(
            message=f"Agent '{agent_id}' is already speaking in group '{group_id}'",
            code="SPEAKING_CONFLICT",
            group_id=group_id,
            agent_id=agent_id,
        )
