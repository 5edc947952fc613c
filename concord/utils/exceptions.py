"""
Exception classes for Concord.

Exception hierarchy for the collaboration core. Every error carries a code,
severity, category, structured context and suggestions so callers can log
or surface it consistently.
"""

from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    AGENT = "agent"
    ORCHESTRATION = "orchestration"
    MESSAGING = "messaging"
    CONTEXT = "context"
    CONSENSUS = "consensus"
    HANDOFF = "handoff"
    DATABASE = "database"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    SYSTEM = "system"


class ConcordError(Exception):
    """
    Base exception for Concord.

    All library-specific exceptions inherit from this base class.
    Provides consistent error handling with context tracking.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        recoverable: bool = True,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.suggestions = suggestions or []
        self.recoverable = recoverable
        self.original_exception = original_exception

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "suggestions": self.suggestions,
            "recoverable": self.recoverable,
            "original_exception": str(self.original_exception) if self.original_exception else None
        }

    def __str__(self) -> str:
        base_msg = f"[{self.error_code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg = f"{base_msg} (Context: {context_str})"
        return base_msg


# Lookup failures
class NotFoundError(ConcordError):
    """Base exception for unknown identifiers."""

    def __init__(self, message: str, resource: str, resource_id: str, **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        context = kwargs.setdefault('context', {})
        context['resource'] = resource
        context['resource_id'] = resource_id
        super().__init__(message, **kwargs)
        self.resource = resource
        self.resource_id = resource_id


class CollaborationNotFoundError(NotFoundError):
    """Raised when a collaboration session id is unknown."""

    def __init__(self, session_id: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.MESSAGING)
        super().__init__(f"Collaboration session {session_id} not found", "collaboration", session_id, **kwargs)


class ConsensusNotFoundError(NotFoundError):
    """Raised when a consensus id is unknown."""

    def __init__(self, consensus_id: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONSENSUS)
        super().__init__(f"Consensus session {consensus_id} not found", "consensus", consensus_id, **kwargs)


class ConflictNotFoundError(NotFoundError):
    """Raised when a conflict id is unknown within a consensus session."""

    def __init__(self, conflict_id: str, consensus_id: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONSENSUS)
        if consensus_id:
            kwargs.setdefault('context', {})['consensus_id'] = consensus_id
        super().__init__(f"Conflict {conflict_id} not found", "conflict", conflict_id, **kwargs)


class ContextNotFoundError(NotFoundError):
    """Raised when a context entry id is unknown."""

    def __init__(self, context_id: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONTEXT)
        super().__init__(f"Context {context_id} not found", "context", context_id, **kwargs)


class HandoffNotFoundError(NotFoundError):
    """Raised when a handoff id is unknown."""

    def __init__(self, handoff_id: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.HANDOFF)
        super().__init__(f"Handoff {handoff_id} not found", "handoff", handoff_id, **kwargs)


class TemplateNotFoundError(NotFoundError):
    """Raised when a handoff template key is unknown."""

    def __init__(self, template_key: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.HANDOFF)
        super().__init__(f"Handoff template {template_key} not found", "handoff_template", template_key, **kwargs)


# Handoff exceptions
class HandoffMismatchError(ConcordError):
    """Raised when a handoff is executed with agents that differ from its initiation."""

    def __init__(
        self,
        handoff_id: str,
        expected: tuple,
        received: tuple,
        **kwargs
    ):
        kwargs.setdefault('category', ErrorCategory.HANDOFF)
        kwargs.setdefault('suggestions', [
            "Execute the handoff with the agents it was initiated for",
            "Initiate a new handoff for a different transition"
        ])
        context = kwargs.setdefault('context', {})
        context.update({
            "handoff_id": handoff_id,
            "expected": f"{expected[0]}->{expected[1]}",
            "received": f"{received[0]}->{received[1]}",
        })
        super().__init__(f"Handoff {handoff_id} agent mismatch", **kwargs)


class HandoffStateError(ConcordError):
    """Raised when a handoff operation is invalid for its current status."""

    def __init__(self, message: str, handoff_id: Optional[str] = None, status: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.HANDOFF)
        context = kwargs.setdefault('context', {})
        if handoff_id:
            context['handoff_id'] = handoff_id
        if status:
            context['status'] = status
        super().__init__(message, **kwargs)


# Consensus exceptions
class ConsensusStateError(ConcordError):
    """Raised when a consensus operation is invalid for the session's status."""

    def __init__(self, message: str, consensus_id: Optional[str] = None, status: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONSENSUS)
        context = kwargs.setdefault('context', {})
        if consensus_id:
            context['consensus_id'] = consensus_id
        if status:
            context['status'] = status
        super().__init__(message, **kwargs)


# Context exceptions
class ContextMergeError(ConcordError):
    """Raised when context entries cannot be merged."""

    def __init__(self, message: str, strategy: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONTEXT)
        if strategy:
            kwargs.setdefault('context', {})['strategy'] = strategy
        super().__init__(message, **kwargs)


# Agent-related exceptions
class AgentError(ConcordError):
    """Base exception for agent-related errors."""

    def __init__(self, message: str, agent_name: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.AGENT)
        if agent_name:
            kwargs.setdefault('context', {})['agent_name'] = agent_name
        super().__init__(message, **kwargs)
        self.agent_name = agent_name


class AgentExecutionError(AgentError):
    """Raised when an agent's execute call fails."""

    def __init__(self, message: str, agent_name: Optional[str] = None, **kwargs):
        kwargs.setdefault('suggestions', [
            "Check the agent's upstream service",
            "Retry the task with the remaining participants"
        ])
        super().__init__(message, agent_name, **kwargs)


class AgentTimeoutError(AgentError):
    """Raised when an agent does not answer within its time limit."""

    def __init__(self, message: str, agent_name: Optional[str] = None, timeout_seconds: Optional[float] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.TIMEOUT)
        kwargs.setdefault('suggestions', [
            "Increase agent_timeout_seconds",
            "Break down complex tasks into smaller parts"
        ])
        if timeout_seconds:
            kwargs.setdefault('context', {})['timeout_seconds'] = timeout_seconds
        super().__init__(message, agent_name, **kwargs)


class AgentNotRegisteredError(AgentError):
    """Raised when no agent implementation is registered for a type."""

    def __init__(self, agent_name: str, **kwargs):
        kwargs.setdefault('recoverable', False)
        kwargs.setdefault('suggestions', ["Register an agent for this type before orchestrating"])
        super().__init__(f"No agent registered for {agent_name}", agent_name, **kwargs)


# Orchestration exceptions
class OrchestrationError(ConcordError):
    """Raised when the orchestration logic itself fails."""

    def __init__(self, message: str, session_id: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.ORCHESTRATION)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        if session_id:
            kwargs.setdefault('context', {})['session_id'] = session_id
        super().__init__(message, **kwargs)


# Persistence exceptions
class DatabaseError(ConcordError):
    """Raised when the archive database cannot be used."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.DATABASE)
        if operation:
            kwargs.setdefault('context', {})['operation'] = operation
        super().__init__(message, **kwargs)


# Configuration and validation
class ConfigurationError(ConcordError):
    """Raised for invalid configuration."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.CONFIGURATION)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        kwargs.setdefault('recoverable', False)
        if config_key:
            kwargs.setdefault('context', {})['config_key'] = config_key
        super().__init__(message, **kwargs)


class ValidationError(ConcordError):
    """Raised when input data fails validation."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        kwargs.setdefault('category', ErrorCategory.VALIDATION)
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        if field_name:
            kwargs.setdefault('context', {})['field_name'] = field_name
        super().__init__(message, **kwargs)


def wrap_exception(
    exception: Exception,
    message: Optional[str] = None,
    error_class: type = ConcordError,
    **kwargs
) -> ConcordError:
    """Wrap a generic exception in a Concord exception."""
    if isinstance(exception, ConcordError):
        return exception

    kwargs.setdefault('original_exception', exception)
    return error_class(message or str(exception) or type(exception).__name__, **kwargs)


def is_recoverable_error(exception: Exception) -> bool:
    """Check whether an error can be recovered from."""
    if isinstance(exception, ConcordError):
        return exception.recoverable
    return not isinstance(exception, (MemoryError, SystemError))
