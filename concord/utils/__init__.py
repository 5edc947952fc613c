"""Utility functions and helpers."""

# Logging system
from .logger import (
    setup_logging,
    get_logger,
    log_context,
    AsyncPerformanceLogger,
    ConsensusLogger,
    HandoffLogger,
    monitor_performance,
    log_collaboration_event
)

# Exception classes
from .exceptions import (
    ConcordError,
    NotFoundError,
    CollaborationNotFoundError,
    ConsensusNotFoundError,
    ConflictNotFoundError,
    ContextNotFoundError,
    HandoffNotFoundError,
    TemplateNotFoundError,
    HandoffMismatchError,
    HandoffStateError,
    ConsensusStateError,
    ContextMergeError,
    AgentError,
    AgentExecutionError,
    AgentTimeoutError,
    AgentNotRegisteredError,
    OrchestrationError,
    DatabaseError,
    ConfigurationError,
    ValidationError,
    wrap_exception,
    is_recoverable_error
)

# Helper functions
from .helpers import (
    utcnow,
    generate_id,
    short_id,
    serialize_payload,
    to_jsonable,
    tokenize,
    token_set,
    calculate_text_similarity,
    is_number,
    clamp,
    truncate_text,
    merge_dicts,
    top_counts,
    minutes_between,
    format_timestamp
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "log_context",
    "AsyncPerformanceLogger",
    "ConsensusLogger",
    "HandoffLogger",
    "monitor_performance",
    "log_collaboration_event",

    # Exceptions
    "ConcordError",
    "NotFoundError",
    "CollaborationNotFoundError",
    "ConsensusNotFoundError",
    "ConflictNotFoundError",
    "ContextNotFoundError",
    "HandoffNotFoundError",
    "TemplateNotFoundError",
    "HandoffMismatchError",
    "HandoffStateError",
    "ConsensusStateError",
    "ContextMergeError",
    "AgentError",
    "AgentExecutionError",
    "AgentTimeoutError",
    "AgentNotRegisteredError",
    "OrchestrationError",
    "DatabaseError",
    "ConfigurationError",
    "ValidationError",
    "wrap_exception",
    "is_recoverable_error",

    # Helpers
    "utcnow",
    "generate_id",
    "short_id",
    "serialize_payload",
    "to_jsonable",
    "tokenize",
    "token_set",
    "calculate_text_similarity",
    "is_number",
    "clamp",
    "truncate_text",
    "merge_dicts",
    "top_counts",
    "minutes_between",
    "format_timestamp"
]
