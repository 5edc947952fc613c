"""Collaboration and consensus core for multi-agent interactions."""

# Message channel and collaboration sessions
from .messaging import (
    MessageChannel,
    Message,
    MessageKind,
    MessagePriority,
    CollaborationSession,
    CollaborationStatus,
    ContributionKind
)

# Shared context
from .context_store import (
    ContextStore,
    ContextEntry,
    Relevance,
    MergeStrategy,
    RankedContext
)

# Consensus engine
from .consensus import (
    ConsensusEngine,
    ConsensusSession,
    ConsensusStatus,
    Conflict,
    ConflictKind,
    Perspective,
    Synthesis
)

# Handoffs
from .handoff import (
    HandoffCoordinator,
    Handoff,
    HandoffPackage,
    HandoffStatus,
    HandoffTemplate,
    TransitionCategory
)

# Façade
from .collaboration import (
    CollaborationOrchestrator,
    CollaborationOptions,
    DelegationOptions,
    ConsensusOptions,
    TaskResult,
    DelegationResult,
    ConsensusOutcome,
    AgentFailure
)


def create_orchestrator(agents, archive=None, status_callback=None) -> CollaborationOrchestrator:
    """Factory function to create a fully configured orchestrator."""
    return CollaborationOrchestrator(
        agents=agents,
        archive=archive,
        status_callback=status_callback
    )


__all__ = [
    # Messaging
    "MessageChannel",
    "Message",
    "MessageKind",
    "MessagePriority",
    "CollaborationSession",
    "CollaborationStatus",
    "ContributionKind",

    # Context
    "ContextStore",
    "ContextEntry",
    "Relevance",
    "MergeStrategy",
    "RankedContext",

    # Consensus
    "ConsensusEngine",
    "ConsensusSession",
    "ConsensusStatus",
    "Conflict",
    "ConflictKind",
    "Perspective",
    "Synthesis",

    # Handoffs
    "HandoffCoordinator",
    "Handoff",
    "HandoffPackage",
    "HandoffStatus",
    "HandoffTemplate",
    "TransitionCategory",

    # Façade
    "CollaborationOrchestrator",
    "CollaborationOptions",
    "DelegationOptions",
    "ConsensusOptions",
    "TaskResult",
    "DelegationResult",
    "ConsensusOutcome",
    "AgentFailure",

    # Utilities
    "create_orchestrator"
]
