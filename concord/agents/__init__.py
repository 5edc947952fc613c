"""Agent identities, context models and the agent interface."""

from .base import (
    AgentType,
    AgentRef,
    agent_key,
    UserContext,
    TaskContext,
    AgentResult,
    BaseAgent,
    FunctionAgent,
    AgentRegistry
)
from .profiles import (
    AgentCategory,
    CO_AGENTS,
    FUNCTIONAL_AGENTS,
    classify_agent,
    is_co_agent,
    is_functional_agent,
    display_name,
    agent_keywords,
    are_related
)

__all__ = [
    "AgentType",
    "AgentRef",
    "agent_key",
    "UserContext",
    "TaskContext",
    "AgentResult",
    "BaseAgent",
    "FunctionAgent",
    "AgentRegistry",
    "AgentCategory",
    "CO_AGENTS",
    "FUNCTIONAL_AGENTS",
    "classify_agent",
    "is_co_agent",
    "is_functional_agent",
    "display_name",
    "agent_keywords",
    "are_related"
]
