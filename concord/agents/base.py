"""
Base agent implementation for Concord.

Defines the agent identities the collaboration core knows about, the context
and result models exchanged with agents, and the abstract agent interface.
Agents themselves are external collaborators: the core only ever calls
``execute(context)`` and treats it as a slow call that may fail.
"""

import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from concord.utils.exceptions import AgentExecutionError, AgentNotRegisteredError
from concord.utils.helpers import generate_id, is_number
from concord.utils.logger import AsyncPerformanceLogger, get_logger, log_context

logger = get_logger("agents.base")


class AgentType(str, Enum):
    """Enumeration of agent identities."""
    CO_FOUNDER = "co_founder"
    CO_INVESTOR = "co_investor"
    CO_BUILDER = "co_builder"
    BUSINESS_ADVISOR = "business_advisor"
    INVESTMENT_ANALYST = "investment_analyst"
    CREDIT_ANALYST = "credit_analyst"
    IMPACT_ANALYST = "impact_analyst"
    PROGRAM_MANAGER = "program_manager"
    PLATFORM_ORCHESTRATOR = "platform_orchestrator"


AgentRef = Union[AgentType, str]


def agent_key(agent: AgentRef) -> str:
    """Normalize an agent reference to its string identifier."""
    if isinstance(agent, AgentType):
        return agent.value
    return str(agent)


class UserContext(BaseModel):
    """What the core knows about the user an interaction belongs to."""
    user_id: str = Field(description="User identifier")
    user_type: Optional[str] = Field(None, description="Kind of user, e.g. founder or investor")
    session_id: Optional[str] = Field(None, description="Conversation session identifier")
    conversation_history: List[Dict[str, Any]] = Field(
        default_factory=list, description="Conversation turns, oldest first"
    )
    relevant_data: Dict[str, Any] = Field(default_factory=dict, description="Domain data for the task")
    current_task: Optional[str] = Field(None, description="Task the user is working on")
    preferences: Dict[str, Any] = Field(default_factory=dict, description="User preferences")


class TaskContext(BaseModel):
    """Context handed to an agent for one execution."""
    task_id: str = Field(default_factory=lambda: generate_id("task"), description="Unique task identifier")
    task: str = Field(description="Task or question for the agent")
    agent_type: str = Field(description="Agent the context is addressed to")
    user_context: UserContext = Field(description="Owning user context")
    session_id: Optional[str] = Field(None, description="Collaboration session identifier")
    participating_agents: List[str] = Field(default_factory=list, description="All participating agents")
    shared_context: List[Dict[str, Any]] = Field(default_factory=list, description="Context shared with the agent")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional context data")


class AgentResult(BaseModel):
    """Standardized result of an agent execution."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: Dict[str, Any] = Field(default_factory=dict, description="Structured response content")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Confidence in the response")
    reasoning: str = Field(default="", description="Why the agent answered this way")
    execution_time_ms: Optional[float] = Field(None, description="Execution time in milliseconds")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    @classmethod
    def from_value(cls, value: Any) -> "AgentResult":
        """Coerce a raw agent return value into an AgentResult."""
        if isinstance(value, AgentResult):
            return value
        if isinstance(value, dict):
            confidence = value.get("confidence")
            return cls(
                content=value,
                confidence=min(max(float(confidence), 0.0), 1.0) if is_number(confidence) else 0.5,
                reasoning=str(value.get("reasoning", "")),
            )
        return cls(content={"summary": str(value)})


class BaseAgent(ABC):
    """
    Abstract base class for agents taking part in a collaboration.

    Subclasses implement ``execute``. ``invoke`` wraps it with performance
    logging and failure accounting and is what the orchestrator calls.
    """

    def __init__(self, agent_type: AgentRef, name: Optional[str] = None):
        self.agent_type = agent_type
        self.agent_id = agent_key(agent_type)
        self.name = name or self.agent_id
        self.logger = get_logger(f"agents.{self.agent_id}")

        self._total_requests = 0
        self._failed_requests = 0
        self._total_time = 0.0

    @property
    def performance_metrics(self) -> Dict[str, Any]:
        """Get current performance metrics."""
        return {
            "total_requests": self._total_requests,
            "failed_requests": self._failed_requests,
            "average_time_seconds": self._total_time / max(self._total_requests, 1),
        }

    @abstractmethod
    async def execute(self, context: TaskContext) -> AgentResult:
        """
        Execute a task.

        Args:
            context: Task context addressed to this agent

        Returns:
            AgentResult with structured content and a confidence
        """

    async def invoke(self, context: TaskContext) -> AgentResult:
        """Run ``execute`` with logging and metrics; failures become AgentExecutionError."""
        self._total_requests += 1
        start = time.perf_counter()

        with log_context(session_id=context.session_id, user_id=context.user_context.user_id,
                         agent_name=self.agent_id):
            try:
                async with AsyncPerformanceLogger(self.logger, f"{self.agent_id}.execute",
                                                  task_id=context.task_id):
                    result = await self.execute(context)
            except AgentExecutionError:
                self._failed_requests += 1
                raise
            except Exception as e:
                self._failed_requests += 1
                raise AgentExecutionError(
                    f"Agent {self.agent_id} failed: {e}",
                    agent_name=self.agent_id,
                    original_exception=e
                ) from e
            finally:
                self._total_time += time.perf_counter() - start

        result = AgentResult.from_value(result)
        if result.execution_time_ms is None:
            result.execution_time_ms = (time.perf_counter() - start) * 1000
        return result


class FunctionAgent(BaseAgent):
    """Agent backed by a coroutine function, handy for local agents and tests."""

    def __init__(
        self,
        agent_type: AgentRef,
        handler: Callable[[TaskContext], Awaitable[Any]],
        name: Optional[str] = None
    ):
        super().__init__(agent_type, name)
        self._handler = handler

    async def execute(self, context: TaskContext) -> AgentResult:
        return AgentResult.from_value(await self._handler(context))


class AgentRegistry:
    """Lookup of agent implementations by identifier."""

    def __init__(self, agents: Optional[List[BaseAgent]] = None):
        self._agents: Dict[str, BaseAgent] = {}
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: BaseAgent) -> None:
        if agent.agent_id in self._agents:
            logger.warning(f"Replacing registered agent {agent.agent_id}")
        self._agents[agent.agent_id] = agent

    def unregister(self, agent: AgentRef) -> None:
        self._agents.pop(agent_key(agent), None)

    def get(self, agent: AgentRef) -> BaseAgent:
        key = agent_key(agent)
        if key not in self._agents:
            raise AgentNotRegisteredError(key)
        return self._agents[key]

    def __contains__(self, agent: AgentRef) -> bool:
        return agent_key(agent) in self._agents

    def __iter__(self) -> Iterator[BaseAgent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)
