"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest
import pytest_asyncio

# Set test environment before settings are imported
os.environ["CONCORD_APP_ENV"] = "testing"
os.environ["CONCORD_LOG_LEVEL"] = "DEBUG"
os.environ.pop("CONCORD_DATABASE_URL", None)

from concord.agents.base import AgentType, FunctionAgent, TaskContext, UserContext  # noqa: E402
from concord.orchestrator.collaboration import CollaborationOrchestrator  # noqa: E402
from concord.orchestrator.consensus import ConsensusEngine  # noqa: E402
from concord.orchestrator.context_store import ContextStore  # noqa: E402
from concord.orchestrator.handoff import HandoffCoordinator  # noqa: E402
from concord.orchestrator.messaging import MessageChannel  # noqa: E402
from concord.persistence.archive import InMemoryArchive  # noqa: E402


class FakeClock:
    """Controllable clock; each component takes it as its ``clock`` callable."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


def canned_agent(agent_type: AgentType, response: Dict[str, Any]) -> FunctionAgent:
    """Agent that always answers with the given response."""

    async def handler(context: TaskContext) -> Dict[str, Any]:
        return dict(response)

    return FunctionAgent(agent_type, handler)


def failing_agent(agent_type: AgentType, error: Exception) -> FunctionAgent:
    async def handler(context: TaskContext) -> Dict[str, Any]:
        raise error

    return FunctionAgent(agent_type, handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def user_context():
    """Create a user context with a short conversation."""
    return UserContext(
        user_id="user_1",
        user_type="founder",
        session_id="session_1",
        conversation_history=[
            {"role": "user", "content": f"message {i}"} for i in range(12)
        ],
        relevant_data={"company": "Acme", "stage": "seed"},
        current_task="Plan the next funding round",
    )


@pytest.fixture
def archive():
    return InMemoryArchive()


@pytest.fixture
def channel(clock, archive):
    return MessageChannel(history_limit=100, consensus_ratio=0.6, archive=archive, clock=clock)


@pytest.fixture
def store(clock):
    return ContextStore(history_limit=50, similarity_threshold=0.5, recency_window_hours=24, clock=clock)


@pytest.fixture
def engine(channel, archive, clock):
    return ConsensusEngine(channel=channel, archive=archive, clock=clock)


@pytest.fixture
def coordinator(archive, clock):
    return HandoffCoordinator(archive=archive, clock=clock)


@pytest.fixture
def advisory_agents():
    """Three agents that disagree on a loan decision."""
    return [
        canned_agent(AgentType.CO_FOUNDER, {
            "decision": "approve",
            "summary": "Growth justifies the loan",
            "key_points": ["Revenue is growing quickly"],
            "recommendations": ["Take the loan in two tranches"],
            "confidence": 0.9,
        }),
        canned_agent(AgentType.BUSINESS_ADVISOR, {
            "decision": "approve",
            "summary": "Operations can support repayment",
            "key_points": ["Revenue is growing quickly"],
            "recommendations": ["Take the loan in two tranches"],
            "confidence": 0.8,
        }),
        canned_agent(AgentType.CREDIT_ANALYST, {
            "decision": "decline",
            "summary": "Cash flow is too thin for the repayment schedule",
            "key_points": ["Cash runway under six months"],
            "recommendations": ["Extend runway before borrowing"],
            "confidence": 0.7,
        }),
    ]


@pytest.fixture
def orchestrator(advisory_agents, channel, store, engine, coordinator, archive):
    return CollaborationOrchestrator(
        agents=advisory_agents,
        channel=channel,
        context_store=store,
        consensus_engine=engine,
        handoff_coordinator=coordinator,
        archive=archive,
    )


@pytest.fixture
def mock_console():
    """Create a mock Rich console for UI testing."""
    from rich.console import Console
    from io import StringIO

    string_io = StringIO()
    console = Console(file=string_io, force_terminal=True, width=120)
    return console


@pytest_asyncio.fixture
async def memory_database():
    """In-memory SQLite database for archive tests."""
    from concord.persistence.database import DatabaseManager

    db_manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db_manager.initialize()

    yield db_manager

    await db_manager.close()
