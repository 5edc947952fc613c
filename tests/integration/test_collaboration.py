"""
End-to-end collaboration tests.

Runs the rule-based advisory agents through the full orchestrator with the
SQLite archive, then drives the same stack through the CLI commands.
"""

from unittest.mock import patch

import pytest

from concord.agents.base import AgentType, UserContext
from concord.cli import CLI, DEFAULT_PARTICIPANTS, advisory_agent, main
from concord.orchestrator import create_orchestrator
from concord.orchestrator.collaboration import CollaborationOptions
from concord.orchestrator.messaging import CollaborationStatus
from concord.persistence.archive import DatabaseArchive
from concord.utils.exceptions import OrchestrationError
from config.settings import settings

pytestmark = pytest.mark.integration

LOAN_TASK = "Should we take the loan to expand our business?"


@pytest.fixture
def founder():
    return UserContext(
        user_id="founder_1",
        user_type="founder",
        session_id="session_1",
        relevant_data={"company": "Acme", "monthly_revenue": 40000},
        current_task="Financing the expansion"
    )


@pytest.fixture
def advisory_orchestrator(memory_database):
    return create_orchestrator(
        agents=[advisory_agent(agent_type) for agent_type in AgentType],
        archive=DatabaseArchive(memory_database)
    )


class TestLoanDecision:

    @pytest.mark.asyncio
    async def test_full_collaboration_is_archived(self, advisory_orchestrator, founder):
        orchestrator = advisory_orchestrator

        result = await orchestrator.orchestrate_task(
            LOAN_TASK, DEFAULT_PARTICIPANTS, founder,
            CollaborationOptions(require_consensus=True, handoff_to=AgentType.CREDIT_ANALYST, end_session=True)
        )

        assert result.success
        assert result.status == CollaborationStatus.COMPLETED.value
        assert result.results["credit_analyst"].content["decision"] == "decline"
        assert result.consensus.final_decision == "approve"
        assert result.consensus.conflicts == 2
        assert result.handoff.to_agent == "credit_analyst"
        assert 0.0 < result.quality_score <= 1.0

        records = await orchestrator.archive.list_records(user_id="founder_1")
        assert {r["kind"] for r in records} == {"collaboration", "consensus", "handoff"}

        analytics = await orchestrator.get_collaboration_analytics("founder_1")
        assert analytics["communication"]["completed_sessions"] == 1
        assert analytics["consensus"]["completed_sessions"] == 1
        assert analytics["handoffs"]["total_handoffs"] == 1
        assert analytics["overall"]["active_collaborations"] == 0

    @pytest.mark.asyncio
    async def test_context_accumulates_across_tasks(self, advisory_orchestrator, founder):
        orchestrator = advisory_orchestrator

        await orchestrator.orchestrate_task(LOAN_TASK, DEFAULT_PARTICIPANTS, founder)
        second = await orchestrator.orchestrate_task("What credit risk do we carry?", DEFAULT_PARTICIPANTS, founder)

        reasoning = second.results["credit_analyst"].reasoning
        assert reasoning.endswith("shared context items: 2")
        assert len(await orchestrator.context_store.get_user_contexts("founder_1")) == 2
        assert len(await orchestrator.get_active_collaborations("founder_1")) == 2


class TestCLICommands:

    @pytest.fixture
    def cli(self, advisory_orchestrator, founder, mock_console):
        return CLI(advisory_orchestrator, founder, console=mock_console)

    @pytest.mark.asyncio
    async def test_collaboration_request(self, cli):
        await cli.handle_collaboration_request(LOAN_TASK)

        assert cli.user_context.conversation_history[-1]["content"] == LOAN_TASK
        assert "Consensus Summary" in cli.console.file.getvalue()

    @pytest.mark.asyncio
    async def test_delegate_and_end(self, cli):
        await cli.handle_command("/delegate credit_analyst Review our credit line")
        await cli.handle_collaboration_request(LOAN_TASK)
        await cli.handle_command("/end")

        output = cli.console.file.getvalue()
        assert "Transition Steps" in output
        assert "Ended collab_" in output
        assert await cli.orchestrator.get_active_collaborations("founder_1") == []

    @pytest.mark.asyncio
    async def test_commands_validate_input(self, cli):
        await cli.handle_command("/delegate nobody Do something")
        await cli.handle_command("/agents co_founder not_an_agent")
        await cli.handle_command("/consensus-mode")
        await cli.handle_command("/exit")

        output = cli.console.file.getvalue()
        assert "Unknown agent: nobody" in output
        assert cli.participants == DEFAULT_PARTICIPANTS
        assert not cli.require_consensus
        assert not cli.running

    @pytest.mark.asyncio
    async def test_apostrophe_in_free_text(self, cli):
        await cli.handle_command("/consensus Should we approve Bob's loan?")

        assert "Consensus Results" in cli.console.file.getvalue()
        [session] = await cli.orchestrator.consensus_engine.get_consensus_history("founder_1")
        assert session.decision == "Should we approve Bob's loan?"


class TestMain:

    @pytest.fixture
    def sqlite_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "archive_enabled", True)
        monkeypatch.setattr(settings, "database_url", "sqlite+aiosqlite:///:memory:")

    @pytest.mark.asyncio
    async def test_database_archive_is_closed_on_exit(self, sqlite_settings):
        seen = {}

        async def run(self):
            seen["manager"] = self.orchestrator.archive.db_manager
            assert seen["manager"].is_initialized

        with patch("concord.cli.setup_logging"), patch.object(CLI, "run", run):
            await main()

        assert not seen["manager"].is_initialized
        assert seen["manager"].engine is None

    @pytest.mark.asyncio
    async def test_database_archive_is_closed_when_the_session_fails(self, sqlite_settings):
        seen = {}

        async def run(self):
            seen["manager"] = self.orchestrator.archive.db_manager
            raise OrchestrationError("orchestrator crashed")

        with patch("concord.cli.setup_logging"), patch.object(CLI, "run", run):
            with pytest.raises(SystemExit):
                await main()

        assert not seen["manager"].is_initialized
