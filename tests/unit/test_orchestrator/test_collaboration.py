"""
Unit tests for the CollaborationOrchestrator.

Agents are local FunctionAgents, so no model backend is involved.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from concord.agents.base import AgentResult, AgentType, FunctionAgent, TaskContext
from concord.orchestrator.collaboration import (
    AgentFailure,
    CollaborationOptions,
    CollaborationOrchestrator,
    ConsensusOptions,
    DelegationOptions,
    collaboration_quality
)
from concord.orchestrator.messaging import CollaborationStatus, MessageKind
from concord.utils.exceptions import AgentNotRegisteredError, AgentTimeoutError, OrchestrationError
from config import settings
from tests.conftest import canned_agent, failing_agent

LOAN_AGENTS = [AgentType.CO_FOUNDER, AgentType.BUSINESS_ADVISOR, AgentType.CREDIT_ANALYST]


class TestOrchestrateTask:

    @pytest.mark.asyncio
    async def test_fan_out_without_consensus(self, orchestrator, user_context):
        result = await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)

        assert result.success
        assert result.successful_agents == ["co_founder", "business_advisor", "credit_analyst"]
        assert result.failed_agents == []
        assert result.consensus is None
        assert result.status == CollaborationStatus.READY_FOR_SYNTHESIS.value
        assert result.synthesized_response["final_decision"] == "approve"
        assert result.synthesized_response["key_points"][0] == "Revenue is growing quickly"
        assert result.quality_score == 1.0

    @pytest.mark.asyncio
    async def test_consensus_resolves_conflicts(self, orchestrator, user_context):
        result = await orchestrator.orchestrate_task(
            "Should we take the loan?", LOAN_AGENTS, user_context, CollaborationOptions(require_consensus=True)
        )

        consensus = result.consensus
        assert consensus.conflicts == 2
        assert len(consensus.resolved_conflicts) == 2
        assert consensus.final_decision == "approve"
        assert consensus.status == "completed"
        assert consensus.synthesis.consensus_label.value == "moderate"
        assert result.status == CollaborationStatus.CONSENSUS_REACHED.value

        session = await orchestrator.consensus_engine.get_consensus_status(consensus.consensus_id)
        for conflict in session.conflicts:
            assert conflict.resolution.resolution["adopted_agent"] in ("co_founder", "business_advisor")
            assert conflict.resolution.resolving_agent == "platform_orchestrator"

    @pytest.mark.asyncio
    async def test_context_is_stored_and_shared(self, orchestrator, user_context):
        seen = {}

        async def handler(context: TaskContext):
            seen["shared"] = context.shared_context
            return {"summary": "ok", "confidence": 0.8}

        orchestrator.registry.register(FunctionAgent(AgentType.IMPACT_ANALYST, handler))

        result = await orchestrator.orchestrate_task("Assess impact", [AgentType.IMPACT_ANALYST], user_context)

        entry = await orchestrator.context_store.get_context(result.context_id)
        assert entry.payload["company"] == "Acme"
        assert seen["shared"][0]["task"] == "Assess impact"
        relationships = await orchestrator.context_store.get_context_relationships(result.context_id)
        assert relationships["usage_patterns"]["shared_with"] == ["impact_analyst"]

    @pytest.mark.asyncio
    async def test_agent_failure_is_isolated(self, channel, user_context):
        orchestrator = CollaborationOrchestrator(
            agents=[
                canned_agent(AgentType.CO_FOUNDER, {"summary": "fine", "confidence": 0.9}),
                failing_agent(AgentType.CREDIT_ANALYST, RuntimeError("model unavailable")),
            ],
            channel=channel,
        )

        result = await orchestrator.orchestrate_task(
            "Review plan", [AgentType.CO_FOUNDER, AgentType.CREDIT_ANALYST, AgentType.IMPACT_ANALYST], user_context
        )

        assert result.successful_agents == ["co_founder"]
        failure = result.results["credit_analyst"]
        assert isinstance(failure, AgentFailure)
        assert failure.error_type == "AgentExecutionError"
        assert "model unavailable" in failure.message
        assert result.results["impact_analyst"].error_type == "AgentNotRegisteredError"

        session = await channel.get_collaboration_status(result.session_id)
        assert session.results["credit_analyst"]["error"] is True
        assert session.status == CollaborationStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self, user_context):
        async def slow(context):
            await asyncio.sleep(5)
            return {"summary": "late"}

        orchestrator = CollaborationOrchestrator(agents=[FunctionAgent(AgentType.CO_BUILDER, slow)])

        result = await orchestrator.orchestrate_task(
            "Plan", [AgentType.CO_BUILDER], user_context, CollaborationOptions(timeout_seconds=0.05)
        )

        assert result.results["co_builder"].error_type == "AgentTimeoutError"
        assert not result.success
        assert result.quality_score == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timeout_seconds", [-1, 0])
    async def test_non_positive_timeout_means_no_limit(self, user_context, timeout_seconds):
        orchestrator = CollaborationOrchestrator(
            agents=[canned_agent(AgentType.CO_BUILDER, {"summary": "done", "confidence": 0.9})]
        )

        with patch("concord.orchestrator.collaboration.asyncio.wait_for") as wait_for:
            result = await orchestrator.orchestrate_task(
                "Plan", [AgentType.CO_BUILDER], user_context, CollaborationOptions(timeout_seconds=timeout_seconds)
            )

        wait_for.assert_not_called()
        assert result.successful_agents == ["co_builder"]
        assert orchestrator._timeout(timeout_seconds) is None
        assert orchestrator._timeout(None) == settings.agent_timeout_seconds

    @pytest.mark.asyncio
    async def test_sequential_execution(self, orchestrator, user_context, monkeypatch):
        monkeypatch.setattr(settings, "enable_parallel_execution", False)

        result = await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)

        assert len(result.successful_agents) == 3

    @pytest.mark.asyncio
    async def test_handoff_option(self, orchestrator, user_context):
        result = await orchestrator.orchestrate_task(
            "Should we take the loan?", LOAN_AGENTS, user_context,
            CollaborationOptions(handoff_from=AgentType.CO_FOUNDER, handoff_to=AgentType.CREDIT_ANALYST)
        )

        assert result.handoff.from_agent == "co_founder"
        assert result.handoff.to_agent == "credit_analyst"
        assert result.handoff.transition_plan["estimated_duration_minutes"] == 2
        assert set(result.handoff.handoff_data["results"]) == set(a.value for a in LOAN_AGENTS)

    @pytest.mark.asyncio
    async def test_end_session_option(self, orchestrator, archive, user_context):
        result = await orchestrator.orchestrate_task(
            "Should we take the loan?", LOAN_AGENTS, user_context, CollaborationOptions(end_session=True)
        )

        assert result.status == CollaborationStatus.COMPLETED.value
        assert await orchestrator.get_active_collaborations("user_1") == []
        [record] = await archive.list_records(kind="collaboration")
        assert record["payload"]["results"]["synthesized_response"]["task"] == "Should we take the loan?"

    @pytest.mark.asyncio
    async def test_orchestration_failure_fails_session(self, orchestrator, user_context):
        with patch.object(orchestrator.channel, "add_to_collaboration",
                          AsyncMock(side_effect=RuntimeError("channel broke"))):
            with pytest.raises(OrchestrationError) as exc_info:
                await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)

        session_id = exc_info.value.context["session_id"]
        assert await orchestrator.channel.get_collaboration_status(session_id) is None
        analytics = await orchestrator.channel.analyze_collaboration_patterns("user_1")
        assert analytics["failed_sessions"] == 1

    @pytest.mark.asyncio
    async def test_status_callback(self, advisory_agents, user_context):
        callback = Mock()
        orchestrator = CollaborationOrchestrator(agents=advisory_agents, status_callback=callback)

        await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)

        messages = [call.args[0] for call in callback.call_args_list]
        assert messages[0].startswith("Starting collaboration")
        assert "3/3 agents" in messages[-1]


class TestDelegation:

    @pytest.mark.asyncio
    async def test_delegation_returns_results(self, orchestrator, user_context):
        result = await orchestrator.handle_delegation(
            AgentType.CO_FOUNDER, AgentType.CREDIT_ANALYST, "Check our credit line", user_context,
            DelegationOptions(require_handoff=True)
        )

        assert result.success
        assert result.result.content["decision"] == "decline"
        assert result.handoff.transition_plan["category"] == "co_to_functional"

        inbox = await orchestrator.channel.receive(AgentType.CREDIT_ANALYST, scope_key="user_1")
        assert {m.kind for m in inbox} == {MessageKind.DELEGATION, MessageKind.CONTEXT_SHARE}

        [reply] = await orchestrator.channel.receive(AgentType.CO_FOUNDER, scope_key="user_1")
        assert reply.kind == MessageKind.RESULT_HANDOFF
        assert reply.payload.delegation_id == result.delegation_id
        assert reply.payload.confidence == 0.7

    @pytest.mark.asyncio
    async def test_failed_delegation_sends_no_result(self, orchestrator, user_context):
        result = await orchestrator.handle_delegation(
            AgentType.CO_FOUNDER, AgentType.PROGRAM_MANAGER, "Plan the cohort", user_context,
            DelegationOptions(share_context=False)
        )

        assert not result.success
        assert result.context_id is None
        assert await orchestrator.channel.receive(AgentType.CO_FOUNDER, scope_key="user_1") == []


class TestBuildConsensus:

    @pytest.mark.asyncio
    async def test_build_consensus(self, orchestrator, user_context):
        outcome = await orchestrator.build_consensus("Should we approve loan X?", LOAN_AGENTS, user_context)

        assert outcome.final_decision == "approve"
        assert outcome.perspectives == 3
        assert outcome.conflicts == 2
        assert outcome.failures == {}
        assert outcome.to_dict()["synthesis"]["consensus_label"] == "moderate"

    @pytest.mark.asyncio
    async def test_without_conflict_resolution(self, orchestrator, user_context):
        outcome = await orchestrator.build_consensus(
            "Should we approve loan X?", LOAN_AGENTS, user_context,
            ConsensusOptions(enable_conflict_resolution=False)
        )

        assert outcome.resolved_conflicts == []
        session = await orchestrator.consensus_engine.get_consensus_status(outcome.consensus_id)
        assert len(session.active_conflicts) == 2

    @pytest.mark.asyncio
    async def test_failures_are_reported(self, orchestrator, user_context):
        outcome = await orchestrator.build_consensus(
            "Should we approve loan X?", [AgentType.CO_FOUNDER, AgentType.IMPACT_ANALYST], user_context
        )

        assert list(outcome.failures) == ["impact_analyst"]
        assert outcome.perspectives == 1


class TestAnalyticsAndSessions:

    @pytest.mark.asyncio
    async def test_analytics(self, orchestrator, user_context):
        await orchestrator.orchestrate_task(
            "Should we take the loan?", LOAN_AGENTS, user_context, CollaborationOptions(require_consensus=True)
        )

        analytics = await orchestrator.get_collaboration_analytics("user_1")

        overall = analytics["overall"]
        assert overall["total_interactions"] == (
            analytics["communication"]["total_collaborations"]
            + analytics["context"]["total_contexts"]
            + analytics["consensus"]["total_sessions"]
            + analytics["handoffs"]["total_handoffs"]
        )
        assert analytics["consensus"]["total_sessions"] == 1
        assert overall["active_collaborations"] == 1
        assert 0.0 <= overall["success_rate"] <= 1.0
        assert isinstance(overall["recommendations"], list)

    @pytest.mark.asyncio
    async def test_end_collaboration(self, orchestrator, user_context):
        result = await orchestrator.orchestrate_task("Should we take the loan?", LOAN_AGENTS, user_context)
        assert [s.session_id for s in await orchestrator.get_active_collaborations()] == [result.session_id]

        session = await orchestrator.end_collaboration(result.session_id, {"note": "done"})

        assert session.status == CollaborationStatus.COMPLETED
        assert await orchestrator.get_active_collaborations() == []


class TestQuality:

    def test_quality_bounds(self):
        results = [AgentResult(content={}, confidence=0.5)]
        assert collaboration_quality([], True) == 0.0
        assert collaboration_quality(results, False) == pytest.approx(0.5 + 0.1 + 0.1)
        assert collaboration_quality(results * 5, True) == pytest.approx(1.0)


class TestAgentFailure:

    def test_raw_exception_is_wrapped(self):
        failure = AgentFailure.from_exception("co_builder", KeyError("summary"))

        assert failure.error_type == "AgentExecutionError"
        assert failure.message == "Agent co_builder failed: 'summary'"
        assert failure.recoverable

    def test_recoverability_follows_the_error(self):
        assert not AgentFailure.from_exception("co_builder", MemoryError()).recoverable
        assert not AgentFailure.from_exception("impact_analyst", AgentNotRegisteredError("impact_analyst")).recoverable
        assert not AgentFailure.from_exception("co_builder", asyncio.CancelledError()).recoverable

    def test_concord_errors_pass_through(self):
        failure = AgentFailure.from_exception("co_builder", AgentTimeoutError("too slow", "co_builder", 1.0))

        assert failure.error_type == "AgentTimeoutError"
        assert failure.message == "too slow"
        assert failure.recoverable

    @pytest.mark.asyncio
    async def test_agent_without_base_wrapping(self, user_context):
        agent = FunctionAgent(AgentType.CO_BUILDER, AsyncMock())
        agent.invoke = AsyncMock(side_effect=ValueError("bad payload"))
        orchestrator = CollaborationOrchestrator(agents=[agent])

        result = await orchestrator.orchestrate_task("Plan", [AgentType.CO_BUILDER], user_context)

        failure = result.results["co_builder"]
        assert failure.error_type == "AgentExecutionError"
        assert "bad payload" in failure.message
