"""
Collaboration Orchestrator for Concord.

Top-level façade composing the Message Channel, Context Store, Consensus
Engine and Handoff Coordinator:

1. Open a collaboration session and invite the participants
2. Store and share the user's context
3. Fan out to every participant concurrently
4. Optionally run a consensus round over the contributions
5. Optionally hand the interaction over to another agent

Individual agent failures are recorded in that agent's result slot and the
run continues; only a failure of the orchestration logic itself fails the
session.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from concord.agents.base import (
    AgentRef,
    AgentRegistry,
    AgentResult,
    AgentType,
    BaseAgent,
    TaskContext,
    UserContext,
    agent_key
)
from concord.orchestrator.consensus import ConsensusEngine, ConsensusSession, Perspective, Synthesis
from concord.orchestrator.context_store import ContextStore, Relevance
from concord.orchestrator.handoff import HandoffCoordinator, HandoffPackage
from concord.orchestrator.messaging import CollaborationSession, ContributionKind, MessageChannel
from concord.persistence.archive import ArchiveSink, InMemoryArchive
from concord.utils.exceptions import (
    AgentExecutionError,
    AgentTimeoutError,
    OrchestrationError,
    is_recoverable_error,
    wrap_exception
)
from concord.utils.helpers import generate_id, short_id, truncate_text, utcnow
from concord.utils.logger import AsyncPerformanceLogger, get_logger, log_context
from config import settings

ORCHESTRATOR = AgentType.PLATFORM_ORCHESTRATOR


@dataclass
class AgentFailure:
    """Error marker stored in a failed agent's result slot."""
    agent: str
    error_type: str
    message: str
    recoverable: bool = True

    @classmethod
    def from_exception(cls, agent: str, error: BaseException) -> "AgentFailure":
        if not isinstance(error, Exception):
            # Cancellation and interpreter exits are never retried
            return cls(agent=agent, error_type=type(error).__name__, message=str(error) or repr(error),
                       recoverable=False)

        recoverable = is_recoverable_error(error)
        error = wrap_exception(error, f"Agent {agent} failed: {error}", AgentExecutionError,
                               agent_name=agent, recoverable=recoverable)
        return cls(
            agent=agent,
            error_type=type(error).__name__,
            message=error.message,
            recoverable=recoverable,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "agent": self.agent,
            "error_type": self.error_type,
            "message": self.message,
            "recoverable": self.recoverable,
        }


AgentOutcome = Union[AgentResult, AgentFailure]


@dataclass
class CollaborationOptions:
    """Switches for orchestrate_task."""
    require_consensus: bool = False
    share_context: bool = True
    handoff_to: Optional[AgentRef] = None
    handoff_from: Optional[AgentRef] = None
    timeout_seconds: Optional[float] = None
    enable_conflict_resolution: bool = True
    end_session: bool = False


@dataclass
class DelegationOptions:
    """Switches for handle_delegation."""
    share_context: bool = True
    require_handoff: bool = False
    timeout_seconds: Optional[float] = None
    session_id: Optional[str] = None


@dataclass
class ConsensusOptions:
    """Switches for build_consensus."""
    enable_conflict_resolution: bool = True
    timeout_seconds: Optional[float] = None
    session_id: Optional[str] = None


@dataclass
class ConsensusOutcome:
    """Result of a full consensus round."""
    consensus_id: str
    decision: str
    final_decision: Any
    confidence: float
    synthesis: Synthesis
    status: str
    perspectives: int
    conflicts: int
    resolved_conflicts: List[str] = field(default_factory=list)
    failures: Dict[str, AgentFailure] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consensus_id": self.consensus_id,
            "decision": self.decision,
            "final_decision": self.final_decision,
            "confidence": self.confidence,
            "synthesis": self.synthesis.to_dict(),
            "status": self.status,
            "perspectives": self.perspectives,
            "conflicts": self.conflicts,
            "resolved_conflicts": self.resolved_conflicts,
            "failures": {agent: failure.to_dict() for agent, failure in self.failures.items()},
        }


@dataclass
class TaskResult:
    """Outcome of orchestrate_task: per-agent results plus the synthesized response."""
    session_id: str
    task: str
    participating_agents: List[str]
    results: Dict[str, AgentOutcome]
    synthesized_response: Dict[str, Any]
    status: str
    quality_score: float = 0.0
    consensus: Optional[ConsensusOutcome] = None
    handoff: Optional[HandoffPackage] = None
    context_id: Optional[str] = None
    total_duration: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def successful_agents(self) -> List[str]:
        return [agent for agent, outcome in self.results.items() if isinstance(outcome, AgentResult)]

    @property
    def failed_agents(self) -> List[str]:
        return [agent for agent, outcome in self.results.items() if isinstance(outcome, AgentFailure)]

    @property
    def success(self) -> bool:
        return bool(self.successful_agents)


@dataclass
class DelegationResult:
    delegation_id: str
    from_agent: str
    to_agent: str
    result: AgentOutcome
    context_id: Optional[str] = None
    handoff: Optional[HandoffPackage] = None

    @property
    def success(self) -> bool:
        return isinstance(self.result, AgentResult)


def collaboration_quality(results: List[AgentResult], has_insights: bool) -> float:
    """Heuristic quality of a multi-agent answer, within [0, 1]."""
    if not results:
        return 0.0
    average_confidence = sum(r.confidence for r in results) / len(results)
    score = 0.5 + min(len(results) * 0.1, 0.3) + average_confidence * 0.2
    if has_insights:
        score += 0.1
    return min(score, 1.0)


class CollaborationOrchestrator:
    """
    Façade over the four collaboration components.

    Components are injectable; by default each orchestrator owns fresh
    instances sharing one archive sink, so separate orchestrators never share
    state.
    """

    def __init__(
        self,
        agents: Optional[Iterable[BaseAgent]] = None,
        registry: Optional[AgentRegistry] = None,
        channel: Optional[MessageChannel] = None,
        context_store: Optional[ContextStore] = None,
        consensus_engine: Optional[ConsensusEngine] = None,
        handoff_coordinator: Optional[HandoffCoordinator] = None,
        archive: Optional[ArchiveSink] = None,
        status_callback: Optional[Callable[[str], None]] = None
    ):
        self.logger = get_logger("orchestrator.collaboration")
        self.status_callback = status_callback

        if archive is None and settings.archive_enabled:
            archive = InMemoryArchive()
        self.archive = archive

        self.registry = registry or AgentRegistry()
        for agent in agents or []:
            self.registry.register(agent)

        self.channel = channel or MessageChannel(archive=archive)
        self.context_store = context_store or ContextStore()
        self.consensus_engine = consensus_engine or ConsensusEngine(channel=self.channel, archive=archive)
        self.handoff_coordinator = handoff_coordinator or HandoffCoordinator(archive=archive)

        self.logger.info(f"Collaboration orchestrator initialized with {len(self.registry)} agents")

    def _update_status(self, message: str) -> None:
        """Update status via callback if available."""
        if self.status_callback:
            self.status_callback(message)
        self.logger.info(message)

    # ============================================
    # Agent fan-out
    # ============================================

    async def _run_agent(self, agent: str, context: TaskContext, timeout: Optional[float]) -> AgentOutcome:
        """Run one agent; any failure becomes an AgentFailure marker."""
        try:
            implementation = self.registry.get(agent)
            if timeout is not None:
                return await asyncio.wait_for(implementation.invoke(context), timeout=timeout)
            return await implementation.invoke(context)
        except asyncio.TimeoutError:
            error = AgentTimeoutError(f"Agent {agent} timed out after {timeout}s", agent, timeout)
            self.logger.warning(str(error))
            return AgentFailure.from_exception(agent, error)
        except Exception as e:
            self.logger.warning(f"Agent {agent} failed: {e}")
            return AgentFailure.from_exception(agent, e)

    async def _fan_out(
        self,
        task: str,
        agents: List[str],
        user_context: UserContext,
        session_id: Optional[str],
        timeout: Optional[float],
        shared: Optional[Dict[str, List[Dict[str, Any]]]] = None
    ) -> Dict[str, AgentOutcome]:
        contexts = [
            TaskContext(
                task=task,
                agent_type=agent,
                user_context=user_context,
                session_id=session_id,
                participating_agents=agents,
                shared_context=(shared or {}).get(agent, []),
            )
            for agent in agents
        ]

        if settings.enable_parallel_execution:
            outcomes = await asyncio.gather(
                *(self._run_agent(agent, ctx, timeout) for agent, ctx in zip(agents, contexts)),
                return_exceptions=True
            )
        else:
            outcomes = [await self._run_agent(agent, ctx, timeout) for agent, ctx in zip(agents, contexts)]

        results: Dict[str, AgentOutcome] = {}
        for agent, outcome in zip(agents, outcomes):
            if isinstance(outcome, BaseException):
                outcome = AgentFailure.from_exception(agent, outcome)
            results[agent] = outcome
        return results

    def _timeout(self, requested: Optional[float]) -> Optional[float]:
        """Per-agent limit in seconds; None, whether requested or configured, means no limit."""
        if requested is None:
            return settings.agent_timeout_seconds
        # Zero or negative disables the limit, matching the setting's validator
        return requested if requested > 0 else None

    # ============================================
    # Public API
    # ============================================

    async def orchestrate_task(
        self,
        task: str,
        participants: List[AgentRef],
        user_context: UserContext,
        options: Optional[CollaborationOptions] = None
    ) -> TaskResult:
        """
        Run a task across several agents.

        Args:
            task: The task or question
            participants: Agents asked to contribute
            user_context: Owning user context
            options: Consensus, context sharing, handoff and timeout switches

        Returns:
            TaskResult with a value or error marker per agent

        Raises:
            OrchestrationError: if the orchestration logic itself fails
        """
        options = options or CollaborationOptions()
        agents = list(dict.fromkeys(agent_key(a) for a in participants))
        start_time = time.time()

        session = await self.channel.start_collaboration(agents, task, user_context)
        session_id = session.session_id
        self._update_status(f"Starting collaboration {short_id(session_id)} on: {truncate_text(task, 60)}")

        try:
            with log_context(session_id=session_id, user_id=user_context.user_id):
                async with AsyncPerformanceLogger(self.logger, "orchestrate_task", session_id=session_id):
                    context_id, shared = await self._share_initial_context(session_id, task, agents, user_context,
                                                                           options.share_context)

                    results = await self._fan_out(task, agents, user_context, session_id,
                                                  self._timeout(options.timeout_seconds), shared)

                    for agent, outcome in results.items():
                        if isinstance(outcome, AgentResult):
                            await self.channel.add_to_collaboration(session_id, agent, outcome.content)
                        else:
                            await self.channel.record_result(session_id, agent, outcome.to_dict())

                    consensus = None
                    successful = {a: r for a, r in results.items() if isinstance(r, AgentResult)}
                    if options.require_consensus and successful:
                        self._update_status(f"[{short_id(session_id)}] Building consensus over {len(successful)} contributions")
                        consensus = await self._consensus_over(task, successful, user_context, session_id,
                                                               options.enable_conflict_resolution)

                    handoff = None
                    if options.handoff_to is not None:
                        handoff = await self._handoff(
                            options.handoff_from or (agents[0] if agents else ORCHESTRATOR),
                            options.handoff_to,
                            user_context,
                            session_id,
                            f"Continue with: {task}",
                            {"results": {a: r.content for a, r in successful.items()}},
                        )

                    synthesis = consensus.synthesis if consensus else self.consensus_engine.synthesize(
                        self._perspectives(successful)
                    )
                    synthesized = self._synthesized_response(task, successful, synthesis, consensus)

            quality = collaboration_quality(list(successful.values()), bool(synthesis.key_points))
            final_session = await self.channel.get_collaboration_status(session_id)
            if options.end_session:
                final_session = await self.channel.end_collaboration(
                    session_id, {"synthesized_response": synthesized},
                    consensus.to_dict() if consensus else None
                )

        except Exception as e:
            self.logger.error(f"Collaboration {short_id(session_id)} failed: {e}", exc_info=True)
            await self.channel.fail_collaboration(session_id, str(e))
            raise OrchestrationError(
                f"Orchestration of task failed: {e}",
                session_id=session_id,
                original_exception=e
            ) from e

        total_duration = time.time() - start_time
        result = TaskResult(
            session_id=session_id,
            task=task,
            participating_agents=agents,
            results=results,
            synthesized_response=synthesized,
            status=final_session.status.value,
            quality_score=quality,
            consensus=consensus,
            handoff=handoff,
            context_id=context_id,
            total_duration=total_duration,
            metadata={
                "successful_agents": len(successful),
                "failed_agents": len(results) - len(successful),
                "require_consensus": options.require_consensus,
            },
        )
        self._update_status(
            f"Collaboration {short_id(session_id)} finished: {len(successful)}/{len(agents)} agents "
            f"in {total_duration:.1f}s"
        )
        return result

    async def handle_delegation(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        task: str,
        user_context: UserContext,
        options: Optional[DelegationOptions] = None
    ) -> DelegationResult:
        """Delegate a task to another agent, optionally sharing context and handing over."""
        options = options or DelegationOptions()
        source, target = agent_key(from_agent), agent_key(to_agent)
        user_id = user_context.user_id
        session_id = options.session_id or user_context.session_id

        delegation_id = await self.channel.handle_delegation(
            source, target, task,
            {"user_id": user_id, "current_task": user_context.current_task},
            user_id,
        )

        context_id = None
        shared: List[Dict[str, Any]] = []
        if options.share_context:
            payload = {"task": task, "delegated_by": source, **user_context.relevant_data}
            context_id = await self.context_store.store_context(user_id, session_id, payload, source,
                                                                Relevance.HIGH)
            await self.context_store.share_context(source, target, context_id, user_id, f"Delegation: {task}")
            await self.channel.share_context(source, target, payload, Relevance.HIGH.value, user_id,
                                             context_id=context_id, reason="delegation")
            shared.append(payload)

        handoff = None
        if options.require_handoff:
            handoff = await self._handoff(source, target, user_context, session_id,
                                          f"Handle the delegated task: {task}",
                                          {"delegation_id": delegation_id})

        context = TaskContext(
            task=task,
            agent_type=target,
            user_context=user_context,
            session_id=session_id,
            participating_agents=[source, target],
            shared_context=shared,
            metadata={"delegation_id": delegation_id, "delegated_by": source},
        )
        outcome = await self._run_agent(target, context, self._timeout(options.timeout_seconds))

        if isinstance(outcome, AgentResult):
            await self.channel.handle_result_handoff(
                target, source, delegation_id,
                {**outcome.content, "confidence": outcome.confidence},
                user_id,
            )

        self.logger.info(
            f"Delegation {short_id(delegation_id)} {source} -> {target} "
            f"{'succeeded' if isinstance(outcome, AgentResult) else 'failed'}"
        )
        return DelegationResult(delegation_id, source, target, outcome, context_id, handoff)

    async def build_consensus(
        self,
        decision: str,
        participants: List[AgentRef],
        user_context: UserContext,
        options: Optional[ConsensusOptions] = None
    ) -> ConsensusOutcome:
        """Ask every participant for a perspective on a decision and conclude it."""
        options = options or ConsensusOptions()
        agents = list(dict.fromkeys(agent_key(a) for a in participants))
        session_id = options.session_id or user_context.session_id

        results = await self._fan_out(decision, agents, user_context, session_id,
                                      self._timeout(options.timeout_seconds))
        successful = {a: r for a, r in results.items() if isinstance(r, AgentResult)}
        failures = {a: r for a, r in results.items() if isinstance(r, AgentFailure)}

        outcome = await self._consensus_over(decision, successful, user_context, session_id,
                                             options.enable_conflict_resolution, participants=agents)
        outcome.failures = failures
        return outcome

    async def get_collaboration_analytics(self, user_id: str) -> Dict[str, Any]:
        """Communication, context, consensus and handoff analytics plus an overall view."""
        communication = await self.channel.analyze_collaboration_patterns(user_id)
        context = await self.context_store.get_context_analytics(user_id)
        consensus = await self.consensus_engine.analyze_consensus_patterns(user_id)
        handoffs = await self.handoff_coordinator.analyze_handoff_patterns(user_id)

        rated = [a for a in (communication, consensus, handoffs) if a.get("success_rate") is not None]
        timed = [a["average_duration_minutes"] for a in (communication, consensus, handoffs)]

        return {
            "communication": communication,
            "context": context,
            "consensus": consensus,
            "handoffs": handoffs,
            "overall": {
                "total_interactions": (
                    communication["total_collaborations"] + context["total_contexts"]
                    + consensus["total_sessions"] + handoffs["total_handoffs"]
                ),
                "active_collaborations": len(await self.get_active_collaborations(user_id)),
                "success_rate": sum(a["success_rate"] for a in rated) / len(rated),
                "average_duration_minutes": sum(timed) / len(timed),
                "recommendations": [
                    rec for a in (communication, context, consensus, handoffs) for rec in a["recommendations"]
                ],
            },
        }

    async def get_active_collaborations(self, user_id: Optional[str] = None) -> List[CollaborationSession]:
        return await self.channel.get_active_collaborations(user_id)

    async def end_collaboration(
        self,
        session_id: str,
        final_results: Optional[Dict[str, Any]] = None
    ) -> CollaborationSession:
        """Complete and archive a collaboration session."""
        return await self.channel.end_collaboration(session_id, final_results)

    # ============================================
    # Internals
    # ============================================

    async def _share_initial_context(
        self,
        session_id: str,
        task: str,
        agents: List[str],
        user_context: UserContext,
        enabled: bool
    ):
        if not enabled:
            return None, {}

        user_id = user_context.user_id
        payload = {
            "task": task,
            "user_type": user_context.user_type,
            "current_task": user_context.current_task,
            **user_context.relevant_data,
        }
        context_id = await self.context_store.store_context(user_id, session_id, payload, ORCHESTRATOR,
                                                            Relevance.HIGH)
        shared: Dict[str, List[Dict[str, Any]]] = {}
        for agent in agents:
            await self.context_store.share_context(ORCHESTRATOR, agent, context_id, user_id,
                                                   "Initial collaboration context")
            ranked = await self.context_store.get_relevant_context(user_id, agent, task, max_results=5)
            shared[agent] = [item.entry.payload for item in ranked]
        return context_id, shared

    @staticmethod
    def _perspectives(results: Dict[str, AgentResult]) -> List[Perspective]:
        now = utcnow()
        return [
            Perspective(generate_id("perspective"), agent, result.content, result.confidence, result.reasoning, now)
            for agent, result in results.items()
        ]

    async def _consensus_over(
        self,
        decision: str,
        results: Dict[str, AgentResult],
        user_context: UserContext,
        session_id: Optional[str],
        resolve_conflicts: bool,
        participants: Optional[List[str]] = None
    ) -> ConsensusOutcome:
        engine = self.consensus_engine
        consensus_id = await engine.start_consensus(session_id, participants or list(results), decision,
                                                    user_context)
        for agent, result in results.items():
            await engine.add_perspective(consensus_id, agent, result.content, result.confidence, result.reasoning)

        consensus = await engine.get_consensus_status(consensus_id)
        resolved, overruled = [], set()
        if resolve_conflicts:
            resolved, overruled = await self._auto_resolve(consensus)

        synthesis = await engine.build_synthesis(consensus_id)
        final_decision = synthesis.leading_decision
        if final_decision is None and synthesis.recommendations:
            final_decision = synthesis.recommendations[0]
        if final_decision is None and results:
            final_decision = synthesis.consensus_summary

        consensus = await engine.reach_consensus(consensus_id, final_decision, synthesis.confidence,
                                                 synthesis.consensus_summary)

        if session_id is not None and await self.channel.get_collaboration_status(session_id) is not None:
            for agent in results:
                if agent not in overruled:
                    await self.channel.add_to_collaboration(
                        session_id, agent,
                        {"consensus_id": consensus_id, "final_decision": final_decision},
                        ContributionKind.CONSENSUS,
                    )

        return ConsensusOutcome(
            consensus_id=consensus_id,
            decision=decision,
            final_decision=final_decision,
            confidence=consensus.confidence,
            synthesis=synthesis,
            status=consensus.status.value,
            perspectives=len(consensus.perspectives),
            conflicts=len(consensus.conflicts),
            resolved_conflicts=resolved,
        )

    async def _auto_resolve(self, consensus: ConsensusSession):
        """Resolve active conflicts in favour of the more confident perspective."""
        by_id = {p.id: p for p in consensus.perspectives}
        resolved, overruled = [], set()
        for conflict in list(consensus.active_conflicts):
            first, second = by_id[conflict.perspective_a], by_id[conflict.perspective_b]
            winner, loser = (first, second) if first.confidence >= second.confidence else (second, first)
            await self.consensus_engine.resolve_conflict(
                consensus.id,
                conflict.id,
                {"adopted_agent": winner.agent_type, "adopted": winner.content},
                ORCHESTRATOR,
                f"Adopted the higher-confidence perspective of {winner.agent_type} "
                f"({winner.confidence:.2f} vs {loser.confidence:.2f})",
            )
            resolved.append(conflict.id)
            overruled.add(loser.agent_type)
        return resolved, overruled

    async def _handoff(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        user_context: UserContext,
        session_id: Optional[str],
        reason: str,
        data: Dict[str, Any]
    ) -> HandoffPackage:
        handoff_id = await self.handoff_coordinator.initiate_handoff(
            from_agent, to_agent, user_context.user_id, session_id, reason, user_context, data
        )
        return await self.handoff_coordinator.execute_handoff(handoff_id, from_agent, to_agent)

    @staticmethod
    def _synthesized_response(
        task: str,
        results: Dict[str, AgentResult],
        synthesis: Synthesis,
        consensus: Optional[ConsensusOutcome]
    ) -> Dict[str, Any]:
        return {
            "task": task,
            "summary": synthesis.consensus_summary if results else "No agent produced a result",
            "final_decision": consensus.final_decision if consensus else synthesis.leading_decision,
            "key_points": synthesis.key_points,
            "recommendations": synthesis.recommendations,
            "confidence": synthesis.confidence if results else 0.0,
            "contributions": {agent: result.content for agent, result in results.items()},
        }
