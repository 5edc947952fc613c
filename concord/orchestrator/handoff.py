"""
Handoff Coordinator for Concord.

Plans and executes controlled transitions of a user interaction from one
agent to another. Each handoff captures an immutable snapshot of the recent
conversation at initiation, a transition plan chosen by the agents'
categories, and user-facing messaging.

Expected durations are informational; nothing here enforces them as
timeouts. A handoff only ends early through ``cancel_handoff``.
"""

import asyncio
import copy
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from concord.agents.base import AgentRef, AgentType, UserContext, agent_key
from concord.agents.profiles import display_name, is_co_agent, is_functional_agent
from concord.persistence.archive import ArchiveSink, archive_quietly
from concord.utils.exceptions import (
    HandoffMismatchError,
    HandoffNotFoundError,
    HandoffStateError,
    TemplateNotFoundError,
    ValidationError
)
from concord.utils.helpers import generate_id, merge_dicts, minutes_between, top_counts, utcnow
from concord.utils.logger import HandoffLogger, get_logger
from config import settings


class HandoffStatus(str, Enum):
    INITIATED = "initiated"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransitionCategory(str, Enum):
    """Transition classes that select the handoff plan."""
    CO_TO_FUNCTIONAL = "co_to_functional"
    FUNCTIONAL_TO_CO = "functional_to_co"
    CO_TO_CO = "co_to_co"
    OTHER = "other"


TRANSITION_PLANS: Dict[TransitionCategory, Tuple[Tuple[str, ...], int]] = {
    TransitionCategory.CO_TO_FUNCTIONAL: ((
        "Prepare specialized context for functional agent",
        "Transfer user query and requirements",
        "Provide domain-specific background",
        "Set up monitoring for task completion",
    ), 2),
    TransitionCategory.FUNCTIONAL_TO_CO: ((
        "Synthesize functional agent results",
        "Prepare strategic context for co-agent",
        "Transfer insights and recommendations",
        "Set up for strategic discussion",
    ), 3),
    TransitionCategory.CO_TO_CO: ((
        "Transfer relationship context",
        "Share strategic insights",
        "Maintain personality continuity",
        "Ensure smooth user experience",
    ), 1),
    TransitionCategory.OTHER: ((
        "Transfer task context",
        "Share relevant data",
        "Maintain conversation flow",
        "Ensure task continuity",
    ), 2),
}


def classify_transition(from_agent: AgentRef, to_agent: AgentRef) -> TransitionCategory:
    if is_co_agent(from_agent) and is_functional_agent(to_agent):
        return TransitionCategory.CO_TO_FUNCTIONAL
    if is_functional_agent(from_agent) and is_co_agent(to_agent):
        return TransitionCategory.FUNCTIONAL_TO_CO
    if is_co_agent(from_agent) and is_co_agent(to_agent):
        return TransitionCategory.CO_TO_CO
    return TransitionCategory.OTHER


def template_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class ContextSnapshot(BaseModel):
    """Frozen view of the interaction at the moment a handoff starts."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    user_type: Optional[str] = None
    session_id: Optional[str] = None
    conversation_history: Tuple[Dict[str, Any], ...] = Field(default_factory=tuple)
    relevant_data: Dict[str, Any] = Field(default_factory=dict)
    current_task: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    captured_at: datetime

    @classmethod
    def capture(cls, context: UserContext, window: int, now: datetime) -> "ContextSnapshot":
        history = context.conversation_history[-window:] if window > 0 else []
        return cls(
            user_id=context.user_id,
            user_type=context.user_type,
            session_id=context.session_id,
            conversation_history=tuple(copy.deepcopy(history)),
            relevant_data=copy.deepcopy(context.relevant_data),
            current_task=context.current_task,
            preferences=copy.deepcopy(context.preferences),
            captured_at=now,
        )


@dataclass(frozen=True)
class TransitionPlan:
    from_agent: str
    to_agent: str
    category: TransitionCategory
    steps: Tuple[str, ...]
    estimated_duration_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_agent": self.from_agent,
            "to_agent": self.to_agent,
            "category": self.category.value,
            "steps": list(self.steps),
            "estimated_duration_minutes": self.estimated_duration_minutes,
        }


@dataclass
class Handoff:
    """One planned transition between agents."""
    id: str
    from_agent: str
    to_agent: str
    user_id: str
    session_id: Optional[str]
    reason: str
    context_snapshot: ContextSnapshot
    handoff_data: Dict[str, Any]
    transition_plan: TransitionPlan
    handoff_message: str
    user_notification: str
    start_time: datetime
    status: HandoffStatus = HandoffStatus.INITIATED
    execution_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @property
    def expected_duration(self) -> int:
        return self.transition_plan.estimated_duration_minutes

    def duration_minutes(self) -> Optional[float]:
        if self.completion_time is None:
            return None
        return minutes_between(self.start_time, self.completion_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_agent": self.from_agent,
            "to_agent": self.to_agent,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "reason": self.reason,
            "context_snapshot": self.context_snapshot.model_dump(mode="json"),
            "handoff_data": self.handoff_data,
            "transition_plan": self.transition_plan.to_dict(),
            "handoff_message": self.handoff_message,
            "user_notification": self.user_notification,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "execution_time": self.execution_time.isoformat() if self.execution_time else None,
            "completion_time": self.completion_time.isoformat() if self.completion_time else None,
            "cancellation_reason": self.cancellation_reason,
        }


class HandoffPackage(BaseModel):
    """Everything the receiving agent needs to take over."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    handoff_id: str
    from_agent: str
    to_agent: str
    context: ContextSnapshot
    handoff_data: Dict[str, Any]
    transition_plan: Dict[str, Any]
    message: str
    notification: str
    timestamp: datetime


@dataclass
class HandoffTemplate:
    template_key: str
    from_agent: str
    to_agent: str
    name: str
    payload: Dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)


BUILTIN_TEMPLATES = [
    (AgentType.CO_FOUNDER, AgentType.BUSINESS_ADVISOR, "strategic", {
        "title": "Strategic Analysis",
        "reason": "Detailed business analysis required",
        "context": ["business_plan", "market_analysis", "financial_projections"],
        "expected_outcome": "Comprehensive business assessment",
    }),
    (AgentType.CO_INVESTOR, AgentType.INVESTMENT_ANALYST, "deal", {
        "title": "Deal Analysis",
        "reason": "Detailed investment analysis required",
        "context": ["deal_terms", "financial_model", "market_data"],
        "expected_outcome": "Investment recommendation",
    }),
    (AgentType.CO_BUILDER, AgentType.PROGRAM_MANAGER, "optimization", {
        "title": "Program Optimization",
        "reason": "Program optimization analysis required",
        "context": ["program_metrics", "participant_data", "outcome_analysis"],
        "expected_outcome": "Optimization recommendations",
    }),
]


class HandoffCoordinator:
    """Plans, executes, cancels and reports on agent handoffs."""

    def __init__(
        self,
        archive: Optional[ArchiveSink] = None,
        snapshot_turns: Optional[int] = None,
        history_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.logger = get_logger("orchestrator.handoff")
        self.handoff_logger = HandoffLogger()
        self.archive = archive
        self.snapshot_turns = settings.handoff_snapshot_turns if snapshot_turns is None else snapshot_turns
        self.history_limit = history_limit or settings.handoff_history_limit
        self._clock = clock

        self._handoffs: Dict[str, Handoff] = {}
        self._history: Dict[str, List[Handoff]] = {}
        self._templates: Dict[str, HandoffTemplate] = {}
        self._lock = asyncio.Lock()

        for from_agent, to_agent, name, payload in BUILTIN_TEMPLATES:
            key = self._template_key(from_agent, to_agent, name)
            self._templates[key] = HandoffTemplate(key, agent_key(from_agent), agent_key(to_agent), name, payload)

    def _lookup(self, handoff_id: str) -> Optional[Handoff]:
        """Open handoffs first, then the capped per-user history of finished ones."""
        handoff = self._handoffs.get(handoff_id)
        if handoff is not None:
            return handoff
        for history in self._history.values():
            for finished in history:
                if finished.id == handoff_id:
                    return finished
        return None

    def _require(self, handoff_id: str) -> Handoff:
        handoff = self._lookup(handoff_id)
        if handoff is None:
            raise HandoffNotFoundError(handoff_id)
        return handoff

    # ============================================
    # Planning
    # ============================================

    def plan_transition(self, from_agent: AgentRef, to_agent: AgentRef) -> TransitionPlan:
        category = classify_transition(from_agent, to_agent)
        steps, minutes = TRANSITION_PLANS[category]
        return TransitionPlan(agent_key(from_agent), agent_key(to_agent), category, steps, minutes)

    @staticmethod
    def transition_message(from_agent: AgentRef, to_agent: AgentRef, reason: str) -> str:
        return f"Transitioning from {display_name(from_agent)} to {display_name(to_agent)}. Reason: {reason}"

    @staticmethod
    def user_notification(to_agent: AgentRef, reason: str) -> str:
        target = display_name(to_agent)
        target = f"your {target}" if is_co_agent(to_agent) else f"the {target}"
        return (
            f"I'm connecting you with {target} to {reason.lower()}. "
            f"This will ensure you get the most relevant expertise for your needs."
        )

    # ============================================
    # Lifecycle
    # ============================================

    async def initiate_handoff(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        user_id: str,
        session_id: Optional[str],
        reason: str,
        context: UserContext,
        handoff_data: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Plan a handoff and snapshot the interaction.

        Args:
            from_agent: Agent giving up the interaction
            to_agent: Agent taking it over
            user_id: Owning user
            session_id: Session the handoff belongs to
            reason: Why the handoff happens; shown to the user
            context: Current user context; the last turns are snapshotted
            handoff_data: Extra data passed along unchanged

        Returns:
            The handoff id
        """
        if from_agent is None or to_agent is None:
            raise ValidationError("Both agents are required for a handoff", field_name="agents")

        now = self._clock()
        plan = self.plan_transition(from_agent, to_agent)
        handoff = Handoff(
            id=generate_id("handoff"),
            from_agent=plan.from_agent,
            to_agent=plan.to_agent,
            user_id=user_id,
            session_id=session_id,
            reason=reason,
            context_snapshot=ContextSnapshot.capture(context, self.snapshot_turns, now),
            handoff_data=dict(handoff_data or {}),
            transition_plan=plan,
            handoff_message=self.transition_message(from_agent, to_agent, reason),
            user_notification=self.user_notification(to_agent, reason),
            start_time=now,
        )

        async with self._lock:
            self._handoffs[handoff.id] = handoff
            history = self._history.setdefault(user_id, [])
            history.append(handoff)
            del history[:-self.history_limit]

        self.handoff_logger.log_handoff_initiated(handoff.id, handoff.from_agent, handoff.to_agent,
                                                  plan.category.value)
        return handoff.id

    async def execute_handoff(
        self,
        handoff_id: str,
        from_agent: AgentRef,
        to_agent: AgentRef,
        additional_context: Optional[Dict[str, Any]] = None
    ) -> HandoffPackage:
        """Validate the agents, assemble the package and complete the handoff."""
        async with self._lock:
            handoff = self._require(handoff_id)
            received = (agent_key(from_agent), agent_key(to_agent))
            if received != (handoff.from_agent, handoff.to_agent):
                raise HandoffMismatchError(handoff_id, (handoff.from_agent, handoff.to_agent), received)
            if handoff.status != HandoffStatus.INITIATED:
                raise HandoffStateError(
                    f"Handoff {handoff_id} cannot be executed from status {handoff.status.value}",
                    handoff_id=handoff_id,
                    status=handoff.status.value
                )

            handoff.status = HandoffStatus.EXECUTING
            handoff.execution_time = self._clock()

            package = HandoffPackage(
                handoff_id=handoff.id,
                from_agent=handoff.from_agent,
                to_agent=handoff.to_agent,
                context=handoff.context_snapshot.model_copy(deep=True),
                handoff_data=merge_dicts(handoff.handoff_data, additional_context),
                transition_plan=handoff.transition_plan.to_dict(),
                message=handoff.handoff_message,
                notification=handoff.user_notification,
                timestamp=handoff.execution_time,
            )

            handoff.status = HandoffStatus.COMPLETED
            handoff.completion_time = self._clock()
            # Finished handoffs live on only in the capped history
            self._handoffs.pop(handoff_id, None)

        self.handoff_logger.log_handoff_completed(
            handoff.id, (handoff.completion_time - handoff.start_time).total_seconds()
        )
        await archive_quietly(self.archive, "handoff", handoff.id, handoff.user_id, handoff.to_dict())
        return package

    async def cancel_handoff(self, handoff_id: str, reason: str = "") -> Handoff:
        """Cancel a handoff that has not completed yet."""
        async with self._lock:
            handoff = self._require(handoff_id)
            if handoff.status in (HandoffStatus.COMPLETED, HandoffStatus.CANCELLED):
                raise HandoffStateError(
                    f"Handoff {handoff_id} is already {handoff.status.value}",
                    handoff_id=handoff_id,
                    status=handoff.status.value
                )
            handoff.status = HandoffStatus.CANCELLED
            handoff.cancellation_reason = reason
            handoff.completion_time = self._clock()
            self._handoffs.pop(handoff_id, None)

        self.handoff_logger.log_handoff_cancelled(handoff_id, reason)
        await archive_quietly(self.archive, "handoff", handoff.id, handoff.user_id, handoff.to_dict())
        return handoff

    async def get_handoff_status(self, handoff_id: str) -> Optional[Handoff]:
        return self._lookup(handoff_id)

    async def get_handoff_history(self, user_id: str) -> List[Handoff]:
        return list(self._history.get(user_id, []))

    # ============================================
    # Templates
    # ============================================

    @staticmethod
    def _template_key(from_agent: AgentRef, to_agent: AgentRef, name: str) -> str:
        return f"{agent_key(from_agent)}_to_{agent_key(to_agent)}_{template_slug(name)}"

    async def create_handoff_template(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        name: str,
        payload: Dict[str, Any]
    ) -> str:
        """Register a reusable handoff shape and return its key."""
        if not template_slug(name):
            raise ValidationError("Template name must contain letters or digits", field_name="name")
        key = self._template_key(from_agent, to_agent, name)
        async with self._lock:
            self._templates[key] = HandoffTemplate(
                key, agent_key(from_agent), agent_key(to_agent), name, copy.deepcopy(payload),
                created_at=self._clock()
            )
        self.logger.info(f"Registered handoff template {key}")
        return key

    async def get_handoff_template(self, template_key: str) -> HandoffTemplate:
        template = self._templates.get(template_key)
        if template is None:
            raise TemplateNotFoundError(template_key)
        return template

    async def list_handoff_templates(self) -> List[HandoffTemplate]:
        return list(self._templates.values())

    async def use_handoff_template(
        self,
        template_key: str,
        user_id: str,
        session_id: Optional[str],
        context: UserContext
    ) -> str:
        """Initiate a handoff from a registered template."""
        template = await self.get_handoff_template(template_key)
        title = template.payload.get("title", template.name)
        reason = template.payload.get("reason") or f"Using template: {title}"

        return await self.initiate_handoff(
            template.from_agent,
            template.to_agent,
            user_id,
            session_id,
            reason,
            context,
            {**copy.deepcopy(template.payload), "template_key": template_key},
        )

    # ============================================
    # Reporting
    # ============================================

    async def analyze_handoff_patterns(self, user_id: str) -> Dict[str, Any]:
        """Success rate, duration, common transitions and reasons for a user."""
        history = await self.get_handoff_history(user_id)
        completed = [h for h in history if h.status == HandoffStatus.COMPLETED]
        durations = [h.duration_minutes() for h in completed]

        analytics = {
            "total_handoffs": len(history),
            "success_rate": len(completed) / len(history) if history else 0.0,
            "average_duration_minutes": sum(durations) / len(durations) if durations else 0.0,
            "common_transitions": [
                {"transition": transition, "count": count}
                for transition, count in top_counts((f"{h.from_agent}->{h.to_agent}" for h in history), 5)
            ],
            "common_reasons": [
                {"reason": reason, "count": count}
                for reason, count in top_counts((h.reason for h in history), 5)
            ],
            "cancelled": sum(1 for h in history if h.status == HandoffStatus.CANCELLED),
        }
        analytics["recommendations"] = self._recommendations(analytics)
        return analytics

    @staticmethod
    def _recommendations(analytics: Dict[str, Any]) -> List[str]:
        recommendations = []
        if analytics["total_handoffs"] and analytics["success_rate"] < 0.8:
            recommendations.append("Improve handoff completion rate")
        if analytics["average_duration_minutes"] > 5:
            recommendations.append("Streamline handoff processes to reduce transition time")
        if analytics["total_handoffs"] > 10:
            recommendations.append("Review frequent transitions for agents that could be consulted directly")
        return recommendations
