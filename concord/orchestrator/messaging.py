"""
Message Channel for Concord.

Per-recipient mailboxes with priority and recency ordering, collaboration
sessions that track each participant's contributions, and a per-user
collaboration history used for pattern analytics.

Mailbox reads are a stable total order: priority (high first), then
timestamp (newest first), then insertion sequence (earliest first).
"""

import asyncio
import itertools
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Callable, Deque, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from concord.agents.base import AgentRef, AgentType, UserContext, agent_key
from concord.persistence.archive import ArchiveSink, archive_quietly
from concord.utils.exceptions import CollaborationNotFoundError, ValidationError
from concord.utils.helpers import generate_id, is_number, minutes_between, short_id, top_counts, utcnow
from concord.utils.logger import get_logger, log_collaboration_event
from config import settings


class MessageKind(str, Enum):
    """Kinds of inter-agent messages."""
    DELEGATION = "delegation"
    CONTEXT_SHARE = "context_share"
    RESULT_HANDOFF = "result_handoff"
    COLLABORATION = "collaboration"


class MessagePriority(str, Enum):
    """Mailbox priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    MessagePriority.HIGH: 3,
    MessagePriority.MEDIUM: 2,
    MessagePriority.LOW: 1,
}


class CollaborationStatus(str, Enum):
    """Lifecycle of a collaboration session."""
    ACTIVE = "active"
    READY_FOR_SYNTHESIS = "ready_for_synthesis"
    CONSENSUS_REACHED = "consensus_reached"
    COMPLETED = "completed"
    FAILED = "failed"


_STATUS_ORDER = {
    CollaborationStatus.ACTIVE: 0,
    CollaborationStatus.READY_FOR_SYNTHESIS: 1,
    CollaborationStatus.CONSENSUS_REACHED: 2,
    CollaborationStatus.COMPLETED: 3,
    CollaborationStatus.FAILED: 3,
}


class ContributionKind(str, Enum):
    """Kinds of entries agents add to a collaboration session."""
    CONTRIBUTION = "contribution"
    QUESTION = "question"
    CONSENSUS = "consensus"
    DISAGREEMENT = "disagreement"


# ============================================
# Message payloads
# ============================================

class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")


class DelegationPayload(_Payload):
    """A task delegated from one agent to another."""
    kind: Literal["delegation"] = "delegation"
    delegation_id: str = Field(description="Delegation identifier")
    task: str = Field(description="Delegated task")
    context: Dict[str, Any] = Field(default_factory=dict)
    requirements: Dict[str, Any] = Field(default_factory=dict)
    deadline: Optional[datetime] = Field(None, description="When the result is expected")
    expected_format: str = Field(default="structured_response")


class ContextSharePayload(_Payload):
    """Context pushed to another agent."""
    kind: Literal["context_share"] = "context_share"
    context: Dict[str, Any] = Field(default_factory=dict)
    context_id: Optional[str] = Field(None, description="Context store entry, when shared by reference")
    relevance: str = Field(default="medium")
    reason: str = Field(default="")


class ResultHandoffPayload(_Payload):
    """Results returned to the delegating agent."""
    kind: Literal["result_handoff"] = "result_handoff"
    delegation_id: Optional[str] = Field(None)
    results: Dict[str, Any] = Field(default_factory=dict)
    summary: str = Field(default="")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    recommendations: List[str] = Field(default_factory=list)


class CollaborationPayload(_Payload):
    """Collaboration session traffic: invitations and contributions."""
    kind: Literal["collaboration"] = "collaboration"
    session_id: Optional[str] = Field(None)
    event: str = Field(default="contribution")
    task: Optional[str] = Field(None)
    content: Dict[str, Any] = Field(default_factory=dict)


MessagePayload = Annotated[
    Union[DelegationPayload, ContextSharePayload, ResultHandoffPayload, CollaborationPayload],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter = TypeAdapter(MessagePayload)


class Message(BaseModel):
    """An immutable message owned by its recipient's mailbox."""
    model_config = ConfigDict(frozen=True)

    message_id: str
    from_agent: str
    to_agent: str
    kind: MessageKind
    payload: MessagePayload
    priority: MessagePriority
    timestamp: datetime
    sequence: int
    scope_key: Optional[str] = None

    def sort_key(self) -> Tuple[int, float, int]:
        return (-self.priority.rank, -self.timestamp.timestamp(), self.sequence)


@dataclass
class CollaborationEntry:
    """One agent's addition to a collaboration session."""
    agent: str
    kind: ContributionKind
    content: Any
    timestamp: datetime


@dataclass
class CollaborationSession:
    """A task being worked on by several agents."""
    session_id: str
    user_id: str
    participating_agents: List[str]
    task: str
    status: CollaborationStatus = CollaborationStatus.ACTIVE
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    messages: List[CollaborationEntry] = field(default_factory=list)
    results: Dict[str, Any] = field(default_factory=dict)
    consensus: Optional[Dict[str, Any]] = None
    user_context: Optional[UserContext] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (CollaborationStatus.COMPLETED, CollaborationStatus.FAILED)

    def duration_minutes(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return minutes_between(self.start_time, self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "participating_agents": list(self.participating_agents),
            "task": self.task,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "messages": [
                {
                    "agent": entry.agent,
                    "kind": entry.kind.value,
                    "content": entry.content,
                    "timestamp": entry.timestamp.isoformat(),
                }
                for entry in self.messages
            ],
            "results": self.results,
            "consensus": self.consensus,
            "error": self.error,
        }


_URGENT = re.compile(r"urgent|asap|critical|immediate", re.IGNORECASE)
_SOON = re.compile(r"soon|timeline|schedule", re.IGNORECASE)
_FORMATS = [
    (re.compile(r"report|analysis|summary", re.IGNORECASE), "detailed_report"),
    (re.compile(r"chart|graph|visualization", re.IGNORECASE), "visual"),
    (re.compile(r"list|inventory|catalog", re.IGNORECASE), "structured_list"),
]


def assess_urgency(task: str) -> str:
    if _URGENT.search(task):
        return "high"
    if _SOON.search(task):
        return "medium"
    return "low"


def delegation_deadline(task: str, now: datetime) -> datetime:
    """30 minutes for urgent work, 2 hours for scheduled work, otherwise a day."""
    urgency = assess_urgency(task)
    if urgency == "high":
        return now + timedelta(minutes=30)
    if urgency == "medium":
        return now + timedelta(hours=2)
    return now + timedelta(hours=24)


def expected_format(task: str) -> str:
    for pattern, fmt in _FORMATS:
        if pattern.search(task):
            return fmt
    return "structured_response"


class MessageChannel:
    """
    Mailboxes, collaboration sessions and collaboration history.

    A mailbox is keyed by recipient and an optional scope key (the user id),
    so two users' traffic to the same agent never mixes. Every scoped send
    is also appended to that user's bounded collaboration history.
    """

    def __init__(
        self,
        history_limit: Optional[int] = None,
        consensus_ratio: Optional[float] = None,
        archive: Optional[ArchiveSink] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.logger = get_logger("orchestrator.messaging")
        self.history_limit = history_limit or settings.message_history_limit
        self.consensus_ratio = settings.collaboration_consensus_ratio if consensus_ratio is None else consensus_ratio
        self.archive = archive
        self._clock = clock

        self._mailboxes: Dict[Tuple[str, Optional[str]], List[Message]] = {}
        self._history: Dict[str, Deque[Message]] = {}
        self._sessions: Dict[str, CollaborationSession] = {}
        self._finished: Dict[str, Deque[CollaborationSession]] = {}
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

    # ============================================
    # Mailboxes
    # ============================================

    def _build_payload(self, kind: MessageKind, payload: Any) -> BaseModel:
        if isinstance(payload, BaseModel):
            if getattr(payload, "kind", None) != kind.value:
                raise ValidationError(
                    f"Payload kind {getattr(payload, 'kind', None)!r} does not match message kind {kind.value!r}",
                    field_name="payload"
                )
            return payload
        if not isinstance(payload, dict):
            raise ValidationError("Message payload must be a mapping or payload model", field_name="payload")
        try:
            return _payload_adapter.validate_python({**payload, "kind": kind.value})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {kind.value} payload: {e}", field_name="payload",
                                  original_exception=e) from e

    async def send(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        kind: Union[MessageKind, str],
        payload: Any,
        priority: Union[MessagePriority, str] = MessagePriority.MEDIUM,
        scope_key: Optional[str] = None
    ) -> str:
        """
        Deliver a message to a recipient's mailbox.

        Args:
            from_agent: Sending agent
            to_agent: Receiving agent; its mailbox owns the message
            kind: Message kind, selects the payload model
            payload: Mapping or payload model
            priority: Mailbox priority
            scope_key: User id partitioning the mailbox and history

        Returns:
            The new message id
        """
        kind = MessageKind(kind)
        priority = MessagePriority(priority)
        body = self._build_payload(kind, payload)

        async with self._lock:
            message = Message(
                message_id=generate_id("msg"),
                from_agent=agent_key(from_agent),
                to_agent=agent_key(to_agent),
                kind=kind,
                payload=body,
                priority=priority,
                timestamp=self._clock(),
                sequence=next(self._sequence),
                scope_key=scope_key,
            )
            self._mailboxes.setdefault((message.to_agent, scope_key), []).append(message)

            if scope_key is not None:
                history = self._history.get(scope_key)
                if history is None:
                    history = self._history[scope_key] = deque(maxlen=self.history_limit)
                history.append(message)

        self.logger.debug(
            f"Message {short_id(message.message_id)} {message.from_agent} -> {message.to_agent} "
            f"({kind.value}, {priority.value})"
        )
        return message.message_id

    async def receive(
        self,
        agent: AgentRef,
        scope_key: Optional[str] = None,
        kind: Optional[Union[MessageKind, str]] = None,
        consume: bool = False
    ) -> List[Message]:
        """Messages in an agent's mailbox, in priority/recency/insertion order."""
        key = (agent_key(agent), scope_key)
        kind = MessageKind(kind) if kind is not None else None

        async with self._lock:
            mailbox = self._mailboxes.get(key, [])
            selected = [m for m in mailbox if kind is None or m.kind == kind]
            if consume and selected:
                taken = {m.message_id for m in selected}
                remaining = [m for m in mailbox if m.message_id not in taken]
                if remaining:
                    self._mailboxes[key] = remaining
                else:
                    self._mailboxes.pop(key, None)

        return sorted(selected, key=Message.sort_key)

    def pending_count(self, agent: AgentRef, scope_key: Optional[str] = None) -> int:
        return len(self._mailboxes.get((agent_key(agent), scope_key), []))

    async def get_collaboration_history(self, user_id: str) -> List[Message]:
        """The user's scoped messages, oldest first, bounded to the history limit."""
        return list(self._history.get(user_id, ()))

    # ============================================
    # Delegation helpers
    # ============================================

    async def handle_delegation(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        task: str,
        context: Optional[Dict[str, Any]],
        user_id: str
    ) -> str:
        """Send a high-priority delegation and return its delegation id."""
        delegation_id = generate_id("delegation")
        deadline = delegation_deadline(task, self._clock())

        await self.send(
            from_agent,
            to_agent,
            MessageKind.DELEGATION,
            DelegationPayload(
                delegation_id=delegation_id,
                task=task,
                context=context or {},
                requirements={
                    "accuracy": "high",
                    "format": "structured",
                    "include_sources": True,
                    "urgency": assess_urgency(task),
                },
                deadline=deadline,
                expected_format=expected_format(task),
            ),
            MessagePriority.HIGH,
            user_id,
        )
        return delegation_id

    async def handle_result_handoff(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        delegation_id: Optional[str],
        results: Dict[str, Any],
        user_id: str
    ) -> str:
        """Return delegated results with a summary, confidence and recommendations."""
        confidence = results.get("confidence")
        recommendations = results.get("recommendations") or []
        if not isinstance(recommendations, list):
            recommendations = [recommendations]

        return await self.send(
            from_agent,
            to_agent,
            MessageKind.RESULT_HANDOFF,
            ResultHandoffPayload(
                delegation_id=delegation_id,
                results=results,
                summary=str(results.get("summary") or "Analysis completed successfully"),
                confidence=min(max(float(confidence), 0.0), 1.0) if is_number(confidence) else 0.8,
                recommendations=[
                    str(r.get("description", r)) if isinstance(r, dict) else str(r)
                    for r in recommendations
                ],
            ),
            MessagePriority.HIGH,
            user_id,
        )

    async def share_context(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        context: Dict[str, Any],
        relevance: str,
        user_id: str,
        context_id: Optional[str] = None,
        reason: str = ""
    ) -> str:
        """Push context to another agent; high relevance goes out as high priority."""
        return await self.send(
            from_agent,
            to_agent,
            MessageKind.CONTEXT_SHARE,
            ContextSharePayload(context=context, context_id=context_id, relevance=relevance, reason=reason),
            MessagePriority.HIGH if relevance == "high" else MessagePriority.MEDIUM,
            user_id,
        )

    # ============================================
    # Collaboration sessions
    # ============================================

    async def start_collaboration(
        self,
        participants: List[AgentRef],
        task: str,
        user_context: UserContext,
        session_id: Optional[str] = None
    ) -> CollaborationSession:
        """Open a collaboration session and invite every participant."""
        agents = list(dict.fromkeys(agent_key(a) for a in participants))
        session = CollaborationSession(
            session_id=session_id or generate_id("collab"),
            user_id=user_context.user_id,
            participating_agents=agents,
            task=task,
            start_time=self._clock(),
            user_context=user_context,
        )

        async with self._lock:
            self._sessions[session.session_id] = session

        for agent in agents:
            await self.send(
                AgentType.PLATFORM_ORCHESTRATOR,
                agent,
                MessageKind.COLLABORATION,
                CollaborationPayload(
                    session_id=session.session_id,
                    event="invitation",
                    task=task,
                    content={"participants": agents},
                ),
                MessagePriority.HIGH,
                user_context.user_id,
            )

        log_collaboration_event("session_started", {
            "session_id": session.session_id,
            "participants": agents,
        })
        self.logger.info(f"Collaboration {short_id(session.session_id)} started with {len(agents)} agents")
        return session

    def _session(self, session_id: str) -> CollaborationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise CollaborationNotFoundError(session_id)
        return session

    def _advance(self, session: CollaborationSession, status: CollaborationStatus) -> None:
        if _STATUS_ORDER[status] > _STATUS_ORDER[session.status]:
            session.status = status

    async def add_to_collaboration(
        self,
        session_id: str,
        agent: AgentRef,
        content: Any,
        kind: Union[ContributionKind, str] = ContributionKind.CONTRIBUTION
    ) -> CollaborationSession:
        """Record an agent's contribution, question, agreement or disagreement."""
        kind = ContributionKind(kind)
        key = agent_key(agent)

        async with self._lock:
            session = self._session(session_id)
            session.messages.append(CollaborationEntry(agent=key, kind=kind, content=content,
                                                       timestamp=self._clock()))
            if kind == ContributionKind.CONTRIBUTION:
                session.results[key] = content
            self._refresh_status(session)

        return session

    async def record_result(self, session_id: str, agent: AgentRef, result: Any) -> None:
        """Store a result slot without counting it as a contribution."""
        async with self._lock:
            self._session(session_id).results[agent_key(agent)] = result

    def _refresh_status(self, session: CollaborationSession) -> None:
        participants = len(session.participating_agents)
        if participants == 0:
            return

        consensus_votes = len({e.agent for e in session.messages if e.kind == ContributionKind.CONSENSUS})
        contributors = len({e.agent for e in session.messages if e.kind == ContributionKind.CONTRIBUTION})

        if consensus_votes >= participants * self.consensus_ratio:
            self._advance(session, CollaborationStatus.CONSENSUS_REACHED)
        elif contributors >= participants:
            self._advance(session, CollaborationStatus.READY_FOR_SYNTHESIS)

    async def get_collaboration_status(self, session_id: str) -> Optional[CollaborationSession]:
        return self._sessions.get(session_id)

    async def get_active_collaborations(self, user_id: Optional[str] = None) -> List[CollaborationSession]:
        return [
            session for session in self._sessions.values()
            if user_id is None or session.user_id == user_id
        ]

    async def end_collaboration(
        self,
        session_id: str,
        final_results: Optional[Dict[str, Any]] = None,
        consensus: Optional[Dict[str, Any]] = None
    ) -> CollaborationSession:
        """Complete a session, archive it and drop it from the active set."""
        return await self._finish(session_id, CollaborationStatus.COMPLETED, final_results, consensus)

    async def fail_collaboration(self, session_id: str, error: str) -> CollaborationSession:
        """Mark a session failed, archive it and drop it from the active set."""
        return await self._finish(session_id, CollaborationStatus.FAILED, error=error)

    async def _finish(
        self,
        session_id: str,
        status: CollaborationStatus,
        final_results: Optional[Dict[str, Any]] = None,
        consensus: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None
    ) -> CollaborationSession:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                raise CollaborationNotFoundError(session_id)
            session.status = status
            session.end_time = self._clock()
            if final_results:
                session.results.update(final_results)
            if consensus is not None:
                session.consensus = consensus
            session.error = error
            finished = self._finished.get(session.user_id)
            if finished is None:
                finished = self._finished[session.user_id] = deque(maxlen=self.history_limit)
            finished.append(session)

        await archive_quietly(self.archive, "collaboration", session.session_id, session.user_id,
                              session.to_dict())

        log_collaboration_event(f"session_{status.value}", {"session_id": session.session_id})
        self.logger.info(f"Collaboration {short_id(session.session_id)} {status.value}")
        return session

    # ============================================
    # Analytics
    # ============================================

    async def analyze_collaboration_patterns(self, user_id: str) -> Dict[str, Any]:
        """Activity, task mix and success figures from a user's history."""
        history = await self.get_collaboration_history(user_id)
        finished = list(self._finished.get(user_id, ()))

        handoffs = [m for m in history if m.kind == MessageKind.RESULT_HANDOFF]
        successful = [
            m for m in handoffs
            if m.payload.confidence > settings.result_success_confidence
        ]
        durations = [s.duration_minutes() for s in finished if s.end_time is not None]

        tasks = [getattr(m.payload, "task", None) or "general" for m in history]

        analytics = {
            "total_collaborations": len(history),
            "most_active_agents": [
                {"agent": agent, "count": count}
                for agent, count in top_counts((m.from_agent for m in history), 5)
            ],
            "common_tasks": [task for task, _ in top_counts(tasks, 5)],
            "success_rate": len(successful) / len(history) if history else 0.0,
            "average_duration_minutes": sum(durations) / len(durations) if durations else 0.0,
            "completed_sessions": sum(1 for s in finished if s.status == CollaborationStatus.COMPLETED),
            "failed_sessions": sum(1 for s in finished if s.status == CollaborationStatus.FAILED),
        }
        analytics["recommendations"] = self._recommendations(analytics)
        return analytics

    def _recommendations(self, analytics: Dict[str, Any]) -> List[str]:
        recommendations = []
        if analytics["total_collaborations"] == 0:
            return ["Start a collaboration to build up history"]
        if analytics["success_rate"] < 0.5:
            recommendations.append("Improve result quality before handing results back")
        if analytics["failed_sessions"] > analytics["completed_sessions"]:
            recommendations.append("Review failing collaborations for orchestration errors")
        if len(analytics["most_active_agents"]) == 1:
            recommendations.append("Involve more agents to broaden perspectives")
        return recommendations
