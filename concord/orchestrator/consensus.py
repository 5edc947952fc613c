"""
Consensus Engine for Concord.

Collects independent perspectives from agents on one decision, detects
conflicts between them, tracks the session through its status machine and
synthesizes a confidence-weighted resolution.

Status flow::

    active -> gathering_perspectives <-> conflict_resolution_needed
           -> ready_for_synthesis -> synthesized -> completed

The middle three states may oscillate as perspectives arrive and conflicts
are resolved; ``synthesized`` and ``completed`` are never left.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from concord.agents.base import AgentRef, AgentType, UserContext, agent_key
from concord.persistence.archive import ArchiveSink, archive_quietly
from concord.utils.exceptions import ConflictNotFoundError, ConsensusNotFoundError, ConsensusStateError, ValidationError
from concord.utils.helpers import (
    calculate_text_similarity,
    generate_id,
    is_number,
    minutes_between,
    serialize_payload,
    short_id,
    token_set,
    top_counts,
    utcnow
)
from concord.utils.logger import ConsensusLogger, get_logger
from config import settings

KEY_FIELDS = ("recommendation", "decision", "conclusion")
NUMERIC_FIELDS = ("score", "rating", "probability", "confidence")


class ConsensusStatus(str, Enum):
    """Lifecycle of a consensus session."""
    ACTIVE = "active"
    GATHERING_PERSPECTIVES = "gathering_perspectives"
    CONFLICT_RESOLUTION_NEEDED = "conflict_resolution_needed"
    READY_FOR_SYNTHESIS = "ready_for_synthesis"
    SYNTHESIZED = "synthesized"
    COMPLETED = "completed"


class ConflictKind(str, Enum):
    """Why two perspectives conflict."""
    DIRECT_CONTRADICTION = "direct_contradiction"
    SIGNIFICANT_DIFFERENCE = "significant_difference"
    CONFIDENCE_MISMATCH = "confidence_mismatch"
    GENERAL_DISAGREEMENT = "general_disagreement"


CONFLICT_DESCRIPTIONS = {
    ConflictKind.DIRECT_CONTRADICTION: "Agents have directly contradictory recommendations",
    ConflictKind.SIGNIFICANT_DIFFERENCE: "Agents have significantly different assessments",
    ConflictKind.CONFIDENCE_MISMATCH: "Agents have very different confidence levels",
    ConflictKind.GENERAL_DISAGREEMENT: "Agents have general disagreement on the approach",
}


class ConflictStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class ConsensusLabel(str, Enum):
    """How broadly the perspectives agree."""
    STRONG = "strong"
    MODERATE = "moderate"
    LIMITED = "limited"


CONSENSUS_SUMMARIES = {
    ConsensusLabel.STRONG: "Strong consensus across all agents",
    ConsensusLabel.MODERATE: "Moderate consensus with some disagreement",
    ConsensusLabel.LIMITED: "Limited consensus with significant disagreement",
}


@dataclass
class Perspective:
    """One agent's independent judgment on the decision."""
    id: str
    agent_type: str
    content: Dict[str, Any]
    confidence: float
    reasoning: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_type": self.agent_type,
            "content": self.content,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConflictResolution:
    resolution: Any
    resolving_agent: str
    reasoning: str
    timestamp: datetime


@dataclass
class Conflict:
    """A recorded disagreement between two perspectives."""
    id: str
    perspective_a: str
    perspective_b: str
    agent_a: str
    agent_b: str
    severity: float
    kind: ConflictKind
    description: str
    timestamp: datetime
    status: ConflictStatus = ConflictStatus.ACTIVE
    resolution: Optional[ConflictResolution] = None

    @property
    def is_active(self) -> bool:
        return self.status == ConflictStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "perspective_a": self.perspective_a,
            "perspective_b": self.perspective_b,
            "agents": [self.agent_a, self.agent_b],
            "severity": self.severity,
            "kind": self.kind.value,
            "description": self.description,
            "status": self.status.value,
            "resolution": None if self.resolution is None else {
                "resolution": self.resolution.resolution,
                "resolving_agent": self.resolution.resolving_agent,
                "reasoning": self.resolution.reasoning,
                "timestamp": self.resolution.timestamp.isoformat(),
            },
        }


@dataclass
class Synthesis:
    """Aggregated, confidence-weighted view of all perspectives."""
    key_points: List[str]
    recommendations: List[str]
    consensus_label: ConsensusLabel
    confidence: float
    agreement_level: float
    areas_of_agreement: List[str]
    areas_of_disagreement: List[str]
    leading_decision: Optional[Any] = None
    perspective_count: int = 0

    @property
    def consensus_summary(self) -> str:
        return CONSENSUS_SUMMARIES[self.consensus_label]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_points": self.key_points,
            "recommendations": self.recommendations,
            "consensus": self.consensus_label.value,
            "consensus_summary": self.consensus_summary,
            "confidence": self.confidence,
            "agreement_level": self.agreement_level,
            "areas_of_agreement": self.areas_of_agreement,
            "areas_of_disagreement": self.areas_of_disagreement,
            "leading_decision": self.leading_decision,
            "perspective_count": self.perspective_count,
        }


@dataclass
class ConsensusSession:
    """One decision being consensed."""
    id: str
    session_id: Optional[str]
    user_id: Optional[str]
    participating_agents: List[str]
    decision: str
    context: Dict[str, Any]
    start_time: datetime
    perspectives: List[Perspective] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    status: ConsensusStatus = ConsensusStatus.ACTIVE
    synthesis: Optional[Synthesis] = None
    final_decision: Optional[Any] = None
    final_reasoning: Optional[str] = None
    confidence: float = 0.0
    end_time: Optional[datetime] = None

    @property
    def active_conflicts(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.is_active]

    def current_perspectives(self) -> List[Perspective]:
        """Latest perspective per agent, in first-submission order."""
        latest: Dict[str, Perspective] = {}
        for perspective in self.perspectives:
            latest[perspective.agent_type] = perspective
        return list(latest.values())

    def duration_minutes(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return minutes_between(self.start_time, self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "participating_agents": self.participating_agents,
            "decision": self.decision,
            "context": self.context,
            "perspectives": [p.to_dict() for p in self.perspectives],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "status": self.status.value,
            "synthesis": self.synthesis.to_dict() if self.synthesis else None,
            "final_decision": self.final_decision,
            "final_reasoning": self.final_reasoning,
            "confidence": self.confidence,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class ConsensusEngine:
    """
    Multi-round perspective gathering and synthesis.

    Thresholds default to the configured settings and may be overridden per
    engine; nothing here assumes they are empirically tuned.
    """

    def __init__(
        self,
        channel: Optional[Any] = None,
        archive: Optional[ArchiveSink] = None,
        contradiction_level: Optional[float] = None,
        difference_level: Optional[float] = None,
        confidence_gap_level: Optional[float] = None,
        conflict_threshold: Optional[float] = None,
        numeric_tolerance: Optional[float] = None,
        confidence_gap: Optional[float] = None,
        high_confidence: Optional[float] = None,
        agreement_ratio: Optional[float] = None,
        history_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.logger = get_logger("orchestrator.consensus")
        self.consensus_logger = ConsensusLogger()
        self.channel = channel
        self.archive = archive
        self._clock = clock

        def pick(value, default):
            return default if value is None else value

        self.contradiction_level = pick(contradiction_level, settings.consensus_contradiction_level)
        self.difference_level = pick(difference_level, settings.consensus_difference_level)
        self.confidence_gap_level = pick(confidence_gap_level, settings.consensus_confidence_gap_level)
        self.conflict_threshold = pick(conflict_threshold, settings.consensus_conflict_threshold)
        self.numeric_tolerance = pick(numeric_tolerance, settings.consensus_numeric_tolerance)
        self.confidence_gap = pick(confidence_gap, settings.consensus_confidence_gap)
        self.high_confidence = pick(high_confidence, settings.consensus_high_confidence)
        self.agreement_ratio = pick(agreement_ratio, settings.consensus_agreement_ratio)
        self.history_limit = pick(history_limit, settings.consensus_history_limit)

        self._sessions: Dict[str, ConsensusSession] = {}
        self._history: Dict[str, List[ConsensusSession]] = {}
        self._lock = asyncio.Lock()

    def _lookup(self, consensus_id: str) -> Optional[ConsensusSession]:
        """Open sessions first, then the capped per-user history of completed ones."""
        session = self._sessions.get(consensus_id)
        if session is not None:
            return session
        for history in self._history.values():
            for completed in history:
                if completed.id == consensus_id:
                    return completed
        return None

    def _require(self, consensus_id: str) -> ConsensusSession:
        session = self._lookup(consensus_id)
        if session is None:
            raise ConsensusNotFoundError(consensus_id)
        return session

    # ============================================
    # Session lifecycle
    # ============================================

    async def start_consensus(
        self,
        session_id: Optional[str],
        participants: List[AgentRef],
        decision: str,
        context: Union[UserContext, Dict[str, Any], None] = None
    ) -> str:
        """
        Open a consensus session for a decision.

        Args:
            session_id: Collaboration session the decision belongs to
            participants: Agents expected to submit perspectives
            decision: The question being decided
            context: User context (model or mapping carrying ``user_id``)

        Returns:
            The consensus id
        """
        if isinstance(context, UserContext):
            user_id = context.user_id
            context_data = context.model_dump(mode="json")
        else:
            context_data = dict(context or {})
            user_id = context_data.get("user_id")

        agents = list(dict.fromkeys(agent_key(a) for a in participants))
        session = ConsensusSession(
            id=generate_id("consensus"),
            session_id=session_id,
            user_id=user_id,
            participating_agents=agents,
            decision=decision,
            context=context_data,
            start_time=self._clock(),
        )

        async with self._lock:
            self._sessions[session.id] = session

        self.consensus_logger.log_consensus_start(session.id, decision, agents)
        await self._notify_participants(session)
        return session.id

    async def _notify_participants(self, session: ConsensusSession) -> None:
        """Best-effort notification; delivery failures are logged and dropped."""
        if self.channel is None:
            self.logger.debug(f"No channel attached; participants of {short_id(session.id)} not notified")
            return

        for agent in session.participating_agents:
            try:
                await self.channel.send(
                    AgentType.PLATFORM_ORCHESTRATOR,
                    agent,
                    "collaboration",
                    {
                        "session_id": session.session_id,
                        "event": "consensus_request",
                        "task": session.decision,
                        "content": {"consensus_id": session.id, "participants": session.participating_agents},
                    },
                    "high",
                    session.user_id,
                )
            except Exception as e:
                self.logger.warning(f"Could not notify {agent} about consensus {short_id(session.id)}: {e}")

    async def add_perspective(
        self,
        consensus_id: str,
        agent: AgentRef,
        content: Dict[str, Any],
        confidence: float,
        reasoning: str = ""
    ) -> Perspective:
        """Add a perspective, record any conflicts with earlier ones and refresh status."""
        if not isinstance(content, dict):
            raise ValidationError("Perspective content must be a mapping", field_name="content")
        if not is_number(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValidationError("Perspective confidence must be within [0, 1]", field_name="confidence")

        async with self._lock:
            session = self._require(consensus_id)
            if session.status in (ConsensusStatus.SYNTHESIZED, ConsensusStatus.COMPLETED):
                raise ConsensusStateError(
                    f"Consensus {consensus_id} no longer accepts perspectives",
                    consensus_id=consensus_id,
                    status=session.status.value
                )

            perspective = Perspective(
                id=generate_id("perspective"),
                agent_type=agent_key(agent),
                content=dict(content),
                confidence=float(confidence),
                reasoning=reasoning,
                timestamp=self._clock(),
            )

            # The new perspective is compared once against the latest perspective of every other agent
            new_conflicts = []
            for existing in session.current_perspectives():
                if existing.agent_type == perspective.agent_type:
                    continue
                conflict = self._detect_conflict(existing, perspective)
                if conflict is not None:
                    new_conflicts.append(conflict)

            # Open conflicts against an agent's superseded perspective no longer apply
            superseded = {p.id for p in session.perspectives if p.agent_type == perspective.agent_type}
            if superseded:
                session.conflicts = [
                    c for c in session.conflicts
                    if not (c.is_active and (c.perspective_a in superseded or c.perspective_b in superseded))
                ]

            session.perspectives.append(perspective)
            session.conflicts.extend(new_conflicts)
            self._refresh_status(session)

        for conflict in new_conflicts:
            self.consensus_logger.log_conflict(consensus_id, conflict.id, conflict.kind.value, conflict.severity)
        self.consensus_logger.log_perspective(consensus_id, perspective.agent_type, perspective.confidence,
                                              session.status.value)
        return perspective

    async def resolve_conflict(
        self,
        consensus_id: str,
        conflict_id: str,
        resolution: Any,
        resolving_agent: AgentRef,
        reasoning: str = ""
    ) -> Conflict:
        """Mark a conflict resolved and refresh the session status."""
        async with self._lock:
            session = self._require(consensus_id)
            conflict = next((c for c in session.conflicts if c.id == conflict_id), None)
            if conflict is None:
                raise ConflictNotFoundError(conflict_id, consensus_id=consensus_id)
            if session.status == ConsensusStatus.COMPLETED:
                raise ConsensusStateError(
                    f"Consensus {consensus_id} is already completed",
                    consensus_id=consensus_id,
                    status=session.status.value
                )

            conflict.status = ConflictStatus.RESOLVED
            conflict.resolution = ConflictResolution(
                resolution=resolution,
                resolving_agent=agent_key(resolving_agent),
                reasoning=reasoning,
                timestamp=self._clock(),
            )
            self._refresh_status(session)

        self.logger.info(
            f"Conflict {short_id(conflict_id)} on {short_id(consensus_id)} resolved by "
            f"{conflict.resolution.resolving_agent} (status: {session.status.value})"
        )
        return conflict

    async def build_synthesis(self, consensus_id: str) -> Synthesis:
        """Synthesize all current perspectives and mark the session synthesized."""
        async with self._lock:
            session = self._require(consensus_id)
            if session.status == ConsensusStatus.COMPLETED:
                raise ConsensusStateError(
                    f"Consensus {consensus_id} is already completed",
                    consensus_id=consensus_id,
                    status=session.status.value
                )
            synthesis = self.synthesize(session.current_perspectives())
            session.synthesis = synthesis
            session.confidence = synthesis.confidence
            session.status = ConsensusStatus.SYNTHESIZED

        self.logger.info(
            f"Consensus {short_id(consensus_id)} synthesized: {synthesis.consensus_label.value} "
            f"(confidence: {synthesis.confidence:.2f})"
        )
        return synthesis

    async def reach_consensus(
        self,
        consensus_id: str,
        final_decision: Any,
        confidence: float,
        reasoning: str = ""
    ) -> ConsensusSession:
        """Record the final decision, complete the session and archive it."""
        async with self._lock:
            session = self._require(consensus_id)
            if session.status == ConsensusStatus.COMPLETED:
                raise ConsensusStateError(
                    f"Consensus {consensus_id} is already completed",
                    consensus_id=consensus_id,
                    status=session.status.value
                )
            session.final_decision = final_decision
            session.final_reasoning = reasoning
            session.confidence = float(confidence)
            session.status = ConsensusStatus.COMPLETED
            session.end_time = self._clock()

            # Completed sessions live on only in the capped history
            self._sessions.pop(consensus_id, None)
            history = self._history.setdefault(session.user_id, [])
            history.append(session)
            del history[:-self.history_limit]

        self.consensus_logger.log_consensus_end(consensus_id, str(final_decision), session.confidence)
        await archive_quietly(self.archive, "consensus", session.id, session.user_id, session.to_dict())
        return session

    async def get_consensus_status(self, consensus_id: str) -> Optional[ConsensusSession]:
        return self._lookup(consensus_id)

    async def get_consensus_history(self, user_id: str) -> List[ConsensusSession]:
        return list(self._history.get(user_id, []))

    # ============================================
    # Conflict detection
    # ============================================

    def conflict_level(self, first: Perspective, second: Perspective) -> Tuple[float, ConflictKind]:
        """Severity and kind of the disagreement between two perspectives."""
        a, b = first.content, second.content

        if any(f in a and f in b and a[f] != b[f] for f in KEY_FIELDS):
            return self.contradiction_level, ConflictKind.DIRECT_CONTRADICTION

        if any(
            f in a and f in b and is_number(a[f]) and is_number(b[f])
            and abs(a[f] - b[f]) > self.numeric_tolerance
            for f in NUMERIC_FIELDS
        ):
            return self.difference_level, ConflictKind.SIGNIFICANT_DIFFERENCE

        if abs(first.confidence - second.confidence) > self.confidence_gap:
            return self.confidence_gap_level, ConflictKind.CONFIDENCE_MISMATCH

        return 0.0, ConflictKind.GENERAL_DISAGREEMENT

    def _detect_conflict(self, existing: Perspective, new: Perspective) -> Optional[Conflict]:
        level, kind = self.conflict_level(existing, new)
        if level <= self.conflict_threshold:
            return None
        return Conflict(
            id=generate_id("conflict"),
            perspective_a=existing.id,
            perspective_b=new.id,
            agent_a=existing.agent_type,
            agent_b=new.agent_type,
            severity=level,
            kind=kind,
            description=CONFLICT_DESCRIPTIONS[kind],
            timestamp=self._clock(),
        )

    def _refresh_status(self, session: ConsensusSession) -> None:
        if session.status in (ConsensusStatus.SYNTHESIZED, ConsensusStatus.COMPLETED):
            return

        if session.active_conflicts:
            session.status = ConsensusStatus.CONFLICT_RESOLUTION_NEEDED
        elif len(session.current_perspectives()) >= len(session.participating_agents):
            session.status = ConsensusStatus.READY_FOR_SYNTHESIS
        else:
            session.status = ConsensusStatus.GATHERING_PERSPECTIVES

    # ============================================
    # Synthesis
    # ============================================

    def synthesize(self, perspectives: List[Perspective]) -> Synthesis:
        """Confidence-weighted synthesis of a list of perspectives."""
        if not perspectives:
            return Synthesis(
                key_points=[],
                recommendations=[],
                consensus_label=ConsensusLabel.LIMITED,
                confidence=0.0,
                agreement_level=0.0,
                areas_of_agreement=[],
                areas_of_disagreement=[],
            )

        average_confidence = sum(p.confidence for p in perspectives) / len(perspectives)
        agreement = self.agreement_level(perspectives)

        return Synthesis(
            key_points=self._key_points(perspectives),
            recommendations=self._recommendations(perspectives),
            consensus_label=self.consensus_label(perspectives),
            confidence=(average_confidence + agreement) / 2,
            agreement_level=agreement,
            areas_of_agreement=self._areas_of_agreement(perspectives),
            areas_of_disagreement=self._areas_of_disagreement(perspectives),
            leading_decision=self._leading_decision(perspectives),
            perspective_count=len(perspectives),
        )

    @staticmethod
    def _as_list(value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]

    @staticmethod
    def _text(item: Any) -> str:
        if isinstance(item, dict):
            return str(item.get("description") or item.get("text") or serialize_payload(item))
        return str(item)

    def _key_points(self, perspectives: List[Perspective]) -> List[str]:
        counts: Dict[str, List[float]] = {}
        for p in perspectives:
            points = self._as_list(p.content.get("key_points") or p.content.get("keyPoints"))
            if not points:
                points = self._as_list(p.content.get("summary"))
            for point in points:
                stats = counts.setdefault(self._text(point), [0, 0.0])
                stats[0] += 1
                stats[1] += p.confidence

        ranked = sorted(
            enumerate(counts.items()),
            key=lambda item: (-item[1][1][0], -item[1][1][1], item[0])
        )
        return [text for _, (text, _) in ranked[:5]]

    def _recommendations(self, perspectives: List[Perspective]) -> List[str]:
        weights: Dict[str, float] = {}
        for p in perspectives:
            items = self._as_list(p.content.get("recommendations")) or self._as_list(p.content.get("recommendation"))
            for item in items:
                text = self._text(item)
                weights[text] = weights.get(text, 0.0) + p.confidence

        ranked = sorted(enumerate(weights.items()), key=lambda item: (-item[1][1], item[0]))
        return [text for _, (text, _) in ranked[:3]]

    def consensus_label(self, perspectives: List[Perspective]) -> ConsensusLabel:
        confident = sum(1 for p in perspectives if p.confidence > self.high_confidence)
        if perspectives and confident == len(perspectives):
            return ConsensusLabel.STRONG
        if confident > len(perspectives) / 2:
            return ConsensusLabel.MODERATE
        return ConsensusLabel.LIMITED

    @staticmethod
    def agreement_level(perspectives: List[Perspective]) -> float:
        """Mean pairwise token overlap; 0.5 when there is nothing to compare."""
        similarities = [
            calculate_text_similarity(perspectives[i].content, perspectives[j].content)
            for i in range(len(perspectives))
            for j in range(i + 1, len(perspectives))
        ]
        if not similarities:
            return 0.5
        return sum(similarities) / len(similarities)

    def _areas_of_agreement(self, perspectives: List[Perspective]) -> List[str]:
        counts: Counter = Counter()
        for p in perspectives:
            counts.update(token for token in token_set(p.content) if len(token) > 4)

        required = len(perspectives) * self.agreement_ratio
        ordered = sorted(
            (token for token, count in counts.items() if count >= required),
            key=lambda token: (-counts[token], token)
        )
        return ordered[:3]

    @staticmethod
    def _areas_of_disagreement(perspectives: List[Perspective]) -> List[str]:
        areas = []
        for f in KEY_FIELDS + NUMERIC_FIELDS:
            values = {serialize_payload(p.content[f]) for p in perspectives if f in p.content}
            if len(values) > 1:
                areas.append(f)
        return areas

    @staticmethod
    def _leading_decision(perspectives: List[Perspective]) -> Optional[Any]:
        weights: Dict[str, List[Any]] = {}
        for p in perspectives:
            if "decision" in p.content:
                bucket = weights.setdefault(serialize_payload(p.content["decision"]), [p.content["decision"], 0.0])
                bucket[1] += p.confidence
        if not weights:
            return None
        return max(weights.values(), key=lambda bucket: bucket[1])[0]

    # ============================================
    # Reporting
    # ============================================

    async def analyze_consensus_patterns(self, user_id: str) -> Dict[str, Any]:
        """Success rate, duration, conflict kinds and participation for a user."""
        history = await self.get_consensus_history(user_id)
        open_sessions = [
            s for s in self._sessions.values()
            if s.user_id == user_id and s.status != ConsensusStatus.COMPLETED
        ]
        sessions = history + open_sessions

        successful = [
            s for s in history if s.confidence > self.high_confidence
        ]
        durations = [s.duration_minutes() for s in history if s.end_time is not None]

        participation: Dict[str, int] = {}
        for s in sessions:
            for agent in s.participating_agents:
                participation[agent] = participation.get(agent, 0) + 1

        analytics = {
            "total_sessions": len(sessions),
            "completed_sessions": len(history),
            "success_rate": len(successful) / len(history) if history else 0.0,
            "average_duration_minutes": sum(durations) / len(durations) if durations else 0.0,
            "common_conflicts": [
                {"kind": kind, "count": count}
                for kind, count in top_counts((c.kind.value for s in sessions for c in s.conflicts), 3)
            ],
            "agent_participation": participation,
        }
        analytics["recommendations"] = self._pattern_recommendations(analytics)
        return analytics

    @staticmethod
    def _pattern_recommendations(analytics: Dict[str, Any]) -> List[str]:
        recommendations = []
        if analytics["completed_sessions"] and analytics["success_rate"] < 0.7:
            recommendations.append("Improve conflict resolution processes")
        if analytics["average_duration_minutes"] > 60:
            recommendations.append("Streamline consensus building process")
        return recommendations
