"""
Shared Context Store for Concord.

Keyed context entries with relevance-scored retrieval, directed sharing
edges between agents, three merge strategies and age-based cleanup.
Each user's history is bounded; evicting an entry from the history also
removes it from the id index.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from concord.agents.base import AgentRef, agent_key
from concord.agents.profiles import agent_keywords, are_related
from concord.utils.exceptions import ContextMergeError, ContextNotFoundError, ValidationError
from concord.utils.helpers import (
    calculate_text_similarity,
    clamp,
    generate_id,
    is_number,
    serialize_payload,
    short_id,
    top_counts,
    utcnow
)
from concord.utils.logger import get_logger
from config import settings


class Relevance(str, Enum):
    """Coarse importance tag of a context entry."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MergeStrategy(str, Enum):
    """How merge_contexts combines payloads."""
    UNION = "union"
    INTERSECTION = "intersection"
    WEIGHTED = "weighted"


RELEVANCE_SCORES = {Relevance.HIGH: 0.8, Relevance.MEDIUM: 0.5, Relevance.LOW: 0.2}
MERGE_WEIGHTS = {Relevance.HIGH: 3, Relevance.MEDIUM: 2, Relevance.LOW: 1}

SAME_AGENT_AFFINITY = 0.8
RELATED_AGENT_AFFINITY = 0.6
DEFAULT_AFFINITY = 0.3

_CONTEXT_CATEGORIES: List[Tuple[Tuple[str, ...], str]] = [
    (("business", "strategy"), "business"),
    (("investment", "financial"), "financial"),
    (("program", "partnership"), "program"),
    (("ecosystem", "network"), "ecosystem"),
]


@dataclass
class ContextUpdate:
    """One entry in a context's update history."""
    updates: Dict[str, Any]
    source_agent: str
    reason: str
    timestamp: datetime


@dataclass
class ContextEntry:
    """A piece of contextual knowledge owned by the store."""
    id: str
    user_id: str
    session_id: Optional[str]
    payload: Dict[str, Any]
    source_agent: str
    relevance: Relevance
    created_at: datetime
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None
    update_history: List[ContextUpdate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "payload": self.payload,
            "source_agent": self.source_agent,
            "relevance": self.relevance.value,
            "created_at": self.created_at.isoformat(),
            "access_count": self.access_count,
            "last_accessed_at": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
            "update_count": len(self.update_history),
        }


@dataclass
class ContextRelationship:
    """A non-owning link between two context entries."""
    kind: str
    source_id: str
    target_id: str
    score: Optional[float] = None


@dataclass
class ContextShare:
    """A directed sharing edge between two agents on a context entry."""
    from_agent: str
    to_agent: str
    context_id: str
    user_id: str
    reason: str
    timestamp: datetime


@dataclass
class RankedContext:
    """A context entry scored for one retrieval."""
    entry: ContextEntry
    score: float


class ContextStore:
    """
    Repository of context entries shared across agents.

    All mutating operations take the store lock; merges are computed in full
    before anything is written so a failing merge leaves the store unchanged.
    """

    def __init__(
        self,
        history_limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        recency_window_hours: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.logger = get_logger("orchestrator.context_store")
        self.history_limit = history_limit or settings.context_history_limit
        self.similarity_threshold = (
            settings.context_similarity_threshold if similarity_threshold is None else similarity_threshold
        )
        self.recency_window_hours = recency_window_hours or settings.context_recency_window_hours
        self._clock = clock

        self._entries: Dict[str, ContextEntry] = {}
        self._history: Dict[str, List[str]] = {}
        self._relationships: Dict[str, List[ContextRelationship]] = {}
        self._shares: Dict[str, List[ContextShare]] = {}
        self._lock = asyncio.Lock()

    def _require(self, context_id: str) -> ContextEntry:
        entry = self._entries.get(context_id)
        if entry is None:
            raise ContextNotFoundError(context_id)
        return entry

    @staticmethod
    def _validate_payload(payload: Any, field_name: str = "payload") -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise ValidationError(f"Context {field_name} must be a mapping", field_name=field_name)
        return payload

    def _forget(self, context_id: str) -> None:
        self._entries.pop(context_id, None)
        self._shares.pop(context_id, None)
        self._relationships.pop(context_id, None)
        for links in self._relationships.values():
            links[:] = [link for link in links if link.target_id != context_id]

    async def store_context(
        self,
        user_id: str,
        session_id: Optional[str],
        payload: Dict[str, Any],
        source_agent: AgentRef,
        relevance: Union[Relevance, str] = Relevance.MEDIUM
    ) -> str:
        """
        Store a context entry for a user.

        Args:
            user_id: Owning user
            session_id: Session the context came from
            payload: JSON mapping with the context itself
            source_agent: Agent that produced the context
            relevance: high, medium or low

        Returns:
            The new context id
        """
        payload = dict(self._validate_payload(payload))
        relevance = Relevance(relevance)

        async with self._lock:
            entry = ContextEntry(
                id=generate_id("ctx"),
                user_id=user_id,
                session_id=session_id,
                payload=payload,
                source_agent=agent_key(source_agent),
                relevance=relevance,
                created_at=self._clock(),
            )

            history = self._history.setdefault(user_id, [])
            links = []
            for existing_id in history:
                similarity = calculate_text_similarity(payload, self._entries[existing_id].payload)
                if similarity > self.similarity_threshold:
                    links.append(ContextRelationship("similar_to", entry.id, existing_id, similarity))

            self._entries[entry.id] = entry
            self._relationships[entry.id] = links
            history.append(entry.id)

            while len(history) > self.history_limit:
                evicted = history.pop(0)
                self._forget(evicted)
                self.logger.debug(f"Evicted context {short_id(evicted)} for user {user_id}")

        self.logger.debug(
            f"Stored context {short_id(entry.id)} from {entry.source_agent} "
            f"({relevance.value}, {len(links)} similar)"
        )
        return entry.id

    async def get_context(self, context_id: str) -> ContextEntry:
        return self._require(context_id)

    async def get_user_contexts(self, user_id: str) -> List[ContextEntry]:
        """A user's entries, oldest first."""
        return [self._entries[cid] for cid in self._history.get(user_id, [])]

    # ============================================
    # Retrieval
    # ============================================

    def _is_relevant_to(self, entry: ContextEntry, agent: str) -> bool:
        if entry.relevance == Relevance.HIGH:
            return True
        text = serialize_payload(entry.payload).lower()
        return any(keyword in text for keyword in agent_keywords(agent))

    def _query_overlap(self, entry: ContextEntry, query: str) -> float:
        words = [word for word in query.lower().split() if len(word) > 2]
        if not words:
            return 0.0
        text = serialize_payload(entry.payload).lower()
        matches = sum(1 for word in words if word in text)
        return min(matches / len(words), 1.0)

    def _agent_affinity(self, source_agent: str, agent: str) -> float:
        if source_agent == agent:
            return SAME_AGENT_AFFINITY
        if are_related(source_agent, agent):
            return RELATED_AGENT_AFFINITY
        return DEFAULT_AFFINITY

    def score_entry(self, entry: ContextEntry, agent: AgentRef, query: str, now: Optional[datetime] = None) -> float:
        """Relevance score of an entry for an agent and query, within [0, 1]."""
        now = now or self._clock()
        key = agent_key(agent)
        age_hours = max((now - entry.created_at).total_seconds() / 3600.0, 0.0)
        recency = max(0.0, 1.0 - age_hours / self.recency_window_hours)

        score = (
            RELEVANCE_SCORES[entry.relevance]
            + recency * 0.2
            + self._query_overlap(entry, query) * 0.3
            + self._agent_affinity(entry.source_agent, key) * 0.2
        )
        return clamp(score)

    async def get_relevant_context(
        self,
        user_id: str,
        agent_type: AgentRef,
        query: str = "",
        max_results: int = 10
    ) -> List[RankedContext]:
        """Entries relevant to an agent, best first; marks each returned entry as accessed."""
        key = agent_key(agent_type)

        async with self._lock:
            now = self._clock()
            candidates = [
                self._entries[cid] for cid in self._history.get(user_id, [])
                if self._is_relevant_to(self._entries[cid], key)
            ]
            ranked = [RankedContext(entry, self.score_entry(entry, key, query, now)) for entry in candidates]
            ranked.sort(key=lambda r: (-r.score, -r.entry.created_at.timestamp()))
            ranked = ranked[:max(max_results, 0)]

            for item in ranked:
                item.entry.access_count += 1
                item.entry.last_accessed_at = now

        return ranked

    # ============================================
    # Sharing and updates
    # ============================================

    async def share_context(
        self,
        from_agent: AgentRef,
        to_agent: AgentRef,
        context_id: str,
        user_id: str,
        reason: str = ""
    ) -> ContextShare:
        """Record that one agent shared a context entry with another."""
        async with self._lock:
            self._require(context_id)
            share = ContextShare(
                from_agent=agent_key(from_agent),
                to_agent=agent_key(to_agent),
                context_id=context_id,
                user_id=user_id,
                reason=reason,
                timestamp=self._clock(),
            )
            self._shares.setdefault(context_id, []).append(share)

        self.logger.debug(f"Context {short_id(context_id)} shared {share.from_agent} -> {share.to_agent}")
        return share

    async def update_context(
        self,
        context_id: str,
        updates: Dict[str, Any],
        source_agent: AgentRef,
        reason: str = ""
    ) -> ContextEntry:
        """Shallow-merge updates into an entry's payload."""
        updates = dict(self._validate_payload(updates, "updates"))

        async with self._lock:
            entry = self._require(context_id)
            now = self._clock()
            entry.payload = {**entry.payload, **updates}
            entry.last_updated_at = now
            entry.update_history.append(ContextUpdate(
                updates=updates,
                source_agent=agent_key(source_agent),
                reason=reason,
                timestamp=now,
            ))

        return entry

    # ============================================
    # Merging
    # ============================================

    @staticmethod
    def _merge_union(entries: List[ContextEntry]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for entry in entries:
            merged.update(entry.payload)
        return merged

    @staticmethod
    def _merge_intersection(entries: List[ContextEntry]) -> Dict[str, Any]:
        first, rest = entries[0], entries[1:]
        return {
            key: value for key, value in first.payload.items()
            if all(key in other.payload and other.payload[key] == value for other in rest)
        }

    @staticmethod
    def _merge_weighted(entries: List[ContextEntry]) -> Dict[str, Any]:
        keys: List[str] = []
        for entry in entries:
            for key in entry.payload:
                if key not in keys:
                    keys.append(key)

        merged: Dict[str, Any] = {}
        for key in keys:
            values = [(e.payload[key], MERGE_WEIGHTS[e.relevance]) for e in entries if key in e.payload]
            first_value = values[0][0]

            if all(value == first_value and type(value) is type(first_value) for value, _ in values):
                merged[key] = first_value
            elif all(is_number(value) for value, _ in values):
                total_weight = sum(weight for _, weight in values)
                merged[key] = sum(value * weight for value, weight in values) / total_weight
            else:
                # Highest total weight wins; dict order keeps the earliest on ties
                totals: Dict[str, List[Any]] = {}
                for value, weight in values:
                    bucket = totals.setdefault(serialize_payload(value), [value, 0])
                    bucket[1] += weight
                best = max(totals.values(), key=lambda bucket: bucket[1])
                merged[key] = best[0]
        return merged

    async def merge_contexts(
        self,
        context_ids: List[str],
        target_agent: AgentRef,
        user_id: str,
        strategy: Union[MergeStrategy, str] = MergeStrategy.WEIGHTED
    ) -> str:
        """
        Merge several entries into a new high-relevance entry.

        union lets later entries overwrite earlier keys; intersection keeps
        keys every entry agrees on; weighted averages numbers by relevance
        weight and picks the heaviest value otherwise.
        """
        if not context_ids:
            raise ContextMergeError("At least one context id is required to merge")
        try:
            strategy = MergeStrategy(strategy)
        except ValueError as e:
            raise ContextMergeError(f"Unknown merge strategy {strategy!r}", strategy=str(strategy)) from e

        entries = [self._require(cid) for cid in context_ids]
        for entry in entries:
            if not isinstance(entry.payload, dict):
                raise ContextMergeError(f"Context {entry.id} payload is not a mapping", strategy=strategy.value)

        if strategy == MergeStrategy.UNION:
            merged = self._merge_union(entries)
        elif strategy == MergeStrategy.INTERSECTION:
            merged = self._merge_intersection(entries)
        else:
            merged = self._merge_weighted(entries)

        merged_id = await self.store_context(
            user_id,
            entries[0].session_id,
            merged,
            target_agent,
            Relevance.HIGH,
        )

        async with self._lock:
            links = self._relationships.setdefault(merged_id, [])
            for cid in dict.fromkeys(context_ids):
                if cid in self._entries:
                    links.append(ContextRelationship("merged_from", merged_id, cid))

        self.logger.info(
            f"Merged {len(context_ids)} contexts into {short_id(merged_id)} ({strategy.value})"
        )
        return merged_id

    # ============================================
    # Maintenance and reporting
    # ============================================

    async def cleanup_contexts(self, user_id: str, max_age_days: Optional[int] = None) -> int:
        """Remove low-relevance entries older than the cutoff; returns how many went."""
        max_age_days = settings.context_cleanup_max_age_days if max_age_days is None else max_age_days

        async with self._lock:
            cutoff = self._clock() - timedelta(days=max_age_days)
            history = self._history.get(user_id, [])
            stale = [
                cid for cid in history
                if self._entries[cid].relevance == Relevance.LOW and self._entries[cid].created_at < cutoff
            ]
            for cid in stale:
                history.remove(cid)
                self._forget(cid)

        if stale:
            self.logger.info(f"Cleaned up {len(stale)} contexts for user {user_id}")
        return len(stale)

    async def get_context_relationships(self, context_id: str) -> Dict[str, Any]:
        """Links, sharing edges and usage of one entry."""
        entry = self._require(context_id)
        links = list(self._relationships.get(context_id, []))
        # Links pointing at this entry from newer entries
        for source_id, source_links in self._relationships.items():
            if source_id != context_id:
                links.extend(link for link in source_links if link.target_id == context_id)
        shares = list(self._shares.get(context_id, []))

        related_ids = []
        for link in links:
            other = link.target_id if link.source_id == context_id else link.source_id
            if other in self._entries and other not in related_ids:
                related_ids.append(other)

        return {
            "context_id": context_id,
            "relationships": [
                {"kind": link.kind, "source_id": link.source_id, "target_id": link.target_id, "score": link.score}
                for link in links
            ],
            "shares": [
                {"from_agent": s.from_agent, "to_agent": s.to_agent, "reason": s.reason,
                 "timestamp": s.timestamp.isoformat()}
                for s in shares
            ],
            "related_contexts": [self._entries[cid] for cid in related_ids],
            "usage_patterns": {
                "access_count": entry.access_count,
                "share_count": len(shares),
                "update_count": len(entry.update_history),
                "shared_with": sorted({s.to_agent for s in shares}),
                "last_accessed_at": entry.last_accessed_at.isoformat() if entry.last_accessed_at else None,
            },
        }

    @staticmethod
    def categorize(entry: ContextEntry) -> str:
        text = serialize_payload(entry.payload).lower()
        for words, category in _CONTEXT_CATEGORIES:
            if any(word in text for word in words):
                return category
        return "general"

    async def get_context_analytics(self, user_id: str) -> Dict[str, Any]:
        """Counts, categories, contributors and sharing flows for a user."""
        entries = await self.get_user_contexts(user_id)
        shares = [share for entry in entries for share in self._shares.get(entry.id, [])]

        by_relevance = {level.value: 0 for level in Relevance}
        for entry in entries:
            by_relevance[entry.relevance.value] += 1

        most_accessed = sorted(entries, key=lambda e: e.access_count, reverse=True)[:5]

        analytics = {
            "total_contexts": len(entries),
            "by_relevance": by_relevance,
            "context_types": dict(top_counts((self.categorize(e) for e in entries), 10)),
            "agent_contributions": dict(top_counts((e.source_agent for e in entries), 10)),
            "sharing_flows": dict(top_counts((f"{s.from_agent}->{s.to_agent}" for s in shares), 10)),
            "total_shares": len(shares),
            "most_accessed": [
                {"context_id": e.id, "access_count": e.access_count, "source_agent": e.source_agent}
                for e in most_accessed if e.access_count > 0
            ],
        }
        analytics["recommendations"] = self._recommendations(analytics)
        return analytics

    def _recommendations(self, analytics: Dict[str, Any]) -> List[str]:
        recommendations = []
        total = analytics["total_contexts"]
        if total == 0:
            return ["Store context from agent interactions to improve collaboration"]
        if analytics["total_shares"] == 0:
            recommendations.append("Share context between agents to avoid repeated discovery")
        if analytics["by_relevance"][Relevance.LOW.value] > total / 2:
            recommendations.append("Most context is low relevance; run cleanup regularly")
        if len(analytics["agent_contributions"]) == 1:
            recommendations.append("Only one agent contributes context; involve specialists")
        return recommendations
