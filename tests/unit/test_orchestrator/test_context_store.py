"""Tests for the shared context store."""

import pytest

from concord.agents.base import AgentType
from concord.orchestrator.context_store import MergeStrategy, Relevance
from concord.utils.exceptions import ContextMergeError, ContextNotFoundError, ValidationError


class TestStoreAndEvict:

    @pytest.mark.asyncio
    async def test_store_and_get(self, store):
        context_id = await store.store_context("user_1", "session_1", {"stage": "seed"}, AgentType.CO_FOUNDER)

        entry = await store.get_context(context_id)
        assert entry.payload == {"stage": "seed"}
        assert entry.relevance == Relevance.MEDIUM
        assert entry.source_agent == "co_founder"

    @pytest.mark.asyncio
    async def test_payload_must_be_mapping(self, store):
        with pytest.raises(ValidationError):
            await store.store_context("user_1", None, ["not", "a", "dict"], "co_founder")

    @pytest.mark.asyncio
    async def test_fifty_first_entry_evicts_oldest(self, store):
        ids = [
            await store.store_context("user_1", None, {"index": i}, "co_founder")
            for i in range(51)
        ]

        entries = await store.get_user_contexts("user_1")
        assert len(entries) == 50
        assert [e.id for e in entries] == ids[1:]

        with pytest.raises(ContextNotFoundError):
            await store.get_context(ids[0])

    @pytest.mark.asyncio
    async def test_similar_entries_are_linked(self, store):
        first = await store.store_context("user_1", None, {"topic": "seed funding round"}, "co_founder")
        second = await store.store_context("user_1", None, {"topic": "seed funding round", "note": "x"},
                                           "co_investor")

        relationships = await store.get_context_relationships(second)
        similar = [r for r in relationships["relationships"] if r["kind"] == "similar_to"]
        assert similar and similar[0]["target_id"] == first

        # The older entry sees the link too
        older = await store.get_context_relationships(first)
        assert [e.id for e in older["related_contexts"]] == [second]


class TestRetrieval:

    @pytest.mark.asyncio
    async def test_scores_are_bounded(self, store):
        context_id = await store.store_context(
            "user_1", None, {"credit": "risk underwriting financial"}, AgentType.CREDIT_ANALYST, "high"
        )
        entry = await store.get_context(context_id)

        score = store.score_entry(entry, AgentType.CREDIT_ANALYST, "credit risk underwriting")
        assert 0.0 <= score <= 1.0
        assert score == 1.0

    @pytest.mark.asyncio
    async def test_recency_decays(self, store, clock):
        context_id = await store.store_context("user_1", None, {"note": "plain"}, "co_founder", "low")
        entry = await store.get_context(context_id)

        fresh = store.score_entry(entry, "impact_analyst", "")
        clock.advance(hours=48)
        stale = store.score_entry(entry, "impact_analyst", "")

        assert fresh == pytest.approx(0.2 + 0.2 + 0.3 * 0.2)
        assert stale == pytest.approx(0.2 + 0.3 * 0.2)

    @pytest.mark.asyncio
    async def test_relevant_context_filters_and_ranks(self, store):
        high = await store.store_context("user_1", None, {"note": "board meeting"}, "co_founder", "high")
        keyword = await store.store_context("user_1", None, {"note": "credit line review"}, "co_investor", "medium")
        await store.store_context("user_1", None, {"note": "office plants"}, "co_builder", "medium")

        ranked = await store.get_relevant_context("user_1", AgentType.CREDIT_ANALYST, "credit review")

        assert [r.entry.id for r in ranked] == [high, keyword]
        assert all(r.entry.access_count == 1 for r in ranked)
        assert ranked[0].score >= ranked[1].score

    @pytest.mark.asyncio
    async def test_max_results(self, store):
        for i in range(5):
            await store.store_context("user_1", None, {"n": i}, "co_founder", "high")

        assert len(await store.get_relevant_context("user_1", "co_founder", max_results=2)) == 2


class TestSharingAndUpdates:

    @pytest.mark.asyncio
    async def test_share_records_edge(self, store):
        context_id = await store.store_context("user_1", None, {"stage": "seed"}, "co_founder")

        share = await store.share_context("co_founder", AgentType.CREDIT_ANALYST, context_id, "user_1", "loan review")

        assert share.to_agent == "credit_analyst"
        usage = (await store.get_context_relationships(context_id))["usage_patterns"]
        assert usage["share_count"] == 1
        assert usage["shared_with"] == ["credit_analyst"]

    @pytest.mark.asyncio
    async def test_share_unknown_context(self, store):
        with pytest.raises(ContextNotFoundError):
            await store.share_context("co_founder", "credit_analyst", "ctx_missing", "user_1")

    @pytest.mark.asyncio
    async def test_update_merges_shallowly(self, store, clock):
        context_id = await store.store_context("user_1", None, {"stage": "seed", "team": 4}, "co_founder")
        clock.advance(minutes=5)

        entry = await store.update_context(context_id, {"team": 6}, "business_advisor", "hired two")

        assert entry.payload == {"stage": "seed", "team": 6}
        assert entry.last_updated_at == clock()
        assert entry.update_history[0].reason == "hired two"


class TestMerging:

    @pytest.mark.asyncio
    async def test_weighted_merge_of_single_entry_is_identity(self, store):
        payload = {"stage": "seed", "valuation": 5_000_000, "tags": ["fintech", "b2b"]}
        context_id = await store.store_context("user_1", None, payload, "co_founder", "low")

        merged_id = await store.merge_contexts([context_id, context_id], "co_investor", "user_1")

        merged = await store.get_context(merged_id)
        assert merged.payload == payload
        assert merged.relevance == Relevance.HIGH

    @pytest.mark.asyncio
    async def test_weighted_merge(self, store):
        high = await store.store_context("user_1", None, {"score": 9, "stage": "seed"}, "co_founder", "high")
        low = await store.store_context("user_1", None, {"score": 3, "stage": "series_a"}, "co_investor", "low")

        merged_id = await store.merge_contexts([high, low], "business_advisor", "user_1")

        merged = await store.get_context(merged_id)
        assert merged.payload["score"] == pytest.approx((9 * 3 + 3 * 1) / 4)
        assert merged.payload["stage"] == "seed"

        links = (await store.get_context_relationships(merged_id))["relationships"]
        assert {link["target_id"] for link in links if link["kind"] == "merged_from"} == {high, low}

    @pytest.mark.asyncio
    async def test_weighted_tie_keeps_first_value(self, store):
        first = await store.store_context("user_1", None, {"stage": "seed"}, "co_founder", "medium")
        second = await store.store_context("user_1", None, {"stage": "series_a"}, "co_investor", "medium")

        forward = await store.get_context(await store.merge_contexts([first, second], "co_builder", "user_1"))
        backward = await store.get_context(await store.merge_contexts([second, first], "co_builder", "user_1"))

        assert forward.payload == {"stage": "seed"}
        assert backward.payload == {"stage": "series_a"}

    @pytest.mark.asyncio
    async def test_union_and_intersection(self, store):
        a = await store.store_context("user_1", None, {"x": 1, "y": 2}, "co_founder")
        b = await store.store_context("user_1", None, {"x": 1, "y": 3, "z": 4}, "co_investor")

        union = await store.get_context(await store.merge_contexts([a, b], "co_builder", "user_1", "union"))
        inter = await store.get_context(
            await store.merge_contexts([a, b], "co_builder", "user_1", MergeStrategy.INTERSECTION)
        )

        assert union.payload == {"x": 1, "y": 3, "z": 4}
        assert inter.payload == {"x": 1}

    @pytest.mark.asyncio
    async def test_merge_errors(self, store):
        context_id = await store.store_context("user_1", None, {"x": 1}, "co_founder")

        with pytest.raises(ContextMergeError):
            await store.merge_contexts([], "co_builder", "user_1")
        with pytest.raises(ContextMergeError):
            await store.merge_contexts([context_id], "co_builder", "user_1", "average")
        with pytest.raises(ContextNotFoundError):
            await store.merge_contexts([context_id, "ctx_missing"], "co_builder", "user_1")


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_old_low_entries(self, store, clock):
        old_low = await store.store_context("user_1", None, {"n": 1}, "co_founder", "low")
        old_high = await store.store_context("user_1", None, {"n": 2}, "co_founder", "high")
        clock.advance(days=31)
        new_low = await store.store_context("user_1", None, {"n": 3}, "co_founder", "low")

        removed = await store.cleanup_contexts("user_1")

        assert removed == 1
        remaining = [e.id for e in await store.get_user_contexts("user_1")]
        assert remaining == [old_high, new_low]
        with pytest.raises(ContextNotFoundError):
            await store.get_context(old_low)

    @pytest.mark.asyncio
    async def test_analytics(self, store):
        first = await store.store_context("user_1", None, {"topic": "business strategy"}, "co_founder", "high")
        await store.store_context("user_1", None, {"topic": "financial model"}, "credit_analyst", "low")
        await store.share_context("co_founder", "credit_analyst", first, "user_1")

        analytics = await store.get_context_analytics("user_1")

        assert analytics["total_contexts"] == 2
        assert analytics["by_relevance"] == {"high": 1, "medium": 0, "low": 1}
        assert analytics["context_types"] == {"business": 1, "financial": 1}
        assert analytics["sharing_flows"] == {"co_founder->credit_analyst": 1}

    @pytest.mark.asyncio
    async def test_analytics_for_unknown_user(self, store):
        analytics = await store.get_context_analytics("nobody")

        assert analytics["total_contexts"] == 0
        assert analytics["recommendations"] == ["Store context from agent interactions to improve collaboration"]
