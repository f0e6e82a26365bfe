"""
Tests for persona_core/memory/strategies.py and retriever.py — the
multi-strategy retrieval pipeline.

Covers:
* Empty store / no match returns []
* Output invariants: unique dedup keys, at most 15, newest first
* Strategy table: parameters passed to the store, table-order fan-in
* Failure isolation: one failing strategy, every strategy failing
* Owner scoping: foreign records dropped
* TTL cache and the memories_retrieved event
"""

from __future__ import annotations

import asyncio

import pytest

from persona_core.config import RetrieverConfig
from persona_core.memory.models import (
    MemoryQuery,
    MemoryRecord,
    ScoredRecord,
    SemanticQuery,
    StrategySource,
)
from persona_core.memory.retriever import MemoryRetriever, RetrievalCache
from persona_core.memory.strategies import (
    DEFAULT_STRATEGIES,
    EMOTIONAL_TAXONOMY,
    RetrievalStrategyRunner,
)

from conftest import DAY, NOW


def _retrieve(retriever, topic="career", owner="u"):
    return asyncio.run(retriever.retrieve_relevant_memories(topic, owner))


class RecordingStore:
    """Returns canned records and remembers every request it saw."""

    def __init__(self, records=(), semantic=()):
        self.records = list(records)
        self.semantic = list(semantic)
        self.queries = []
        self.searches = []

    async def query(self, filter):
        self.queries.append(filter)
        return list(self.records)

    async def semantic_search(self, query):
        self.searches.append(query)
        return [ScoredRecord(record=r, relevance=0.5) for r in self.semantic]


class FailingStore:
    def __init__(self, fail_semantic=True, fail_query=True, records=()):
        self.fail_semantic = fail_semantic
        self.fail_query = fail_query
        self.records = list(records)

    async def query(self, filter):
        if self.fail_query:
            raise ConnectionError("store offline")
        return list(self.records)

    async def semantic_search(self, query):
        if self.fail_semantic:
            raise TimeoutError("vector index timed out")
        return [ScoredRecord(record=r, relevance=0.9) for r in self.records]


def _rec(content, created_at, owner="u", rid=None):
    return MemoryRecord(id=rid or content, content=content, created_at=created_at, owner_id=owner)


# ── Empty / no match ──────────────────────────────────────────────────

class TestNoMatch:
    def test_empty_store(self, store, clock):
        assert _retrieve(MemoryRetriever(store, clock=clock)) == []

    def test_no_matching_records(self, store, clock):
        store.add("baking bread on sunday", owner_id="u", emotional_tags={"joy"})
        assert _retrieve(MemoryRetriever(store, clock=clock), topic="quantum physics") == []

    def test_other_owner_records_invisible(self, store, clock):
        store.add("career career career", owner_id="someone-else")
        assert _retrieve(MemoryRetriever(store, clock=clock)) == []


# ── Output invariants ─────────────────────────────────────────────────

class TestOutputInvariants:
    @pytest.fixture
    def populated(self, store):
        for i in range(60):
            tags = {"anxiety"} if i % 3 == 0 else set()
            store.add(f"career note {i}: thinking about my job", owner_id="u",
                      created_at=NOW - i * 2 * DAY, emotional_tags=tags)
        return store

    def test_at_most_fifteen(self, populated, clock):
        assert len(_retrieve(MemoryRetriever(populated, clock=clock))) == 15

    def test_no_duplicate_keys(self, populated, clock):
        out = _retrieve(MemoryRetriever(populated, clock=clock))
        keys = [r.dedup_key() for r in out]
        assert len(keys) == len(set(keys))

    def test_newest_first(self, populated, clock):
        out = _retrieve(MemoryRetriever(populated, clock=clock))
        stamps = [r.created_at for r in out]
        assert stamps == sorted(stamps, reverse=True)

    def test_same_record_from_many_strategies_appears_once(self, store, clock):
        store.add("career worries", owner_id="u", emotional_tags={"anxiety"})
        out = _retrieve(MemoryRetriever(store, clock=clock), topic="career worries")
        assert [r.content for r in out] == ["career worries"]

    def test_configurable_cap(self, populated, clock):
        retriever = MemoryRetriever(populated, RetrieverConfig(max_results=4), clock=clock)
        assert len(_retrieve(retriever)) == 4


# ── Strategy table ────────────────────────────────────────────────────

class TestStrategies:
    def test_table_shape(self):
        rows = {s.source: (s.weight, s.limit) for s in DEFAULT_STRATEGIES}
        assert rows == {
            StrategySource.SEMANTIC: (None, 20),
            StrategySource.RECENT: (0.9, 10),
            StrategySource.HISTORICAL: (0.7, 10),
            StrategySource.EMOTIONAL: (0.8, 8),
            StrategySource.RELATIONSHIP: (0.85, 8),
            StrategySource.THEMATIC: (0.75, 8),
        }

    def test_requests_carry_owner_windows_and_limits(self, clock):
        store = RecordingStore()
        asyncio.run(RetrievalStrategyRunner(store, clock=clock).run("career", "u"))

        [search] = store.searches
        assert isinstance(search, SemanticQuery)
        assert search.similarity_floor == 0.3
        assert search.max_results == 20
        assert search.time_range.start == NOW - 90 * DAY
        assert search.time_range.end == NOW

        recent, historical, emotional, relationship, thematic = store.queries
        assert all(isinstance(q, MemoryQuery) for q in store.queries)
        assert {q.owner_id for q in store.queries} == {"u"}
        assert recent.limit == 10 and recent.time_range.start == NOW - 7 * DAY
        assert historical.time_range.start == NOW - 90 * DAY
        assert historical.time_range.end == NOW - 30 * DAY
        assert emotional.emotional_tags == EMOTIONAL_TAXONOMY
        assert relationship.limit == thematic.limit == 8
        assert relationship.time_range is None

    def test_results_in_table_order_with_scores(self, clock):
        rec = _rec("career", NOW)
        store = RecordingStore(records=[rec], semantic=[rec])
        batches = asyncio.run(RetrievalStrategyRunner(store, clock=clock).run("career", "u"))
        assert [b[0].source for b in batches] == [s.source for s in DEFAULT_STRATEGIES]
        assert [b[0].score for b in batches] == [0.5, 0.9, 0.7, 0.8, 0.85, 0.75]

    def test_store_overshoot_truncated_to_limit(self, clock):
        records = [_rec(f"r{i}", NOW - i) for i in range(30)]
        store = RecordingStore(records=records, semantic=records)
        batches = asyncio.run(RetrievalStrategyRunner(store, clock=clock).run("x", "u"))
        assert [len(b) for b in batches] == [20, 10, 10, 8, 8, 8]


# ── Failure isolation ─────────────────────────────────────────────────

class TestFailureIsolation:
    def test_semantic_failure_keeps_other_strategies(self, clock):
        store = FailingStore(fail_semantic=True, fail_query=False,
                             records=[_rec("career plan", NOW)])
        retriever = MemoryRetriever(store, clock=clock)
        assert [r.content for r in _retrieve(retriever)] == ["career plan"]
        assert retriever.runner.failures == 1

    def test_every_strategy_failing_returns_empty(self, clock):
        retriever = MemoryRetriever(FailingStore(), clock=clock)
        assert _retrieve(retriever) == []
        assert retriever.runner.failures == len(DEFAULT_STRATEGIES)

    def test_failure_is_logged(self, clock, caplog):
        retriever = MemoryRetriever(FailingStore(), clock=clock)
        with caplog.at_level("WARNING"):
            _retrieve(retriever)
        assert "store offline" in caplog.text

    def test_merge_failure_never_raises(self, store, clock, monkeypatch):
        store.add("career", owner_id="u")
        retriever = MemoryRetriever(store, clock=clock)

        def boom(candidates):
            raise RuntimeError("merge exploded")

        monkeypatch.setattr(retriever.merger, "merge", boom)
        assert _retrieve(retriever) == []
        assert retriever.stats()["errors"] == 1


# ── Owner scoping ─────────────────────────────────────────────────────

class TestOwnerScoping:
    def test_leaked_records_are_dropped(self, clock):
        mine = _rec("career mine", NOW, owner="u")
        theirs = _rec("career theirs", NOW - 1, owner="intruder")
        store = RecordingStore(records=[mine, theirs], semantic=[theirs])
        out = _retrieve(MemoryRetriever(store, clock=clock))
        assert [r.content for r in out] == ["career mine"]


# ── Cache and events ──────────────────────────────────────────────────

class TestCache:
    def test_hit_within_ttl(self, clock):
        store = RecordingStore(records=[_rec("career", NOW)])
        retriever = MemoryRetriever(store, clock=clock)
        first = _retrieve(retriever)
        clock.advance(4.9)
        second = _retrieve(retriever)
        assert first == second
        assert len(store.queries) == 5
        assert retriever.stats()["cache_hits"] == 1

    def test_expires_after_ttl(self, clock):
        store = RecordingStore(records=[_rec("career", NOW)])
        retriever = MemoryRetriever(store, clock=clock)
        _retrieve(retriever)
        clock.advance(5.0)
        _retrieve(retriever)
        assert len(store.queries) == 10

    def test_keyed_by_topic_and_owner(self, clock):
        store = RecordingStore()
        retriever = MemoryRetriever(store, clock=clock)
        _retrieve(retriever, topic="a", owner="u")
        _retrieve(retriever, topic="b", owner="u")
        _retrieve(retriever, topic="a", owner="v")
        assert len(store.searches) == 3

    def test_degraded_pass_not_cached(self, clock):
        store = FailingStore(records=[_rec("career", NOW)])
        retriever = MemoryRetriever(store, clock=clock)
        assert _retrieve(retriever) == []
        store.fail_query = store.fail_semantic = False
        assert [r.content for r in _retrieve(retriever)] == ["career"]
        assert len(retriever.cache) == 1

    def test_disabled(self, clock):
        store = RecordingStore()
        retriever = MemoryRetriever(store, RetrieverConfig(cache_enabled=False), clock=clock)
        _retrieve(retriever)
        _retrieve(retriever)
        assert len(store.searches) == 2
        assert retriever.cache is None

    def test_returned_list_is_a_copy(self, clock):
        retriever = MemoryRetriever(RecordingStore(records=[_rec("career", NOW)]), clock=clock)
        _retrieve(retriever).clear()
        assert len(_retrieve(retriever)) == 1

    def test_invalidate_by_owner(self, clock):
        cache = RetrievalCache(60, clock=clock)
        cache.put("t", "u", [])
        cache.put("t", "v", [])
        cache.invalidate("u")
        assert cache.get("t", "u") is None
        assert cache.get("t", "v") == []
        cache.invalidate()
        assert len(cache) == 0


class TestEvents:
    def test_memories_retrieved_published(self, bus, store, clock):
        received = []
        bus.subscribe("memories_retrieved", received.append)
        store.add("career growth", owner_id="u")
        _retrieve(MemoryRetriever(store, clock=clock, event_bus=bus))
        assert received == [{"owner_id": "u", "topic": "career", "count": 1}]

    def test_raising_subscriber_does_not_break_retrieval(self, bus, store, clock):
        def broken(data):
            raise RuntimeError("subscriber broke")

        bus.subscribe("memories_retrieved", broken)
        store.add("career growth", owner_id="u")
        out = _retrieve(MemoryRetriever(store, clock=clock, event_bus=bus))
        assert [r.content for r in out] == ["career growth"]
