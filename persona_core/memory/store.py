"""
Memory store contract and an in-process reference implementation.

The engine talks to long-term memory only through ``MemoryStore``.
Both calls are coroutines and both are owner-scoped: a store must never
return a record whose ``owner_id`` differs from the one in the request.

``InMemoryMemoryStore`` honours the full contract with plain Python
containers.  It backs the test-suite and is handy for wiring the engine
up before a real persistence backend exists.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from .embeddings import cosine_similarity, embed_text, keywords
from .models import MemoryQuery, MemoryRecord, ScoredRecord, SemanticQuery


class MemoryStore(Protocol):
    """Read interface the retrieval pipeline depends on."""

    async def query(self, filter: MemoryQuery) -> List[MemoryRecord]:
        """Records of ``filter.owner_id`` matching every given criterion, newest first."""

    async def semantic_search(self, query: SemanticQuery) -> List[ScoredRecord]:
        """Records of ``query.owner_id`` similar to ``query.text``, best first."""


def matches_topic(record: MemoryRecord, topic: Optional[str]) -> bool:
    """
    Lexical topic match used by the reference store.

    An empty topic matches everything.  Otherwise any shared content word
    between the topic and the record's content or emotional tags counts;
    a topic made only of stopwords falls back to a substring test.
    """
    if not topic or not topic.strip():
        return True
    wanted = keywords(topic)
    if not wanted:
        return topic.strip().lower() in record.content.lower()
    have = keywords(record.content) | {t.lower() for t in record.emotional_tags}
    return bool(wanted & have)


class InMemoryMemoryStore:
    """
    Owner-partitioned store kept entirely in memory.

    Usage::

        store = InMemoryMemoryStore()
        store.add("We talked about your dream of opening a bakery",
                  owner_id="u1", emotional_tags={"joy"})
        records = await store.query(MemoryQuery(owner_id="u1", limit=10))
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: Dict[str, Dict[str, MemoryRecord]] = {}
        self._embeddings: Dict[Tuple[str, str], List[float]] = {}

    # ── Write side ────────────────────────────────────────────

    def add(
        self,
        content: str,
        owner_id: str,
        created_at: Optional[float] = None,
        emotional_tags: Iterable[str] = (),
        confidence: float = 1.0,
        record_id: Optional[str] = None,
    ) -> MemoryRecord:
        record = MemoryRecord(
            id=record_id or uuid.uuid4().hex[:12],
            content=content,
            created_at=self._clock() if created_at is None else created_at,
            owner_id=owner_id,
            emotional_tags=frozenset(emotional_tags),
            confidence=max(0.0, min(1.0, confidence)),
        )
        return self.add_record(record)

    def add_record(self, record: MemoryRecord) -> MemoryRecord:
        self._records.setdefault(record.owner_id, {})[record.id] = record
        self._embeddings.pop((record.owner_id, record.id), None)
        return record

    def remove(self, owner_id: str, record_id: str) -> bool:
        owned = self._records.get(owner_id, {})
        if record_id in owned:
            del owned[record_id]
            self._embeddings.pop((owner_id, record_id), None)
            return True
        return False

    def count(self, owner_id: Optional[str] = None) -> int:
        if owner_id is not None:
            return len(self._records.get(owner_id, {}))
        return sum(len(v) for v in self._records.values())

    # ── MemoryStore contract ──────────────────────────────────

    async def query(self, filter: MemoryQuery) -> List[MemoryRecord]:
        wanted_tags = {t.lower() for t in filter.emotional_tags}
        hits: List[MemoryRecord] = []
        for record in self._records.get(filter.owner_id, {}).values():
            if filter.time_range is not None and not filter.time_range.contains(record.created_at):
                continue
            if wanted_tags and not (wanted_tags & {t.lower() for t in record.emotional_tags}):
                continue
            if not matches_topic(record, filter.semantic_context):
                continue
            hits.append(record)

        hits.sort(key=lambda r: r.created_at, reverse=True)
        return hits[:max(0, filter.limit)]

    async def semantic_search(self, query: SemanticQuery) -> List[ScoredRecord]:
        query_vec = embed_text(query.text)
        scored: List[ScoredRecord] = []
        for record in self._records.get(query.owner_id, {}).values():
            if not query.time_range.contains(record.created_at):
                continue
            sim = cosine_similarity(query_vec, self._embedding(record))
            if sim >= query.similarity_floor:
                scored.append(ScoredRecord(record=record, relevance=sim))

        scored.sort(key=lambda s: (s.relevance, s.record.created_at), reverse=True)
        return scored[:max(0, query.max_results)]

    # ── Internal ──────────────────────────────────────────────

    def _embedding(self, record: MemoryRecord) -> List[float]:
        vec = self._embeddings.get((record.owner_id, record.id))
        if vec is None:
            vec = embed_text(record.content)
            self._embeddings[(record.owner_id, record.id)] = vec
        return vec
