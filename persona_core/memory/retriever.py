"""
Public entry point of the retrieval pipeline.

``MemoryRetriever.retrieve_relevant_memories(topic, owner_id)`` fans out
over every retrieval strategy, merges the candidates and returns at most
``max_results`` records, newest first.  It never raises: a failing
dependency degrades the answer to "nothing relevant surfaced".

An optional ``RetrievalCache`` sits in front of the pipeline.  It is a
plain TTL map keyed by ``(topic, owner_id)``; concurrent misses for the
same key each run the pipeline.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import RetrieverConfig
from ..events import MEMORIES_RETRIEVED
from .merger import CandidateMerger
from .models import MemoryRecord
from .store import MemoryStore
from .strategies import DEFAULT_STRATEGIES, RetrievalStrategy, RetrievalStrategyRunner

logger = logging.getLogger(__name__)


class RetrievalCache:
    """Time-bounded cache of retrieval results."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[float, List[MemoryRecord]]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, topic: str, owner_id: str) -> Optional[List[MemoryRecord]]:
        key = (topic, owner_id)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        stored_at, records = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return list(records)

    def put(self, topic: str, owner_id: str, records: List[MemoryRecord]) -> None:
        self._entries[(topic, owner_id)] = (self._clock(), list(records))

    def invalidate(self, owner_id: Optional[str] = None) -> None:
        """Drop every entry, or only those of *owner_id*."""
        if owner_id is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[1] == owner_id]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class MemoryRetriever:
    """
    Multi-strategy retrieval over an owner-scoped memory store.

    Usage::

        retriever = MemoryRetriever(store)
        records = await retriever.retrieve_relevant_memories("career change", "u1")
    """

    def __init__(
        self,
        store: MemoryStore,
        config: Optional[RetrieverConfig] = None,
        *,
        strategies: Tuple[RetrievalStrategy, ...] = DEFAULT_STRATEGIES,
        clock: Callable[[], float] = time.time,
        event_bus: Optional[Any] = None,
    ):
        self.cfg = config or RetrieverConfig()
        self.bus = event_bus
        self.runner = RetrievalStrategyRunner(store, strategies, clock=clock)
        self.merger = CandidateMerger(
            max_results=self.cfg.max_results,
            prefix_chars=self.cfg.dedup_prefix_chars,
        )
        self.cache: Optional[RetrievalCache] = (
            RetrievalCache(self.cfg.cache_ttl_seconds, clock=clock)
            if self.cfg.cache_enabled else None
        )
        self._retrievals = 0
        self._errors = 0

    async def retrieve_relevant_memories(self, topic: str, owner_id: str) -> List[MemoryRecord]:
        topic = topic or ""
        if self.cache is not None:
            cached = self.cache.get(topic, owner_id)
            if cached is not None:
                logger.debug("Retrieval cache hit for owner %s", owner_id)
                return cached

        failures_before = self.runner.failures
        try:
            candidates = await self.runner.run_flat(topic, owner_id)
            records = self.merger.merge(candidates)
        except Exception:
            self._errors += 1
            logger.exception("Memory retrieval failed for owner %s", owner_id)
            return []

        self._retrievals += 1
        # results from a pass with failed strategies are not cached
        if self.cache is not None and self.runner.failures == failures_before:
            self.cache.put(topic, owner_id, records)
        if self.bus is not None:
            self.bus.publish(MEMORIES_RETRIEVED, {
                "owner_id": owner_id,
                "topic": topic,
                "count": len(records),
            })
        return records

    def stats(self) -> Dict[str, Any]:
        return {
            "retrievals": self._retrievals,
            "errors": self._errors,
            "strategy_failures": self.runner.failures,
            "cache_entries": len(self.cache) if self.cache is not None else 0,
            "cache_hits": self.cache.hits if self.cache is not None else 0,
        }
