"""
Retrieval strategies — independent, bounded queries against the memory
store whose candidate lists are merged afterwards.

Each strategy is one row of ``DEFAULT_STRATEGIES``: a source label, a
fixed weight (``None`` means "use the store-reported relevance"), a
result cap and a builder that turns ``(topic, owner_id, now)`` into a
store request.  ``RetrievalStrategyRunner`` walks the table generically.

Strategies run concurrently; their outputs are returned in table order,
so scheduling never changes what the merger sees.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .models import (
    MemoryQuery,
    ScoredCandidate,
    SemanticQuery,
    StrategySource,
    TimeRange,
)
from .store import MemoryStore

logger = logging.getLogger(__name__)

# Emotional tags the emotional-pattern strategy looks for.
EMOTIONAL_TAXONOMY = frozenset({"joy", "sadness", "anxiety", "excitement", "confusion"})

StoreRequest = Union[MemoryQuery, SemanticQuery]


@dataclass(frozen=True)
class RetrievalStrategy:
    source: StrategySource
    weight: Optional[float]
    limit: int
    build: Callable[[str, str, float, int], StoreRequest]

    @property
    def semantic(self) -> bool:
        return self.weight is None


# ------------------------------------------------------------------
# Request builders: (topic, owner_id, now, limit) -> request
# ------------------------------------------------------------------

def _semantic(topic: str, owner_id: str, now: float, limit: int) -> SemanticQuery:
    return SemanticQuery(
        text=topic,
        owner_id=owner_id,
        similarity_floor=0.3,
        time_range=TimeRange.days_ago(now, 0, 90),
        max_results=limit,
    )


def _recent(topic: str, owner_id: str, now: float, limit: int) -> MemoryQuery:
    return MemoryQuery(
        owner_id=owner_id,
        limit=limit,
        time_range=TimeRange.days_ago(now, 0, 7),
        semantic_context=topic,
    )


def _historical(topic: str, owner_id: str, now: float, limit: int) -> MemoryQuery:
    return MemoryQuery(
        owner_id=owner_id,
        limit=limit,
        time_range=TimeRange.days_ago(now, 30, 90),
        semantic_context=topic,
    )


def _emotional(topic: str, owner_id: str, now: float, limit: int) -> MemoryQuery:
    return MemoryQuery(
        owner_id=owner_id,
        limit=limit,
        semantic_context=topic,
        emotional_tags=EMOTIONAL_TAXONOMY,
    )


def _topic_only(topic: str, owner_id: str, now: float, limit: int) -> MemoryQuery:
    return MemoryQuery(owner_id=owner_id, limit=limit, semantic_context=topic)


DEFAULT_STRATEGIES: Tuple[RetrievalStrategy, ...] = (
    RetrievalStrategy(StrategySource.SEMANTIC, None, 20, _semantic),
    RetrievalStrategy(StrategySource.RECENT, 0.9, 10, _recent),
    RetrievalStrategy(StrategySource.HISTORICAL, 0.7, 10, _historical),
    RetrievalStrategy(StrategySource.EMOTIONAL, 0.8, 8, _emotional),
    RetrievalStrategy(StrategySource.RELATIONSHIP, 0.85, 8, _topic_only),
    RetrievalStrategy(StrategySource.THEMATIC, 0.75, 8, _topic_only),
)


# ------------------------------------------------------------------
# Runner
# ------------------------------------------------------------------

class RetrievalStrategyRunner:
    """
    Executes every strategy against one store and collects candidates.

    A strategy whose store call raises contributes nothing; the failure
    is logged and the remaining strategies are unaffected.  Records that
    belong to another owner are discarded whatever the store returned.
    """

    def __init__(
        self,
        store: MemoryStore,
        strategies: Sequence[RetrievalStrategy] = DEFAULT_STRATEGIES,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.strategies = tuple(strategies)
        self._clock = clock
        self._failures = 0

    @property
    def failures(self) -> int:
        """Strategy calls that raised since construction."""
        return self._failures

    async def run(self, topic: str, owner_id: str) -> List[List[ScoredCandidate]]:
        """One candidate list per strategy, in table order."""
        now = self._clock()
        return list(await asyncio.gather(
            *(self._run_one(s, topic, owner_id, now) for s in self.strategies)
        ))

    async def run_flat(self, topic: str, owner_id: str) -> List[ScoredCandidate]:
        """All candidates concatenated in table order."""
        return [c for batch in await self.run(topic, owner_id) for c in batch]

    async def _run_one(
        self,
        strategy: RetrievalStrategy,
        topic: str,
        owner_id: str,
        now: float,
    ) -> List[ScoredCandidate]:
        request = strategy.build(topic, owner_id, now, strategy.limit)
        try:
            if strategy.semantic:
                hits = await self.store.semantic_search(request)
                pairs = [(h.record, h.relevance) for h in hits]
            else:
                records = await self.store.query(request)
                pairs = [(r, strategy.weight) for r in records]
        except Exception as e:
            self._failures += 1
            logger.warning("Retrieval strategy %s failed: %s", strategy.source.value, e)
            return []

        candidates: List[ScoredCandidate] = []
        for record, score in pairs[:strategy.limit]:
            if record.owner_id != owner_id:
                logger.warning(
                    "Dropping record %s from strategy %s: owner mismatch",
                    record.id, strategy.source.value,
                )
                continue
            candidates.append(ScoredCandidate(record=record, score=score, source=strategy.source))

        logger.debug("Strategy %s returned %d candidates", strategy.source.value, len(candidates))
        return candidates
