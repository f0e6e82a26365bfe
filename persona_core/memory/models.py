"""
Data structures shared by the retrieval pipeline.

``MemoryRecord`` is owned by the external memory store; the engine only
reads it, so it is frozen.  Timestamps are Unix epoch seconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple

SECONDS_PER_DAY = 86400.0


class StrategySource(str, Enum):
    """Which retrieval strategy produced a candidate."""
    SEMANTIC = "semantic"
    RECENT = "recent"
    HISTORICAL = "historical"
    EMOTIONAL = "emotional"
    RELATIONSHIP = "relationship"
    THEMATIC = "thematic"


@dataclass(frozen=True)
class MemoryRecord:
    """One past interaction as stored by the memory store."""
    id: str
    content: str
    created_at: float
    owner_id: str
    emotional_tags: FrozenSet[str] = frozenset()
    confidence: float = 1.0

    def __post_init__(self):
        # Accept any iterable of tags from callers.
        if not isinstance(self.emotional_tags, frozenset):
            object.__setattr__(self, "emotional_tags", frozenset(self.emotional_tags))

    def dedup_key(self, prefix_chars: int = 50) -> Tuple[str, float]:
        """Identity used to collapse the same record seen by several strategies."""
        return self.content[:prefix_chars], self.created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "created_at": self.created_at,
            "owner_id": self.owner_id,
            "emotional_tags": sorted(self.emotional_tags),
            "confidence": self.confidence,
        }


@dataclass
class ScoredCandidate:
    """A record paired with the score and strategy that surfaced it."""
    record: MemoryRecord
    score: float
    source: StrategySource


@dataclass(frozen=True)
class TimeRange:
    start: float
    end: float

    @classmethod
    def days_ago(cls, now: float, newest_days: float, oldest_days: float) -> "TimeRange":
        """Window from *oldest_days* ago up to *newest_days* ago."""
        return cls(
            start=now - oldest_days * SECONDS_PER_DAY,
            end=now - newest_days * SECONDS_PER_DAY,
        )

    def contains(self, ts: float) -> bool:
        return self.start <= ts <= self.end


@dataclass(frozen=True)
class MemoryQuery:
    """Filter accepted by ``MemoryStore.query``."""
    owner_id: str
    limit: int
    time_range: Optional[TimeRange] = None
    semantic_context: Optional[str] = None
    emotional_tags: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class SemanticQuery:
    """Request accepted by ``MemoryStore.semantic_search``."""
    text: str
    owner_id: str
    similarity_floor: float
    time_range: TimeRange
    max_results: int


@dataclass(frozen=True)
class ScoredRecord:
    """A semantic-search hit with the store-reported relevance."""
    record: MemoryRecord
    relevance: float
