"""
Fan-in of strategy candidates: deduplicate, order, cap.

Ordering is by recency only (newest ``created_at`` first).  Candidate
scores survive on ``ScoredCandidate`` for diagnostics but do not take
part in the sort.
"""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from .models import MemoryRecord, ScoredCandidate


class CandidateMerger:
    """
    Collapses duplicates across strategies and ranks what is left.

    Two candidates are duplicates when they share the first
    ``prefix_chars`` characters of content and the same creation time.
    The first one in stream order is kept.
    """

    def __init__(self, max_results: int = 15, prefix_chars: int = 50):
        self.max_results = max_results
        self.prefix_chars = prefix_chars

    def deduplicate(self, candidates: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
        seen: Set[Tuple[str, float]] = set()
        unique: List[ScoredCandidate] = []
        for c in candidates:
            key = c.record.dedup_key(self.prefix_chars)
            if key in seen:
                continue
            seen.add(key)
            unique.append(c)
        return unique

    def rank(self, candidates: Iterable[ScoredCandidate]) -> List[ScoredCandidate]:
        """Deduplicated candidates, newest first, capped."""
        unique = self.deduplicate(candidates)
        # sorted() is stable with reverse=True: equal timestamps keep stream order
        unique = sorted(unique, key=lambda c: c.record.created_at, reverse=True)
        return unique[:self.max_results]

    def merge(self, candidates: Iterable[ScoredCandidate]) -> List[MemoryRecord]:
        return [c.record for c in self.rank(candidates)]
