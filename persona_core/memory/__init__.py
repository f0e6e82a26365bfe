"""
Owner-scoped long-term memory retrieval.

Several independent strategies query the memory store, their candidates
are deduplicated and ranked by recency, and the capped result feeds the
persona's responses.
"""

from .models import (
    MemoryRecord,
    ScoredCandidate,
    StrategySource,
    TimeRange,
    MemoryQuery,
    SemanticQuery,
    ScoredRecord,
)
from .embeddings import embed_text, cosine_similarity, keywords, EMBED_DIM
from .store import MemoryStore, InMemoryMemoryStore, matches_topic
from .strategies import (
    RetrievalStrategy,
    RetrievalStrategyRunner,
    DEFAULT_STRATEGIES,
    EMOTIONAL_TAXONOMY,
)
from .merger import CandidateMerger
from .retriever import MemoryRetriever, RetrievalCache
from .themes import extract_themes, collect_themes, memory_insight
