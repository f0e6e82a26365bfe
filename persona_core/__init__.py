"""
persona-core — long-term-memory-augmented personality engine.

Retrieves past interactions relevant to a topic, adapts a personality
trait vector from accumulated emotional signal and tracks the phase of
each conversation.
"""

from .events import EventBus
from .config import (
    Config,
    EngineConfig,
    RetrieverConfig,
    AdaptationConfig,
    ConversationConfig,
)
from .emotions import (
    EmotionalObservation,
    SecondaryEmotion,
    EmotionalHistoryLog,
    EmotionalSignals,
    compute_signals,
    POSITIVE_EMOTIONS,
    NEGATIVE_EMOTIONS,
)
from .traits import PersonalityTraits, TraitAdaptationEngine, AdaptationEvent
from .conversation import (
    ConversationPhase,
    ConversationPhaseState,
    ConversationPhaseTracker,
    extract_insights,
)
from .memory import (
    MemoryRecord,
    MemoryStore,
    InMemoryMemoryStore,
    MemoryRetriever,
    CandidateMerger,
    RetrievalStrategyRunner,
    ScoredCandidate,
    StrategySource,
)
from .session import PersonaSession

__version__ = "0.1.0"
