"""
Persona session — the explicit owner of one engine's mutable state.

A session bundles the personality trait vector, the emotional history,
the conversation phase tracker and the memory retriever, all built from
injected collaborators (memory store, clock, random source, event bus)
so behaviour is reproducible under test.

Trait and history mutations are single-writer: every coroutine that
touches them goes through one ``asyncio.Lock``.  Retrieval does not
take the lock; it only reads from the store.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import EngineConfig
from .conversation import ConversationPhaseState, ConversationPhaseTracker
from .emotions import EmotionalHistoryLog, EmotionalObservation
from .memory.models import MemoryRecord
from .memory.retriever import MemoryRetriever
from .memory.store import MemoryStore
from .memory.themes import collect_themes, memory_insight
from .traits import AdaptationEvent, PersonalityTraits, TraitAdaptationEngine

logger = logging.getLogger(__name__)


class PersonaSession:
    """
    Usage::

        session = PersonaSession(store, event_bus=bus, rng=random.Random(7))
        conv = session.start_conversation("u1", initial_emotion="joy")
        state, event = await session.process_turn(
            conv.id, "Thank you for listening",
            EmotionalObservation("gratitude", 0.8),
        )
        ctx = await session.recall_context("career", "u1")
    """

    def __init__(
        self,
        store: MemoryStore,
        config: Optional[EngineConfig] = None,
        *,
        traits: Optional[PersonalityTraits] = None,
        history: Optional[EmotionalHistoryLog] = None,
        event_bus: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.cfg = config or EngineConfig()
        self.bus = event_bus
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()

        self.traits = traits if traits is not None else PersonalityTraits()
        self.history = history if history is not None else EmotionalHistoryLog()
        self.adaptation = TraitAdaptationEngine(
            self.traits, self.history, self.cfg.adaptation,
            event_bus=event_bus, clock=clock,
        )
        self.conversations = ConversationPhaseTracker(
            self.cfg.conversation, event_bus=event_bus, clock=clock,
        )
        self.retriever = MemoryRetriever(
            store, self.cfg.retriever, clock=clock, event_bus=event_bus,
        )

    # ── Traits / emotional history ────────────────────────────

    def get_personality_traits(self) -> Dict[str, float]:
        """Snapshot of the trait vector."""
        return self.traits.to_dict()

    async def observe(self, observation: EmotionalObservation) -> Optional[AdaptationEvent]:
        """Record an emotional observation and run an adaptation pass."""
        async with self._lock:
            self.history.append(observation)
            return self.adaptation.adapt()

    async def adapt(self) -> Optional[AdaptationEvent]:
        async with self._lock:
            return self.adaptation.adapt()

    async def set_trait(self, name: str, value: float) -> float:
        async with self._lock:
            return self.adaptation.set_trait(name, value)

    async def learn_from_memory(self, record: MemoryRecord) -> Optional[AdaptationEvent]:
        """Let a newly created memory nudge the traits it speaks to."""
        async with self._lock:
            return self.adaptation.adapt_from_memory(record.content)

    # ── Conversations ─────────────────────────────────────────

    def start_conversation(
        self,
        owner_id: str,
        initial_emotion: str = "",
        conversation_id: Optional[str] = None,
    ) -> ConversationPhaseState:
        return self.conversations.start(owner_id, initial_emotion, conversation_id)

    async def process_turn(
        self,
        conversation_id: str,
        text: str,
        observation: EmotionalObservation,
        context_depth: float = 0.0,
        topics: Iterable[str] = (),
        relationship_progress: Optional[float] = None,
    ) -> Tuple[ConversationPhaseState, Optional[AdaptationEvent]]:
        """
        Feed one user turn to both the trait engine and the phase tracker.

        The same observation drives adaptation and the conversation's
        emotional journey.
        """
        async with self._lock:
            # unknown ids raise before any state changes
            self.conversations.get(conversation_id)
            self.history.append(observation)
            event = self.adaptation.adapt()
            state = self.conversations.update(
                conversation_id,
                text,
                observation.primary_emotion,
                context_depth=context_depth,
                topics=topics,
                relationship_progress=relationship_progress,
            )
        return state, event

    def end_conversation(self, conversation_id: str) -> ConversationPhaseState:
        return self.conversations.end(conversation_id)

    # ── Memory ────────────────────────────────────────────────

    async def retrieve_relevant_memories(self, topic: str, owner_id: str) -> List[MemoryRecord]:
        return await self.retriever.retrieve_relevant_memories(topic, owner_id)

    async def recall_context(self, topic: str, owner_id: str) -> Dict[str, Any]:
        """
        Retrieve memories for *topic* and format them for prompt injection.

        Returns a dict with ``relevant_memories``, ``themes``, ``insight``
        and ``prompt_injection``.
        """
        records = await self.retrieve_relevant_memories(topic, owner_id)
        themes = collect_themes(records)

        if not records:
            prompt_injection = (
                "[Memory Context]\n"
                "No relevant memories found for this conversation."
            )
        else:
            lines = [f"{i}. {r.content}" for i, r in enumerate(records, 1)]
            prompt_injection = (
                f"[Memory Context — {len(records)} memories, newest first]\n"
                + "\n".join(lines)
                + "\nUse these memories to inform your response where relevant. "
                "Do not fabricate memories that are not listed above."
            )

        return {
            "relevant_memories": [r.to_dict() for r in records],
            "themes": themes,
            "insight": memory_insight(records),
            "prompt_injection": prompt_injection,
        }

    # ── Misc ──────────────────────────────────────────────────

    def choose(self, phrases: Sequence[str]) -> str:
        """Pick one phrase with the session's random source; ``""`` if none."""
        if not phrases:
            return ""
        return self._rng.choice(list(phrases))

    def stats(self) -> Dict[str, Any]:
        return {
            "traits": self.get_personality_traits(),
            "current_mood": self.history.current_mood,
            "mood_patterns": self.history.mood_patterns(),
            "adaptation": self.adaptation.stats(),
            "conversations": self.conversations.stats(),
            "retrieval": self.retriever.stats(),
        }
