"""
Conversation phase tracking — where in its arc each active conversation
is, which topics it has touched, and what the user has revealed.

Phases advance ``opening → exploration → deepening → resolution →
closing``.  On every update the transition rules below are checked in
priority order and the first match names the candidate phase:

1. relationship progress above ``closing_progress``  → closing
2. context depth above ``deepening_depth``           → deepening
3. more than ``exploration_topics`` distinct topics  → exploration
4. more than ``resolution_insights`` insights        → resolution
5. otherwise                                         → opening

Progression is monotonic: a candidate earlier in the arc than the
current phase leaves the phase where it is.

Insights come from fixed keyword triggers on the user's text, so the
output is deterministic for a given input sequence.

Publishes:
    - ``conversation_phase_updated`` — after every update
    - ``conversation_ended`` — when a conversation is closed
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from .config import ConversationConfig
from .events import CONVERSATION_ENDED, CONVERSATION_PHASE_UPDATED

logger = logging.getLogger(__name__)


class ConversationPhase(str, Enum):
    OPENING = "opening"
    EXPLORATION = "exploration"
    DEEPENING = "deepening"
    RESOLUTION = "resolution"
    CLOSING = "closing"

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = list(ConversationPhase)

INSIGHT_ASPIRATION = "aspiration"
INSIGHT_SUPPORT_SEEKING = "support_seeking"
INSIGHT_GRATITUDE = "gratitude"


def extract_insights(text: str, emotion: str) -> List[str]:
    """Insights revealed by one user message."""
    lowered = text.lower()
    insights: List[str] = []
    if "dream" in lowered:
        insights.append(INSIGHT_ASPIRATION)
    if emotion.lower() == "sadness" and "help" in lowered:
        insights.append(INSIGHT_SUPPORT_SEEKING)
    if "thank" in lowered:
        insights.append(INSIGHT_GRATITUDE)
    return insights


@dataclass
class ConversationPhaseState:
    """Live state of one conversation."""
    owner_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:10])
    phase: ConversationPhase = ConversationPhase.OPENING
    topics: Set[str] = field(default_factory=set)
    insights: List[str] = field(default_factory=list)
    relationship_progress: float = 0.0
    emotional_journey: List[str] = field(default_factory=list)
    context_depth: float = 0.0
    topic_depth: float = 0.0
    engagement: float = 0.5
    coherence: float = 0.8
    flow_quality: float = 0.0
    turns: int = 0
    started_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.id,
            "owner_id": self.owner_id,
            "phase": self.phase.value,
            "topics": sorted(self.topics),
            "insights": list(self.insights),
            "relationship_progress": self.relationship_progress,
            "emotional_journey": list(self.emotional_journey),
            "context_depth": self.context_depth,
            "topic_depth": round(self.topic_depth, 4),
            "engagement": round(self.engagement, 4),
            "coherence": round(self.coherence, 4),
            "flow_quality": round(self.flow_quality, 4),
            "turns": self.turns,
            "started_at": self.started_at,
            "last_activity": self.last_activity,
        }


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class ConversationPhaseTracker:
    """
    Holds one ``ConversationPhaseState`` per active conversation.

    Usage::

        tracker = ConversationPhaseTracker(event_bus=bus)
        conv = tracker.start("u1", initial_emotion="joy")
        tracker.update(conv.id, "I have a dream", "hope", context_depth=0.4)
    """

    def __init__(
        self,
        config: Optional[ConversationConfig] = None,
        event_bus: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = config or ConversationConfig()
        self.bus = event_bus
        self._clock = clock
        self._active: Dict[str, ConversationPhaseState] = {}
        self._archived: List[ConversationPhaseState] = []

    # ── Lifecycle ─────────────────────────────────────────────

    def start(
        self,
        owner_id: str,
        initial_emotion: str = "",
        conversation_id: Optional[str] = None,
    ) -> ConversationPhaseState:
        now = self._clock()
        state = ConversationPhaseState(owner_id=owner_id, started_at=now, last_activity=now)
        if conversation_id:
            state.id = conversation_id
        if initial_emotion:
            state.emotional_journey.append(initial_emotion.lower())
        self._active[state.id] = state
        logger.debug("Conversation %s started for %s", state.id, owner_id)
        return state

    def update(
        self,
        conversation_id: str,
        text: str,
        emotion: str,
        context_depth: float = 0.0,
        topics: Iterable[str] = (),
        relationship_progress: Optional[float] = None,
    ) -> ConversationPhaseState:
        """Fold one user turn into the conversation and re-evaluate its phase."""
        state = self.get(conversation_id)
        now = self._clock()
        idle = now - state.last_activity
        state.last_activity = now
        state.turns += 1
        state.emotional_journey.append(emotion.lower())
        state.context_depth = _clamp01(context_depth)
        if relationship_progress is not None:
            state.relationship_progress = _clamp01(relationship_progress)
        for topic in topics:
            topic = topic.strip().lower()
            if topic:
                state.topics.add(topic)

        state.topic_depth = self._topic_depth(text, state.topics)
        state.engagement = self._engagement(state)
        state.flow_quality = self._flow_quality(state, idle)
        state.coherence = self._coherence(state.emotional_journey)

        previous = state.phase
        candidate = self.evaluate_phase(state)
        if candidate.rank > previous.rank:
            state.phase = candidate
            logger.debug(
                "Conversation %s: %s -> %s", state.id, previous.value, candidate.value,
            )

        # insights from this turn count towards the next evaluation
        state.insights.extend(extract_insights(text, emotion))

        self._publish(CONVERSATION_PHASE_UPDATED, state)
        return state

    def end(self, conversation_id: str) -> ConversationPhaseState:
        """Close and archive a conversation."""
        state = self.get(conversation_id)
        state.phase = ConversationPhase.CLOSING
        state.last_activity = self._clock()
        del self._active[conversation_id]
        self._archived.append(state)
        self._publish(CONVERSATION_ENDED, state)
        return state

    # ── Queries ───────────────────────────────────────────────

    def get(self, conversation_id: str) -> ConversationPhaseState:
        try:
            return self._active[conversation_id]
        except KeyError:
            raise KeyError(f"no active conversation: {conversation_id}") from None

    def active(self) -> List[ConversationPhaseState]:
        return list(self._active.values())

    def archived(self) -> List[ConversationPhaseState]:
        return list(self._archived)

    def evaluate_phase(self, state: ConversationPhaseState) -> ConversationPhase:
        """Candidate phase from the priority-ordered transition rules."""
        if state.relationship_progress > self.cfg.closing_progress:
            return ConversationPhase.CLOSING
        if state.context_depth > self.cfg.deepening_depth:
            return ConversationPhase.DEEPENING
        if len(state.topics) > self.cfg.exploration_topics:
            return ConversationPhase.EXPLORATION
        if len(state.insights) > self.cfg.resolution_insights:
            return ConversationPhase.RESOLUTION
        return ConversationPhase.OPENING

    def stats(self) -> Dict[str, Any]:
        by_phase: Dict[str, int] = {p.value: 0 for p in ConversationPhase}
        for state in self._active.values():
            by_phase[state.phase.value] += 1
        return {
            "active": len(self._active),
            "archived": len(self._archived),
            "phases": by_phase,
        }

    # ── Flow metrics ──────────────────────────────────────────

    @staticmethod
    def _topic_depth(text: str, topics: Set[str]) -> float:
        """Share of known topics that the latest message touches."""
        if not topics:
            return 0.0
        words = text.lower().split()
        hits = sum(1 for t in topics if any(t in w for w in words))
        return min(1.0, hits / len(topics))

    def _engagement(self, state: ConversationPhaseState) -> float:
        engagement = 0.5
        if state.context_depth > 0.7:
            engagement += 0.2
        if state.relationship_progress > self.cfg.closing_progress:
            engagement += 0.3
        return min(1.0, engagement)

    def _flow_quality(self, state: ConversationPhaseState, idle: float) -> float:
        """Mean of recency, engagement and topic depth; recency fades over ``flow_recency_seconds``."""
        recency = max(0.0, 1.0 - idle / self.cfg.flow_recency_seconds)
        # unmeasured engagement or depth counts as neutral
        engagement = state.engagement or 0.5
        depth = state.topic_depth or 0.5
        return (recency + engagement + depth) / 3.0

    def _coherence(self, journey: List[str]) -> float:
        """Emotional consistency over the last few turns."""
        if len(journey) < 2:
            return 0.8
        recent = journey[-self.cfg.coherence_window:]
        distinct = len(set(recent))
        return max(0.3, 1.0 - (distinct - 1) / 4.0)

    def _publish(self, event: str, state: ConversationPhaseState) -> None:
        if self.bus is not None:
            self.bus.publish(event, state.to_dict())
