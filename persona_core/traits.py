"""
Personality trait vector and the engine that adapts it.

Adaptation rules
----------------
Once the emotional history holds ``min_history`` observations, every
adaptation pass looks at the last ``window_size`` of them and

* raises **empathy** by ``adaptation_rate`` when the average intensity
  exceeds ``intensity_threshold``;
* raises **nurturing** by ``adaptation_rate`` when the share of positive
  emotions among the polar ones drops below ``positivity_threshold``.

Both rules may fire in the same pass.  Memories can also nudge wisdom,
creativity and introspection by ``adaptation_rate * memory_rate_factor``
when their content mentions those themes.

Traits only ever move up here; there is no decay path.  Every write goes
through ``PersonalityTraits.set`` which clamps to ``[0, 1]``.

Publishes:
    - ``personality_adapted`` — ``{"trigger": str, "traits": dict}``
    - ``trait_updated`` — explicit setter calls
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional

from .config import AdaptationConfig
from .emotions import EmotionalHistoryLog, EmotionalSignals, compute_signals
from .events import PERSONALITY_ADAPTED, TRAIT_UPDATED

logger = logging.getLogger(__name__)

TRIGGER_EMOTIONAL_PATTERN = "emotional-pattern"
TRIGGER_MEMORY_INSIGHT = "memory-insight"

# trait → content keywords that reinforce it
MEMORY_TRAIT_KEYWORDS: Dict[str, tuple] = {
    "wisdom": ("wisdom", "insight"),
    "creativity": ("creative", "art", "writing"),
    "introspection": ("introspect", "reflect"),
}


# ------------------------------------------------------------------
# Trait vector
# ------------------------------------------------------------------

@dataclass
class PersonalityTraits:
    """
    Named vector of personality dimensions, each in ``[0, 1]``.

    Defaults describe a warm, reflective companion.
    """
    empathy: float = 0.9
    wisdom: float = 0.8
    playfulness: float = 0.7
    directness: float = 0.6
    creativity: float = 0.8
    introspection: float = 0.9
    nurturing: float = 0.9
    authenticity: float = 1.0
    adaptability: float = 0.8
    resilience: float = 0.7
    curiosity: float = 0.9
    patience: float = 0.8
    humor: float = 0.7
    optimism: float = 0.8
    sensitivity: float = 0.9
    confidence: float = 0.8
    emotional_resilience: float = 0.8

    def __post_init__(self):
        for name in self.names():
            setattr(self, name, max(0.0, min(1.0, float(getattr(self, name)))))

    @classmethod
    def names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def get(self, name: str) -> float:
        if name not in self.names():
            raise KeyError(f"unknown trait: {name}")
        return getattr(self, name)

    def set(self, name: str, value: float) -> float:
        """Clamp *value* into ``[0, 1]``, store it and return it."""
        if name not in self.names():
            raise KeyError(f"unknown trait: {name}")
        clamped = max(0.0, min(1.0, float(value)))
        setattr(self, name, clamped)
        return clamped

    def raise_by(self, name: str, delta: float) -> float:
        return self.set(name, min(1.0, self.get(name) + delta))

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "PersonalityTraits":
        known = set(cls.names())
        return cls(**{k: v for k, v in data.items() if k in known})

    def copy(self) -> "PersonalityTraits":
        return PersonalityTraits(**self.to_dict())


@dataclass
class AdaptationEvent:
    trigger: str
    traits: Dict[str, float]
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {"trigger": self.trigger, "traits": dict(self.traits)}


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class TraitAdaptationEngine:
    """
    Mutates one ``PersonalityTraits`` instance from an emotional history.

    Not safe for concurrent use on its own; ``PersonaSession`` serialises
    calls behind a lock.
    """

    def __init__(
        self,
        traits: PersonalityTraits,
        history: EmotionalHistoryLog,
        config: Optional[AdaptationConfig] = None,
        event_bus: Optional[Any] = None,
        clock=time.time,
    ):
        self.traits = traits
        self.history = history
        self.cfg = config or AdaptationConfig()
        self.bus = event_bus
        self._clock = clock
        self._adaptations = 0
        self._last_event: Optional[AdaptationEvent] = None

    @property
    def last_event(self) -> Optional[AdaptationEvent]:
        return self._last_event

    def signals(self) -> EmotionalSignals:
        return compute_signals(self.history.window(self.cfg.window_size))

    def adapt(self) -> Optional[AdaptationEvent]:
        """
        Run one adaptation pass over the recent emotional window.

        Returns the emitted event, or ``None`` when the history is still
        too short (nothing changes and nothing is published).
        """
        if len(self.history) < self.cfg.min_history:
            logger.debug(
                "Skipping adaptation: %d/%d observations",
                len(self.history), self.cfg.min_history,
            )
            return None

        sig = self.signals()
        rate = self.cfg.adaptation_rate

        if sig.avg_intensity > self.cfg.intensity_threshold:
            self.traits.raise_by("empathy", rate)

        if sig.positivity_ratio < self.cfg.positivity_threshold:
            self.traits.raise_by("nurturing", rate)

        logger.debug(
            "Adapted traits (avg_intensity=%.3f, positivity=%.3f)",
            sig.avg_intensity, sig.positivity_ratio,
        )
        return self._emit(TRIGGER_EMOTIONAL_PATTERN)

    def adapt_from_memory(self, content: str) -> Optional[AdaptationEvent]:
        """Nudge traits whose keywords appear in *content*."""
        lowered = content.lower()
        step = self.cfg.adaptation_rate * self.cfg.memory_rate_factor
        touched = [
            trait for trait, words in MEMORY_TRAIT_KEYWORDS.items()
            if any(w in lowered for w in words)
        ]
        if not touched:
            return None
        for trait in touched:
            self.traits.raise_by(trait, step)
        return self._emit(TRIGGER_MEMORY_INSIGHT)

    def set_trait(self, name: str, value: float) -> float:
        """Explicit external override; clamped like every other write."""
        stored = self.traits.set(name, value)
        if self.bus is not None:
            self.bus.publish(TRAIT_UPDATED, {
                "trait": name,
                "value": stored,
                "traits": self.traits.to_dict(),
            })
        return stored

    def stats(self) -> Dict[str, Any]:
        sig = self.signals()
        return {
            "adaptations": self._adaptations,
            "last_trigger": self._last_event.trigger if self._last_event else None,
            "history_length": len(self.history),
            "avg_intensity": round(sig.avg_intensity, 4),
            "positivity_ratio": round(sig.positivity_ratio, 4),
        }

    # ── Internal ──────────────────────────────────────────────

    def _emit(self, trigger: str) -> AdaptationEvent:
        event = AdaptationEvent(
            trigger=trigger,
            traits=self.traits.to_dict(),
            timestamp=self._clock(),
        )
        self._adaptations += 1
        self._last_event = event
        if self.bus is not None:
            self.bus.publish(PERSONALITY_ADAPTED, event.to_dict())
        return event
