"""
Emotional observations and the rolling history they accumulate in.

The history is append-only and keeps every observation so it can be
replayed; consumers read a bounded window of the most recent entries
(``window(n)``) rather than trimming at write time.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

POSITIVE_EMOTIONS = frozenset({"joy", "love", "gratitude", "hope"})
NEGATIVE_EMOTIONS = frozenset({"sadness", "anger", "fear", "anxiety"})


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class SecondaryEmotion:
    emotion: str
    intensity: float

    def __post_init__(self):
        object.__setattr__(self, "intensity", _clamp01(self.intensity))


@dataclass(frozen=True)
class EmotionalObservation:
    """One emotional reading of the user at a point in time."""
    primary_emotion: str
    intensity: float
    secondary_emotions: Tuple[SecondaryEmotion, ...] = ()
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, "intensity", _clamp01(self.intensity))
        object.__setattr__(self, "secondary_emotions", tuple(
            SecondaryEmotion(s["emotion"], s.get("intensity", 0.0)) if isinstance(s, dict) else s
            for s in self.secondary_emotions
        ))

    @property
    def emotion(self) -> str:
        """Primary emotion, lower-cased for set lookups."""
        return self.primary_emotion.lower()

    @property
    def is_positive(self) -> bool:
        return self.emotion in POSITIVE_EMOTIONS

    @property
    def is_negative(self) -> bool:
        return self.emotion in NEGATIVE_EMOTIONS

    def to_dict(self) -> Dict[str, object]:
        return {
            "primary_emotion": self.primary_emotion,
            "intensity": self.intensity,
            "secondary_emotions": [
                {"emotion": s.emotion, "intensity": s.intensity}
                for s in self.secondary_emotions
            ],
            "timestamp": self.timestamp,
        }


class EmotionalHistoryLog:
    """Append-only sequence of ``EmotionalObservation``."""

    def __init__(self, observations: Optional[Iterable[EmotionalObservation]] = None):
        self._entries: List[EmotionalObservation] = list(observations or ())

    def append(self, observation: EmotionalObservation) -> None:
        self._entries.append(observation)

    def window(self, size: int) -> List[EmotionalObservation]:
        """The last *size* observations, oldest first."""
        if size <= 0:
            return []
        return self._entries[-size:]

    @property
    def current_mood(self) -> str:
        """Primary emotion of the latest observation, ``"neutral"`` when empty."""
        return self._entries[-1].emotion if self._entries else "neutral"

    def mood_patterns(self) -> Dict[str, int]:
        """How often each primary emotion has been observed."""
        return dict(Counter(o.emotion for o in self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[EmotionalObservation]:
        return iter(list(self._entries))


# ------------------------------------------------------------------
# Window signals
# ------------------------------------------------------------------

@dataclass(frozen=True)
class EmotionalSignals:
    avg_intensity: float
    positive_count: int
    negative_count: int
    positivity_ratio: float


def compute_signals(window: List[EmotionalObservation]) -> EmotionalSignals:
    """Average intensity and positive/negative balance of *window*."""
    if not window:
        return EmotionalSignals(0.0, 0, 0, 0.0)
    avg = sum(o.intensity for o in window) / len(window)
    pos = sum(1 for o in window if o.is_positive)
    neg = sum(1 for o in window if o.is_negative)
    # no polar emotions at all → ratio 0
    ratio = pos / ((pos + neg) or 1)
    return EmotionalSignals(avg, pos, neg, ratio)
