"""
Tests for persona_core/emotions.py — observations, history log and
window signals.
"""

from __future__ import annotations

import pytest

from persona_core.emotions import (
    EmotionalHistoryLog,
    EmotionalObservation,
    SecondaryEmotion,
    compute_signals,
)


def _obs(emotion, intensity=0.5, ts=0.0):
    return EmotionalObservation(emotion, intensity, timestamp=ts)


class TestObservation:
    def test_intensity_clamped(self):
        assert _obs("joy", 1.7).intensity == 1.0
        assert _obs("joy", -0.2).intensity == 0.0

    def test_polarity_is_case_insensitive(self):
        assert _obs("Joy").is_positive
        assert _obs("ANXIETY").is_negative
        assert not _obs("surprise").is_positive
        assert not _obs("surprise").is_negative

    def test_secondary_emotions_from_dicts(self):
        obs = EmotionalObservation(
            "joy", 0.5, [{"emotion": "hope", "intensity": 0.4}], timestamp=1.0,
        )
        assert obs.secondary_emotions == (SecondaryEmotion("hope", 0.4),)
        assert obs.to_dict()["secondary_emotions"] == [{"emotion": "hope", "intensity": 0.4}]

    def test_secondary_emotions_clamped_and_serialised(self):
        obs = EmotionalObservation(
            "sadness", 0.6, [SecondaryEmotion("fear", 2.0)], timestamp=10.0,
        )
        assert obs.to_dict() == {
            "primary_emotion": "sadness",
            "intensity": 0.6,
            "secondary_emotions": [{"emotion": "fear", "intensity": 1.0}],
            "timestamp": 10.0,
        }


class TestHistoryLog:
    def test_window_returns_most_recent_oldest_first(self):
        log = EmotionalHistoryLog(_obs(e) for e in ["joy", "love", "fear", "hope"])
        assert [o.emotion for o in log.window(2)] == ["fear", "hope"]
        assert len(log.window(10)) == 4
        assert log.window(0) == []

    def test_append_keeps_everything(self):
        log = EmotionalHistoryLog()
        for i in range(25):
            log.append(_obs("joy", ts=i))
        assert len(log) == 25

    def test_current_mood(self):
        log = EmotionalHistoryLog()
        assert log.current_mood == "neutral"
        log.append(_obs("Gratitude"))
        assert log.current_mood == "gratitude"

    def test_mood_patterns(self):
        log = EmotionalHistoryLog(_obs(e) for e in ["joy", "Joy", "fear"])
        assert log.mood_patterns() == {"joy": 2, "fear": 1}


class TestSignals:
    def test_empty_window(self):
        sig = compute_signals([])
        assert sig.avg_intensity == 0.0
        assert sig.positivity_ratio == 0.0

    def test_mixed_window(self):
        window = [_obs("joy", 0.8), _obs("sadness", 0.4), _obs("hope", 0.6), _obs("surprise", 0.2)]
        sig = compute_signals(window)
        assert sig.avg_intensity == pytest.approx(0.5)
        assert (sig.positive_count, sig.negative_count) == (2, 1)
        assert sig.positivity_ratio == pytest.approx(2 / 3)

    def test_no_polar_emotions_gives_zero_ratio(self):
        sig = compute_signals([_obs("surprise"), _obs("calm")])
        assert sig.positivity_ratio == 0.0
