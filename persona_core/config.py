"""
Engine configuration.

Two layers:

* ``Config`` — hierarchical settings backed by a JSON file, keys in dot
  notation (``"persona.adaptation_rate"``).  Every ``set()`` publishes
  ``config_changed`` on the bus.
* Typed dataclass configs (``RetrieverConfig``, ``AdaptationConfig``,
  ``ConversationConfig``) consumed by the components.  Their defaults
  are the engine's tuned constants; ``EngineConfig.from_config()``
  overlays whatever the ``persona`` section of a ``Config`` holds.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .events import CONFIG_CHANGED

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path("persona_config.json")


class Config:
    """
    JSON-backed settings store.

    A missing or corrupt file starts out empty; it is rewritten on the
    next ``set()``.
    """

    def __init__(self, event_bus: Optional[Any] = None, path: Path | str = _DEFAULT_PATH):
        self._bus = event_bus
        self._path = Path(path)
        self._data: dict[str, Any] = {}
        self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        parts = key.split(".")
        node: Any = self._data
        for p in parts[:-1]:
            node = node.get(p, {})
            if not isinstance(node, dict):
                return default
        return node.get(parts[-1], default)

    def set(self, key: str, value: Any, *, save: bool = True) -> None:
        parts = key.split(".")
        node = self._data
        for p in parts[:-1]:
            child = node.get(p)
            if not isinstance(child, dict):
                child = {}
                node[p] = child
            node = child
        node[parts[-1]] = value

        if save:
            self._save()

        if self._bus is not None:
            self._bus.publish(CONFIG_CHANGED, {"key": key, "value": value})

    def section(self, prefix: str) -> dict[str, Any]:
        """Shallow copy of everything under *prefix*."""
        node: Any = self._data
        for p in prefix.split("."):
            node = node.get(p, {})
            if not isinstance(node, dict):
                return {}
        return dict(node)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self._path, e)
            return
        if isinstance(data, dict):
            self._data = data

    def _save(self) -> None:
        try:
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Could not write config %s: %s", self._path, e)


# ------------------------------------------------------------------
# Component configs
# ------------------------------------------------------------------

@dataclass
class RetrieverConfig:
    """Retrieval pipeline tuning."""
    max_results: int = 15              # final cap after ranking
    dedup_prefix_chars: int = 50       # content prefix used in the dedup key
    cache_enabled: bool = True
    cache_ttl_seconds: float = 5.0     # same as the adaptation cooldown


@dataclass
class AdaptationConfig:
    adaptation_rate: float = 0.05      # step per adaptation, in (0, 1)
    min_history: int = 5               # observations needed before adapting
    window_size: int = 10              # most recent observations considered
    intensity_threshold: float = 0.7   # avg intensity above this → empathy
    positivity_threshold: float = 0.4  # ratio below this → nurturing
    memory_rate_factor: float = 0.5    # scale of memory-driven nudges

    def __post_init__(self):
        if not 0.0 < self.adaptation_rate < 1.0:
            raise ValueError(
                f"adaptation_rate must be in (0, 1), got {self.adaptation_rate}"
            )
        if self.min_history < 1 or self.window_size < self.min_history:
            raise ValueError("window_size must be >= min_history >= 1")


@dataclass
class ConversationConfig:
    closing_progress: float = 0.8      # relationship progress above this → closing
    deepening_depth: float = 0.8       # context depth above this → deepening
    exploration_topics: int = 3        # distinct topics above this → exploration
    resolution_insights: int = 5       # insights above this → resolution
    coherence_window: int = 5          # emotions considered for coherence
    flow_recency_seconds: float = 300.0  # idle time at which flow recency reaches 0


@dataclass
class EngineConfig:
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    adaptation: AdaptationConfig = field(default_factory=AdaptationConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)

    @classmethod
    def from_config(cls, config: Config, prefix: str = "persona") -> "EngineConfig":
        """Build component configs from the *prefix* section of *config*."""
        s = config.section(prefix)
        cooldown = float(s.get("adaptation_cooldown", RetrieverConfig.cache_ttl_seconds))
        retriever = RetrieverConfig(
            max_results=int(s.get("max_results", RetrieverConfig.max_results)),
            cache_enabled=bool(s.get("cache_enabled", RetrieverConfig.cache_enabled)),
            cache_ttl_seconds=cooldown,
        )
        adaptation = AdaptationConfig(
            adaptation_rate=float(s.get("adaptation_rate", AdaptationConfig.adaptation_rate)),
            min_history=int(s.get("min_history", AdaptationConfig.min_history)),
            window_size=int(s.get("window_size", AdaptationConfig.window_size)),
        )
        return cls(retriever=retriever, adaptation=adaptation)
