"""
Notification channel for persona state changes.

The engine never reaches for a global bus: every component takes an
optional ``event_bus`` and calls ``publish(event, payload)`` on it.
``EventBus`` is the default implementation, a QObject so it can live
inside a Qt event loop when the host application has one.

Subscribers are isolated from publishers.  PyQt aborts the process on
an exception escaping a slot, so each callback is connected through a
guard that logs the exception and drops it; the remaining subscribers
still run and ``publish`` returns normally.

Channels published by ``persona_core``
--------------------------------------
* ``personality_adapted`` — ``{"trigger": str, "traits": dict}``
* ``trait_updated`` — ``{"trait": str, "value": float, "traits": dict}``
* ``conversation_phase_updated`` — ``ConversationPhaseState.to_dict()``
* ``conversation_ended`` — ``ConversationPhaseState.to_dict()``
* ``memories_retrieved`` — ``{"owner_id": str, "topic": str, "count": int}``
* ``config_changed`` — ``{"key": str, "value": Any}``
"""

from __future__ import annotations

import logging
from typing import Any, Callable
from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)

PERSONALITY_ADAPTED = "personality_adapted"
TRAIT_UPDATED = "trait_updated"
CONVERSATION_PHASE_UPDATED = "conversation_phase_updated"
CONVERSATION_ENDED = "conversation_ended"
MEMORIES_RETRIEVED = "memories_retrieved"
CONFIG_CHANGED = "config_changed"

Callback = Callable[[dict[str, Any]], None]


class _Channel(QObject):
    """One named channel; carries a dict payload."""
    fired = pyqtSignal(dict)


def _guarded(event: str, callback: Callback) -> Callback:
    def slot(data: dict[str, Any]) -> None:
        try:
            callback(data)
        except Exception:
            logger.exception("Subscriber %r on %s raised", callback, event)
    return slot


class EventBus(QObject):
    """
    Publish/subscribe bus keyed by channel name.

    Usage
    -----
    bus = EventBus()
    bus.subscribe(PERSONALITY_ADAPTED, lambda d: print(d["traits"]))
    engine = TraitAdaptationEngine(traits, log, event_bus=bus)
    """

    def __init__(self, parent: QObject | None = None):
        super().__init__(parent)
        self._channels: dict[str, _Channel] = {}
        # (event, callback) -> guarded slots actually connected
        self._slots: dict[tuple[str, Callback], list[Callback]] = {}

    def _channel(self, event: str) -> _Channel:
        if event not in self._channels:
            self._channels[event] = _Channel(self)
        return self._channels[event]

    def subscribe(self, event: str, callback: Callback) -> None:
        slot = _guarded(event, callback)
        self._slots.setdefault((event, callback), []).append(slot)
        self._channel(event).fired.connect(slot)

    def unsubscribe(self, event: str, callback: Callback) -> None:
        """Remove one subscription of *callback*; unknown pairs are ignored."""
        slots = self._slots.get((event, callback))
        if not slots:
            return
        slot = slots.pop()
        if not slots:
            del self._slots[(event, callback)]
        self._channels[event].fired.disconnect(slot)

    def publish(self, event: str, data: dict[str, Any] | None = None) -> None:
        self._channel(event).fired.emit(data if data is not None else {})

    def subscriber_count(self, event: str) -> int:
        return sum(len(v) for (e, _), v in self._slots.items() if e == event)

    def channels(self) -> list[str]:
        """Names of channels that have been used so far."""
        return sorted(self._channels)
