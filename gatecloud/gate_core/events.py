"""
Engine Events
=============

Outbound, fire-and-forget notifications for the presentation layer, plus
short-lived effect tickets with explicit expiry.

The engine never waits on a listener and never reads anything back from
one. Effect tickets replace timer-based effect cleanup: the presentation
layer asks for the effects still alive at its own clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

EVENT_COLLISION = "collision"
EVENT_WALL_BOUNCE = "wall_bounce"
EVENT_ZONE_LANDED = "zone_landed"
EVENT_TARGET_CHECK = "target_check"
EVENT_TOKEN_SPAWNED = "token_spawned"
EVENT_GAME_ENDED = "game_ended"
EVENT_STATE_CHANGED = "state_changed"

EventCallback = Callable[["GameEvent"], None]


@dataclass
class GameEvent:
    """A single engine event."""
    kind: str
    frame: int
    position: Optional[Tuple[float, float]] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"GameEvent({self.kind}@{self.frame}, {self.data})"


@dataclass(frozen=True)
class EffectTicket:
    """A transient visual effect with its own expiry time."""
    kind: str
    position: Tuple[float, float]
    created_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class EventLog:
    """
    Collects events for the current session.

    Events are buffered until drained and also pushed to subscribers.
    Subscriber errors are logged and do not interrupt the tick.
    Expired effect tickets are pruned whenever a new ticket is added, and
    both buffers are capped.
    """

    def __init__(self, max_buffered: int = 1000, max_effects: int = 256):
        self._events: List[GameEvent] = []
        self._effects: List[EffectTicket] = []
        self._subscribers: List[EventCallback] = []
        self._max_buffered = max_buffered
        self._max_effects = max_effects

    @property
    def effect_count(self) -> int:
        """Tickets held, live or not yet pruned."""
        return len(self._effects)

    def subscribe(self, callback: EventCallback) -> None:
        """Register a listener called for every emitted event."""
        self._subscribers.append(callback)

    def emit(
        self,
        kind: str,
        frame: int,
        position: Optional[Tuple[float, float]] = None,
        **data: Any
    ) -> GameEvent:
        """Record an event and notify subscribers."""
        event = GameEvent(kind=kind, frame=frame, position=position, data=data)
        self._events.append(event)
        if len(self._events) > self._max_buffered:
            self._events = self._events[-self._max_buffered:]

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Event listener failed on %s", kind)
        return event

    def add_effect(
        self,
        kind: str,
        position: Tuple[float, float],
        created_at: float,
        ttl: float
    ) -> EffectTicket:
        """
        Add a ticket created at ``created_at`` (the current tick time).

        Tickets already expired at that time are dropped first; beyond
        ``max_effects`` the oldest tickets go.
        """
        self._prune(created_at)
        ticket = EffectTicket(kind=kind, position=position, created_at=created_at, ttl=ttl)
        self._effects.append(ticket)
        if len(self._effects) > self._max_effects:
            self._effects = self._effects[-self._max_effects:]
        return ticket

    def active_effects(self, now: float) -> List[EffectTicket]:
        """Drop expired tickets and return the live ones."""
        self._prune(now)
        return list(self._effects)

    def _prune(self, now: float) -> None:
        self._effects = [t for t in self._effects if not t.expired(now)]

    def drain(self) -> List[GameEvent]:
        """Return and clear buffered events."""
        events = self._events
        self._events = []
        return events

    def clear(self) -> None:
        """Forget buffered events and effect tickets (subscribers stay)."""
        self._events.clear()
        self._effects.clear()
