"""
Outbound notifications of the floor heating engine.

The engine never calls listeners directly. Each operation appends
HeatingEvent records to an EventQueue and the integration layer drains
the queue after every tick, delivering the events on its own schedule.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime


class EventType(StrEnum):
    """Types of engine notifications."""

    HEATING_STARTED = "heating_started"
    HEATING_STOPPED = "heating_stopped"
    FLOOR_TEMP_LIMIT = "floor_temp_limit"
    MOISTURE_ALERT = "moisture_alert"
    MODE_CHANGED = "mode_changed"
    QUICK_HEAT_STARTED = "quick_heat_started"
    WINDOW_OPEN_PAUSE = "window_open_pause"
    VALVE_STUCK = "valve_stuck"
    FLOW_RATE_ANOMALY = "flow_rate_anomaly"
    SUMMER_SHUTDOWN = "summer_shutdown"
    PRICE_UPDATED = "price_updated"
    THERMAL_MASS_CHARGE = "thermal_mass_charge"
    THERMAL_MASS_COAST = "thermal_mass_coast"
    PRE_HEAT_ARRIVAL = "pre_heat_arrival"
    OCCUPANCY_REDUCTION = "occupancy_reduction"
    PIPE_FREEZE_PROTECTION = "pipe_freeze_protection"
    ANTI_SEIZE_STARTED = "anti_seize_started"
    ANTI_SEIZE_COMPLETED = "anti_seize_completed"
    ZONE_ADDED = "zone_added"
    ZONE_REMOVED = "zone_removed"
    ZONE_FAULT = "zone_fault"


@dataclass(frozen=True)
class HeatingEvent:
    """A single engine notification."""

    event_type: EventType
    timestamp: datetime
    zone_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Return the event as a flat, JSON-safe dictionary."""
        return {
            "type": self.event_type.value,
            "zone_id": self.zone_id,
            "timestamp": self.timestamp.isoformat(),
            **self.data,
        }


class EventQueue:
    """
    Bounded FIFO of pending notifications.

    When the consumer falls behind, the oldest events are dropped first.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        """Initialize the queue."""
        self._events: deque[HeatingEvent] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        """Return the number of pending events."""
        return len(self._events)

    def emit(
        self,
        event_type: EventType,
        timestamp: datetime,
        zone_id: str | None = None,
        **data: Any,
    ) -> HeatingEvent:
        """Append an event and return it."""
        event = HeatingEvent(
            event_type=event_type,
            timestamp=timestamp,
            zone_id=zone_id,
            data=data,
        )
        self._events.append(event)
        return event

    def pending(self) -> list[HeatingEvent]:
        """Return pending events without removing them."""
        return list(self._events)

    def drain(self) -> list[HeatingEvent]:
        """Remove and return all pending events in emission order."""
        events = list(self._events)
        self._events.clear()
        return events
