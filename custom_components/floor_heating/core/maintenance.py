"""
Maintenance monitoring for Floor Heating Controller.

Detects stuck valves and flow anomalies on hydronic circuits, drives the
periodic anti-seize valve exercise and scores overall system health.

The anti-seize exercise is a timed sequence (open, close, restore) that
is advanced by the caller through advance_sequences(); nothing here
sleeps or schedules timers.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_MAINTENANCE,
    HEALTH_PENALTY_FAULT_CODE,
    HEALTH_PENALTY_FLOW_ANOMALY,
    HEALTH_PENALTY_LOW_BATTERY,
    HEALTH_PENALTY_MOISTURE,
    HEALTH_PENALTY_STUCK_VALVE,
    HEALTH_WINDOW_HOURS,
    FaultCode,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .zone import ZoneRuntime


@dataclass(frozen=True)
class ValveAlert:
    """A valve that is commanded open but shows no flow."""

    zone_id: str
    timestamp: datetime
    valve_position: int
    flow_rate: float

    def as_dict(self) -> dict[str, Any]:
        """Return the alert as a serializable mapping."""
        return {
            "zone_id": self.zone_id,
            "timestamp": self.timestamp.isoformat(),
            "valve_position": self.valve_position,
            "flow_rate": self.flow_rate,
        }


@dataclass(frozen=True)
class FlowAnomaly:
    """Measured flow deviating from the expected flow for the valve position."""

    zone_id: str
    timestamp: datetime
    expected: float
    measured: float
    deviation: float

    def as_dict(self) -> dict[str, Any]:
        """Return the anomaly as a serializable mapping."""
        return {
            "zone_id": self.zone_id,
            "timestamp": self.timestamp.isoformat(),
            "expected": round(self.expected, 2),
            "measured": round(self.measured, 2),
            "deviation": round(self.deviation, 3),
        }


@dataclass
class AntiSeizeSequence:
    """Pending valve exercise steps of one zone."""

    zone_id: str
    original_position: int
    steps: deque[tuple[datetime, int | None]] = field(default_factory=deque)

    @property
    def next_due(self) -> datetime | None:
        """Return when the next step is due."""
        return self.steps[0][0] if self.steps else None


@dataclass(frozen=True)
class ValveCommand:
    """Valve position change produced by an anti-seize step."""

    zone_id: str
    position: int
    completed: bool


class MaintenanceMonitor:
    """Valve, flow and health monitoring."""

    def __init__(self, config: Mapping[str, Any] = DEFAULT_MAINTENANCE) -> None:
        """Initialize the monitor."""
        self.config: dict[str, Any] = {**DEFAULT_MAINTENANCE, **config}
        size = self.config["anomaly_log_size"]
        self.valve_alerts: deque[ValveAlert] = deque(maxlen=size)
        self.flow_anomalies: deque[FlowAnomaly] = deque(maxlen=size)
        self.last_anti_seize: datetime | None = None
        self._sequences: dict[str, AntiSeizeSequence] = {}

    @property
    def anti_seize_interval(self) -> timedelta:
        """Return the interval between valve exercises."""
        return timedelta(days=self.config["anti_seize_interval_days"])

    @property
    def active_sequences(self) -> set[str]:
        """Return the ids of zones with a running valve exercise."""
        return set(self._sequences)

    def _monitored(self, zones: Iterable[ZoneRuntime]) -> list[ZoneRuntime]:
        """Return hydronic zones with measured flow and no running exercise."""
        return [
            runtime
            for runtime in zones
            if runtime.config.heating_type.has_valve
            and runtime.state.flow_rate is not None
            and runtime.zone_id not in self._sequences
        ]

    def check_valve_health(
        self, zones: Iterable[ZoneRuntime], now: datetime
    ) -> list[ValveAlert]:
        """
        Flag valves that are commanded open while no flow is measured.

        Zones without a flow meter are skipped.
        """
        alerts: list[ValveAlert] = []
        for runtime in self._monitored(zones):
            state = runtime.state
            flow = state.flow_rate or 0.0
            if (
                state.heating_active
                and state.valve_position > self.config["stuck_valve_min_position"]
                and flow < self.config["stuck_valve_flow_epsilon"]
            ):
                state.fault_code = FaultCode.VALVE_STUCK
                alert = ValveAlert(
                    zone_id=runtime.zone_id,
                    timestamp=now,
                    valve_position=state.valve_position,
                    flow_rate=flow,
                )
                self.valve_alerts.append(alert)
                alerts.append(alert)
        return alerts

    def check_flow_rates(
        self, zones: Iterable[ZoneRuntime], now: datetime
    ) -> list[FlowAnomaly]:
        """Flag heating zones whose flow deviates from the valve-position model."""
        anomalies: list[FlowAnomaly] = []
        for runtime in self._monitored(zones):
            state = runtime.state
            if not state.heating_active:
                continue
            expected = state.valve_position * self.config["flow_per_valve_percent"]
            if expected <= 0:
                continue
            measured = state.flow_rate or 0.0
            deviation = abs(measured - expected) / expected
            if deviation > self.config["flow_deviation_threshold"]:
                anomaly = FlowAnomaly(
                    zone_id=runtime.zone_id,
                    timestamp=now,
                    expected=expected,
                    measured=measured,
                    deviation=deviation,
                )
                self.flow_anomalies.append(anomaly)
                anomalies.append(anomaly)
        return anomalies

    def anti_seize_due(self, now: datetime) -> bool:
        """
        Return True if the valve exercise interval has elapsed.

        The interval starts counting at the first check.
        """
        if self._sequences:
            return False
        if self.last_anti_seize is None:
            self.last_anti_seize = now
            return False
        return now - self.last_anti_seize >= self.anti_seize_interval

    def start_anti_seize(
        self, zones: Iterable[ZoneRuntime], now: datetime
    ) -> list[str]:
        """
        Open every hydronic valve fully and queue the close and restore steps.

        Returns:
            Ids of the zones whose valves are being exercised.

        """
        open_for = timedelta(seconds=self.config["anti_seize_open_seconds"])
        closed_for = timedelta(seconds=self.config["anti_seize_close_seconds"])
        started: list[str] = []

        for runtime in zones:
            if not runtime.config.heating_type.has_valve:
                continue
            state = runtime.state
            sequence = AntiSeizeSequence(
                zone_id=runtime.zone_id,
                original_position=state.valve_position,
            )
            sequence.steps.append((now + open_for, 0))
            sequence.steps.append((now + open_for + closed_for, None))
            self._sequences[runtime.zone_id] = sequence
            state.valve_override = 100
            state.valve_position = 100
            started.append(runtime.zone_id)

        self.last_anti_seize = now
        return started

    def advance_sequences(
        self, zones: Mapping[str, ZoneRuntime], now: datetime
    ) -> list[ValveCommand]:
        """
        Execute every anti-seize step that is due.

        Returns:
            Valve commands that were applied, in order.

        """
        commands: list[ValveCommand] = []
        for zone_id in list(self._sequences):
            sequence = self._sequences[zone_id]
            runtime = zones.get(zone_id)
            if runtime is None:
                del self._sequences[zone_id]
                continue

            while sequence.steps and sequence.steps[0][0] <= now:
                _, position = sequence.steps.popleft()
                state = runtime.state
                if position is None:
                    state.valve_override = None
                    state.valve_position = sequence.original_position
                    commands.append(
                        ValveCommand(
                            zone_id=zone_id,
                            position=sequence.original_position,
                            completed=True,
                        )
                    )
                else:
                    state.valve_override = position
                    state.valve_position = position
                    commands.append(
                        ValveCommand(
                            zone_id=zone_id, position=position, completed=False
                        )
                    )

            if not sequence.steps:
                del self._sequences[zone_id]
        return commands

    def next_sequence_due(self) -> datetime | None:
        """Return when the earliest pending anti-seize step is due."""
        due = [s.next_due for s in self._sequences.values() if s.next_due is not None]
        return min(due) if due else None

    def cancel_sequences(
        self, zones: Mapping[str, ZoneRuntime], zone_id: str | None = None
    ) -> list[str]:
        """
        Drop pending anti-seize steps.

        Valves keep their last commanded position; only the override that
        blocks the control loop is released.

        Args:
            zones: Zone runtimes by id.
            zone_id: Only cancel this zone's sequence when given.

        Returns:
            Ids of the zones whose sequences were cancelled.

        """
        targets = [zone_id] if zone_id is not None else list(self._sequences)
        cancelled: list[str] = []
        for target in targets:
            if self._sequences.pop(target, None) is None:
                continue
            if (runtime := zones.get(target)) is not None:
                runtime.state.valve_override = None
            cancelled.append(target)
        return cancelled

    def _recent(self, records: Iterable[Any], now: datetime) -> int:
        """Count records within the health window."""
        since = now - timedelta(hours=HEALTH_WINDOW_HOURS)
        return sum(1 for record in records if record.timestamp >= since)

    def system_health(self, zones: Iterable[ZoneRuntime], now: datetime) -> int:
        """Return a 0-100 health score from recent faults and sensor state."""
        penalty = HEALTH_PENALTY_STUCK_VALVE * self._recent(self.valve_alerts, now)
        penalty += HEALTH_PENALTY_FLOW_ANOMALY * self._recent(self.flow_anomalies, now)

        for runtime in zones:
            state = runtime.state
            if state.fault_code is not None:
                penalty += HEALTH_PENALTY_FAULT_CODE
            if (
                state.sensor_battery is not None
                and state.sensor_battery < self.config["low_battery_threshold"]
            ):
                penalty += HEALTH_PENALTY_LOW_BATTERY
            if state.moisture_detected:
                penalty += HEALTH_PENALTY_MOISTURE

        return max(0, min(100, 100 - penalty))

    def report(self, zones: Iterable[ZoneRuntime], now: datetime) -> dict[str, Any]:
        """Return a maintenance summary."""
        zones = list(zones)
        next_anti_seize = (
            self.last_anti_seize + self.anti_seize_interval
            if self.last_anti_seize is not None
            else None
        )
        return {
            "system_health": self.system_health(zones, now),
            "valve_alerts": [alert.as_dict() for alert in self.valve_alerts],
            "flow_anomalies": [anomaly.as_dict() for anomaly in self.flow_anomalies],
            "last_anti_seize": (
                self.last_anti_seize.isoformat() if self.last_anti_seize else None
            ),
            "next_anti_seize": (
                next_anti_seize.isoformat() if next_anti_seize else None
            ),
            "anti_seize_running": sorted(self._sequences),
            "zones": {
                runtime.zone_id: {
                    "fault_code": runtime.state.fault_code,
                    "sensor_battery": runtime.state.sensor_battery,
                    "moisture_detected": runtime.state.moisture_detected,
                    "valve_position": runtime.state.valve_position,
                    "flow_rate": runtime.state.flow_rate,
                }
                for runtime in zones
            },
        }

    def as_dict(self) -> dict[str, Any]:
        """Return the persistent part of the maintenance state."""
        return {
            "last_anti_seize": (
                self.last_anti_seize.isoformat() if self.last_anti_seize else None
            ),
        }

    def restore(self, data: Mapping[str, Any]) -> None:
        """Restore persisted maintenance state."""
        if value := data.get("last_anti_seize"):
            try:
                self.last_anti_seize = datetime.fromisoformat(value)
            except (ValueError, TypeError):
                # Invalid timestamp format, start fresh
                self.last_anti_seize = None
