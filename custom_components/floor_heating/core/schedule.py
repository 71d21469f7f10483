"""
Weekly schedules and schedule evaluation for Floor Heating Controller.

A schedule maps each weekday to an ordered list of time windows. A
window whose end is not after its start wraps past midnight. The first
window containing the current minute decides the zone mode; when no
window matches, an upcoming comfort window may switch the zone to
comfort early (quick-heat).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_ANTICIPATORY_MINUTES,
    ZoneMode,
)

from .errors import InvalidModeError, InvalidScheduleError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

WEEKDAY_NAMES = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

MINUTES_PER_DAY = 24 * 60
MAX_PREHEAT_MINUTES = 240

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class ScheduleSource(StrEnum):
    """Origin of a mode change."""

    SCHEDULE = "schedule"
    QUICK_HEAT = "quick_heat"
    API = "api"
    GEOFENCE = "geofence"


def parse_time(value: str) -> int:
    """
    Parse a local HH:MM string into minutes since midnight.

    Raises:
        InvalidScheduleError: If the value is not a valid time of day.

    """
    match = _TIME_PATTERN.match(str(value).strip())
    if match is None:
        msg = f"Invalid time of day: {value!r}"
        raise InvalidScheduleError(msg)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:  # noqa: PLR2004
        msg = f"Invalid time of day: {value!r}"
        raise InvalidScheduleError(msg)
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    """Format minutes since midnight as HH:MM."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minute_of_day(now: datetime) -> int:
    """Return minutes since local midnight for a timestamp."""
    return now.hour * 60 + now.minute


def parse_mode(value: Any) -> ZoneMode:
    """
    Convert a raw value into a ZoneMode.

    Raises:
        InvalidModeError: If the value is not a known mode.

    """
    try:
        return ZoneMode(value)
    except ValueError as err:
        raise InvalidModeError(value) from err


@dataclass(frozen=True)
class TimeWindow:
    """A scheduled mode between two local times."""

    start: int  # minutes since midnight
    end: int  # minutes since midnight, wraps when <= start
    mode: ZoneMode

    @property
    def wraps_midnight(self) -> bool:
        """Return True if the window crosses midnight."""
        return self.end <= self.start

    def contains(self, minute: int) -> bool:
        """Return True if the given minute of day falls inside the window."""
        if self.wraps_midnight:
            return minute >= self.start or minute < self.end
        return self.start <= minute < self.end

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TimeWindow:
        """
        Build a window from a {start, end, mode} mapping.

        Raises:
            InvalidScheduleError: If a field is missing or malformed.

        """
        try:
            start, end, mode = data["start"], data["end"], data["mode"]
        except (KeyError, TypeError) as err:
            msg = f"Time window needs start, end and mode: {data!r}"
            raise InvalidScheduleError(msg) from err

        try:
            zone_mode = parse_mode(mode)
        except InvalidModeError as err:
            msg = f"Invalid mode in time window: {mode!r}"
            raise InvalidScheduleError(msg) from err

        return cls(start=parse_time(start), end=parse_time(end), mode=zone_mode)

    def as_dict(self) -> dict[str, str]:
        """Return the window as a serializable mapping."""
        return {
            "start": format_time(self.start),
            "end": format_time(self.end),
            "mode": self.mode.value,
        }


def _windows(*entries: tuple[str, str, ZoneMode]) -> list[TimeWindow]:
    return [
        TimeWindow(start=parse_time(start), end=parse_time(end), mode=mode)
        for start, end, mode in entries
    ]


def default_day_windows(weekday: str) -> list[TimeWindow]:
    """Return the default windows for a weekday."""
    if weekday in ("saturday", "sunday"):
        return _windows(
            ("07:00", "23:00", ZoneMode.COMFORT),
            ("23:00", "07:00", ZoneMode.ECO),
        )
    return _windows(
        ("06:00", "09:00", ZoneMode.COMFORT),
        ("09:00", "17:00", ZoneMode.ECO),
        ("17:00", "22:00", ZoneMode.COMFORT),
        ("22:00", "06:00", ZoneMode.ECO),
    )


@dataclass
class ZoneSchedule:
    """Weekly schedule of a zone."""

    days: dict[str, list[TimeWindow]] = field(default_factory=dict)
    active: bool = True
    quick_heat_enabled: bool = True
    # Zone lead time for quick-heat; None uses the engine default
    preheat_minutes: int | None = None

    @classmethod
    def default(cls) -> ZoneSchedule:
        """Return the default weekday/weekend schedule."""
        return cls(days={day: default_day_windows(day) for day in WEEKDAY_NAMES})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ZoneSchedule:
        """
        Build a schedule from a serialized mapping.

        Days that are not present get no windows.

        Raises:
            InvalidScheduleError: If any window or weekday is malformed.

        """
        return cls().merge(data)

    def merge(self, data: Mapping[str, Any]) -> ZoneSchedule:
        """
        Return a copy with the given fields replaced.

        Only the weekdays present in data are replaced; the others keep
        their windows. Everything is validated before anything is applied.

        Raises:
            InvalidScheduleError: If any window or weekday is malformed.

        """
        days = {day: list(windows) for day, windows in self.days.items()}
        raw_days = data.get("days", {})
        if not hasattr(raw_days, "items"):
            msg = f"Schedule days must be a mapping: {raw_days!r}"
            raise InvalidScheduleError(msg)

        for day, raw_windows in raw_days.items():
            weekday = str(day).lower()
            if weekday not in WEEKDAY_NAMES:
                msg = f"Unknown weekday: {day!r}"
                raise InvalidScheduleError(msg)
            if not isinstance(raw_windows, list):
                msg = f"Windows for {weekday} must be a list"
                raise InvalidScheduleError(msg)
            days[weekday] = [TimeWindow.from_dict(window) for window in raw_windows]

        preheat_minutes = self.preheat_minutes
        if "preheat_minutes" in data:
            preheat_minutes = _parse_preheat_minutes(data["preheat_minutes"])

        return ZoneSchedule(
            days=days,
            active=bool(data.get("active", self.active)),
            quick_heat_enabled=bool(
                data.get("quick_heat_enabled", self.quick_heat_enabled)
            ),
            preheat_minutes=preheat_minutes,
        )

    def windows_for(self, weekday: str) -> list[TimeWindow]:
        """Return the ordered windows of a weekday."""
        return self.days.get(weekday, [])

    def as_dict(self) -> dict[str, Any]:
        """Return the schedule as a serializable mapping."""
        return {
            "active": self.active,
            "quick_heat_enabled": self.quick_heat_enabled,
            "preheat_minutes": self.preheat_minutes,
            "days": {
                day: [window.as_dict() for window in self.windows_for(day)]
                for day in WEEKDAY_NAMES
            },
        }


def _parse_preheat_minutes(value: Any) -> int | None:
    """Validate a per-zone quick-heat lead time in minutes."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"Pre-heat minutes must be a number: {value!r}"
        raise InvalidScheduleError(msg)
    if not 0 <= value <= MAX_PREHEAT_MINUTES:
        msg = f"Pre-heat minutes out of range 0-{MAX_PREHEAT_MINUTES}: {value}"
        raise InvalidScheduleError(msg)
    return int(value)


@dataclass(frozen=True)
class ScheduleDecision:
    """Mode requested by the schedule for the current minute."""

    mode: ZoneMode
    source: ScheduleSource
    window: TimeWindow


def evaluate_schedule(
    schedule: ZoneSchedule,
    current_mode: ZoneMode,
    now: datetime,
    anticipatory_minutes: int = DEFAULT_ANTICIPATORY_MINUTES,
) -> ScheduleDecision | None:
    """
    Determine the mode a zone should be in at the given time.

    Args:
        schedule: Weekly schedule of the zone.
        current_mode: Mode the zone is currently in.
        now: Local timestamp to evaluate.
        anticipatory_minutes: How early a comfort window may pull the zone
            into comfort mode. A lead time set on the schedule itself
            takes precedence.

    Returns:
        The decision of the first matching window, a quick-heat decision,
        or None when the mode should be left unchanged.

    """
    if not schedule.active:
        return None

    minute = minute_of_day(now)
    windows = schedule.windows_for(WEEKDAY_NAMES[now.weekday()])

    for window in windows:
        if window.contains(minute):
            return ScheduleDecision(
                mode=window.mode, source=ScheduleSource.SCHEDULE, window=window
            )

    if not schedule.quick_heat_enabled or current_mode == ZoneMode.COMFORT:
        return None

    if schedule.preheat_minutes is not None:
        anticipatory_minutes = schedule.preheat_minutes

    for window in windows:
        if window.mode != ZoneMode.COMFORT:
            continue
        pre_heat_start = window.start - anticipatory_minutes
        # Pre-heat does not reach back into the previous day
        if pre_heat_start < 0:
            continue
        if pre_heat_start <= minute < window.start:
            return ScheduleDecision(
                mode=ZoneMode.COMFORT, source=ScheduleSource.QUICK_HEAT, window=window
            )

    return None
