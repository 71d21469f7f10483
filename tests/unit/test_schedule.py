"""Test weekly schedules and schedule evaluation."""

from datetime import datetime

import pytest

from custom_components.floor_heating.const import ZoneMode
from custom_components.floor_heating.core.errors import (
    InvalidModeError,
    InvalidScheduleError,
)
from custom_components.floor_heating.core.schedule import (
    WEEKDAY_NAMES,
    ScheduleSource,
    TimeWindow,
    ZoneSchedule,
    evaluate_schedule,
    format_time,
    parse_mode,
    parse_time,
)

# 2025-01-06 is a Monday
MONDAY = datetime(2025, 1, 6)
SATURDAY = datetime(2025, 1, 11)

MORNING_COMFORT = {
    "days": {"monday": [{"start": "09:00", "end": "12:00", "mode": "comfort"}]}
}


def at(day: datetime, hhmm: str) -> datetime:
    """Return the given day at a local HH:MM time."""
    minutes = parse_time(hhmm)
    return day.replace(hour=minutes // 60, minute=minutes % 60)


class TestTimeParsing:
    """Test cases for HH:MM parsing and formatting."""

    def test_parse_time(self) -> None:
        """Test parsing valid times."""
        assert parse_time("00:00") == 0
        assert parse_time("06:30") == 390
        assert parse_time("7:05") == 425
        assert parse_time("23:59") == 1439

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "12", "", "1:2"])
    def test_parse_time_rejects(self, value: str) -> None:
        """Test that malformed times raise."""
        with pytest.raises(InvalidScheduleError):
            parse_time(value)

    def test_format_time(self) -> None:
        """Test formatting minutes as HH:MM."""
        assert format_time(0) == "00:00"
        assert format_time(1320) == "22:00"

    def test_parse_mode(self) -> None:
        """Test mode parsing and rejection."""
        assert parse_mode("eco") == ZoneMode.ECO
        with pytest.raises(InvalidModeError):
            parse_mode("turbo")


class TestTimeWindow:
    """Test cases for TimeWindow."""

    def test_contains_same_day(self) -> None:
        """Test the half-open interval of a regular window."""
        window = TimeWindow(start=360, end=540, mode=ZoneMode.COMFORT)

        assert window.contains(360)
        assert window.contains(539)
        assert not window.contains(540)
        assert not window.wraps_midnight

    def test_contains_wrapping(self) -> None:
        """Test a window that crosses midnight."""
        window = TimeWindow(start=1320, end=360, mode=ZoneMode.ECO)

        assert window.wraps_midnight
        assert window.contains(1400)
        assert window.contains(0)
        assert window.contains(359)
        assert not window.contains(360)
        assert not window.contains(720)

    def test_from_dict_rejects_missing_fields(self) -> None:
        """Test that incomplete windows are rejected."""
        with pytest.raises(InvalidScheduleError):
            TimeWindow.from_dict({"start": "06:00", "mode": "comfort"})

    def test_from_dict_rejects_bad_mode(self) -> None:
        """Test that unknown modes are reported as schedule errors."""
        with pytest.raises(InvalidScheduleError):
            TimeWindow.from_dict({"start": "06:00", "end": "09:00", "mode": "hot"})

    def test_as_dict(self) -> None:
        """Test serialization."""
        window = TimeWindow.from_dict(
            {"start": "06:00", "end": "09:00", "mode": "comfort"}
        )
        assert window.as_dict() == {"start": "06:00", "end": "09:00", "mode": "comfort"}


class TestZoneSchedule:
    """Test cases for ZoneSchedule."""

    def test_default_weekday(self) -> None:
        """Test the default weekday windows."""
        schedule = ZoneSchedule.default()

        windows = [w.as_dict() for w in schedule.windows_for("monday")]
        assert windows == [
            {"start": "06:00", "end": "09:00", "mode": "comfort"},
            {"start": "09:00", "end": "17:00", "mode": "eco"},
            {"start": "17:00", "end": "22:00", "mode": "comfort"},
            {"start": "22:00", "end": "06:00", "mode": "eco"},
        ]

    def test_default_weekend(self) -> None:
        """Test the default weekend windows."""
        schedule = ZoneSchedule.default()

        windows = [w.as_dict() for w in schedule.windows_for("sunday")]
        assert windows == [
            {"start": "07:00", "end": "23:00", "mode": "comfort"},
            {"start": "23:00", "end": "07:00", "mode": "eco"},
        ]

    def test_as_dict_lists_every_weekday(self) -> None:
        """Test that serialization always has all seven days."""
        data = ZoneSchedule().as_dict()

        assert list(data["days"]) == WEEKDAY_NAMES
        assert all(windows == [] for windows in data["days"].values())

    def test_merge_replaces_only_given_days(self) -> None:
        """Test that merge keeps days that are not in the update."""
        schedule = ZoneSchedule.default()

        merged = schedule.merge(
            {"days": {"Monday": [{"start": "00:00", "end": "00:00", "mode": "eco"}]}}
        )

        assert [w.as_dict() for w in merged.windows_for("monday")] == [
            {"start": "00:00", "end": "00:00", "mode": "eco"}
        ]
        assert merged.windows_for("tuesday") == schedule.windows_for("tuesday")
        assert len(schedule.windows_for("monday")) == 4

    def test_merge_flags(self) -> None:
        """Test updating the active and quick-heat flags."""
        merged = ZoneSchedule.default().merge(
            {"active": False, "quick_heat_enabled": False}
        )

        assert not merged.active
        assert not merged.quick_heat_enabled

    def test_merge_preheat_minutes(self) -> None:
        """Test setting, keeping and clearing the zone pre-heat lead time."""
        schedule = ZoneSchedule.default().merge({"preheat_minutes": 45})
        assert schedule.preheat_minutes == 45

        kept = schedule.merge({"active": False})
        assert kept.preheat_minutes == 45
        assert ZoneSchedule.from_dict(kept.as_dict()) == kept

        assert kept.merge({"preheat_minutes": None}).preheat_minutes is None

    def test_merge_is_atomic(self) -> None:
        """Test that an invalid day leaves the schedule untouched."""
        schedule = ZoneSchedule.default()
        before = schedule.as_dict()

        with pytest.raises(InvalidScheduleError):
            schedule.merge(
                {
                    "days": {
                        "monday": [{"start": "05:00", "end": "08:00", "mode": "eco"}],
                        "funday": [],
                    }
                }
            )

        assert schedule.as_dict() == before

    @pytest.mark.parametrize(
        "data",
        [
            {"days": ["monday"]},
            {"days": {"monday": {"start": "06:00"}}},
            {"days": {"monday": [{"start": "25:00", "end": "06:00", "mode": "eco"}]}},
            {"preheat_minutes": -5},
            {"preheat_minutes": 300},
            {"preheat_minutes": "soon"},
            {"preheat_minutes": True},
        ],
    )
    def test_merge_rejects_malformed(self, data: dict) -> None:
        """Test that malformed updates raise."""
        with pytest.raises(InvalidScheduleError):
            ZoneSchedule.default().merge(data)

    def test_round_trip(self) -> None:
        """Test that a serialized schedule restores to the same windows."""
        schedule = ZoneSchedule.default()

        assert ZoneSchedule.from_dict(schedule.as_dict()) == schedule


class TestEvaluateSchedule:
    """Test cases for evaluate_schedule."""

    def test_first_matching_window(self) -> None:
        """Test that the window containing now decides the mode."""
        schedule = ZoneSchedule.default()

        decision = evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "07:00"))

        assert decision is not None
        assert decision.mode == ZoneMode.COMFORT
        assert decision.source == ScheduleSource.SCHEDULE

    def test_wrapping_window_matches_after_midnight(self) -> None:
        """Test that the overnight eco window applies in the early morning."""
        schedule = ZoneSchedule.default()

        decision = evaluate_schedule(schedule, ZoneMode.COMFORT, at(MONDAY, "03:00"))

        assert decision is not None
        assert decision.mode == ZoneMode.ECO

    def test_weekend_windows(self) -> None:
        """Test that weekends use their own windows."""
        schedule = ZoneSchedule.default()

        decision = evaluate_schedule(schedule, ZoneMode.ECO, at(SATURDAY, "10:00"))

        assert decision is not None
        assert decision.mode == ZoneMode.COMFORT

    def test_first_window_wins_on_overlap(self) -> None:
        """Test that overlapping windows resolve to the first listed."""
        schedule = ZoneSchedule.from_dict(
            {
                "days": {
                    "monday": [
                        {"start": "08:00", "end": "12:00", "mode": "frost"},
                        {"start": "10:00", "end": "14:00", "mode": "comfort"},
                    ]
                }
            }
        )

        decision = evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "11:00"))

        assert decision is not None
        assert decision.mode == ZoneMode.FROST

    def test_inactive_schedule(self) -> None:
        """Test that an inactive schedule makes no decision."""
        schedule = ZoneSchedule.default().merge({"active": False})

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "07:00")) is None

    def test_gap_returns_none(self) -> None:
        """Test that a minute outside every window makes no decision."""
        schedule = ZoneSchedule.from_dict(
            {"days": {"monday": [{"start": "12:00", "end": "13:00", "mode": "eco"}]}}
        )

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:00")) is None

    def test_quick_heat_before_comfort_window(self) -> None:
        """Test that a comfort window within 30 minutes starts early."""
        schedule = ZoneSchedule.from_dict(MORNING_COMFORT)

        decision = evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:30"))

        assert decision is not None
        assert decision.mode == ZoneMode.COMFORT
        assert decision.source == ScheduleSource.QUICK_HEAT
        assert decision.window.start == parse_time("09:00")

    def test_quick_heat_window_bounds(self) -> None:
        """Test the edges of the anticipation window."""
        schedule = ZoneSchedule.from_dict(MORNING_COMFORT)

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:29")) is None
        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:59"))

    def test_quick_heat_skipped_when_comfort(self) -> None:
        """Test that a zone already in comfort is left alone."""
        schedule = ZoneSchedule.from_dict(MORNING_COMFORT)

        decision = evaluate_schedule(schedule, ZoneMode.COMFORT, at(MONDAY, "08:45"))

        assert decision is None

    def test_quick_heat_disabled(self) -> None:
        """Test that quick-heat can be turned off."""
        schedule = ZoneSchedule.from_dict(
            {
                "quick_heat_enabled": False,
                "days": {
                    "monday": [{"start": "09:00", "end": "12:00", "mode": "comfort"}]
                },
            }
        )

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:45")) is None

    def test_quick_heat_does_not_reach_previous_day(self) -> None:
        """Test that an early comfort window cannot pre-heat before midnight."""
        schedule = ZoneSchedule.from_dict(
            {
                "days": {
                    "monday": [{"start": "00:10", "end": "06:00", "mode": "comfort"}]
                }
            }
        )

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "00:05")) is None

    def test_custom_anticipation(self) -> None:
        """Test a longer anticipation window."""
        schedule = ZoneSchedule.from_dict(MORNING_COMFORT)

        decision = evaluate_schedule(
            schedule, ZoneMode.FROST, at(MONDAY, "08:00"), anticipatory_minutes=60
        )

        assert decision is not None
        assert decision.source == ScheduleSource.QUICK_HEAT

    def test_zone_preheat_overrides_anticipation(self) -> None:
        """Test that a zone lead time replaces the engine default."""
        schedule = ZoneSchedule.from_dict({**MORNING_COMFORT, "preheat_minutes": 45})

        early = evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:15"))
        assert early is not None
        assert early.source == ScheduleSource.QUICK_HEAT
        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:14")) is None

        # The zone setting wins over a longer engine default
        assert (
            evaluate_schedule(
                schedule, ZoneMode.ECO, at(MONDAY, "08:00"), anticipatory_minutes=90
            )
            is None
        )

    def test_zone_preheat_zero_disables_early_start(self) -> None:
        """Test that a zero lead time never starts comfort early."""
        schedule = ZoneSchedule.from_dict({**MORNING_COMFORT, "preheat_minutes": 0})

        assert evaluate_schedule(schedule, ZoneMode.ECO, at(MONDAY, "08:59")) is None
