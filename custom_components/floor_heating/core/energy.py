"""
Energy accounting and price-driven optimization for Floor Heating Controller.

The optimizer reacts to spot prices by charging the floor's thermal mass
when energy is cheap and coasting on stored heat when it is expensive.
The logging tick integrates each heating zone's power draw into kWh and
cost, and keeps day, week and month buckets that roll over when the
logging tick crosses a calendar boundary.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from custom_components.floor_heating.const import (
    DEFAULT_ENERGY,
    DEFAULT_TIMING,
    EnergyPeriod,
    ZoneMode,
)

from .errors import InvalidPeriodError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .zone import ZoneRuntime

# Daily buckets older than this are dropped; month buckets are kept
DAILY_RETENTION_DAYS = 62


class PriceAction(StrEnum):
    """Reaction to a price update."""

    NONE = "none"
    CHARGE = "charge"
    COAST = "coast"


@dataclass(frozen=True)
class PricePoint:
    """A recorded spot price."""

    timestamp: datetime
    price: float


@dataclass(frozen=True)
class PriceUpdate:
    """Outcome of a price update."""

    price: float
    action: PriceAction
    zone_ids: list[str]


@dataclass
class EnergyBucket:
    """Consumption accumulated over a calendar period."""

    kwh: float = 0.0
    cost: float = 0.0
    per_zone: dict[str, float] = field(default_factory=dict)

    def add(self, zone_id: str, kwh: float, cost: float) -> None:
        """Accumulate consumption for a zone."""
        self.kwh += kwh
        self.cost += cost
        self.per_zone[zone_id] = self.per_zone.get(zone_id, 0.0) + kwh

    def merge(self, other: EnergyBucket) -> None:
        """Accumulate another bucket into this one."""
        self.kwh += other.kwh
        self.cost += other.cost
        for zone_id, kwh in other.per_zone.items():
            self.per_zone[zone_id] = self.per_zone.get(zone_id, 0.0) + kwh

    def as_dict(self) -> dict[str, Any]:
        """Return the bucket as a serializable mapping at full precision."""
        return {
            "kwh": self.kwh,
            "cost": self.cost,
            "per_zone": dict(self.per_zone),
        }

    def rounded(self) -> dict[str, Any]:
        """Return the bucket rounded for reporting."""
        return {
            "kwh": round(self.kwh, 3),
            "cost": round(self.cost, 2),
            "per_zone": {
                zone_id: round(kwh, 3) for zone_id, kwh in self.per_zone.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EnergyBucket:
        """Build a bucket from a serialized mapping."""
        return cls(
            kwh=float(data.get("kwh", 0.0)),
            cost=float(data.get("cost", 0.0)),
            per_zone={k: float(v) for k, v in data.get("per_zone", {}).items()},
        )


def day_key(moment: date) -> str:
    """Return the day bucket key (YYYY-MM-DD)."""
    return moment.strftime("%Y-%m-%d")


def week_key(moment: date) -> str:
    """Return the ISO week bucket key (YYYY-Www)."""
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"


def month_key(moment: date) -> str:
    """Return the month bucket key (YYYY-MM)."""
    return moment.strftime("%Y-%m")


@dataclass
class EnergyState:
    """Process-wide energy and price state."""

    current_price: float = DEFAULT_ENERGY["default_price"]
    price_history: deque[PricePoint] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_ENERGY["price_history_size"])
    )
    last_action: PriceAction = PriceAction.NONE
    daily: dict[str, EnergyBucket] = field(default_factory=dict)
    weekly: dict[str, EnergyBucket] = field(default_factory=dict)
    monthly: dict[str, EnergyBucket] = field(default_factory=dict)
    total_kwh: float = 0.0
    total_cost: float = 0.0
    heating_degree_days: float = 0.0
    current_day: str | None = None
    last_log: datetime | None = None


def _valid_price(price: Any) -> float | None:
    """Return price as a finite float, or None if it is malformed."""
    if isinstance(price, bool) or price is None:
        return None
    try:
        value = float(price)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


class EnergyOptimizer:
    """Price reaction and consumption accounting."""

    def __init__(
        self,
        config: Mapping[str, Any] = DEFAULT_ENERGY,
        log_interval: float = DEFAULT_TIMING["energy_interval"],
    ) -> None:
        """
        Initialize the optimizer.

        Args:
            config: Price thresholds and history size.
            log_interval: Nominal seconds between logging ticks.

        """
        self.config = {**DEFAULT_ENERGY, **config}
        self.log_interval = log_interval
        self.state = EnergyState(
            current_price=self.config["default_price"],
            price_history=deque(maxlen=self.config["price_history_size"]),
        )

    def on_price_update(
        self,
        price: Any,
        now: datetime,
        zones: Iterable[ZoneRuntime],
    ) -> PriceUpdate | None:
        """
        Record a spot price and bias zone targets accordingly.

        Cheap energy charges every enabled non-frost zone by raising its
        target, capped one degree below the floor material limit.
        Expensive energy pulls every enabled zone above eco back to eco.

        Args:
            price: Price per kWh; malformed values are ignored.
            now: Timestamp of the price.
            zones: Zones to bias.

        Returns:
            The applied update, or None if the price was malformed.

        """
        value = _valid_price(price)
        if value is None:
            return None

        self.state.current_price = value
        self.state.price_history.append(PricePoint(timestamp=now, price=value))

        action = PriceAction.NONE
        affected: list[str] = []

        if value < self.config["cheap_threshold"]:
            action = PriceAction.CHARGE
            for runtime in zones:
                if not runtime.state.enabled or runtime.state.mode == ZoneMode.FROST:
                    continue
                ceiling = runtime.config.limits.max_temp - 1
                boosted = min(
                    runtime.state.target_temp + self.config["charge_boost"], ceiling
                )
                if boosted > runtime.state.target_temp:
                    runtime.state.target_temp = boosted
                    affected.append(runtime.zone_id)
        elif value > self.config["expensive_threshold"]:
            action = PriceAction.COAST
            for runtime in zones:
                if not runtime.state.enabled:
                    continue
                if runtime.state.target_temp > runtime.config.eco_temp:
                    runtime.state.target_temp = runtime.config.eco_temp
                    affected.append(runtime.zone_id)

        self.state.last_action = action
        return PriceUpdate(price=value, action=action, zone_ids=affected)

    def log_tick(self, now: datetime, zones: Iterable[ZoneRuntime]) -> bool:
        """
        Integrate consumption since the previous logging tick.

        The interval is the time since the previous tick, capped at twice
        the nominal interval so a long outage is not billed as heating.

        Args:
            now: Current local timestamp.
            zones: All zones.

        Returns:
            True if a new day bucket was started.

        """
        zones = list(zones)
        state = self.state
        rolled_over = self._roll_over(now, zones)

        if state.last_log is None:
            seconds = self.log_interval
        else:
            seconds = min(
                (now - state.last_log).total_seconds(), 2 * self.log_interval
            )
        state.last_log = now
        if seconds <= 0:
            return rolled_over

        hours = seconds / 3600
        bucket = state.daily.setdefault(day_key(now.date()), EnergyBucket())

        for runtime in zones:
            zone_state = runtime.state
            if not zone_state.heating_active or zone_state.current_power <= 0:
                continue
            kwh = zone_state.current_power / 1000 * hours
            cost = kwh * state.current_price

            zone_state.energy_today_kwh += kwh
            zone_state.energy_total_kwh += kwh
            zone_state.cost_today += cost
            zone_state.cost_total += cost
            state.total_kwh += kwh
            state.total_cost += cost
            bucket.add(runtime.zone_id, kwh, cost)

        self._aggregate(now.date())
        return rolled_over

    def _roll_over(self, now: datetime, zones: list[ZoneRuntime]) -> bool:
        """Start a fresh day bucket when the calendar day changes."""
        key = day_key(now.date())
        state = self.state
        if state.current_day == key:
            return False

        first_tick = state.current_day is None
        state.current_day = key
        state.daily.setdefault(key, EnergyBucket())
        if not first_tick:
            for runtime in zones:
                runtime.state.energy_today_kwh = 0.0
                runtime.state.cost_today = 0.0
                runtime.state.runtime_today_seconds = 0.0

        cutoff = day_key(now.date() - timedelta(days=DAILY_RETENTION_DAYS))
        for old_key in [k for k in state.daily if k < cutoff]:
            del state.daily[old_key]
        return not first_tick

    def _aggregate(self, today: date) -> None:
        """Rebuild the current week and month buckets from the day buckets."""
        week = week_key(today)
        month = month_key(today)
        week_bucket = EnergyBucket()
        month_bucket = EnergyBucket()

        for key, bucket in self.state.daily.items():
            bucket_date = date.fromisoformat(key)
            if week_key(bucket_date) == week:
                week_bucket.merge(bucket)
            if month_key(bucket_date) == month:
                month_bucket.merge(bucket)

        self.state.weekly[week] = week_bucket
        self.state.monthly[month] = month_bucket

    def add_degree_days(self, degree_days: float) -> None:
        """Accumulate heating degree days."""
        self.state.heating_degree_days += max(0.0, degree_days)

    def reset_daily(self, now: datetime, zones: Iterable[ZoneRuntime]) -> None:
        """Zero today's counters and restart today's bucket."""
        for runtime in zones:
            runtime.state.energy_today_kwh = 0.0
            runtime.state.cost_today = 0.0
            runtime.state.runtime_today_seconds = 0.0
        key = day_key(now.date())
        self.state.current_day = key
        self.state.daily[key] = EnergyBucket()
        self._aggregate(now.date())

    def report(self, period: str, now: datetime) -> dict[str, Any]:
        """
        Return consumption for a period.

        Args:
            period: One of day, week, month or total.
            now: Current local timestamp.

        Raises:
            InvalidPeriodError: If the period is not recognized.

        """
        try:
            energy_period = EnergyPeriod(period)
        except ValueError as err:
            msg = f"Invalid energy report period: {period!r}"
            raise InvalidPeriodError(msg) from err

        today = now.date()
        state = self.state
        if energy_period == EnergyPeriod.TOTAL:
            return {
                "period": energy_period.value,
                "kwh": round(state.total_kwh, 3),
                "cost": round(state.total_cost, 2),
                "heating_degree_days": round(state.heating_degree_days, 2),
                "current_price": state.current_price,
            }

        if energy_period == EnergyPeriod.DAY:
            key, buckets = day_key(today), state.daily
        elif energy_period == EnergyPeriod.WEEK:
            key, buckets = week_key(today), state.weekly
        else:
            key, buckets = month_key(today), state.monthly

        bucket = buckets.get(key, EnergyBucket())
        return {
            "period": energy_period.value,
            "key": key,
            **bucket.rounded(),
            "current_price": state.current_price,
        }

    def annual_comparison(self, now: datetime) -> dict[str, Any]:
        """Compare year-to-date consumption with the same months last year."""
        this_year = EnergyBucket()
        last_year = EnergyBucket()
        for key, bucket in self.state.monthly.items():
            year, month = (int(part) for part in key.split("-"))
            if month > now.month:
                continue
            if year == now.year:
                this_year.merge(bucket)
            elif year == now.year - 1:
                last_year.merge(bucket)

        change = None
        if last_year.kwh > 0:
            change = round((this_year.kwh - last_year.kwh) / last_year.kwh * 100, 1)

        return {
            "year": now.year,
            "kwh": round(this_year.kwh, 3),
            "cost": round(this_year.cost, 2),
            "previous_year_kwh": round(last_year.kwh, 3),
            "previous_year_cost": round(last_year.cost, 2),
            "change_percent": change,
        }

    def statistics(self, zones: Iterable[ZoneRuntime]) -> dict[str, Any]:
        """Return efficiency figures over the lifetime totals."""
        zones = list(zones)
        area = sum(runtime.config.area for runtime in zones)
        state = self.state
        prices = [point.price for point in state.price_history]
        return {
            "total_kwh": round(state.total_kwh, 3),
            "total_cost": round(state.total_cost, 2),
            "kwh_per_m2": round(state.total_kwh / area, 3) if area > 0 else None,
            "kwh_per_degree_day": (
                round(state.total_kwh / state.heating_degree_days, 3)
                if state.heating_degree_days > 0
                else None
            ),
            "average_price": round(sum(prices) / len(prices), 3) if prices else None,
        }

    def as_dict(self) -> dict[str, Any]:
        """Return the persistent part of the energy state."""
        state = self.state
        return {
            "current_price": state.current_price,
            "total_kwh": state.total_kwh,
            "total_cost": state.total_cost,
            "heating_degree_days": state.heating_degree_days,
            "current_day": state.current_day,
            "daily": {k: v.as_dict() for k, v in state.daily.items()},
            "weekly": {k: v.as_dict() for k, v in state.weekly.items()},
            "monthly": {k: v.as_dict() for k, v in state.monthly.items()},
        }

    def restore(self, data: Mapping[str, Any]) -> None:
        """Restore persisted energy state."""
        state = self.state
        if (price := _valid_price(data.get("current_price"))) is not None:
            state.current_price = price
        state.total_kwh = float(data.get("total_kwh", state.total_kwh))
        state.total_cost = float(data.get("total_cost", state.total_cost))
        state.heating_degree_days = float(
            data.get("heating_degree_days", state.heating_degree_days)
        )
        state.current_day = data.get("current_day", state.current_day)
        for name in ("daily", "weekly", "monthly"):
            buckets = getattr(state, name)
            for key, bucket in data.get(name, {}).items():
                buckets[key] = EnergyBucket.from_dict(bucket)
