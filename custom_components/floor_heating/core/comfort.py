"""
Simplified thermal comfort scoring for Floor Heating Controller.

The score uses a Fanger-style PMV that is linear in the deviation of
the operative temperature from an ideal value, converted to PPD with
the standard exponential approximation. Floor temperature and
humidity outside their comfortable bands subtract linear penalties.
The constants are heuristics and can be overridden.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from custom_components.floor_heating.const import ComfortRating

from .rounding import round_to_step


@dataclass(frozen=True)
class ComfortConstants:
    """Tunable constants of the comfort model."""

    radiant_floor_weight: float = 0.4
    ideal_operative_temp: float = 21.5
    pmv_slope: float = 0.5
    pmv_limit: float = 3.0
    ppd_min: float = 5.0
    floor_min: float = 19.0
    floor_max: float = 26.0
    floor_penalty: float = 5.0  # per °C outside the band
    humidity_min: float = 30.0
    humidity_max: float = 60.0
    humidity_penalty: float = 0.5  # per % outside the band
    excellent: float = 85
    good: float = 70
    acceptable: float = 50
    poor: float = 30


DEFAULT_COMFORT_CONSTANTS = ComfortConstants()


@dataclass(frozen=True)
class ComfortScore:
    """Comfort assessment of a zone."""

    pmv: float | None
    ppd: float | None
    score: int | None
    rating: ComfortRating
    operative_temp: float | None = None

    def as_dict(self) -> dict[str, float | int | str | None]:
        """Return the score as a serializable mapping."""
        return {
            "pmv": self.pmv,
            "ppd": self.ppd,
            "score": self.score,
            "rating": self.rating.value,
            "operative_temp": self.operative_temp,
        }


UNKNOWN_COMFORT = ComfortScore(
    pmv=None, ppd=None, score=None, rating=ComfortRating.UNKNOWN
)


def _band_excess(value: float, low: float, high: float) -> float:
    """Return how far value lies outside [low, high]."""
    if value < low:
        return low - value
    if value > high:
        return value - high
    return 0.0


def rate_score(
    score: float, constants: ComfortConstants = DEFAULT_COMFORT_CONSTANTS
) -> ComfortRating:
    """Map a 0-100 score to its rating bucket."""
    if score >= constants.excellent:
        return ComfortRating.EXCELLENT
    if score >= constants.good:
        return ComfortRating.GOOD
    if score >= constants.acceptable:
        return ComfortRating.ACCEPTABLE
    if score >= constants.poor:
        return ComfortRating.POOR
    return ComfortRating.VERY_POOR


def calculate_comfort(
    air_temp: float | None,
    floor_temp: float | None,
    humidity: float | None,
    constants: ComfortConstants = DEFAULT_COMFORT_CONSTANTS,
) -> ComfortScore:
    """
    Score the thermal comfort of a zone.

    Args:
        air_temp: Air temperature in °C.
        floor_temp: Floor surface temperature in °C; the air temperature
            stands in for the radiant estimate when unknown.
        humidity: Relative humidity in %; no penalty when unknown.
        constants: Model constants.

    Returns:
        ComfortScore, with an unknown rating if the air temperature is missing.
        Readings that are NaN or infinite count as missing.

    """
    if air_temp is None or not math.isfinite(air_temp):
        return UNKNOWN_COMFORT
    if floor_temp is not None and not math.isfinite(floor_temp):
        floor_temp = None
    if humidity is not None and not math.isfinite(humidity):
        humidity = None

    floor = air_temp if floor_temp is None else floor_temp
    weight = constants.radiant_floor_weight
    mean_radiant = weight * floor + (1 - weight) * air_temp
    operative = (air_temp + mean_radiant) / 2

    pmv = (operative - constants.ideal_operative_temp) * constants.pmv_slope
    pmv = max(-constants.pmv_limit, min(constants.pmv_limit, pmv))

    ppd = round_to_step(100 - 95 * math.exp(-0.03353 * pmv**4 - 0.2179 * pmv**2))
    ppd = max(constants.ppd_min, min(100.0, ppd))

    penalty = 0.0
    if floor_temp is not None:
        penalty += constants.floor_penalty * _band_excess(
            floor_temp, constants.floor_min, constants.floor_max
        )
    if humidity is not None:
        penalty += constants.humidity_penalty * _band_excess(
            humidity, constants.humidity_min, constants.humidity_max
        )

    score = int(round_to_step(max(0.0, min(100.0, 100 - ppd - penalty))))
    return ComfortScore(
        pmv=round(pmv, 2),
        ppd=ppd,
        score=score,
        rating=rate_score(score, constants),
        operative_temp=round(operative, 2),
    )
