"""
PID controller implementation for Floor Heating Controller.

This module provides a pure Python PID controller with anti-windup,
thermal-inertia anticipation and output smoothing for slow floor
heating circuits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from custom_components.floor_heating.const import (
    ANTICIPATION_APPROACH_FACTOR,
    ANTICIPATION_OVERSHOOT_FACTOR,
    DEFAULT_PID,
    DEFAULT_TIMING,
    ELECTRIC_RESPONSE_TIME,
)

if TYPE_CHECKING:
    from datetime import datetime

MIN_DT = 1.0  # seconds


@dataclass
class PIDState:
    """State of the PID controller."""

    integral: float = 0.0
    previous_error: float = 0.0
    last_update: datetime | None = None
    p_term: float = 0.0
    i_term: float = 0.0
    d_term: float = 0.0
    output: float = 0.0  # Raw output after anticipation and clamping
    smoothed_output: float = 0.0


@dataclass
class PIDController:
    """
    PID controller with anti-windup for floor temperature control.

    The controller calculates a heating output (0-100%) from the
    temperature error (setpoint - current temperature).

    Attributes:
        kp: Proportional gain.
        ki: Integral gain.
        kd: Derivative gain.
        integral_min: Lower bound of the integral accumulator (anti-windup).
        integral_max: Upper bound of the integral accumulator (anti-windup).
        response_time: Minutes the floor needs to respond to an output change.
        smoothing_factor: Weight of the new output in the exponential blend.
        overshoot_guard: Margin above target where anticipation cuts hardest.
        default_dt: Time delta in seconds used for the first update.

    """

    kp: float = DEFAULT_PID["kp"]
    ki: float = DEFAULT_PID["ki"]
    kd: float = DEFAULT_PID["kd"]
    integral_min: float = DEFAULT_PID["integral_min"]
    integral_max: float = DEFAULT_PID["integral_max"]
    response_time: float = ELECTRIC_RESPONSE_TIME
    smoothing_factor: float = DEFAULT_PID["smoothing_factor"]
    overshoot_guard: float = DEFAULT_PID["overshoot_guard"]
    default_dt: float = DEFAULT_TIMING["control_interval"]

    _state: PIDState = field(default_factory=PIDState, init=False, repr=False)

    @property
    def state(self) -> PIDState:
        """Return the current PID state."""
        return self._state

    def compute(self, setpoint: float, current: float, now: datetime) -> float:
        """
        Calculate the heating output from temperature error.

        The time delta is taken from the wall clock since the previous
        update and floored at one second, so skipped or repeated ticks
        never divide by zero.

        Args:
            setpoint: Target temperature.
            current: Current temperature.
            now: Timestamp of this update.

        Returns:
            Smoothed heating output as a percentage (0.0 to 100.0),
            rounded to one decimal.

        """
        state = self._state
        if state.last_update is None:
            dt = self.default_dt
        else:
            dt = (now - state.last_update).total_seconds()
        dt = max(dt, MIN_DT)

        error = setpoint - current

        # Integral with anti-windup clamp
        state.integral += error * dt
        state.integral = max(self.integral_min, min(self.integral_max, state.integral))

        derivative = (error - state.previous_error) / dt

        state.p_term = self.kp * error
        state.i_term = self.ki * state.integral
        state.d_term = self.kd * derivative
        raw = state.p_term + state.i_term + state.d_term

        raw *= self._anticipation_factor(setpoint, current, derivative)
        raw = max(0.0, min(100.0, raw))

        state.output = raw
        state.smoothed_output = (
            state.smoothed_output * (1 - self.smoothing_factor)
            + raw * self.smoothing_factor
        )
        state.previous_error = error
        state.last_update = now

        return round(state.smoothed_output, 1)

    def _anticipation_factor(
        self, setpoint: float, current: float, derivative: float
    ) -> float:
        """
        Return the output scale for the projected temperature.

        With a steady setpoint the error falls exactly as fast as the
        temperature rises, so the temperature rate is -derivative.
        """
        rate_per_hour = -derivative * 3600
        projected = current + rate_per_hour * (self.response_time / 60)

        if projected > setpoint + self.overshoot_guard:
            return ANTICIPATION_OVERSHOOT_FACTOR
        if projected > setpoint:
            return ANTICIPATION_APPROACH_FACTOR
        return 1.0

    def reset(self) -> None:
        """Reset the PID controller state."""
        self._state = PIDState()

    def pause(self) -> None:
        """Forget the last update so integration resumes with the nominal dt."""
        self._state.last_update = None

    def set_gains(
        self,
        kp: float | None = None,
        ki: float | None = None,
        kd: float | None = None,
    ) -> None:
        """Update controller gains, leaving unspecified gains unchanged."""
        if kp is not None:
            self.kp = kp
        if ki is not None:
            self.ki = ki
        if kd is not None:
            self.kd = kd

    def set_integral(self, value: float) -> None:
        """Set the integral value directly (for state restoration)."""
        self._state.integral = max(self.integral_min, min(self.integral_max, value))

    def restore(
        self,
        *,
        integral: float,
        previous_error: float,
        smoothed_output: float,
    ) -> None:
        """Restore persisted accumulator values."""
        self.set_integral(integral)
        self._state.previous_error = previous_error
        self._state.smoothed_output = max(0.0, min(100.0, smoothed_output))
