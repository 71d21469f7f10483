"""Validation errors raised by the floor heating engine."""

from __future__ import annotations


class FloorHeatingError(Exception):
    """Base class for engine validation errors."""


class UnknownZoneError(FloorHeatingError):
    """Raised when a zone id is not registered."""

    def __init__(self, zone_id: str) -> None:
        """Initialize the error."""
        super().__init__(f"Unknown zone: {zone_id}")
        self.zone_id = zone_id


class ZoneExistsError(FloorHeatingError):
    """Raised when adding a zone whose id is already registered."""

    def __init__(self, zone_id: str) -> None:
        """Initialize the error."""
        super().__init__(f"Zone already exists: {zone_id}")
        self.zone_id = zone_id


class InvalidModeError(FloorHeatingError):
    """Raised when a zone mode is not one of comfort, eco or frost."""

    def __init__(self, mode: object) -> None:
        """Initialize the error."""
        super().__init__(f"Invalid mode: {mode}")
        self.mode = mode


class OutOfMaterialRangeError(FloorHeatingError):
    """Raised when a requested temperature exceeds the floor material limit."""

    def __init__(self, zone_id: str, temperature: float, max_temp: float) -> None:
        """Initialize the error."""
        super().__init__(
            f"Temperature {temperature} exceeds material limit {max_temp} "
            f"for zone {zone_id}"
        )
        self.zone_id = zone_id
        self.temperature = temperature
        self.max_temp = max_temp


class BelowFrostFloorError(FloorHeatingError):
    """Raised when a requested temperature is below the frost protection level."""

    def __init__(self, zone_id: str, temperature: float, frost_temp: float) -> None:
        """Initialize the error."""
        super().__init__(
            f"Temperature {temperature} is below frost protection {frost_temp} "
            f"for zone {zone_id}"
        )
        self.zone_id = zone_id
        self.temperature = temperature
        self.frost_temp = frost_temp


class InvalidZoneConfigError(FloorHeatingError):
    """Raised when a zone configuration violates its invariants."""


class InvalidScheduleError(FloorHeatingError):
    """Raised when a schedule or time window cannot be parsed."""


class InvalidPeriodError(FloorHeatingError):
    """Raised when an energy report period is not recognized."""


class NonFiniteValueError(FloorHeatingError):
    """Raised when a temperature or offset is NaN or infinite."""

    def __init__(self, zone_id: str, field: str, value: float) -> None:
        """Initialize the error."""
        super().__init__(f"Invalid {field} {value} for zone {zone_id}")
        self.zone_id = zone_id
        self.field = field
        self.value = value
