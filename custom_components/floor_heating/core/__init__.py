"""Core control logic for Floor Heating Controller."""

from custom_components.floor_heating.const import TimingParams

from .comfort import ComfortConstants, ComfortScore, calculate_comfort, rate_score
from .energy import EnergyOptimizer, PriceAction, PriceUpdate
from .engine import EngineConfig, HeatingEngine
from .errors import (
    BelowFrostFloorError,
    FloorHeatingError,
    InvalidModeError,
    InvalidPeriodError,
    InvalidScheduleError,
    InvalidZoneConfigError,
    NonFiniteValueError,
    OutOfMaterialRangeError,
    UnknownZoneError,
    ZoneExistsError,
)
from .events import EventQueue, EventType, HeatingEvent
from .maintenance import MaintenanceMonitor
from .occupancy import GeofenceState, ZoneOccupancy
from .pid import PIDController, PIDState
from .protection import ProtectionResult, clamp_output
from .schedule import (
    ScheduleDecision,
    ScheduleSource,
    TimeWindow,
    ZoneSchedule,
    evaluate_schedule,
)
from .target import NightSetback, resolve_effective_target
from .weather import WeatherCompensator
from .zone import (
    HeatingTransition,
    LimitReason,
    ZoneConfig,
    ZoneRuntime,
    ZoneState,
)

__all__ = [
    "BelowFrostFloorError",
    "ComfortConstants",
    "ComfortScore",
    "EnergyOptimizer",
    "EngineConfig",
    "EventQueue",
    "EventType",
    "FloorHeatingError",
    "GeofenceState",
    "HeatingEngine",
    "HeatingEvent",
    "HeatingTransition",
    "InvalidModeError",
    "InvalidPeriodError",
    "InvalidScheduleError",
    "InvalidZoneConfigError",
    "LimitReason",
    "MaintenanceMonitor",
    "NightSetback",
    "NonFiniteValueError",
    "OutOfMaterialRangeError",
    "PIDController",
    "PIDState",
    "PriceAction",
    "PriceUpdate",
    "ProtectionResult",
    "ScheduleDecision",
    "ScheduleSource",
    "TimeWindow",
    "TimingParams",
    "UnknownZoneError",
    "WeatherCompensator",
    "ZoneConfig",
    "ZoneExistsError",
    "ZoneOccupancy",
    "ZoneRuntime",
    "ZoneSchedule",
    "ZoneState",
    "calculate_comfort",
    "clamp_output",
    "evaluate_schedule",
    "rate_score",
    "resolve_effective_target",
]
