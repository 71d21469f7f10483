"""Constants for Floor Heating Controller."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from logging import Logger, getLogger
from pathlib import Path
from typing import TypedDict

LOGGER: Logger = getLogger(__package__)

DOMAIN = "floor_heating"

# Load version from manifest.json once at module load
MANIFEST_PATH = Path(__file__).parent / "manifest.json"
VERSION = json.loads(MANIFEST_PATH.read_text())["version"]

# Subentry types for config entry organization
SUBENTRY_TYPE_CONTROLLER = "controller"
SUBENTRY_TYPE_ZONE = "zone"

# Event fired on the Home Assistant bus for every engine notification
EVENT_FLOOR_HEATING = f"{DOMAIN}_event"

# Config entry keys
CONF_CONTROLLER_ID = "controller_id"
CONF_PRICE_SENSOR = "price_sensor"
CONF_OUTDOOR_TEMP_SENSOR = "outdoor_temp_sensor"

# Zone subentry keys
CONF_ZONE_ID = "id"
CONF_HEATING_TYPE = "heating_type"
CONF_FLOOR_MATERIAL = "floor_material"
CONF_TEMPERATURES = "temperatures"
CONF_MAX_FLOOR_TEMP = "max_floor_temp"
CONF_AREA = "area"
CONF_INSTALLED_POWER = "installed_power"
CONF_AIR_TEMP_SENSOR = "air_temp_sensor"
CONF_FLOOR_TEMP_SENSOR = "floor_temp_sensor"
CONF_HUMIDITY_SENSOR = "humidity_sensor"
CONF_FLOW_SENSOR = "flow_sensor"
CONF_WINDOW_SENSORS = "window_sensors"
CONF_HEATER_ENTITY = "heater_entity"


class HeatingType(StrEnum):
    """Heating technology of a zone circuit."""

    ELECTRIC = "electric"
    WATER = "water"
    HYBRID = "hybrid"

    @property
    def has_valve(self) -> bool:
        """Return True if the circuit is driven through a hydronic valve."""
        return self in (HeatingType.WATER, HeatingType.HYBRID)


class FloorMaterial(StrEnum):
    """Floor covering material."""

    WOOD = "wood"
    TILE = "tile"
    STONE = "stone"
    VINYL = "vinyl"


class ZoneMode(StrEnum):
    """Zone operating modes."""

    COMFORT = "comfort"
    ECO = "eco"
    FROST = "frost"


class Season(StrEnum):
    """Heating season."""

    WINTER = "winter"
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"


class ComfortRating(StrEnum):
    """Comfort score buckets."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    VERY_POOR = "very_poor"
    UNKNOWN = "unknown"


class FaultCode(StrEnum):
    """Per-zone fault codes."""

    VALVE_STUCK = "valve_stuck"
    PROCESSING_ERROR = "processing_error"
    SENSOR_FAULT = "sensor_fault"


class EnergyPeriod(StrEnum):
    """Energy report periods."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    TOTAL = "total"


@dataclass(frozen=True)
class MaterialLimits:
    """Thermal limits of a floor material."""

    max_temp: float
    max_rate_per_hour: float
    min_temp: float


FLOOR_MATERIAL_LIMITS: dict[FloorMaterial, MaterialLimits] = {
    FloorMaterial.WOOD: MaterialLimits(
        max_temp=27.0, max_rate_per_hour=2.0, min_temp=15.0
    ),
    FloorMaterial.TILE: MaterialLimits(
        max_temp=33.0, max_rate_per_hour=4.0, min_temp=10.0
    ),
    FloorMaterial.STONE: MaterialLimits(
        max_temp=35.0, max_rate_per_hour=4.5, min_temp=10.0
    ),
    FloorMaterial.VINYL: MaterialLimits(
        max_temp=27.0, max_rate_per_hour=1.5, min_temp=15.0
    ),
}


class TimingDefaults(TypedDict):
    """Type for DEFAULT_TIMING dictionary."""

    control_interval: int
    schedule_interval: int
    occupancy_interval: int
    energy_interval: int
    weather_interval: int
    maintenance_interval: int


class PIDDefaults(TypedDict):
    """Type for DEFAULT_PID dictionary."""

    kp: float
    ki: float
    kd: float
    integral_min: float
    integral_max: float
    smoothing_factor: float
    overshoot_guard: float


class ZoneTemperatureDefaults(TypedDict):
    """Type for DEFAULT_ZONE_TEMPERATURES dictionary."""

    comfort: float
    eco: float
    frost: float


class ZoneDefaults(TypedDict):
    """Type for DEFAULT_ZONE dictionary."""

    heating_type: str
    floor_material: str
    area: float
    installed_power: float


# Default tick intervals (in seconds)
DEFAULT_TIMING: TimingDefaults = {
    "control_interval": 60,
    "schedule_interval": 60,
    "occupancy_interval": 120,
    "energy_interval": 300,  # 5 minutes
    "weather_interval": 900,  # 15 minutes
    "maintenance_interval": 3600,  # 1 hour
}


@dataclass
class TimingParams:
    """
    Tick intervals of the engine jobs.

    All durations are in seconds.
    """

    control_interval: int = DEFAULT_TIMING["control_interval"]
    schedule_interval: int = DEFAULT_TIMING["schedule_interval"]
    occupancy_interval: int = DEFAULT_TIMING["occupancy_interval"]
    energy_interval: int = DEFAULT_TIMING["energy_interval"]
    weather_interval: int = DEFAULT_TIMING["weather_interval"]
    maintenance_interval: int = DEFAULT_TIMING["maintenance_interval"]


# Default PID controller parameters
DEFAULT_PID: PIDDefaults = {
    "kp": 2.0,
    "ki": 0.05,
    "kd": 1.5,
    "integral_min": -500.0,
    "integral_max": 500.0,
    "smoothing_factor": 0.3,
    "overshoot_guard": 0.5,
}

# Output reduction when the projected temperature passes the target
ANTICIPATION_OVERSHOOT_FACTOR = 0.3
ANTICIPATION_APPROACH_FACTOR = 0.6

# Default zone temperatures (in °C)
DEFAULT_ZONE_TEMPERATURES: ZoneTemperatureDefaults = {
    "comfort": 21.0,
    "eco": 18.0,
    "frost": 8.0,
}

DEFAULT_ZONE: ZoneDefaults = {
    "heating_type": HeatingType.ELECTRIC,
    "floor_material": FloorMaterial.TILE,
    "area": 10.0,  # m²
    "installed_power": 800.0,  # W
}

# Thermal properties per heating type: (thermal mass coefficient, response minutes)
WATER_THERMAL_MASS = 0.85
WATER_RESPONSE_TIME = 45
ELECTRIC_THERMAL_MASS = 0.55
ELECTRIC_RESPONSE_TIME = 20

# Periodic jobs run when an interval has elapsed within this many seconds
JOB_INTERVAL_TOLERANCE = 1.0

# Zone history: one day at one-minute resolution
HISTORY_CAPACITY = 1440

# Floor protection
RATE_LIMIT_OUTPUT_CAP = 30.0
DERATING_HEADROOM = 2.0  # °C below max floor temperature where derating starts

# Scheduler
DEFAULT_ANTICIPATORY_MINUTES = 30
DEFAULT_NIGHT_SETBACK = {"start": "22:00", "end": "06:00"}

# Occupancy
UNOCCUPIED_REDUCTION_MINUTES = 30
UNOCCUPIED_REDUCTION = 2.0  # °C
GEOFENCE_PREHEAT_ETA_MINUTES = 45

# Holiday frost protection hysteresis (relative to the zone frost temperature)
HOLIDAY_HEAT_BELOW = 1.0
HOLIDAY_STOP_ABOVE = 3.0
HOLIDAY_FROST_OUTPUT = 40.0

# Pipe freeze protection for hydronic circuits
PIPE_FREEZE_FLOOR_TEMP = 5.0
PIPE_FREEZE_OUTPUT = 50.0


class EnergyDefaults(TypedDict):
    """Type for DEFAULT_ENERGY dictionary."""

    default_price: float
    cheap_threshold: float
    expensive_threshold: float
    charge_boost: float
    price_history_size: int


DEFAULT_ENERGY: EnergyDefaults = {
    "default_price": 1.50,  # currency/kWh
    "cheap_threshold": 0.80,
    "expensive_threshold": 2.50,
    "charge_boost": 2.0,  # °C
    "price_history_size": 288,  # one day of 5-minute prices
}


class WeatherDefaults(TypedDict):
    """Type for DEFAULT_WEATHER dictionary."""

    summer_shutdown_threshold: float
    summer_override: float
    winter_override: float
    winter_boost_threshold: float
    winter_boost: float
    mild_threshold: float
    mild_reduction: float
    degree_day_base: float
    curve_reference: float
    curve_slope: float
    curve_floor_margin: float


DEFAULT_WEATHER: WeatherDefaults = {
    "summer_shutdown_threshold": 18.0,
    "summer_override": 20.0,
    "winter_override": -10.0,
    "winter_boost_threshold": -15.0,
    "winter_boost": 1.5,
    "mild_threshold": 15.0,
    "mild_reduction": 1.0,
    "degree_day_base": 17.0,
    "curve_reference": 15.0,
    "curve_slope": 0.085,
    "curve_floor_margin": 2.0,
}


class MaintenanceDefaults(TypedDict):
    """Type for DEFAULT_MAINTENANCE dictionary."""

    anti_seize_interval_days: int
    anti_seize_open_seconds: int
    anti_seize_close_seconds: int
    stuck_valve_min_position: float
    stuck_valve_flow_epsilon: float
    flow_per_valve_percent: float
    flow_deviation_threshold: float
    anomaly_log_size: int
    low_battery_threshold: float


DEFAULT_MAINTENANCE: MaintenanceDefaults = {
    "anti_seize_interval_days": 7,
    "anti_seize_open_seconds": 10,
    "anti_seize_close_seconds": 5,
    "stuck_valve_min_position": 20.0,  # %
    "stuck_valve_flow_epsilon": 0.01,  # l/min
    "flow_per_valve_percent": 0.12,  # l/min per % valve opening
    "flow_deviation_threshold": 0.4,
    "anomaly_log_size": 100,
    "low_battery_threshold": 20.0,  # %
}

# System health deductions
HEALTH_PENALTY_STUCK_VALVE = 10
HEALTH_PENALTY_FLOW_ANOMALY = 5
HEALTH_PENALTY_FAULT_CODE = 3
HEALTH_PENALTY_LOW_BATTERY = 2
HEALTH_PENALTY_MOISTURE = 5
HEALTH_WINDOW_HOURS = 24

# Storage
STORAGE_VERSION = 1
STORAGE_KEY = "floor_heating"

# UI validation constraints
UI_ZONE_TEMPERATURE = {"min": 5.0, "max": 35.0, "step": 0.5}
UI_ZONE_AREA = {"min": 1.0, "max": 500.0, "step": 0.5}
UI_ZONE_POWER = {"min": 0.0, "max": 20000.0, "step": 50.0}
UI_TIMING_CONTROL_INTERVAL = {"min": 10, "max": 300, "step": 5}
UI_TIMING_ENERGY_INTERVAL = {"min": 60, "max": 3600, "step": 60}
UI_TIMING_WEATHER_INTERVAL = {"min": 60, "max": 7200, "step": 60}
