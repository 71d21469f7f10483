"""Tests for Floor Heating Controller zone subentry flow and helpers."""

from homeassistant import config_entries
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.floor_heating.config_flow import (
    build_zone_data,
    get_zone_schema,
    validate_zone_data,
)
from custom_components.floor_heating.const import SUBENTRY_TYPE_ZONE


def _zone_subentry_id(entry: MockConfigEntry) -> str:
    """Return the id of the first zone subentry."""
    return next(
        subentry.subentry_id
        for subentry in entry.subentries.values()
        if subentry.subentry_type == SUBENTRY_TYPE_ZONE
    )


# =============================================================================
# Zone Subentry Flow Tests
# =============================================================================


async def test_zone_subentry_user_show_form(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that zone add flow shows the form."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry.entry_id, SUBENTRY_TYPE_ZONE),
        context={"source": config_entries.SOURCE_USER},
    )

    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "user"


async def test_zone_subentry_user_create_zone(
    hass: HomeAssistant,
    mock_config_entry_no_zones: MockConfigEntry,
) -> None:
    """Test creating a zone with only the required fields."""
    mock_config_entry_no_zones.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry_no_zones.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry_no_zones.entry_id, SUBENTRY_TYPE_ZONE),
        context={"source": config_entries.SOURCE_USER},
    )

    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "Living Room",
            "heating_type": "water",
            "floor_material": "tile",
            "air_temp_sensor": "sensor.living_room_temp",
        },
    )

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert result["title"] == "Living Room"
    assert result["data"]["id"] == "living-room"
    assert result["data"]["name"] == "Living Room"
    assert result["data"]["heating_type"] == "water"
    assert result["data"]["air_temp_sensor"] == "sensor.living_room_temp"
    assert result["data"]["heater_entity"] is None
    assert result["data"]["temperatures"] == {
        "comfort": 21.0,
        "eco": 18.0,
        "frost": 8.0,
    }


async def test_zone_subentry_user_create_zone_with_options(
    hass: HomeAssistant,
    mock_config_entry_no_zones: MockConfigEntry,
) -> None:
    """Test creating a zone with all optional fields."""
    mock_config_entry_no_zones.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry_no_zones.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry_no_zones.entry_id, SUBENTRY_TYPE_ZONE),
        context={"source": config_entries.SOURCE_USER},
    )

    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "Bathroom",
            "heating_type": "electric",
            "floor_material": "stone",
            "air_temp_sensor": "sensor.bathroom_temp",
            "floor_temp_sensor": "sensor.bathroom_floor",
            "humidity_sensor": "sensor.bathroom_humidity",
            "window_sensors": ["binary_sensor.bathroom_window"],
            "heater_entity": "switch.bathroom_heater",
            "comfort_temp": 23.0,
            "eco_temp": 19.0,
            "frost_temp": 10.0,
            "max_floor_temp": 31.0,
            "area": 6.5,
            "installed_power": 650.0,
        },
    )

    assert result["type"] is FlowResultType.CREATE_ENTRY
    data = result["data"]
    assert data["floor_material"] == "stone"
    assert data["window_sensors"] == ["binary_sensor.bathroom_window"]
    assert data["heater_entity"] == "switch.bathroom_heater"
    assert data["temperatures"] == {"comfort": 23.0, "eco": 19.0, "frost": 10.0}
    assert data["max_floor_temp"] == 31.0
    assert data["area"] == 6.5
    assert data["installed_power"] == 650.0


async def test_zone_subentry_user_duplicate_error(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that a name colliding with an existing zone id shows an error."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry.entry_id, SUBENTRY_TYPE_ZONE),
        context={"source": config_entries.SOURCE_USER},
    )

    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "zone1",
            "air_temp_sensor": "sensor.another_temp",
        },
    )

    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"name": "zone_id_exists"}


async def test_zone_subentry_user_invalid_temperatures(
    hass: HomeAssistant,
    mock_config_entry_no_zones: MockConfigEntry,
) -> None:
    """Test that inconsistent temperatures are rejected."""
    mock_config_entry_no_zones.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry_no_zones.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry_no_zones.entry_id, SUBENTRY_TYPE_ZONE),
        context={"source": config_entries.SOURCE_USER},
    )

    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "Study",
            "air_temp_sensor": "sensor.study_temp",
            "comfort_temp": 19.0,
            "eco_temp": 21.0,
        },
    )

    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": "invalid_zone"}


async def test_zone_subentry_reconfigure_show_form(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that reconfigure shows the zone form."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry.entry_id, SUBENTRY_TYPE_ZONE),
        context={
            "source": config_entries.SOURCE_RECONFIGURE,
            "subentry_id": _zone_subentry_id(mock_config_entry),
        },
    )

    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "reconfigure"


async def test_zone_subentry_reconfigure_keeps_zone_id(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that renaming a zone through reconfigure keeps its id."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()
    subentry_id = _zone_subentry_id(mock_config_entry)

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry.entry_id, SUBENTRY_TYPE_ZONE),
        context={
            "source": config_entries.SOURCE_RECONFIGURE,
            "subentry_id": subentry_id,
        },
    )
    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "Guest Room",
            "heating_type": "water",
            "floor_material": "vinyl",
            "air_temp_sensor": "sensor.zone1_temp",
            "comfort_temp": 20.0,
        },
    )
    await hass.async_block_till_done()

    assert result["type"] is FlowResultType.ABORT
    assert result["reason"] == "reconfigure_successful"
    subentry = mock_config_entry.subentries[subentry_id]
    assert subentry.title == "Guest Room"
    assert subentry.data["id"] == "zone1"
    assert subentry.data["floor_material"] == "vinyl"
    assert subentry.data["temperatures"]["comfort"] == 20.0


async def test_zone_subentry_reconfigure_invalid(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that reconfigure rejects a comfort target above the material limit."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.subentries.async_init(
        (mock_config_entry.entry_id, SUBENTRY_TYPE_ZONE),
        context={
            "source": config_entries.SOURCE_RECONFIGURE,
            "subentry_id": _zone_subentry_id(mock_config_entry),
        },
    )
    result = await hass.config_entries.subentries.async_configure(
        result["flow_id"],
        user_input={
            "name": "Test Zone 1",
            "floor_material": "wood",
            "air_temp_sensor": "sensor.zone1_temp",
            "comfort_temp": 28.0,
        },
    )

    assert result["type"] is FlowResultType.FORM
    assert result["errors"] == {"base": "invalid_zone"}


# =============================================================================
# Helper Tests
# =============================================================================


def test_build_zone_data_defaults() -> None:
    """Test building zone data from a minimal form."""
    data = build_zone_data({"name": "Hall Way", "air_temp_sensor": "sensor.hall"})

    assert data["id"] == "hall-way"
    assert data["heating_type"] == "electric"
    assert data["floor_material"] == "tile"
    assert data["floor_temp_sensor"] is None
    assert data["window_sensors"] == []
    assert data["max_floor_temp"] is None
    assert data["area"] == 10.0
    assert data["installed_power"] == 800.0


def test_build_zone_data_keeps_given_id() -> None:
    """Test that an existing zone id wins over the name."""
    data = build_zone_data(
        {"name": "New Name", "air_temp_sensor": "sensor.hall"}, zone_id="hall"
    )

    assert data["id"] == "hall"
    assert data["name"] == "New Name"


def test_validate_zone_data() -> None:
    """Test zone data validation."""
    valid = build_zone_data({"name": "Hall", "air_temp_sensor": "sensor.hall"})
    unnamed = build_zone_data({"name": "***", "air_temp_sensor": "sensor.hall"})
    too_warm = build_zone_data(
        {
            "name": "Hall",
            "air_temp_sensor": "sensor.hall",
            "floor_material": "wood",
            "max_floor_temp": 35.0,
        }
    )

    assert validate_zone_data(valid) is None
    assert validate_zone_data(unnamed) == "invalid_name"
    assert validate_zone_data(too_warm) == "invalid_zone"


def test_zone_schema_prefills_reconfigure_defaults() -> None:
    """Test that stored values become form defaults."""
    schema = get_zone_schema(
        {
            "name": "Hall",
            "heating_type": "water",
            "air_temp_sensor": "sensor.hall",
            "temperatures": {"comfort": 22.0},
        }
    )

    defaults = {
        str(key): key.default() for key in schema.schema if callable(key.default)
    }
    assert defaults["name"] == "Hall"
    assert defaults["heating_type"] == "water"
    assert defaults["comfort_temp"] == 22.0
    assert defaults["eco_temp"] == 18.0
