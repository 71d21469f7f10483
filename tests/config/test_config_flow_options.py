"""Tests for Floor Heating Controller options flow."""

from unittest.mock import patch

from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResultType
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.floor_heating.const import (
    DOMAIN,
    SUBENTRY_TYPE_CONTROLLER,
)

NEW_TIMING = {
    "control_interval": 30,
    "schedule_interval": 60,
    "occupancy_interval": 120,
    "energy_interval": 600,
    "weather_interval": 1800,
    "maintenance_interval": 3600,
}


def _controller_data(entry: MockConfigEntry) -> dict:
    """Return the data of the controller subentry."""
    for subentry in entry.subentries.values():
        if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER:
            return dict(subentry.data)
    msg = "controller subentry missing"
    raise AssertionError(msg)


async def test_options_flow_show_menu(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test that the options flow shows the menu."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(mock_config_entry.entry_id)

    assert result["type"] is FlowResultType.MENU
    assert result["step_id"] == "init"
    assert result["menu_options"] == ["control_entities", "timing", "pid"]


async def test_options_flow_update_control_entities(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test changing the price and outdoor temperature sources."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(mock_config_entry.entry_id)
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "control_entities"},
    )
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "control_entities"

    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={
            "price_sensor": "sensor.spot_price",
            "outdoor_temp_sensor": "sensor.outdoor_temp",
        },
    )
    await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert mock_config_entry.data["price_sensor"] == "sensor.spot_price"
    assert mock_config_entry.data["outdoor_temp_sensor"] == "sensor.outdoor_temp"
    # Identity of the controller is untouched
    assert mock_config_entry.data["controller_id"] == "test_controller"


async def test_options_flow_clear_control_entities(
    hass: HomeAssistant,
    mock_config_entry_with_inputs: MockConfigEntry,
) -> None:
    """Test that leaving the fields empty removes the sources."""
    mock_config_entry_with_inputs.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry_with_inputs.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(
        mock_config_entry_with_inputs.entry_id
    )
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "control_entities"},
    )
    result = await hass.config_entries.options.async_configure(
        result["flow_id"], user_input={}
    )
    await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert mock_config_entry_with_inputs.data["price_sensor"] is None
    assert mock_config_entry_with_inputs.data["outdoor_temp_sensor"] is None


async def test_options_flow_update_timing(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test updating the job intervals."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(mock_config_entry.entry_id)
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "timing"},
    )
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "timing"

    result = await hass.config_entries.options.async_configure(
        result["flow_id"], user_input=NEW_TIMING
    )
    await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert _controller_data(mock_config_entry)["timing"] == NEW_TIMING

    # The reloaded coordinator runs at the new interval
    coordinator = mock_config_entry.runtime_data.coordinator
    assert coordinator.engine.config.timing.control_interval == 30
    assert coordinator.update_interval.total_seconds() == 30


async def test_options_flow_update_pid(
    hass: HomeAssistant,
    mock_config_entry: MockConfigEntry,
) -> None:
    """Test updating the PID gains."""
    mock_config_entry.add_to_hass(hass)
    await hass.config_entries.async_setup(mock_config_entry.entry_id)
    await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(mock_config_entry.entry_id)
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "pid"},
    )
    assert result["type"] is FlowResultType.FORM
    assert result["step_id"] == "pid"

    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"kp": 3.0, "ki": 0.1, "kd": 1.0},
    )
    await hass.async_block_till_done()

    assert result["type"] is FlowResultType.CREATE_ENTRY
    assert _controller_data(mock_config_entry)["pid"] == {
        "kp": 3.0,
        "ki": 0.1,
        "kd": 1.0,
    }
    # Timing is kept next to the new gains
    assert "timing" in _controller_data(mock_config_entry)


async def test_options_flow_reads_controller_subentry(
    hass: HomeAssistant,
) -> None:
    """Test that the timing form is pre-filled from the controller subentry."""
    custom_timing = {**NEW_TIMING, "control_interval": 90}
    entry = MockConfigEntry(
        domain=DOMAIN,
        data={"name": "Test", "controller_id": "test"},
        options={},
        subentries_data=[
            {
                "data": {"timing": custom_timing},
                "subentry_type": SUBENTRY_TYPE_CONTROLLER,
                "title": "Controller",
                "unique_id": "controller",
            }
        ],
    )
    entry.add_to_hass(hass)

    with patch(
        "custom_components.floor_heating.async_setup_entry",
        return_value=True,
    ):
        await hass.config_entries.async_setup(entry.entry_id)
        await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(entry.entry_id)
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "timing"},
    )

    assert result["type"] is FlowResultType.FORM
    defaults = {
        str(key): key.default()
        for key in result["data_schema"].schema
        if callable(key.default)
    }
    assert defaults["control_interval"] == 90
    assert defaults["weather_interval"] == 1800


async def test_options_flow_without_controller_aborts(
    hass: HomeAssistant,
) -> None:
    """Test that timing and PID need the controller subentry."""
    entry = MockConfigEntry(
        domain=DOMAIN,
        data={"name": "Test", "controller_id": "test"},
    )
    entry.add_to_hass(hass)

    with patch(
        "custom_components.floor_heating.async_setup_entry",
        return_value=True,
    ):
        await hass.config_entries.async_setup(entry.entry_id)
        await hass.async_block_till_done()

    result = await hass.config_entries.options.async_init(entry.entry_id)
    result = await hass.config_entries.options.async_configure(
        result["flow_id"],
        user_input={"next_step_id": "pid"},
    )

    assert result["type"] is FlowResultType.ABORT
    assert result["reason"] == "controller_not_found"
