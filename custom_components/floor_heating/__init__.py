"""Floor heating zone control for Home Assistant."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from homeassistant.config_entries import ConfigSubentry
from homeassistant.const import Platform
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers import entity_registry as er
from homeassistant.helpers.storage import Store
from slugify import slugify

from .const import (
    CONF_CONTROLLER_ID,
    CONF_ZONE_ID,
    DEFAULT_PID,
    DEFAULT_TIMING,
    DOMAIN,
    LOGGER,
    STORAGE_KEY,
    STORAGE_VERSION,
    SUBENTRY_TYPE_CONTROLLER,
    SUBENTRY_TYPE_ZONE,
)
from .coordinator import FloorHeatingDataUpdateCoordinator
from .data import FloorHeatingData
from .services import async_setup_services

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.typing import ConfigType

    from .data import FloorHeatingConfigEntry

CONTROLLER_SUBENTRY_UNIQUE_ID = "controller"

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

PLATFORMS: list[Platform] = [
    Platform.CLIMATE,
    Platform.SENSOR,
    Platform.BINARY_SENSOR,
    Platform.SWITCH,
]


async def async_setup(hass: HomeAssistant, _config: ConfigType) -> bool:
    """Register the service actions once for all entries."""
    async_setup_services(hass)
    return True


async def async_setup_entry(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
) -> bool:
    """Set up Floor Heating Controller from a config entry."""
    LOGGER.debug("Setting up Floor Heating Controller entry: %s", entry.entry_id)

    await _async_ensure_controller_subentry(hass, entry)
    await _async_migrate_renamed_zones(hass, entry)

    coordinator = FloorHeatingDataUpdateCoordinator(hass=hass, entry=entry)
    await coordinator.async_config_entry_first_refresh()

    entry.runtime_data = FloorHeatingData(coordinator=coordinator)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    async def _async_handle_subentry_update(event: Any) -> None:
        """Reload when a zone subentry changes."""
        if event.data.get("entry_id") != entry.entry_id:
            return
        if event.data.get("subentry_type") == SUBENTRY_TYPE_ZONE:
            LOGGER.debug("Zone subentry updated, scheduling reload")
            await hass.config_entries.async_reload(entry.entry_id)

    entry.async_on_unload(
        hass.bus.async_listen("config_subentry_updated", _async_handle_subentry_update)
    )

    return True


async def _async_ensure_controller_subentry(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
) -> None:
    """Ensure the controller subentry exists, creating it if needed."""
    for subentry in entry.subentries.values():
        if subentry.subentry_type == SUBENTRY_TYPE_CONTROLLER:
            return

    controller_name = entry.data.get("name", "Floor Heating")
    controller_subentry = ConfigSubentry(
        data=MappingProxyType(
            {
                "timing": dict(DEFAULT_TIMING),
                "pid": {
                    "kp": DEFAULT_PID["kp"],
                    "ki": DEFAULT_PID["ki"],
                    "kd": DEFAULT_PID["kd"],
                },
            }
        ),
        subentry_type=SUBENTRY_TYPE_CONTROLLER,
        title=controller_name,
        unique_id=CONTROLLER_SUBENTRY_UNIQUE_ID,
    )
    hass.config_entries.async_add_subentry(entry, controller_subentry)
    LOGGER.debug("Created controller subentry for: %s", controller_name)


async def _async_migrate_renamed_zones(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
) -> None:
    """
    Move zone ids along when a zone subentry was renamed.

    A rename through the subentry UI only changes the title, so a title
    that no longer matches the stored name marks a renamed zone.
    """
    zones_to_migrate: list[tuple[ConfigSubentry, str, str]] = []

    for subentry in entry.subentries.values():
        if subentry.subentry_type != SUBENTRY_TYPE_ZONE:
            continue
        if subentry.title == subentry.data.get("name", ""):
            continue

        old_zone_id = subentry.data.get(CONF_ZONE_ID, "")
        new_zone_id = slugify(subentry.title)
        taken = any(
            other.subentry_id != subentry.subentry_id
            and other.data.get(CONF_ZONE_ID) == new_zone_id
            for other in entry.subentries.values()
        )
        if taken:
            LOGGER.warning(
                "Cannot rename zone '%s' to '%s': zone ID '%s' already exists",
                old_zone_id,
                subentry.title,
                new_zone_id,
            )
            continue
        zones_to_migrate.append((subentry, old_zone_id, new_zone_id))

    for subentry, old_zone_id, new_zone_id in zones_to_migrate:
        _async_migrate_zone_id(hass, entry, subentry, old_zone_id, new_zone_id)
        await _async_migrate_stored_state(hass, entry, old_zone_id, new_zone_id)


def _async_migrate_zone_id(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    subentry: ConfigSubentry,
    old_zone_id: str,
    new_zone_id: str,
) -> None:
    """Rewrite entity unique ids, the device identifier and the subentry data."""
    controller_id = entry.data.get(CONF_CONTROLLER_ID, "")
    LOGGER.info(
        "Migrating zone ID from '%s' to '%s' for zone '%s'",
        old_zone_id,
        new_zone_id,
        subentry.title,
    )

    entity_reg = er.async_get(hass)
    old_prefix = f"{controller_id}_{old_zone_id}_"
    new_prefix = f"{controller_id}_{new_zone_id}_"
    renames = [
        (
            entity_entry.entity_id,
            entity_entry.unique_id.replace(old_prefix, new_prefix, 1),
        )
        for entity_entry in er.async_entries_for_config_entry(
            entity_reg, entry.entry_id
        )
        if entity_entry.config_subentry_id == subentry.subentry_id
        and entity_entry.unique_id.startswith(old_prefix)
    ]
    for entity_id, new_unique_id in renames:
        entity_reg.async_update_entity(entity_id, new_unique_id=new_unique_id)

    device_reg = dr.async_get(hass)
    device_entry = device_reg.async_get_device(
        identifiers={(DOMAIN, f"{entry.entry_id}_{old_zone_id}")}
    )
    if device_entry:
        device_reg.async_update_device(
            device_entry.id,
            new_identifiers={(DOMAIN, f"{entry.entry_id}_{new_zone_id}")},
        )

    hass.config_entries.async_update_subentry(
        entry,
        subentry,
        data={**subentry.data, CONF_ZONE_ID: new_zone_id, "name": subentry.title},
    )


async def _async_migrate_stored_state(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    old_zone_id: str,
    new_zone_id: str,
) -> None:
    """Move a zone's persisted state to its new id."""
    store: Store[dict[str, Any]] = Store(
        hass,
        STORAGE_VERSION,
        f"{STORAGE_KEY}.{entry.entry_id}",
    )
    stored_data = await store.async_load()
    if stored_data is None:
        return

    zones_data = stored_data.get("zones", {})
    if old_zone_id not in zones_data:
        return

    zones_data[new_zone_id] = zones_data.pop(old_zone_id)
    stored_data["zones"] = zones_data
    await store.async_save(stored_data)
    LOGGER.debug(
        "Migrated stored state from zone '%s' to '%s'", old_zone_id, new_zone_id
    )


async def async_unload_entry(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
) -> bool:
    """Handle removal of an entry."""
    LOGGER.debug("Unloading Floor Heating Controller entry: %s", entry.entry_id)

    coordinator = entry.runtime_data.coordinator
    await coordinator.async_save_state()

    return await hass.config_entries.async_unload_platforms(entry, PLATFORMS)


async def async_reload_entry(
    hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
) -> None:
    """Reload config entry."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_remove_config_entry_device(
    _hass: HomeAssistant,
    entry: FloorHeatingConfigEntry,
    device_entry: dr.DeviceEntry,
) -> bool:
    """Allow removing orphaned zone devices, never the controller."""
    device_id = next(
        (
            identifier[1]
            for identifier in device_entry.identifiers
            if identifier[0] == DOMAIN
        ),
        None,
    )
    if device_id is None:
        return False

    if device_id == entry.entry_id:
        msg = "Cannot delete the controller. To remove it, delete the integration."
        raise HomeAssistantError(msg)

    return True


__all__ = [
    "DOMAIN",
    "async_setup",
    "async_setup_entry",
    "async_unload_entry",
]
