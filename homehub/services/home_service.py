"""Folds every connected plugin into one ``Home`` snapshot."""

from __future__ import annotations

from typing import Any

from homehub.core.errors import ServiceUnavailableError
from homehub.core.request_context import is_demo_mode
from homehub.models.home import Automation, Device, Home, Room, create_home, create_room, normalize_device_id, split_device_id
from homehub.services.plugins.base import ServicePlugin
from homehub.services.room_mapping_service import RoomMappingService
from homehub.services.service_registry import ServiceRegistry


class HomeService:
    def __init__(self, registry: ServiceRegistry, room_mapping: RoomMappingService) -> None:
        self.registry = registry
        self.room_mapping = room_mapping

    async def get_home(self) -> Home:
        # Vendor failures propagate; a partial home would silently hide rooms.
        self.room_mapping.initialize()

        grouped: dict[str, dict[str, Any]] = {}
        home_devices: list[Device] = []
        zones: list[Room] = []

        for plugin in self.registry.get_all():
            if not plugin.is_connected():
                continue

            plugin_rooms, plugin_zones = await plugin.get_rooms_and_zones()
            for room in plugin_rooms:
                home_room_id = self.room_mapping.map_service_room(plugin.id, room.id, room.name)
                group = grouped.setdefault(home_room_id, {"name": room.name, "devices": [], "scenes": []})
                group["devices"].extend(room.devices)
                group["scenes"].extend(room.scenes)

            home_devices.extend(await plugin.get_devices())

            for zone in plugin_zones:
                zones.append(zone.model_copy(update={"id": normalize_device_id(plugin.id, zone.id)}))

        rooms = [
            create_room(
                id=home_room_id,
                name=self.room_mapping.get_room_name_by_id(home_room_id) or group["name"],
                devices=group["devices"],
                scenes=group["scenes"],
            )
            for home_room_id, group in grouped.items()
        ]
        return create_home(rooms=rooms, devices=home_devices, zones=zones)

    async def get_room(self, home_room_id: str) -> Room | None:
        home = await self.get_home()
        return next((room for room in home.rooms if room.id == home_room_id), None)

    async def list_devices(self) -> list[Device]:
        home = await self.get_home()
        devices = [device for room in home.rooms for device in room.devices]
        return devices + home.devices

    def _plugin_for(self, service_id: str) -> ServicePlugin:
        plugin = self.registry.get(service_id)
        if plugin is None:
            raise ServiceUnavailableError(service_id, demo_mode=is_demo_mode())
        return plugin

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        service_id, native_id = split_device_id(device_id)
        return await self._plugin_for(service_id).update_device(native_id, state)

    async def activate_scene(self, scene_id: str) -> dict[str, Any]:
        service_id, native_id = split_device_id(scene_id)
        return await self._plugin_for(service_id).activate_scene(native_id)

    async def list_automations(self) -> list[Automation]:
        automations: list[Automation] = []
        for plugin in self.registry.get_all():
            if plugin.is_connected():
                automations.extend(await plugin.get_automations())
        return automations

    async def trigger_automation(self, automation_id: str) -> dict[str, Any]:
        service_id, native_id = split_device_id(automation_id)
        return await self._plugin_for(service_id).trigger_automation(native_id)
