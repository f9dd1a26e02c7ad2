from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from homehub.core import settings
from homehub.core.errors import NotConnectedError, ResourceNotFoundError
from homehub.models.home import Automation, Room, normalize_device_id
from homehub.services.plugins import demo_data
from homehub.services.plugins.base import ServicePlugin
from homehub.services.plugins.hue import (
    HUE_SERVICE_ID,
    build_hue_automations,
    build_hue_rooms,
    build_hue_status,
    build_hue_zones,
    to_hue_light_update,
)


class HueDemoPlugin(ServicePlugin):
    """In-memory bridge with a fixed house; always paired."""

    id = HUE_SERVICE_ID
    display_name = "Philips Hue (Demo)"
    description = "Simulated Hue bridge"
    auth_type = "pairing"
    demo = True

    def __init__(self) -> None:
        super().__init__()
        self.bridge_ip = settings.HUB_DEMO_BRIDGE_IP
        self.username = settings.HUB_DEMO_USERNAME
        self._resources = demo_data.hue_demo_resources()
        self._connected = True
        self.active_scene: str | None = None

    def reset_demo(self) -> None:
        self._resources = demo_data.hue_demo_resources()
        self._connected = True
        self.active_scene = None

    def get_demo_credentials(self) -> dict[str, Any]:
        return {"bridge_ip": self.bridge_ip, "username": self.username}

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        self._connected = True
        return {"success": True, "bridge_ip": self.bridge_ip}

    async def pair(self, params: dict[str, Any]) -> dict[str, Any]:
        self._connected = True
        return {"success": True, "bridge_ip": self.bridge_ip, "username": self.username}

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_status(self) -> dict[str, Any]:
        return {"connected": self._connected, "bridge_ip": self.bridge_ip, "has_credentials": True, "demo": True}

    def has_credentials(self) -> bool:
        return True

    async def clear_credentials(self) -> None:
        self._connected = False

    def _require_connected(self) -> None:
        if not self._connected:
            raise NotConnectedError(self.id)

    async def fetch_status(self) -> dict[str, Any]:
        return build_hue_status(self.bridge_ip, self._resources)

    async def get_rooms(self) -> list[Room]:
        self._require_connected()
        return build_hue_rooms(self._resources)

    async def get_zones(self) -> list[Room]:
        self._require_connected()
        return build_hue_zones(self._resources)

    def _find(self, kind: str, resource_id: str) -> dict[str, Any] | None:
        return next((r for r in self._resources.get(kind, []) if r.get("id") == resource_id), None)

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        self._require_connected()
        body = to_hue_light_update(state)
        light = self._find("lights", device_id)
        if light is None:
            raise ResourceNotFoundError("device", normalize_device_id(self.id, device_id))

        if "on" in body:
            light["on"] = dict(body["on"])
        if "dimming" in body:
            light["dimming"] = dict(body["dimming"])
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": state}

    async def activate_scene(self, scene_id: str) -> dict[str, Any]:
        self._require_connected()
        if self._find("scenes", scene_id) is None:
            raise ResourceNotFoundError("scene", normalize_device_id(self.id, scene_id))
        self.active_scene = scene_id
        return {"success": True, "scene_id": normalize_device_id(self.id, scene_id)}

    async def get_automations(self) -> list[Automation]:
        self._require_connected()
        return build_hue_automations(self._resources.get("smart_scenes", []))

    async def trigger_automation(self, automation_id: str) -> dict[str, Any]:
        self._require_connected()
        smart_scene = self._find("smart_scenes", automation_id)
        if smart_scene is None:
            raise ResourceNotFoundError("automation", normalize_device_id(self.id, automation_id))

        # One smart scene runs per group at a time.
        group_id = (smart_scene.get("group") or {}).get("rid")
        for other in self._resources.get("smart_scenes", []):
            if (other.get("group") or {}).get("rid") == group_id:
                other["state"] = "inactive"
        smart_scene["state"] = "active"
        return {"success": True, "automation_id": normalize_device_id(self.id, automation_id)}

    def build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("/pair")
        async def pair_bridge() -> dict[str, Any]:
            return await self.pair({})

        @router.post("/reset-demo")
        async def reset_demo_state() -> dict[str, Any]:
            self.reset_demo()
            return {"success": True}

        return router
