from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx

from homehub.core import settings
from homehub.core.errors import BridgeConnectionError, ServiceUnavailableError, ValidationError
from homehub.core.request_context import DEMO_MODE_KEY, request_context
from homehub.models.home import Room, create_device, create_room
from homehub.services.home_service import HomeService
from homehub.services.log_service import flush_logs
from homehub.services.plugins import demo_data
from homehub.services.plugins.base import ServicePlugin
from homehub.services.plugins.hue import HueBridgeClient, HuePlugin
from homehub.services.room_mapping_service import RoomMappingService
from homehub.services.service_registry import ServiceRegistry, build_default_registry
from homehub.services.session_manager import SessionManager


def setUpModule() -> None:
    global _log_tmp, _log_patch
    _log_tmp = tempfile.TemporaryDirectory()
    _log_patch = patch.object(settings, "HUB_LOG_PATH", Path(_log_tmp.name) / "logs" / "operations.jsonl")
    _log_patch.start()


def tearDownModule() -> None:
    flush_logs(timeout_sec=2.0)
    _log_patch.stop()
    _log_tmp.cleanup()


class RoomsPlugin(ServicePlugin):
    """Connected plugin that reports fixed rooms."""

    auth_type = "none"

    def __init__(self, service_id: str, rooms: list[Room], *, fail: bool = False) -> None:
        super().__init__()
        self.id = service_id
        self.rooms = rooms
        self.fail = fail
        self.updates: list[tuple[str, dict[str, Any]]] = []

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"success": True}

    async def disconnect(self) -> None:
        return None

    def is_connected(self) -> bool:
        return True

    def get_connection_status(self) -> dict[str, Any]:
        return {"connected": True}

    async def fetch_status(self) -> dict[str, Any]:
        return {}

    def has_credentials(self) -> bool:
        return True

    async def clear_credentials(self) -> None:
        return None

    async def get_rooms(self) -> list[Room]:
        if self.fail:
            raise BridgeConnectionError("10.0.0.1", reason="timeout")
        return self.rooms

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        self.updates.append((device_id, state))
        return {"success": True}


def lights_room(service_id: str, room_id: str, name: str, *states: tuple[bool, int]) -> Room:
    devices = [
        create_device(
            id=f"{room_id}-l{i}",
            name=f"Light {i}",
            type="light",
            service_id=service_id,
            state={"on": on, "brightness": brightness},
        )
        for i, (on, brightness) in enumerate(states)
    ]
    return create_room(id=room_id, name=name, devices=devices)


class TestHomeService(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.registry = ServiceRegistry()
        self.room_mapping = RoomMappingService()
        self.home_service = HomeService(self.registry, self.room_mapping)

    async def test_rooms_are_mapped_to_home_ids(self) -> None:
        self.registry.register(RoomsPlugin("alpha", [lights_room("alpha", "lounge", "Lounge", (True, 100))]))
        self.registry.register(RoomsPlugin("beta", [lights_room("beta", "lounge", "Lounge", (False, 0))]))

        home = await self.home_service.get_home()
        self.assertEqual(["home-lounge", "home-beta-lounge"], [r.id for r in home.rooms])
        self.assertTrue(self.room_mapping.initialized)
        self.assertEqual(2, home.summary.room_count)
        self.assertEqual(2, home.summary.total_lights)

    async def test_merged_rooms_are_grouped(self) -> None:
        self.registry.register(RoomsPlugin("alpha", [lights_room("alpha", "lounge", "Lounge", (True, 100))]))
        self.registry.register(RoomsPlugin("beta", [lights_room("beta", "front", "Front Room", (True, 50), (False, 0))]))
        await self.home_service.get_home()

        self.room_mapping.merge_rooms(["beta:front"], "home-lounge")
        self.room_mapping.set_room_name("home-lounge", "Living Room")
        home = await self.home_service.get_home()

        self.assertEqual(1, len(home.rooms))
        room = home.rooms[0]
        self.assertEqual("Living Room", room.name)
        self.assertEqual(3, room.stats.total_devices)
        self.assertEqual(2, room.stats.lights_on)
        self.assertEqual(75, room.stats.average_brightness)

        self.assertEqual(room, await self.home_service.get_room("home-lounge"))
        self.assertIsNone(await self.home_service.get_room("home-front"))

    async def test_vendor_errors_propagate(self) -> None:
        self.registry.register(RoomsPlugin("alpha", [], fail=True))
        with self.assertRaises(BridgeConnectionError):
            await self.home_service.get_home()

    async def test_update_device_dispatch(self) -> None:
        plugin = RoomsPlugin("alpha", [])
        self.registry.register(plugin)
        await self.home_service.update_device("alpha:lamp:1", {"on": True})
        self.assertEqual([("lamp:1", {"on": True})], plugin.updates)

        with self.assertRaises(ServiceUnavailableError):
            await self.home_service.update_device("nope:lamp", {"on": True})
        with self.assertRaises(ValidationError):
            await self.home_service.update_device("lamp", {"on": True})
        with self.assertRaises(ServiceUnavailableError):
            await self.home_service.activate_scene("nope:scene")


class TestHueHome(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []
        resources = demo_data.hue_demo_resources()
        kinds = {"light": "lights", "room": "rooms", "device": "devices", "scene": "scenes", "zone": "zones"}

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            kind = kinds[request.url.path.rsplit("/", 1)[-1]]
            return httpx.Response(200, json={"errors": [], "data": resources[kind]})

        sessions = SessionManager()
        sessions.store_credentials("192.168.1.100", "paired-user")
        self.hue = HuePlugin(
            sessions,
            client_factory=lambda bridge_ip: HueBridgeClient(bridge_ip, transport=httpx.MockTransport(handler)),
        )
        registry = ServiceRegistry()
        registry.register(self.hue)
        self.home_service = HomeService(registry, RoomMappingService())

    async def test_one_resource_snapshot_per_home(self) -> None:
        home = await self.home_service.get_home()
        self.assertEqual(3, home.summary.room_count)
        self.assertEqual(["hue:zone-1", "hue:zone-2"], [z.id for z in home.zones])
        self.assertEqual(
            ["light", "room", "device", "scene", "zone"],
            [r.url.path.rsplit("/", 1)[-1] for r in self.requests],
        )

    async def test_disconnected_hue_is_left_out(self) -> None:
        await self.hue.disconnect()
        home = await self.home_service.get_home()
        self.assertEqual(0, home.summary.room_count)
        self.assertEqual([], self.requests)


class TestDemoHome(unittest.IsolatedAsyncioTestCase):
    async def test_demo_home(self) -> None:
        registry = build_default_registry(SessionManager())
        home_service = HomeService(registry, RoomMappingService())

        with request_context({DEMO_MODE_KEY: True}):
            hive = registry.get("hive")
            await hive.verify_2fa(demo_data.HIVE_DEMO_CREDENTIALS["code"])
            home = await home_service.get_home()
            devices = await home_service.list_devices()

        self.assertEqual(["home-room-1", "home-room-2", "home-room-3"], [r.id for r in home.rooms])
        self.assertEqual("Living Room", home.rooms[0].name)
        self.assertEqual(12, home.summary.total_lights)
        self.assertEqual(10, home.summary.lights_on)
        self.assertEqual(6, home.summary.scene_count)
        self.assertEqual(4, home.summary.home_device_count)
        self.assertEqual(["hue:zone-1", "hue:zone-2"], [z.id for z in home.zones])
        self.assertEqual(16, len(devices))

    async def test_demo_automations(self) -> None:
        registry = build_default_registry(SessionManager())
        home_service = HomeService(registry, RoomMappingService())

        with request_context({DEMO_MODE_KEY: True}):
            automations = await home_service.list_automations()
            result = await home_service.trigger_automation("hue:smart-scene-1")
            with self.assertRaises(ServiceUnavailableError):
                await home_service.trigger_automation("nest:routine")

        self.assertEqual(["hue:smart-scene-1", "hue:smart-scene-2"], [a.id for a in automations])
        self.assertEqual({"success": True, "automation_id": "hue:smart-scene-1"}, result)
        self.assertEqual([], await home_service.list_automations())

    async def test_real_services_disconnected_give_empty_home(self) -> None:
        registry = build_default_registry(SessionManager())
        home = await HomeService(registry, RoomMappingService()).get_home()
        self.assertEqual(0, home.summary.room_count)
        self.assertEqual([], home.devices)


if __name__ == "__main__":
    unittest.main()
