from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from homehub.core.errors import NotConnectedError
from homehub.models.home import Device, normalize_device_id
from homehub.services.plugins import demo_data
from homehub.services.plugins.base import ServicePlugin
from homehub.services.plugins.hive import (
    HEATING_DEVICE_ID,
    HIVE_SERVICE_ID,
    build_hive_router,
    transform_hive_status_to_devices,
    validate_hive_update,
)


class HiveDemoPlugin(ServicePlugin):
    """Simulated Hive account: fixed demo login, a 2FA step, and mutable heating state."""

    id = HIVE_SERVICE_ID
    display_name = "Hive Heating (Demo)"
    description = "Simulated Hive heating"
    auth_type = "2fa"
    demo = True

    def __init__(self) -> None:
        super().__init__()
        self._connected = False
        self._status = demo_data.hive_demo_status()

    def reset_demo(self) -> None:
        self._connected = False
        self._status = demo_data.hive_demo_status()

    def get_demo_credentials(self) -> dict[str, Any]:
        return dict(demo_data.HIVE_DEMO_CREDENTIALS)

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        username = params.get("username")
        password = params.get("password")
        if not username or not password:
            return {"success": False, "error": "username and password are required"}
        if (username, password) == (demo_data.HIVE_DEMO_CREDENTIALS["username"], demo_data.HIVE_DEMO_CREDENTIALS["password"]):
            return {"requires_2fa": True, "session": demo_data.HIVE_DEMO_2FA_SESSION}
        return {"success": False, "error": "Invalid demo credentials"}

    async def verify_2fa(self, code: str | None, session: str | None = None) -> dict[str, Any]:
        if code == demo_data.HIVE_DEMO_CREDENTIALS["code"]:
            self._connected = True
            return {"success": True}
        return {"success": False, "error": "Invalid verification code"}

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_status(self) -> dict[str, Any]:
        return {"connected": self._connected, "demo": True}

    def has_credentials(self) -> bool:
        return True

    async def clear_credentials(self) -> None:
        self._connected = False

    async def fetch_status(self) -> dict[str, Any]:
        return {
            "heating": dict(self._status["heating"]),
            "hot_water": dict(self._status["hot_water"]),
        }

    async def get_schedules(self) -> list[dict[str, Any]]:
        if not self._connected:
            raise NotConnectedError(self.id)
        return demo_data.hive_demo_schedules()

    async def get_devices(self) -> list[Device]:
        return transform_hive_status_to_devices(await self.get_status())

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        field, value = validate_hive_update(device_id, state)
        if not self._connected:
            raise NotConnectedError(self.id)

        if device_id == HEATING_DEVICE_ID:
            heating = self._status["heating"]
            heating["target_temperature"] = value
            heating["is_heating"] = value > heating["current_temperature"]
            heating["mode"] = "manual"
        else:
            self._status["hot_water"]["is_on"] = value
            self._status["hot_water"]["mode"] = "manual"
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": {field: value}}

    def build_router(self) -> APIRouter:
        router = build_hive_router(self)

        @router.post("/reset-demo")
        async def reset_demo_state() -> dict[str, Any]:
            self.reset_demo()
            return {"success": True}

        return router
