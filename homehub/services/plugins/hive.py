"""Hive heating and hot water.

The vendor login (username/password, then an SMS code) is owned by an injected
``HiveClient``; this plugin only tracks the outcome and normalizes status into
home-level devices.
"""

from __future__ import annotations

from typing import Any, Protocol

from fastapi import APIRouter, HTTPException

from homehub.core.errors import NotConnectedError, ResourceNotFoundError, ValidationError
from homehub.models.home import Device, create_device, normalize_device_id
from homehub.models.schemas import ServiceConnectRequest
from homehub.services.log_service import log_operation
from homehub.services.plugins.base import ServicePlugin


HIVE_SERVICE_ID = "hive"
HEATING_DEVICE_ID = "heating"
HOT_WATER_DEVICE_ID = "hotwater"


class HiveClient(Protocol):
    async def login(self, username: str, password: str) -> dict[str, Any]:
        """``{"success": True}`` or ``{"requires_2fa": True, "session": ...}``."""

    async def verify_2fa(self, code: str, session: str | None) -> dict[str, Any]: ...

    async def get_status(self) -> dict[str, Any]: ...

    async def get_schedules(self) -> list[dict[str, Any]]: ...

    async def set_target_temperature(self, target_temperature: float) -> dict[str, Any]: ...

    async def set_hot_water(self, is_on: bool) -> dict[str, Any]: ...

    async def logout(self) -> None: ...


def transform_hive_status_to_devices(status: dict[str, Any]) -> list[Device]:
    devices: list[Device] = []
    heating = status.get("heating")
    if heating:
        devices.append(
            create_device(
                id=HEATING_DEVICE_ID,
                name="Heating",
                type="thermostat",
                service_id=HIVE_SERVICE_ID,
                state={
                    "current_temperature": heating.get("current_temperature"),
                    "target_temperature": heating.get("target_temperature"),
                    "is_heating": bool(heating.get("is_heating")),
                    "mode": heating.get("mode", "off"),
                },
                capabilities=["temperature", "target_temperature"],
            )
        )
    hot_water = status.get("hot_water")
    if hot_water:
        devices.append(
            create_device(
                id=HOT_WATER_DEVICE_ID,
                name="Hot Water",
                type="hotWater",
                service_id=HIVE_SERVICE_ID,
                state={
                    "is_on": bool(hot_water.get("is_on")),
                    "mode": hot_water.get("mode", "off"),
                },
                capabilities=["on_off"],
            )
        )
    return devices


def validate_hive_update(device_id: str, state: dict[str, Any]) -> tuple[str, Any]:
    """Return the single (field, value) a Hive device accepts."""
    if device_id == HEATING_DEVICE_ID:
        if "target_temperature" not in state:
            raise ValidationError("state", "heating accepts 'target_temperature'")
        return "target_temperature", float(state["target_temperature"])
    if device_id == HOT_WATER_DEVICE_ID:
        if "is_on" not in state:
            raise ValidationError("state", "hot water accepts 'is_on'")
        return "is_on", bool(state["is_on"])
    raise ResourceNotFoundError("device", normalize_device_id(HIVE_SERVICE_ID, device_id))


def build_hive_router(plugin: Any) -> APIRouter:
    """Routes shared by the real and demo plugins; ``plugin`` provides verify_2fa and get_schedules."""
    router = APIRouter()

    @router.post("/verify-2fa")
    async def verify_2fa(req: ServiceConnectRequest) -> dict[str, Any]:
        result = await plugin.verify_2fa(req.code, req.session)
        if not result.get("success"):
            raise HTTPException(status_code=401, detail=result.get("error", "verification failed"))
        return {"success": True}

    @router.get("/schedules")
    async def schedules() -> list[dict[str, Any]]:
        return await plugin.get_schedules()

    return router


class HivePlugin(ServicePlugin):
    id = HIVE_SERVICE_ID
    display_name = "Hive Heating"
    description = "Control Hive heating and hot water"
    auth_type = "2fa"

    def __init__(self, client: HiveClient | None = None) -> None:
        super().__init__()
        self.client = client
        self._connected = False
        self._pending_session: str | None = None

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        username = params.get("username")
        password = params.get("password")
        if not username or not password:
            return {"success": False, "error": "username and password are required"}
        if self.client is None:
            return {"success": False, "error": "Hive client is not configured"}

        result = await self.client.login(username, password)
        if result.get("requires_2fa"):
            self._pending_session = result.get("session")
            return {"requires_2fa": True, "session": self._pending_session}

        self._connected = bool(result.get("success"))
        log_operation(
            event_type="service",
            source="system",
            action="hive.connect",
            success=self._connected,
            detail={"error": result.get("error")},
        )
        if not self._connected:
            return {"success": False, "error": result.get("error", "login failed")}
        return {"success": True}

    async def verify_2fa(self, code: str | None, session: str | None = None) -> dict[str, Any]:
        if not code:
            return {"success": False, "error": "code is required"}
        if self.client is None:
            return {"success": False, "error": "Hive client is not configured"}

        result = await self.client.verify_2fa(code, session or self._pending_session)
        self._connected = bool(result.get("success"))
        if self._connected:
            self._pending_session = None
        log_operation(
            event_type="service",
            source="system",
            action="hive.verify_2fa",
            success=self._connected,
        )
        if not self._connected:
            return {"success": False, "error": result.get("error", "Invalid verification code")}
        return {"success": True}

    async def disconnect(self) -> None:
        if self.client is not None and self._connected:
            await self.client.logout()
        self._connected = False
        self._pending_session = None
        log_operation(event_type="service", source="system", action="hive.disconnect", success=True)

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_status(self) -> dict[str, Any]:
        return {"connected": self._connected, "pending_2fa": self._pending_session is not None}

    def has_credentials(self) -> bool:
        return self._connected

    async def clear_credentials(self) -> None:
        await self.disconnect()

    def _require_client(self) -> HiveClient:
        if self.client is None or not self._connected:
            raise NotConnectedError(self.id)
        return self.client

    async def fetch_status(self) -> dict[str, Any]:
        return await self._require_client().get_status()

    async def get_schedules(self) -> list[dict[str, Any]]:
        return await self._require_client().get_schedules()

    async def get_devices(self) -> list[Device]:
        return transform_hive_status_to_devices(await self.get_status())

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        field, value = validate_hive_update(device_id, state)
        client = self._require_client()
        if field == "target_temperature":
            await client.set_target_temperature(value)
        else:
            await client.set_hot_water(value)
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": {field: value}}

    def build_router(self) -> APIRouter:
        return build_hive_router(self)
