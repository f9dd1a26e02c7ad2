"""Capability set every vendor integration implements.

Adding a vendor means writing a subclass (and optionally a demo twin) and
registering it; sessions, room mapping and home aggregation stay untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from fastapi import APIRouter

from homehub.core.errors import NotConnectedError, ResourceNotFoundError
from homehub.models.home import Automation, Device, Room


class ServicePlugin(ABC):
    id: ClassVar[str] = "base"
    display_name: ClassVar[str] = "Base Plugin"
    description: ClassVar[str] = "Base service plugin"
    auth_type: ClassVar[str] = "none"
    demo: ClassVar[bool] = False

    def __init__(self) -> None:
        self._router: APIRouter | None = None

    @abstractmethod
    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        """Return one of ``{"success": True, ...}``, ``{"requires_2fa": True, ...}``,
        ``{"requires_pairing": True}`` or ``{"success": False, "error": ...}``."""

    @abstractmethod
    async def disconnect(self) -> None: ...

    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def get_connection_status(self) -> dict[str, Any]: ...

    @abstractmethod
    async def fetch_status(self) -> dict[str, Any]:
        """Vendor payload; only called once ``is_connected()`` holds."""

    @abstractmethod
    def has_credentials(self) -> bool: ...

    @abstractmethod
    async def clear_credentials(self) -> None: ...

    async def get_status(self) -> dict[str, Any]:
        if not self.is_connected():
            raise NotConnectedError(self.id)
        return await self.fetch_status()

    def build_router(self) -> APIRouter | None:
        return None

    def get_router(self) -> APIRouter | None:
        if self._router is None:
            self._router = self.build_router()
        return self._router

    async def pair(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"success": False, "error": f"{self.display_name} does not support pairing"}

    def get_demo_credentials(self) -> dict[str, Any] | None:
        return None

    def reset_demo(self) -> None:
        return None

    async def get_rooms(self) -> list[Room]:
        return []

    async def get_devices(self) -> list[Device]:
        return []

    async def get_zones(self) -> list[Room]:
        return []

    async def get_rooms_and_zones(self) -> tuple[list[Room], list[Room]]:
        """Rooms and zones from one vendor snapshot; override when both come from the same fetch."""
        return await self.get_rooms(), await self.get_zones()

    async def get_automations(self) -> list[Automation]:
        return []

    async def trigger_automation(self, automation_id: str) -> dict[str, Any]:
        raise ResourceNotFoundError("automation", f"{self.id}:{automation_id}")

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        raise ResourceNotFoundError("device", f"{self.id}:{device_id}")

    async def activate_scene(self, scene_id: str) -> dict[str, Any]:
        raise ResourceNotFoundError("scene", f"{self.id}:{scene_id}")

    def get_metadata(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "description": self.description,
            "auth_type": self.auth_type,
        }
