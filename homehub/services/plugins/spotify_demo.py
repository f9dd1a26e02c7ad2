from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from homehub.core.errors import NotConnectedError, ResourceNotFoundError
from homehub.models.home import Device, normalize_device_id
from homehub.services.plugins import demo_data
from homehub.services.plugins.base import ServicePlugin
from homehub.services.plugins.spotify import (
    SPOTIFY_SERVICE_ID,
    build_spotify_router,
    transform_spotify_status_to_devices,
    validate_speaker_update,
)


class SpotifyDemoPlugin(ServicePlugin):
    id = SPOTIFY_SERVICE_ID
    display_name = "Spotify (Demo)"
    description = "Simulated Spotify speakers"
    auth_type = "oauth"
    demo = True

    def __init__(self) -> None:
        super().__init__()
        self._connected = True
        self._status = demo_data.spotify_demo_status()

    def reset_demo(self) -> None:
        self._connected = True
        self._status = demo_data.spotify_demo_status()

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        self._connected = True
        return {"success": True}

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
            "user": dict(self._status["user"]),
            "playback": dict(self._status["playback"]),
            "devices": [dict(d) for d in self._status["devices"]],
        }

    async def get_devices(self) -> list[Device]:
        return transform_spotify_status_to_devices(await self.get_status())

    def _speaker(self, device_id: str) -> dict[str, Any]:
        speaker = next((d for d in self._status["devices"] if d["id"] == device_id), None)
        if speaker is None:
            raise ResourceNotFoundError("device", normalize_device_id(self.id, device_id))
        return speaker

    async def control_playback(self, action: str, device_id: str | None = None) -> dict[str, Any]:
        if not self._connected:
            raise NotConnectedError(self.id)
        playback = self._status["playback"]
        if device_id:
            speaker = self._speaker(device_id)
            for other in self._status["devices"]:
                other["is_active"] = other is speaker
            playback["device_id"] = device_id
        playback["is_playing"] = action == "play"
        return {"success": True, "action": action}

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        update = validate_speaker_update(state)
        if not self._connected:
            raise NotConnectedError(self.id)
        speaker = self._speaker(device_id)
        if "volume" in update:
            speaker["volume_percent"] = update["volume"]
        if "is_on" in update:
            await self.control_playback("play" if update["is_on"] else "pause", device_id)
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": update}

    def build_router(self) -> APIRouter:
        router = build_spotify_router(self)

        @router.post("/reset-demo")
        async def reset_demo_state() -> dict[str, Any]:
            self.reset_demo()
            return {"success": True}

        return router
