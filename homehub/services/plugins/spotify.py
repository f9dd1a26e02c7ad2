"""Spotify Connect speakers as home-level devices.

OAuth is handled by an injected ``SpotifyClient``; the plugin maps its device
list onto ``speaker`` devices and forwards playback and volume changes.
"""

from __future__ import annotations

from typing import Any, Protocol

from fastapi import APIRouter

from homehub.core.errors import NotConnectedError, ResourceNotFoundError, ValidationError
from homehub.models.home import Device, create_device, normalize_device_id
from homehub.models.schemas import PlaybackRequest
from homehub.services.log_service import log_operation
from homehub.services.plugins.base import ServicePlugin


SPOTIFY_SERVICE_ID = "spotify"


class SpotifyClient(Protocol):
    async def authorize(self, params: dict[str, Any]) -> dict[str, Any]: ...

    async def get_status(self) -> dict[str, Any]:
        """``{"user": ..., "playback": ..., "devices": [...]}``."""

    async def play(self, device_id: str | None = None) -> dict[str, Any]: ...

    async def pause(self, device_id: str | None = None) -> dict[str, Any]: ...

    async def set_volume(self, device_id: str, volume: int) -> dict[str, Any]: ...

    async def logout(self) -> None: ...


def transform_spotify_status_to_devices(status: dict[str, Any]) -> list[Device]:
    playback = status.get("playback") or {}
    devices = []
    for speaker in status.get("devices") or []:
        active = bool(speaker.get("is_active"))
        devices.append(
            create_device(
                id=str(speaker.get("id") or ""),
                name=str(speaker.get("name") or ""),
                type="speaker",
                service_id=SPOTIFY_SERVICE_ID,
                state={
                    "volume": int(speaker.get("volume_percent") or 0),
                    "is_active": active,
                    "is_playing": active and bool(playback.get("is_playing")),
                },
                capabilities=["volume", "playback"],
            )
        )
    return devices


def validate_speaker_update(state: dict[str, Any]) -> dict[str, Any]:
    update: dict[str, Any] = {}
    if "volume" in state:
        volume = int(state["volume"])
        if not 0 <= volume <= 100:
            raise ValidationError("volume", "must be between 0 and 100")
        update["volume"] = volume
    if "is_on" in state:
        update["is_on"] = bool(state["is_on"])
    if not update:
        raise ValidationError("state", "a speaker accepts 'volume' and 'is_on'")
    return update


def build_spotify_router(plugin: Any) -> APIRouter:
    router = APIRouter()

    @router.get("/playback")
    async def get_playback() -> dict[str, Any]:
        status = await plugin.get_status()
        return dict(status.get("playback") or {})

    @router.post("/playback")
    async def control_playback(req: PlaybackRequest) -> dict[str, Any]:
        return await plugin.control_playback(req.action, req.device_id)

    return router


class SpotifyPlugin(ServicePlugin):
    id = SPOTIFY_SERVICE_ID
    display_name = "Spotify"
    description = "Spotify Connect speakers and playback"
    auth_type = "oauth"

    def __init__(self, client: SpotifyClient | None = None) -> None:
        super().__init__()
        self.client = client
        self._connected = False

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        if self.client is None:
            return {"success": False, "error": "Spotify client is not configured"}

        result = await self.client.authorize(params)
        self._connected = bool(result.get("success"))
        log_operation(
            event_type="service",
            source="system",
            action="spotify.connect",
            success=self._connected,
            detail={"error": result.get("error")},
        )
        if not self._connected:
            return {"success": False, "error": result.get("error", "authorization failed")}
        return {"success": True}

    async def disconnect(self) -> None:
        if self.client is not None and self._connected:
            await self.client.logout()
        self._connected = False
        log_operation(event_type="service", source="system", action="spotify.disconnect", success=True)

    def is_connected(self) -> bool:
        return self._connected

    def get_connection_status(self) -> dict[str, Any]:
        return {"connected": self._connected}

    def has_credentials(self) -> bool:
        return self._connected

    async def clear_credentials(self) -> None:
        await self.disconnect()

    def _require_client(self) -> SpotifyClient:
        if self.client is None or not self._connected:
            raise NotConnectedError(self.id)
        return self.client

    async def fetch_status(self) -> dict[str, Any]:
        return await self._require_client().get_status()

    async def get_devices(self) -> list[Device]:
        return transform_spotify_status_to_devices(await self.get_status())

    async def control_playback(self, action: str, device_id: str | None = None) -> dict[str, Any]:
        client = self._require_client()
        if action == "play":
            await client.play(device_id)
        else:
            await client.pause(device_id)
        return {"success": True, "action": action}

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        update = validate_speaker_update(state)
        status = await self.get_status()
        if not any(d.get("id") == device_id for d in status.get("devices") or []):
            raise ResourceNotFoundError("device", normalize_device_id(self.id, device_id))

        client = self._require_client()
        if "volume" in update:
            await client.set_volume(device_id, update["volume"])
        if "is_on" in update:
            await self.control_playback("play" if update["is_on"] else "pause", device_id)
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": update}

    def build_router(self) -> APIRouter:
        return build_spotify_router(self)
