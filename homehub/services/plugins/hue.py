"""Philips Hue lighting over the bridge's local CLIP v2 API.

Pairing yields an application key ("username") that is stored once per bridge
in the SessionManager and reused by every client session.
"""

from __future__ import annotations

from time import perf_counter
from typing import Any

import httpx
from fastapi import APIRouter, HTTPException

from homehub.core import settings
from homehub.core.errors import BridgeConnectionError, NotConnectedError, ResourceNotFoundError, ValidationError
from homehub.models.home import Automation, Device, Room, Scene, calculate_home_summary, create_device, create_room, normalize_device_id
from homehub.models.schemas import ServiceConnectRequest
from homehub.services.log_service import log_operation
from homehub.services.plugins.base import ServicePlugin
from homehub.services.session_manager import SessionManager


HUE_SERVICE_ID = "hue"
HUE_RESOURCE_PATHS = {
    "lights": "light",
    "rooms": "room",
    "devices": "device",
    "scenes": "scene",
    "zones": "zone",
}
LINK_BUTTON_NOT_PRESSED = 101


def _name_of(resource: dict[str, Any]) -> str:
    metadata = resource.get("metadata") or {}
    return str(metadata.get("name") or resource.get("id") or "")


def build_light_device(light: dict[str, Any]) -> Device:
    dimming = light.get("dimming")
    capabilities = ["on_off"]
    if dimming is not None:
        capabilities.append("dimming")
    if light.get("color") is not None:
        capabilities.append("color")
    if light.get("color_temperature") is not None:
        capabilities.append("color_temperature")

    brightness = float((dimming or {}).get("brightness") or 0)
    return create_device(
        id=str(light.get("id") or ""),
        name=_name_of(light),
        type="light",
        service_id=HUE_SERVICE_ID,
        state={
            "on": bool((light.get("on") or {}).get("on")),
            "brightness": int(round(brightness)),
        },
        capabilities=capabilities,
    )


def _group_light_ids(group: dict[str, Any], device_services: dict[str, list[str]]) -> list[str]:
    # Rooms list devices, zones may list lights directly.
    light_ids: list[str] = []
    for child in group.get("children") or []:
        rid = child.get("rid")
        rtype = child.get("rtype")
        if rtype == "light":
            light_ids.append(rid)
        elif rtype == "device":
            light_ids.extend(device_services.get(rid, []))
    return light_ids


def _group_rooms(resources: dict[str, list[dict[str, Any]]], kind: str) -> list[Room]:
    lights_by_id = {light.get("id"): light for light in resources.get("lights", [])}
    device_services = {
        device.get("id"): [s.get("rid") for s in device.get("services") or [] if s.get("rtype") == "light"]
        for device in resources.get("devices", [])
    }
    scenes_by_group: dict[str, list[Scene]] = {}
    for scene in resources.get("scenes", []):
        group_id = (scene.get("group") or {}).get("rid")
        if group_id:
            scenes_by_group.setdefault(group_id, []).append(
                Scene(id=normalize_device_id(HUE_SERVICE_ID, str(scene.get("id"))), name=_name_of(scene))
            )

    rooms: list[Room] = []
    for group in resources.get(kind, []):
        devices = [
            build_light_device(lights_by_id[light_id])
            for light_id in _group_light_ids(group, device_services)
            if light_id in lights_by_id
        ]
        rooms.append(
            create_room(
                id=group.get("id"),
                name=_name_of(group),
                devices=devices,
                scenes=scenes_by_group.get(group.get("id"), []),
            )
        )
    return rooms


def build_hue_rooms(resources: dict[str, list[dict[str, Any]]]) -> list[Room]:
    return _group_rooms(resources, "rooms")


def build_hue_zones(resources: dict[str, list[dict[str, Any]]]) -> list[Room]:
    return _group_rooms(resources, "zones")


def build_hue_automations(smart_scenes: list[dict[str, Any]]) -> list[Automation]:
    return [
        Automation(
            id=normalize_device_id(HUE_SERVICE_ID, str(scene.get("id"))),
            name=_name_of(scene),
            service_id=HUE_SERVICE_ID,
            group_id=(scene.get("group") or {}).get("rid"),
            active=scene.get("state") == "active",
        )
        for scene in smart_scenes
    ]


def build_hue_status(bridge_ip: str, resources: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    rooms = build_hue_rooms(resources)
    zones = build_hue_zones(resources)
    return {
        "bridge_ip": bridge_ip,
        "summary": calculate_home_summary(rooms, []).model_dump(),
        "rooms": [room.model_dump() for room in rooms],
        "zones": [zone.model_dump() for zone in zones],
    }


def to_hue_light_update(state: dict[str, Any]) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if "on" in state:
        body["on"] = {"on": bool(state["on"])}
    if "brightness" in state:
        brightness = float(state["brightness"])
        if not 0 <= brightness <= 100:
            raise ValidationError("brightness", "must be between 0 and 100")
        body["dimming"] = {"brightness": brightness}
    if not body:
        raise ValidationError("state", "a light accepts 'on' and 'brightness'")
    return body


class HueBridgeClient:
    """Thin async client for one bridge. Network failures become BridgeConnectionError."""

    def __init__(
        self,
        bridge_ip: str,
        *,
        timeout_sec: float = settings.HUB_HUE_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.bridge_ip = bridge_ip
        self.base_url = f"https://{bridge_ip}"
        self.timeout_sec = timeout_sec
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        # Bridges serve a self-signed certificate.
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_sec,
            verify=False,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        username: str | None = None,
        json: Any = None,
    ) -> Any:
        headers = {"hue-application-key": username} if username else None
        started = perf_counter()
        status_code = 0
        try:
            async with self._client() as client:
                resp = await client.request(method, path, headers=headers, json=json)
            status_code = resp.status_code
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except httpx.TimeoutException as ex:
            raise BridgeConnectionError(self.bridge_ip, reason="timeout") from ex
        except httpx.ConnectError as ex:
            raise BridgeConnectionError(self.bridge_ip, reason="refused") from ex
        except httpx.HTTPStatusError as ex:
            raise BridgeConnectionError(self.bridge_ip, reason=f"http_{status_code}") from ex
        except httpx.HTTPError as ex:
            raise BridgeConnectionError(self.bridge_ip) from ex
        finally:
            log_operation(
                event_type="bridge_request",
                source="system",
                action="hue.request",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=round((perf_counter() - started) * 1000, 2),
                success=0 < status_code < 400,
                detail={"bridge_ip": self.bridge_ip},
            )

    async def pair(self, device_type: str = settings.HUB_HUE_DEVICE_TYPE) -> dict[str, Any]:
        payload = await self._request("POST", "/api", json={"devicetype": device_type})
        entry = payload[0] if isinstance(payload, list) and payload else {}
        if "success" in entry:
            return {"success": True, "username": entry["success"].get("username")}

        error = entry.get("error") or {}
        message = str(error.get("description") or "pairing failed")
        result: dict[str, Any] = {"success": False, "error": message}
        if error.get("type") == LINK_BUTTON_NOT_PRESSED:
            result["requires_link_button"] = True
        return result

    async def get_resources(self, username: str) -> dict[str, list[dict[str, Any]]]:
        resources: dict[str, list[dict[str, Any]]] = {}
        for key, rtype in HUE_RESOURCE_PATHS.items():
            payload = await self._request("GET", f"/clip/v2/resource/{rtype}", username=username)
            resources[key] = list(payload.get("data") or [])
        return resources

    async def update_light(self, username: str, light_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/clip/v2/resource/light/{light_id}", username=username, json=body)

    async def recall_scene(self, username: str, scene_id: str) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/clip/v2/resource/scene/{scene_id}",
            username=username,
            json={"recall": {"action": "active"}},
        )

    async def get_smart_scenes(self, username: str) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/clip/v2/resource/smart_scene", username=username)
        return list(payload.get("data") or [])

    async def trigger_smart_scene(self, username: str, smart_scene_id: str) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/clip/v2/resource/smart_scene/{smart_scene_id}",
            username=username,
            json={"recall": {"action": "activate"}},
        )


class HuePlugin(ServicePlugin):
    id = HUE_SERVICE_ID
    display_name = "Philips Hue"
    description = "Hue lighting via the local bridge"
    auth_type = "pairing"

    def __init__(self, session_manager: SessionManager, *, client_factory: Any = HueBridgeClient) -> None:
        super().__init__()
        self.session_manager = session_manager
        self.client_factory = client_factory
        self._bridge_ip: str | None = None
        # A paired bridge counts as connected until disconnect() is called.
        self._disconnected = False

    def _endpoint(self) -> str | None:
        return self._bridge_ip or self.session_manager.get_default_endpoint()

    def _authorized(self) -> tuple[HueBridgeClient, str]:
        endpoint = self._endpoint()
        username = self.session_manager.get_credentials(endpoint) if endpoint else None
        if self._disconnected or not endpoint or not username:
            raise NotConnectedError(self.id)
        return self.client_factory(endpoint), username

    async def connect(self, params: dict[str, Any]) -> dict[str, Any]:
        bridge_ip = params.get("bridge_ip") or self._endpoint()
        if not bridge_ip:
            return {"success": False, "error": "bridge_ip is required"}
        if not self.session_manager.has_credentials(bridge_ip):
            return {"requires_pairing": True, "bridge_ip": bridge_ip}

        self._bridge_ip = bridge_ip
        self._disconnected = False
        log_operation(
            event_type="service",
            source="system",
            action="hue.connect",
            success=True,
            detail={"bridge_ip": bridge_ip},
        )
        return {"success": True, "bridge_ip": bridge_ip}

    async def pair(self, params: dict[str, Any]) -> dict[str, Any]:
        bridge_ip = params.get("bridge_ip")
        if not bridge_ip:
            return {"success": False, "error": "bridge_ip is required"}

        result = await self.client_factory(bridge_ip).pair()
        log_operation(
            event_type="service",
            source="system",
            action="hue.pair",
            success=bool(result.get("success")),
            detail={"bridge_ip": bridge_ip, "error": result.get("error")},
        )
        if not result.get("success"):
            return result

        self.session_manager.store_credentials(bridge_ip, result["username"])
        self._bridge_ip = bridge_ip
        self._disconnected = False
        return {"success": True, "bridge_ip": bridge_ip, "username": result["username"]}

    async def disconnect(self) -> None:
        # Stored credentials survive a disconnect; reconnecting needs no pairing.
        self._disconnected = True
        log_operation(
            event_type="service",
            source="system",
            action="hue.disconnect",
            success=True,
            detail={"bridge_ip": self._endpoint()},
        )

    def is_connected(self) -> bool:
        return not self._disconnected and self.has_credentials()

    def get_connection_status(self) -> dict[str, Any]:
        return {
            "connected": self.is_connected(),
            "bridge_ip": self._endpoint(),
            "has_credentials": self.has_credentials(),
        }

    def has_credentials(self) -> bool:
        endpoint = self._endpoint()
        return bool(endpoint and self.session_manager.has_credentials(endpoint))

    async def clear_credentials(self) -> None:
        endpoint = self._endpoint()
        if endpoint:
            self.session_manager.clear_credentials(endpoint)
        self._bridge_ip = None

    async def _resources(self) -> tuple[str, dict[str, list[dict[str, Any]]]]:
        client, username = self._authorized()
        return client.bridge_ip, await client.get_resources(username)

    async def fetch_status(self) -> dict[str, Any]:
        bridge_ip, resources = await self._resources()
        return build_hue_status(bridge_ip, resources)

    async def get_rooms(self) -> list[Room]:
        _, resources = await self._resources()
        return build_hue_rooms(resources)

    async def get_zones(self) -> list[Room]:
        _, resources = await self._resources()
        return build_hue_zones(resources)

    async def get_rooms_and_zones(self) -> tuple[list[Room], list[Room]]:
        _, resources = await self._resources()
        return build_hue_rooms(resources), build_hue_zones(resources)

    async def get_automations(self) -> list[Automation]:
        client, username = self._authorized()
        return build_hue_automations(await client.get_smart_scenes(username))

    async def update_device(self, device_id: str, state: dict[str, Any]) -> dict[str, Any]:
        body = to_hue_light_update(state)
        client, username = self._authorized()
        try:
            await client.update_light(username, device_id, body)
        except BridgeConnectionError as ex:
            if ex.reason == "http_404":
                raise ResourceNotFoundError("device", normalize_device_id(self.id, device_id)) from ex
            raise
        return {"success": True, "device_id": normalize_device_id(self.id, device_id), "state": state}

    async def activate_scene(self, scene_id: str) -> dict[str, Any]:
        client, username = self._authorized()
        try:
            await client.recall_scene(username, scene_id)
        except BridgeConnectionError as ex:
            if ex.reason == "http_404":
                raise ResourceNotFoundError("scene", normalize_device_id(self.id, scene_id)) from ex
            raise
        return {"success": True, "scene_id": normalize_device_id(self.id, scene_id)}

    async def trigger_automation(self, automation_id: str) -> dict[str, Any]:
        client, username = self._authorized()
        try:
            await client.trigger_smart_scene(username, automation_id)
        except BridgeConnectionError as ex:
            if ex.reason == "http_404":
                raise ResourceNotFoundError("automation", normalize_device_id(self.id, automation_id)) from ex
            raise
        return {"success": True, "automation_id": normalize_device_id(self.id, automation_id)}

    def build_router(self) -> APIRouter:
        router = APIRouter()

        @router.post("/pair")
        async def pair_bridge(req: ServiceConnectRequest) -> dict[str, Any]:
            result = await self.pair(req.model_dump(exclude_none=True))
            if not result.get("success"):
                raise HTTPException(status_code=400, detail=result)
            return result

        return router
