"""Unified Home model.

Devices, rooms and the home snapshot are derived views: they are rebuilt from
live service data on every request and never persisted.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from homehub.core.errors import ValidationError


DeviceType = Literal["light", "thermostat", "hotWater", "sensor", "speaker"]
DEVICE_TYPES: tuple[str, ...] = ("light", "thermostat", "hotWater", "sensor", "speaker")
LIGHT = "light"


class Device(BaseModel):
    id: str = Field(description="Globally unique id, 'serviceId:nativeId'")
    name: str
    type: DeviceType
    service_id: str
    state: dict[str, Any] = Field(default_factory=dict)
    capabilities: list[str] = Field(default_factory=list)


class Scene(BaseModel):
    id: str
    name: str


class Automation(BaseModel):
    id: str = Field(description="Globally unique id, 'serviceId:nativeId'")
    name: str
    service_id: str
    group_id: str | None = None
    active: bool = False


class RoomStats(BaseModel):
    total_devices: int = 0
    lights_on: int = 0
    average_brightness: int = 0


class Room(BaseModel):
    id: str
    name: str
    devices: list[Device] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    stats: RoomStats = Field(default_factory=RoomStats)


class HomeSummary(BaseModel):
    total_lights: int = 0
    lights_on: int = 0
    room_count: int = 0
    scene_count: int = 0
    home_device_count: int = 0


class Home(BaseModel):
    rooms: list[Room] = Field(default_factory=list)
    devices: list[Device] = Field(default_factory=list)
    zones: list[Room] = Field(default_factory=list)
    summary: HomeSummary = Field(default_factory=HomeSummary)


def normalize_device_id(service_id: str, native_id: str) -> str:
    return f"{service_id}:{native_id}"


def split_device_id(device_id: str) -> tuple[str, str]:
    service_id, sep, native_id = device_id.partition(":")
    if not sep or not service_id or not native_id:
        raise ValidationError("device id", f"expected 'serviceId:nativeId', got '{device_id}'")
    return service_id, native_id


def _is_light_on(device: Device) -> bool:
    return device.type == LIGHT and bool(device.state.get("on"))


def create_device(
    *,
    id: str,
    name: str,
    type: str,
    service_id: str,
    state: dict[str, Any] | None = None,
    capabilities: list[str] | None = None,
) -> Device:
    if not id:
        raise ValidationError("device", "id is required")
    if not name:
        raise ValidationError("device", "name is required")
    if not type:
        raise ValidationError("device", "type is required")
    if type not in DEVICE_TYPES:
        raise ValidationError("device", f"unknown device type: {type}")

    return Device(
        id=normalize_device_id(service_id, id),
        name=name,
        type=type,
        service_id=service_id,
        state=dict(state or {}),
        capabilities=list(capabilities or []),
    )


def calculate_room_stats(devices: list[Device]) -> RoomStats:
    """Average brightness only counts lights that are on; no lights on gives 0."""
    lights_on = [d for d in devices if _is_light_on(d)]

    average_brightness = 0
    if lights_on:
        total = sum(float(d.state.get("brightness") or 0) for d in lights_on)
        # Half-up, brightness is never negative.
        average_brightness = int(total / len(lights_on) + 0.5)

    return RoomStats(
        total_devices=len(devices),
        lights_on=len(lights_on),
        average_brightness=average_brightness,
    )


def create_room(
    *,
    id: str | None,
    name: str | None,
    devices: list[Device] | None = None,
    scenes: list[Scene] | None = None,
) -> Room:
    if not id:
        raise ValidationError("room", "id is required")
    if not name:
        raise ValidationError("room", "name is required")

    room_devices = list(devices or [])
    return Room(
        id=id,
        name=name,
        devices=room_devices,
        scenes=list(scenes or []),
        stats=calculate_room_stats(room_devices),
    )


def calculate_home_summary(rooms: list[Room], home_devices: list[Device]) -> HomeSummary:
    total_lights = 0
    lights_on = 0
    scene_count = 0

    for room in rooms:
        lights = [d for d in room.devices if d.type == LIGHT]
        total_lights += len(lights)
        lights_on += sum(1 for d in lights if _is_light_on(d))
        scene_count += len(room.scenes)

    return HomeSummary(
        total_lights=total_lights,
        lights_on=lights_on,
        room_count=len(rooms),
        scene_count=scene_count,
        home_device_count=len(home_devices),
    )


def create_home(
    *,
    rooms: list[Room] | None = None,
    devices: list[Device] | None = None,
    zones: list[Room] | None = None,
) -> Home:
    home_rooms = list(rooms or [])
    home_devices = list(devices or [])
    return Home(
        rooms=home_rooms,
        devices=home_devices,
        zones=list(zones or []),
        summary=calculate_home_summary(home_rooms, home_devices),
    )
