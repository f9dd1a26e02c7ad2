"""Deterministic fixtures for demo plugins.

Each accessor returns a fresh deep copy so demo plugin instances never share
mutable state.
"""

from __future__ import annotations

import copy
from typing import Any


HIVE_DEMO_CREDENTIALS = {
    "username": "demo@hive.com",
    "password": "demo",
    "code": "123456",
}
HIVE_DEMO_2FA_SESSION = "demo-2fa-session"


def _light(light_id: str, name: str, on: bool, brightness: float, *, color: bool = True) -> dict[str, Any]:
    light: dict[str, Any] = {
        "id": light_id,
        "on": {"on": on},
        "dimming": {"brightness": brightness},
        "metadata": {"name": name},
    }
    if color:
        light["color"] = {"xy": {"x": 0.3227, "y": 0.329}}
    else:
        light["color_temperature"] = {"mirek": 250}
    return light


_HUE_RESOURCES: dict[str, list[dict[str, Any]]] = {
    "lights": [
        _light("light-1", "Floor Lamp", True, 100),
        _light("light-2", "TV Backlight", True, 75),
        _light("light-3", "Plant Light", True, 50),
        _light("light-4", "Corner Lamp", True, 25),
        _light("light-5", "Accent", True, 10),
        _light("light-6", "Ceiling", False, 0),
        _light("light-7", "Kitchen Ceiling", True, 90, color=False),
        _light("light-8", "Counter", True, 60, color=False),
        _light("light-9", "Under Cabinet", True, 40, color=False),
        _light("light-10", "Bedroom Ceiling", True, 80),
        _light("light-11", "Bedside Left", True, 45),
        _light("light-12", "Bedside Right", False, 0),
    ],
    "rooms": [
        {
            "id": "room-1",
            "metadata": {"name": "Living Room"},
            "children": [{"rid": "device-1", "rtype": "device"}, {"rid": "device-2", "rtype": "device"}],
        },
        {
            "id": "room-2",
            "metadata": {"name": "Kitchen"},
            "children": [{"rid": "device-3", "rtype": "device"}],
        },
        {
            "id": "room-3",
            "metadata": {"name": "Bedroom"},
            "children": [{"rid": "device-4", "rtype": "device"}],
        },
    ],
    "devices": [
        {"id": "device-1", "services": [{"rid": f"light-{n}", "rtype": "light"} for n in (1, 2, 3)]},
        {"id": "device-2", "services": [{"rid": f"light-{n}", "rtype": "light"} for n in (4, 5, 6)]},
        {"id": "device-3", "services": [{"rid": f"light-{n}", "rtype": "light"} for n in (7, 8, 9)]},
        {"id": "device-4", "services": [{"rid": f"light-{n}", "rtype": "light"} for n in (10, 11, 12)]},
    ],
    "scenes": [
        {"id": "scene-1", "metadata": {"name": "Bright"}, "group": {"rid": "room-1"}},
        {"id": "scene-2", "metadata": {"name": "Relax"}, "group": {"rid": "room-1"}},
        {"id": "scene-3", "metadata": {"name": "Movie"}, "group": {"rid": "room-1"}},
        {"id": "scene-4", "metadata": {"name": "Concentrate"}, "group": {"rid": "room-2"}},
        {"id": "scene-5", "metadata": {"name": "Cooking"}, "group": {"rid": "room-2"}},
        {"id": "scene-6", "metadata": {"name": "Nightlight"}, "group": {"rid": "room-3"}},
    ],
    "zones": [
        {
            "id": "zone-1",
            "metadata": {"name": "Downstairs"},
            "children": [{"rid": rid, "rtype": "light"} for rid in ("light-1", "light-7", "light-6")],
        },
        {
            "id": "zone-2",
            "metadata": {"name": "Upstairs"},
            "children": [{"rid": rid, "rtype": "light"} for rid in ("light-10", "light-11", "light-12")],
        },
    ],
    "smart_scenes": [
        {"id": "smart-scene-1", "metadata": {"name": "Wake Up"}, "group": {"rid": "room-3", "rtype": "room"}, "state": "inactive"},
        {"id": "smart-scene-2", "metadata": {"name": "Natural Light"}, "group": {"rid": "room-1", "rtype": "room"}, "state": "active"},
    ],
}

_HIVE_STATUS: dict[str, Any] = {
    "heating": {
        "current_temperature": 19.5,
        "target_temperature": 21.0,
        "is_heating": True,
        "mode": "schedule",
    },
    "hot_water": {
        "is_on": False,
        "mode": "schedule",
    },
}

_HIVE_SCHEDULES: list[dict[str, Any]] = [
    {"id": "schedule-1", "name": "Weekday Heating", "type": "heating", "days": ["mon", "tue", "wed", "thu", "fri"],
     "slots": [{"start": "06:30", "end": "08:30", "target_temperature": 21.0},
               {"start": "17:00", "end": "22:00", "target_temperature": 21.5}]},
    {"id": "schedule-2", "name": "Weekend Heating", "type": "heating", "days": ["sat", "sun"],
     "slots": [{"start": "08:00", "end": "23:00", "target_temperature": 21.0}]},
    {"id": "schedule-3", "name": "Hot Water", "type": "hotWater", "days": ["mon", "tue", "wed", "thu", "fri", "sat", "sun"],
     "slots": [{"start": "06:00", "end": "07:30"}, {"start": "18:00", "end": "19:00"}]},
]

_DEMO_SETTINGS: dict[str, Any] = {
    "location": {"lat": 51.5074, "lon": -0.1278, "name": "London"},
    "units": "celsius",
}

_SPOTIFY_STATUS: dict[str, Any] = {
    "user": {"id": "demo-user", "display_name": "Demo User"},
    "playback": {
        "is_playing": False,
        "device_id": "speaker-1",
        "track": {"name": "Clair de Lune", "artist": "Claude Debussy"},
    },
    "devices": [
        {"id": "speaker-1", "name": "Living Room Speaker", "type": "Speaker", "volume_percent": 40, "is_active": True},
        {"id": "speaker-2", "name": "Kitchen Speaker", "type": "Speaker", "volume_percent": 25, "is_active": False},
    ],
}


def hue_demo_resources() -> dict[str, list[dict[str, Any]]]:
    return copy.deepcopy(_HUE_RESOURCES)


def hive_demo_status() -> dict[str, Any]:
    return copy.deepcopy(_HIVE_STATUS)


def hive_demo_schedules() -> list[dict[str, Any]]:
    return copy.deepcopy(_HIVE_SCHEDULES)


def spotify_demo_status() -> dict[str, Any]:
    return copy.deepcopy(_SPOTIFY_STATUS)


def demo_settings() -> dict[str, Any]:
    return copy.deepcopy(_DEMO_SETTINGS)
