"""Per-session user settings (location, temperature units).

Settings live in memory next to the sessions they belong to and are dropped
when the session is revoked or expires.
"""

from __future__ import annotations

import threading
from typing import Any

import pydantic

from homehub.core.errors import ValidationError
from homehub.core.request_context import is_demo_mode
from homehub.models.schemas import Location, UserSettings
from homehub.services.log_service import log_operation
from homehub.services.plugins import demo_data


VALID_UNITS = ("celsius", "fahrenheit")


def _validate_units(units: Any) -> str:
    if units not in VALID_UNITS:
        raise ValidationError("units", f"'{units}' must be one of: {', '.join(VALID_UNITS)}")
    return units


def _validate_location(location: Any) -> Location | None:
    if location is None or isinstance(location, Location):
        return location
    if not isinstance(location, dict):
        raise ValidationError("location", "must be an object with numeric lat and lon")
    try:
        return Location.model_validate(location)
    except pydantic.ValidationError as ex:
        first = ex.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "location"
        raise ValidationError(f"location.{field}", first.get("msg", "invalid value")) from ex


class SettingsService:
    def __init__(self) -> None:
        self._settings: dict[str, UserSettings] = {}
        self._lock = threading.RLock()

    def get_settings(self, token: str, demo_mode: bool | None = None) -> UserSettings:
        demo = is_demo_mode() if demo_mode is None else demo_mode
        with self._lock:
            stored = self._settings.get(token)
            if stored is not None:
                return stored.model_copy(deep=True)
        if demo:
            return UserSettings.model_validate(demo_data.demo_settings())
        return UserSettings()

    def update_settings(self, token: str, updates: dict[str, Any], demo_mode: bool | None = None) -> UserSettings:
        changes: dict[str, Any] = {}
        if "units" in updates:
            changes["units"] = _validate_units(updates["units"])
        if "location" in updates:
            changes["location"] = _validate_location(updates["location"])

        with self._lock:
            current = self.get_settings(token, demo_mode)
            updated = current.model_copy(update=changes)
            self._settings[token] = updated

        log_operation(
            event_type="settings",
            source="system",
            action="settings.update",
            success=True,
            detail={"fields": sorted(changes)},
        )
        return updated.model_copy(deep=True)

    def update_location(self, token: str, location: dict[str, Any], demo_mode: bool | None = None) -> UserSettings:
        return self.update_settings(token, {"location": location}, demo_mode)

    def clear_location(self, token: str, demo_mode: bool | None = None) -> UserSettings:
        return self.update_settings(token, {"location": None}, demo_mode)

    def clear_session(self, token: str) -> bool:
        with self._lock:
            return self._settings.pop(token, None) is not None

    def clear_all(self) -> None:
        with self._lock:
            self._settings.clear()

    def session_count(self) -> int:
        with self._lock:
            return len(self._settings)
