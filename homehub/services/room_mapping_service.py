"""Service room to home room reconciliation.

Vendors expose disjoint room id spaces. Each ``serviceId:roomId`` key maps to
one canonical home room id, and several service rooms may share a home room
after a merge. Merges never delete home room ids that lose all members.
"""

from __future__ import annotations

import threading

from homehub.services.log_service import log_operation
from homehub.storage.hub_storage import HubStorage


HOME_ROOM_PREFIX = "home-"


def service_room_key(service_id: str, room_id: str) -> str:
    return f"{service_id}:{room_id}"


def split_service_room_key(key: str) -> tuple[str, str]:
    # Room ids may themselves contain ':', service ids never do.
    service_id, _, room_id = key.partition(":")
    return service_id, room_id


class RoomMappingService:
    def __init__(self, storage: HubStorage | None = None) -> None:
        self.storage = storage
        self._mappings: dict[str, str] = {}
        self._members: dict[str, set[str]] = {}
        self._room_names: dict[str, str] = {}
        self._initialized = False
        self._lock = threading.RLock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        with self._lock:
            if self._initialized:
                return
            mappings: dict[str, str] = {}
            names: dict[str, str] = {}
            if self.storage is not None:
                mappings, names = self.storage.load_room_mappings_from_db()
            self._load(mappings, names)
            self._initialized = True

        log_operation(
            event_type="room_mapping",
            source="system",
            action="room_mapping.load",
            success=True,
            detail={"count": len(mappings)},
        )

    def reset(self) -> None:
        with self._lock:
            self._load({}, {})
            self._initialized = False

    def _load(self, mappings: dict[str, str], names: dict[str, str]) -> None:
        self._mappings = dict(mappings)
        self._room_names = dict(names)
        self._members = {}
        for key, home_room_id in self._mappings.items():
            self._members.setdefault(home_room_id, set()).add(key)

    def _persist(self) -> None:
        if self.storage is None:
            return
        with self._lock:
            mappings = dict(self._mappings)
            names = dict(self._room_names)
        self.storage.save_room_mappings_to_db(mappings, names)

    def _assign(self, key: str, home_room_id: str) -> None:
        previous = self._mappings.get(key)
        if previous is not None:
            self._members.get(previous, set()).discard(key)
        self._mappings[key] = home_room_id
        self._members.setdefault(home_room_id, set()).add(key)

    def _home_room_id_in_use(self, home_room_id: str) -> bool:
        return bool(self._members.get(home_room_id)) or home_room_id in self._room_names

    def _new_home_room_id(self, service_id: str, room_id: str) -> str:
        candidate = f"{HOME_ROOM_PREFIX}{room_id}"
        if not self._home_room_id_in_use(candidate):
            return candidate

        base = f"{HOME_ROOM_PREFIX}{service_id}-{room_id}"
        candidate = base
        suffix = 2
        while self._home_room_id_in_use(candidate):
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def get_all_mappings(self) -> dict[str, str]:
        with self._lock:
            return dict(self._mappings)

    def map_service_room(self, service_id: str, room_id: str, name: str) -> str:
        """Return the home room id for a service room, creating it on first sight.

        The display name only counts on the first call for a service room.
        """
        key = service_room_key(service_id, room_id)
        with self._lock:
            existing = self._mappings.get(key)
            if existing is not None:
                return existing

            home_room_id = self._new_home_room_id(service_id, room_id)
            self._assign(key, home_room_id)
            self._room_names[home_room_id] = name

        self._persist()
        log_operation(
            event_type="room_mapping",
            source="system",
            action="room_mapping.create",
            success=True,
            detail={"service_key": key, "home_room_id": home_room_id, "name": name},
        )
        return home_room_id

    def get_home_room_id(self, service_id: str, room_id: str) -> str | None:
        with self._lock:
            return self._mappings.get(service_room_key(service_id, room_id))

    def get_service_room_ids(self, home_room_id: str) -> list[dict[str, str]]:
        with self._lock:
            keys = sorted(self._members.get(home_room_id, set()))
        result = []
        for key in keys:
            service_id, room_id = split_service_room_key(key)
            result.append({"service_id": service_id, "room_id": room_id})
        return result

    def merge_rooms(self, service_room_keys: list[str], home_room_id: str) -> None:
        with self._lock:
            for key in service_room_keys:
                self._assign(key, home_room_id)

        self._persist()
        log_operation(
            event_type="room_mapping",
            source="system",
            action="room_mapping.merge",
            success=True,
            detail={"service_keys": list(service_room_keys), "home_room_id": home_room_id},
        )

    def delete_mapping(self, service_id: str, room_id: str) -> bool:
        key = service_room_key(service_id, room_id)
        with self._lock:
            home_room_id = self._mappings.pop(key, None)
            if home_room_id is not None:
                self._members.get(home_room_id, set()).discard(key)

        self._persist()
        log_operation(
            event_type="room_mapping",
            source="system",
            action="room_mapping.delete",
            success=home_room_id is not None,
            detail={"service_key": key},
        )
        return home_room_id is not None

    def get_room_name(self, service_id: str, room_id: str) -> str | None:
        with self._lock:
            home_room_id = self._mappings.get(service_room_key(service_id, room_id))
            if home_room_id is None:
                return None
            return self._room_names.get(home_room_id)

    def get_room_name_by_id(self, home_room_id: str) -> str | None:
        with self._lock:
            return self._room_names.get(home_room_id)

    def set_room_name(self, home_room_id: str, name: str) -> None:
        with self._lock:
            self._room_names[home_room_id] = name

        self._persist()
        log_operation(
            event_type="room_mapping",
            source="system",
            action="room_mapping.rename",
            success=True,
            detail={"home_room_id": home_room_id, "name": name},
        )
