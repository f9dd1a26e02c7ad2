import json
import sqlite3
import time
from pathlib import Path
from typing import Any

from homehub.core import settings


class HubStorage:
    """SQLite backing store for pairing credentials and room mappings.

    Every save overwrites the whole table, every load reads it whole.
    """

    def __init__(self, db_path: Path, legacy_room_mappings_path: Path | None = None) -> None:
        self.db_path = Path(db_path)
        self.legacy_room_mappings_path = legacy_room_mappings_path

    def get_db_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def init_database(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS endpoint_credentials (
                        endpoint_id TEXT PRIMARY KEY,
                        credential_ref TEXT NOT NULL,
                        position INTEGER NOT NULL DEFAULT 0,
                        updated_at REAL NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS room_mappings (
                        service_key TEXT PRIMARY KEY,
                        home_room_id TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS room_names (
                        home_room_id TEXT PRIMARY KEY,
                        name TEXT NOT NULL
                    );
                    """
                )
                conn.commit()

    def load_credentials_from_db(self) -> dict[str, str]:
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT endpoint_id, credential_ref
                    FROM endpoint_credentials
                    ORDER BY position, endpoint_id
                    """
                ).fetchall()
        return {str(row["endpoint_id"]): str(row["credential_ref"]) for row in rows}

    def save_credentials_to_db(self, credentials: dict[str, str]) -> None:
        now = time.time()
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                conn.execute("DELETE FROM endpoint_credentials")
                # position keeps pairing order, the first paired endpoint is the default one.
                for position, (endpoint_id, credential_ref) in enumerate(credentials.items()):
                    conn.execute(
                        """
                        INSERT INTO endpoint_credentials (endpoint_id, credential_ref, position, updated_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (endpoint_id, credential_ref, position, now),
                    )
                conn.commit()

    def load_room_mappings_from_db(self) -> tuple[dict[str, str], dict[str, str]]:
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                mapping_rows = conn.execute(
                    "SELECT service_key, home_room_id FROM room_mappings ORDER BY service_key"
                ).fetchall()
                name_rows = conn.execute(
                    "SELECT home_room_id, name FROM room_names ORDER BY home_room_id"
                ).fetchall()

        mappings = {str(row["service_key"]): str(row["home_room_id"]) for row in mapping_rows}
        names = {str(row["home_room_id"]): str(row["name"]) for row in name_rows}
        return mappings, names

    def save_room_mappings_to_db(self, mappings: dict[str, str], names: dict[str, str]) -> None:
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                conn.execute("DELETE FROM room_mappings")
                conn.execute("DELETE FROM room_names")
                conn.executemany(
                    "INSERT INTO room_mappings (service_key, home_room_id) VALUES (?, ?)",
                    sorted(mappings.items()),
                )
                conn.executemany(
                    "INSERT INTO room_names (home_room_id, name) VALUES (?, ?)",
                    sorted(names.items()),
                )
                conn.commit()

    def read_legacy_room_mappings(self) -> tuple[dict[str, str], dict[str, str]]:
        path = self.legacy_room_mappings_path
        if path is None or not path.exists():
            return {}, {}

        try:
            data: Any = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}, {}
        if not isinstance(data, dict):
            return {}, {}

        # Older files stored the bare mapping object without the wrapper.
        raw_mappings = data.get("mappings", data)
        raw_names = data.get("roomNames", {})
        mappings = {
            str(k): str(v)
            for k, v in (raw_mappings.items() if isinstance(raw_mappings, dict) else [])
            if isinstance(v, str) and ":" in str(k)
        }
        names = {
            str(k): str(v)
            for k, v in (raw_names.items() if isinstance(raw_names, dict) else [])
            if isinstance(v, str)
        }
        return mappings, names

    def seed_room_mappings_if_needed(self) -> None:
        with settings.storage_lock:
            with self.get_db_connection() as conn:
                row = conn.execute("SELECT COUNT(1) AS c FROM room_mappings").fetchone()
                count = int(row["c"]) if row else 0

        if count > 0:
            return

        mappings, names = self.read_legacy_room_mappings()
        if mappings:
            self.save_room_mappings_to_db(mappings, names)

    def bootstrap(self) -> None:
        self.init_database()
        self.seed_room_mappings_if_needed()
