"""Client sessions and reusable endpoint credentials.

A credential is obtained once per endpoint (e.g. Hue bridge pairing) and then
shared by any number of client sessions. Sessions live in memory only;
credentials are persisted so a restart does not force re-pairing.
"""

from __future__ import annotations

import secrets
import threading
import time
from collections.abc import Callable
from typing import Any

from homehub.core import settings
from homehub.models.schemas import Session
from homehub.services.log_service import log_operation
from homehub.storage.hub_storage import HubStorage


SESSION_TOKEN_PREFIX = "hub_sess_"


def _token_preview(token: str) -> str:
    return token[len(SESSION_TOKEN_PREFIX):][:8]


class SessionManager:
    def __init__(
        self,
        storage: HubStorage | None = None,
        *,
        session_expiry_sec: float = settings.HUB_SESSION_EXPIRY_SEC,
        cleanup_interval_sec: float = settings.HUB_SESSION_CLEANUP_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.session_expiry_sec = session_expiry_sec
        self.cleanup_interval_sec = cleanup_interval_sec
        self._clock = clock

        self._sessions: dict[str, Session] = {}
        self._credentials: dict[str, str] = {}
        self._lock = threading.RLock()
        self._end_listeners: list[Callable[[str], None]] = []

        self._cleanup_thread: threading.Thread | None = None
        self._cleanup_stop = threading.Event()

    def initialize(self) -> None:
        if self.storage is None:
            return
        loaded = self.storage.load_credentials_from_db()
        with self._lock:
            self._credentials = loaded
        log_operation(
            event_type="session",
            source="system",
            action="credentials.load",
            success=True,
            detail={"count": len(loaded)},
        )

    def _persist_credentials(self) -> None:
        if self.storage is None:
            return
        with self._lock:
            snapshot = dict(self._credentials)
        self.storage.save_credentials_to_db(snapshot)

    def store_credentials(self, endpoint_id: str, credential_ref: str) -> None:
        with self._lock:
            # Re-pairing replaces the previous credential for the endpoint.
            self._credentials[endpoint_id] = credential_ref
        self._persist_credentials()
        log_operation(
            event_type="session",
            source="system",
            action="credentials.store",
            success=True,
            detail={"endpoint_id": endpoint_id},
        )

    def has_credentials(self, endpoint_id: str) -> bool:
        with self._lock:
            return endpoint_id in self._credentials

    def get_credentials(self, endpoint_id: str) -> str | None:
        with self._lock:
            return self._credentials.get(endpoint_id)

    def clear_credentials(self, endpoint_id: str) -> bool:
        with self._lock:
            existed = self._credentials.pop(endpoint_id, None) is not None
        if existed:
            self._persist_credentials()
            log_operation(
                event_type="session",
                source="system",
                action="credentials.clear",
                success=True,
                detail={"endpoint_id": endpoint_id},
            )
        return existed

    def get_default_endpoint(self) -> str | None:
        with self._lock:
            return next(iter(self._credentials), None)

    def add_end_listener(self, listener: Callable[[str], None]) -> None:
        """Call ``listener(token)`` whenever a session is revoked or expires."""
        with self._lock:
            self._end_listeners.append(listener)

    def _notify_end(self, tokens: list[str]) -> None:
        with self._lock:
            listeners = list(self._end_listeners)
        for token in tokens:
            for listener in listeners:
                listener(token)

    def _generate_token(self) -> str:
        return f"{SESSION_TOKEN_PREFIX}{secrets.token_hex(32)}"

    def create_session(self, endpoint_id: str, credential_ref: str) -> Session:
        now = self._clock()
        with self._lock:
            token = self._generate_token()
            while token in self._sessions:
                token = self._generate_token()
            session = Session(
                token=token,
                service_endpoint_id=endpoint_id,
                credential_ref=credential_ref,
                created_at=now,
                last_accessed_at=now,
                expires_at=now + self.session_expiry_sec,
            )
            self._sessions[token] = session

        log_operation(
            event_type="session",
            source="system",
            action="session.create",
            success=True,
            detail={"token": _token_preview(token), "endpoint_id": endpoint_id},
        )
        return session.model_copy()

    def now(self) -> float:
        return self._clock()

    @property
    def expires_in_sec(self) -> int:
        return int(self.session_expiry_sec)

    def get_session(self, token: str) -> Session | None:
        """Return a detached copy of the session, sliding its expiry forward."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None

            if session.expires_at > now:
                session.last_accessed_at = now
                session.expires_at = now + self.session_expiry_sec
                return session.model_copy()

            del self._sessions[token]

        log_operation(
            event_type="session",
            source="system",
            action="session.expired",
            success=True,
            detail={"token": _token_preview(token)},
        )
        self._notify_end([token])
        return None

    def revoke_session(self, token: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(token, None) is not None
        if existed:
            log_operation(
                event_type="session",
                source="system",
                action="session.revoke",
                success=True,
                detail={"token": _token_preview(token)},
            )
            self._notify_end([token])
        return existed

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            ages = [now - s.created_at for s in self._sessions.values()]
            stored_endpoints = len(self._credentials)
        return {
            "active_sessions": len(ages),
            "oldest_session_age_sec": round(max(ages), 3) if ages else 0,
            "newest_session_age_sec": round(min(ages), 3) if ages else 0,
            "stored_endpoints": stored_endpoints,
        }

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [token for token, s in self._sessions.items() if s.expires_at <= now]
            for token in expired:
                del self._sessions[token]

        if expired:
            log_operation(
                event_type="session",
                source="system",
                action="session.cleanup",
                success=True,
                detail={"count": len(expired)},
            )
            self._notify_end(expired)
        return len(expired)

    def _cleanup_loop(self) -> None:
        while not self._cleanup_stop.wait(self.cleanup_interval_sec):
            self.cleanup()

    def start_cleanup(self) -> None:
        with self._lock:
            if self._cleanup_thread and self._cleanup_thread.is_alive():
                return
            self._cleanup_stop.clear()
            self._cleanup_thread = threading.Thread(
                target=self._cleanup_loop,
                name="homehub-session-cleanup",
                daemon=True,
            )
            self._cleanup_thread.start()

    def stop_cleanup(self, timeout_sec: float = 2.0) -> None:
        with self._lock:
            worker = self._cleanup_thread
            if not worker:
                return
            self._cleanup_stop.set()

        worker.join(timeout=timeout_sec)
        with self._lock:
            if self._cleanup_thread is worker:
                self._cleanup_thread = None

    @property
    def cleanup_running(self) -> bool:
        with self._lock:
            return bool(self._cleanup_thread and self._cleanup_thread.is_alive())
