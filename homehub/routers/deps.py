from __future__ import annotations

from fastapi import Header, Request

from homehub.core import settings
from homehub.core.errors import InvalidSessionError
from homehub.core.request_context import is_demo_mode
from homehub.models.schemas import Session
from homehub.services.home_service import HomeService
from homehub.services.room_mapping_service import RoomMappingService
from homehub.services.service_registry import ServiceRegistry
from homehub.services.session_manager import SessionManager
from homehub.services.settings_service import SettingsService


DEMO_SESSION_TOKEN = "demo-session"
BEARER_PREFIX = "Bearer "


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def get_room_mapping(request: Request) -> RoomMappingService:
    return request.app.state.room_mapping


def get_home_service(request: Request) -> HomeService:
    return request.app.state.home_service


def get_settings_service(request: Request) -> SettingsService:
    return request.app.state.settings_service


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def demo_session(session_manager: SessionManager) -> Session:
    now = session_manager.now()
    return Session(
        token=DEMO_SESSION_TOKEN,
        service_endpoint_id=settings.HUB_DEMO_BRIDGE_IP,
        credential_ref=settings.HUB_DEMO_USERNAME,
        created_at=now,
        last_accessed_at=now,
        expires_at=now + session_manager.session_expiry_sec,
    )


async def require_session(request: Request, authorization: str | None = Header(default=None)) -> Session:
    session_manager = get_session_manager(request)
    if is_demo_mode():
        return demo_session(session_manager)

    token = bearer_token(authorization)
    session = session_manager.get_session(token) if token else None
    if session is None:
        raise InvalidSessionError()
    return session
