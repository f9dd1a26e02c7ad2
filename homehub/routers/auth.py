from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from homehub.core import settings
from homehub.core.errors import MissingCredentialsError, ServiceUnavailableError
from homehub.core.request_context import is_demo_mode
from homehub.models.schemas import Session, SessionCreateRequest, SessionCreateResponse, SessionInfo
from homehub.routers.deps import DEMO_SESSION_TOKEN, get_registry, get_session_manager, require_session
from homehub.services.plugins.hue import HUE_SERVICE_ID
from homehub.services.service_registry import ServiceRegistry
from homehub.services.session_manager import SessionManager

router = APIRouter(prefix="/v2/auth", tags=["auth"])


def _session_response(session: Session, session_manager: SessionManager) -> SessionCreateResponse:
    return SessionCreateResponse(
        session_token=session.token,
        expires_in=session_manager.expires_in_sec,
        bridge_ip=session.service_endpoint_id,
    )


def _demo_response(session_manager: SessionManager) -> SessionCreateResponse:
    return SessionCreateResponse(
        session_token=DEMO_SESSION_TOKEN,
        expires_in=session_manager.expires_in_sec,
        bridge_ip=settings.HUB_DEMO_BRIDGE_IP,
    )


@router.get("/bridge-status")
async def bridge_status(
    bridge_ip: str = Query(min_length=1),
    session_manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    return {"bridge_ip": bridge_ip, "has_credentials": session_manager.has_credentials(bridge_ip)}


@router.post("/session", response_model=SessionCreateResponse)
async def create_session(
    req: SessionCreateRequest,
    session_manager: SessionManager = Depends(get_session_manager),
) -> SessionCreateResponse:
    if is_demo_mode():
        return _demo_response(session_manager)

    credential_ref = session_manager.get_credentials(req.bridge_ip)
    if credential_ref is None:
        raise MissingCredentialsError(req.bridge_ip)

    session = session_manager.create_session(req.bridge_ip, credential_ref)
    return _session_response(session, session_manager)


@router.post("/pair", response_model=SessionCreateResponse)
async def pair_and_create_session(
    req: SessionCreateRequest,
    session_manager: SessionManager = Depends(get_session_manager),
    registry: ServiceRegistry = Depends(get_registry),
) -> SessionCreateResponse:
    if is_demo_mode():
        return _demo_response(session_manager)

    plugin = registry.get(HUE_SERVICE_ID)
    if plugin is None:
        raise ServiceUnavailableError(HUE_SERVICE_ID)

    result = await plugin.pair({"bridge_ip": req.bridge_ip})
    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result)

    session = session_manager.create_session(req.bridge_ip, result["username"])
    return _session_response(session, session_manager)


@router.get("/session", response_model=SessionInfo)
async def get_session_info(session: Session = Depends(require_session)) -> SessionInfo:
    return SessionInfo(
        bridge_ip=session.service_endpoint_id,
        auth_method="demo" if is_demo_mode() else "session",
        expires_at=session.expires_at,
    )


@router.post("/refresh", response_model=SessionCreateResponse)
async def refresh_session(
    session: Session = Depends(require_session),
    session_manager: SessionManager = Depends(get_session_manager),
) -> SessionCreateResponse:
    if is_demo_mode():
        return _demo_response(session_manager)

    session_manager.revoke_session(session.token)
    renewed = session_manager.create_session(session.service_endpoint_id, session.credential_ref)
    return _session_response(renewed, session_manager)


@router.delete("/session")
async def revoke_session(
    session: Session = Depends(require_session),
    session_manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if not is_demo_mode():
        session_manager.revoke_session(session.token)
    return {"success": True}


@router.post("/disconnect")
async def disconnect_bridge(
    session: Session = Depends(require_session),
    session_manager: SessionManager = Depends(get_session_manager),
) -> dict[str, Any]:
    if not is_demo_mode():
        session_manager.revoke_session(session.token)
        session_manager.clear_credentials(session.service_endpoint_id)
    return {"success": True}


@router.get("/stats")
async def session_stats(session_manager: SessionManager = Depends(get_session_manager)) -> dict[str, Any]:
    return session_manager.get_stats()
