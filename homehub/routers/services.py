from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from starlette.types import Receive, Scope, Send

from homehub.core.errors import ServiceUnavailableError
from homehub.core.request_context import is_demo_mode
from homehub.models.schemas import ServiceConnectRequest
from homehub.routers.deps import get_registry
from homehub.services.plugins.base import ServicePlugin
from homehub.services.service_registry import ServiceRegistry

SERVICES_PREFIX = "/v2/services"

router = APIRouter(prefix=SERVICES_PREFIX, tags=["services"])


def _plugin_or_raise(registry: ServiceRegistry, service_id: str) -> ServicePlugin:
    plugin = registry.get(service_id)
    if plugin is None:
        raise ServiceUnavailableError(service_id, demo_mode=is_demo_mode())
    return plugin


@router.get("")
async def list_services(registry: ServiceRegistry = Depends(get_registry)) -> dict[str, Any]:
    services = []
    for plugin in registry.get_all():
        services.append({**plugin.get_metadata(), "connected": plugin.is_connected()})
    return {"services": services}


@router.get("/{service_id}")
async def get_service(service_id: str, registry: ServiceRegistry = Depends(get_registry)) -> dict[str, Any]:
    plugin = _plugin_or_raise(registry, service_id)
    return {
        **plugin.get_metadata(),
        **plugin.get_connection_status(),
        "connected": plugin.is_connected(),
        "has_credentials": plugin.has_credentials(),
    }


@router.post("/{service_id}/connect")
async def connect_service(
    service_id: str,
    req: ServiceConnectRequest | None = None,
    registry: ServiceRegistry = Depends(get_registry),
) -> dict[str, Any]:
    plugin = _plugin_or_raise(registry, service_id)
    params = req.model_dump(exclude_none=True) if req else {}
    result = await plugin.connect(params)

    if result.get("requires_2fa"):
        return {"requires_2fa": True, "session": result.get("session")}
    if result.get("requires_pairing"):
        return {"requires_pairing": True}
    if not result.get("success"):
        raise HTTPException(status_code=401, detail=result.get("error", "connection failed"))
    return result


@router.post("/{service_id}/disconnect")
async def disconnect_service(service_id: str, registry: ServiceRegistry = Depends(get_registry)) -> dict[str, Any]:
    plugin = _plugin_or_raise(registry, service_id)
    await plugin.disconnect()
    return {"success": True}


@router.get("/{service_id}/status")
async def get_service_status(service_id: str, registry: ServiceRegistry = Depends(get_registry)) -> dict[str, Any]:
    plugin = _plugin_or_raise(registry, service_id)
    return await plugin.get_status()


class PluginRouteDispatcher:
    """ASGI app for ``/v2/services/<id>/...`` that resolves the real or demo
    plugin per request and hands off to that plugin's own router."""

    def __init__(self, registry: ServiceRegistry, service_id: str) -> None:
        self.registry = registry
        self.service_id = service_id

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        plugin = self.registry.get(self.service_id)
        plugin_router = plugin.get_router() if plugin else None
        if plugin_router is None:
            error = ServiceUnavailableError(self.service_id, demo_mode=is_demo_mode())
            response = JSONResponse(error.to_error_detail(), status_code=error.status_code)
            await response(scope, receive, send)
            return
        await plugin_router(scope, receive, send)


def plugin_mounts(registry: ServiceRegistry) -> list[tuple[str, PluginRouteDispatcher]]:
    service_ids = set(registry.get_ids())
    service_ids.update(plugin.id for plugin in registry.get_all(demo_mode=True))
    return [(f"{SERVICES_PREFIX}/{service_id}", PluginRouteDispatcher(registry, service_id)) for service_id in sorted(service_ids)]
