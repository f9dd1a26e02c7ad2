from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from homehub.core import settings
from homehub.core.errors import HubError
from homehub.core.request_context import DEMO_MODE_KEY, parse_demo_header, request_context
from homehub.routers import auth, automations, home, log, services, user_settings
from homehub.services.home_service import HomeService
from homehub.services.log_service import log_http_request, log_operation, stop_log_worker
from homehub.services.room_mapping_service import RoomMappingService
from homehub.services.service_registry import ServiceRegistry, build_default_registry
from homehub.services.session_manager import SessionManager
from homehub.services.settings_service import SettingsService
from homehub.storage.hub_storage import HubStorage

DEMO_MODE_HEADER = "X-Demo-Mode"


def create_app(
    *,
    storage: HubStorage | None = None,
    session_manager: SessionManager | None = None,
    room_mapping: RoomMappingService | None = None,
    registry: ServiceRegistry | None = None,
    start_cleanup: bool = settings.HUB_SESSION_CLEANUP_ENABLED,
) -> FastAPI:
    if storage is None:
        storage = HubStorage(settings.HUB_DB_PATH, settings.HUB_LEGACY_ROOM_MAPPINGS_PATH)
    if session_manager is None:
        session_manager = SessionManager(storage)
    if room_mapping is None:
        room_mapping = RoomMappingService(storage)
    if registry is None:
        registry = build_default_registry(session_manager)
    home_service = HomeService(registry, room_mapping)
    settings_service = SettingsService()
    session_manager.add_end_listener(settings_service.clear_session)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage.bootstrap()
        session_manager.initialize()
        room_mapping.initialize()
        if start_cleanup:
            session_manager.start_cleanup()
        log_operation(
            event_type="lifecycle",
            source="system",
            action="app.start",
            success=True,
            detail={"services": registry.get_ids(), "db_path": str(storage.db_path)},
        )
        try:
            yield
        finally:
            session_manager.stop_cleanup()
            log_operation(event_type="lifecycle", source="system", action="app.stop", success=True)
            stop_log_worker()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.storage = storage
    app.state.session_manager = session_manager
    app.state.room_mapping = room_mapping
    app.state.registry = registry
    app.state.home_service = home_service
    app.state.settings_service = settings_service

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        demo_mode = parse_demo_header(request.headers.get(DEMO_MODE_HEADER))
        started = perf_counter()
        with request_context({DEMO_MODE_KEY: demo_mode}):
            response = await call_next(request)
            log_http_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((perf_counter() - started) * 1000, 2),
                client_ip=request.client.host if request.client else None,
            )
        return response

    @app.exception_handler(HubError)
    async def hub_error_handler(request: Request, exc: HubError) -> JSONResponse:
        log_operation(
            event_type="error",
            source="http",
            action=exc.error_code,
            method=request.method,
            path=request.url.path,
            status_code=exc.status_code,
            success=False,
            detail={"message": exc.message},
        )
        return JSONResponse(exc.to_error_detail(), status_code=exc.status_code)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "ok",
            "services": registry.get_ids(),
            "sessions": session_manager.get_stats()["active_sessions"],
            "session_cleanup_running": session_manager.cleanup_running,
        }

    app.include_router(auth.router)
    app.include_router(home.router)
    app.include_router(automations.router)
    app.include_router(user_settings.router)
    app.include_router(services.router)
    app.include_router(log.router)
    # Mounted after the generic service routes so /connect, /status etc. win.
    for path, dispatcher in services.plugin_mounts(registry):
        app.mount(path, dispatcher)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HUB_HOST, port=settings.HUB_PORT)
