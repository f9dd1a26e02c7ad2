from typing import Any

from fastapi import APIRouter, Depends

from homehub.models.schemas import Location, Session, SettingsUpdateRequest, UserSettings
from homehub.routers.deps import get_settings_service, require_session
from homehub.services.settings_service import SettingsService

router = APIRouter(prefix="/v2/settings", tags=["settings"])


@router.get("", response_model=UserSettings)
async def get_settings(
    session: Session = Depends(require_session),
    settings_service: SettingsService = Depends(get_settings_service),
) -> UserSettings:
    return settings_service.get_settings(session.token)


@router.put("", response_model=UserSettings)
async def update_settings(
    req: SettingsUpdateRequest,
    session: Session = Depends(require_session),
    settings_service: SettingsService = Depends(get_settings_service),
) -> UserSettings:
    # exclude_unset keeps an explicit null location apart from an omitted one.
    return settings_service.update_settings(session.token, req.model_dump(exclude_unset=True))


@router.put("/location", response_model=UserSettings)
async def update_location(
    req: Location,
    session: Session = Depends(require_session),
    settings_service: SettingsService = Depends(get_settings_service),
) -> UserSettings:
    return settings_service.update_location(session.token, req.model_dump(exclude_none=True))


@router.delete("/location")
async def clear_location(
    session: Session = Depends(require_session),
    settings_service: SettingsService = Depends(get_settings_service),
) -> dict[str, Any]:
    settings_service.clear_location(session.token)
    return {"success": True}
