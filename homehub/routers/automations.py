from typing import Any

from fastapi import APIRouter, Depends

from homehub.models.home import Automation
from homehub.routers.deps import get_home_service, require_session
from homehub.services.home_service import HomeService

router = APIRouter(prefix="/v2/automations", tags=["automations"], dependencies=[Depends(require_session)])


@router.get("")
async def list_automations(home_service: HomeService = Depends(get_home_service)) -> dict[str, list[Automation]]:
    return {"automations": await home_service.list_automations()}


@router.post("/{automation_id}/trigger")
async def trigger_automation(automation_id: str, home_service: HomeService = Depends(get_home_service)) -> dict[str, Any]:
    return await home_service.trigger_automation(automation_id)
