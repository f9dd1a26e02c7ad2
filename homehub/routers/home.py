from typing import Any

from fastapi import APIRouter, Depends

from homehub.core.errors import ResourceNotFoundError, ValidationError
from homehub.models.home import Device, Home, Room
from homehub.models.schemas import DeviceStateUpdateRequest, RoomMergeRequest, RoomRenameRequest
from homehub.routers.deps import get_home_service, get_room_mapping, require_session
from homehub.services.home_service import HomeService
from homehub.services.room_mapping_service import RoomMappingService, split_service_room_key

router = APIRouter(prefix="/v2/home", tags=["home"], dependencies=[Depends(require_session)])


@router.get("", response_model=Home)
async def get_home(home_service: HomeService = Depends(get_home_service)) -> Home:
    return await home_service.get_home()


@router.get("/devices")
async def list_devices(home_service: HomeService = Depends(get_home_service)) -> dict[str, list[Device]]:
    return {"devices": await home_service.list_devices()}


@router.put("/devices/{device_id}")
async def update_device(
    device_id: str,
    req: DeviceStateUpdateRequest,
    home_service: HomeService = Depends(get_home_service),
) -> dict[str, Any]:
    return await home_service.update_device(device_id, req.to_state())


@router.post("/scenes/{scene_id}/activate")
async def activate_scene(scene_id: str, home_service: HomeService = Depends(get_home_service)) -> dict[str, Any]:
    return await home_service.activate_scene(scene_id)


@router.post("/rooms/merge")
async def merge_rooms(
    req: RoomMergeRequest,
    room_mapping: RoomMappingService = Depends(get_room_mapping),
) -> dict[str, Any]:
    for key in req.service_room_keys:
        service_id, room_id = split_service_room_key(key)
        if not service_id or not room_id:
            raise ValidationError("service room key", f"expected 'serviceId:roomId', got '{key}'")

    room_mapping.initialize()
    room_mapping.merge_rooms(req.service_room_keys, req.target_home_room_id)
    return {
        "success": True,
        "home_room_id": req.target_home_room_id,
        "members": room_mapping.get_service_room_ids(req.target_home_room_id),
    }


@router.delete("/rooms/mappings/{service_id}/{room_id}")
async def delete_room_mapping(
    service_id: str,
    room_id: str,
    room_mapping: RoomMappingService = Depends(get_room_mapping),
) -> dict[str, Any]:
    room_mapping.initialize()
    if not room_mapping.delete_mapping(service_id, room_id):
        raise ResourceNotFoundError("room mapping", f"{service_id}:{room_id}")
    return {"success": True}


@router.get("/rooms/{room_id}", response_model=Room)
async def get_room(room_id: str, home_service: HomeService = Depends(get_home_service)) -> Room:
    room = await home_service.get_room(room_id)
    if room is None:
        raise ResourceNotFoundError("room", room_id)
    return room


@router.get("/rooms/{room_id}/members")
async def get_room_members(
    room_id: str,
    room_mapping: RoomMappingService = Depends(get_room_mapping),
) -> dict[str, Any]:
    room_mapping.initialize()
    return {
        "home_room_id": room_id,
        "name": room_mapping.get_room_name_by_id(room_id),
        "members": room_mapping.get_service_room_ids(room_id),
    }


@router.put("/rooms/{room_id}/name")
async def rename_room(
    room_id: str,
    req: RoomRenameRequest,
    room_mapping: RoomMappingService = Depends(get_room_mapping),
) -> dict[str, Any]:
    room_mapping.initialize()
    if room_mapping.get_room_name_by_id(room_id) is None and not room_mapping.get_service_room_ids(room_id):
        raise ResourceNotFoundError("room", room_id)
    room_mapping.set_room_name(room_id, req.name)
    return {"success": True, "home_room_id": room_id, "name": req.name}
