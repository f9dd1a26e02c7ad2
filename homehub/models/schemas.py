from typing import Any, Literal

from pydantic import BaseModel, Field


class Session(BaseModel):
    token: str = Field(min_length=1, description="Opaque session token, e.g. hub_sess_<hex>")
    service_endpoint_id: str = Field(min_length=1, description="Endpoint the session is bound to, e.g. bridge IP")
    credential_ref: str = Field(description="Credential used for the endpoint, e.g. Hue username")
    created_at: float = Field(description="Epoch seconds")
    last_accessed_at: float = Field(description="Epoch seconds of the latest successful lookup")
    expires_at: float = Field(description="Epoch seconds after which the session is invalid")


class SessionCreateRequest(BaseModel):
    bridge_ip: str = Field(min_length=1, description="Endpoint identifier of a paired bridge")

    model_config = {
        "json_schema_extra": {
            "example": {"bridge_ip": "192.168.1.100"},
        }
    }


class SessionCreateResponse(BaseModel):
    session_token: str
    expires_in: int = Field(description="Seconds until the session expires without use")
    bridge_ip: str


class SessionInfo(BaseModel):
    bridge_ip: str
    auth_method: str
    expires_at: float | None = None


class ServiceConnectRequest(BaseModel):
    bridge_ip: str | None = None
    username: str | None = None
    password: str | None = None
    code: str | None = None
    session: str | None = None


class DeviceStateUpdateRequest(BaseModel):
    on: bool | None = None
    brightness: int | None = Field(default=None, ge=0, le=100)
    target_temperature: float | None = Field(default=None, ge=5, le=32)
    is_on: bool | None = None
    volume: int | None = Field(default=None, ge=0, le=100)

    def to_state(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RoomMergeRequest(BaseModel):
    service_room_keys: list[str] = Field(
        min_length=1,
        description="Service room keys in 'serviceId:roomId' form",
    )
    target_home_room_id: str = Field(min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "service_room_keys": ["hue:room-1", "hive:lounge"],
                "target_home_room_id": "home-room-1",
            }
        }
    }


class RoomRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)


class OperationLogItem(BaseModel):
    event_id: str
    created_at: str
    event_type: str
    source: str
    action: str
    method: str | None = None
    path: str | None = None
    status_code: int | None = None
    duration_ms: float | None = None
    client_ip: str | None = None
    demo_mode: bool | None = None
    success: bool | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class PlaybackRequest(BaseModel):
    action: Literal["play", "pause"]
    device_id: str | None = None


TemperatureUnits = Literal["celsius", "fahrenheit"]


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    name: str | None = None


class UserSettings(BaseModel):
    location: Location | None = None
    units: TemperatureUnits = "celsius"


class SettingsUpdateRequest(BaseModel):
    """Fields left out are unchanged; an explicit ``"location": null`` clears it."""

    location: Location | None = None
    units: TemperatureUnits | None = None

    model_config = {
        "json_schema_extra": {
            "example": {"location": {"lat": 51.5074, "lon": -0.1278, "name": "London"}, "units": "celsius"},
        }
    }
