from __future__ import annotations

from typing import Any


class HubError(Exception):
    error_code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def to_error_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.suggestion:
            detail["suggestion"] = self.suggestion
        return detail


class InvalidSessionError(HubError):
    error_code = "invalid_session"
    status_code = 401

    def __init__(self) -> None:
        super().__init__(
            "Your session has expired or is invalid",
            suggestion="Authenticate again to create a new session",
        )


class MissingCredentialsError(HubError):
    error_code = "missing_credentials"
    status_code = 404

    def __init__(self, endpoint_id: str | None = None) -> None:
        self.endpoint_id = endpoint_id
        target = endpoint_id or "this endpoint"
        super().__init__(
            f"No stored credentials for {target}, pairing required",
            suggestion="Pair with the endpoint first, then create a session",
        )

    def to_error_detail(self) -> dict[str, Any]:
        detail = super().to_error_detail()
        detail["requires_pairing"] = True
        return detail


class ServiceUnavailableError(HubError):
    error_code = "service_unavailable"
    status_code = 404

    def __init__(self, service_id: str, *, demo_mode: bool = False) -> None:
        self.service_id = service_id
        self.demo_mode = demo_mode
        variant = "demo service" if demo_mode else "service"
        super().__init__(
            f"The {variant} '{service_id}' is not available",
            suggestion="List available services at /v2/services",
        )


class NotConnectedError(HubError):
    error_code = "not_connected"
    status_code = 401

    def __init__(self, service_id: str) -> None:
        self.service_id = service_id
        super().__init__(
            f"Service '{service_id}' is not connected",
            suggestion=f"Connect via /v2/services/{service_id}/connect first",
        )


class ValidationError(HubError):
    error_code = "validation_error"
    status_code = 400

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        super().__init__(
            f"Invalid {field}: {reason}",
            suggestion=f"Check the {field} format and try again",
        )


class ResourceNotFoundError(HubError):
    error_code = "resource_not_found"
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"The {resource_type} '{resource_id}' was not found",
            suggestion=f"Check the {resource_type} id or refresh the dashboard",
        )


class BridgeConnectionError(HubError):
    error_code = "bridge_connection_error"
    status_code = 503

    def __init__(self, endpoint_id: str, *, reason: str | None = None) -> None:
        self.endpoint_id = endpoint_id
        self.reason = reason
        suggestion = "Check that the bridge address is correct and the bridge is powered on"
        if reason == "timeout":
            suggestion = "The bridge is not responding. Check your network connection and bridge address"
        elif reason == "refused":
            suggestion = "Connection refused. Verify the bridge address is correct"
        super().__init__(f"Cannot connect to bridge at {endpoint_id}", suggestion=suggestion)
