"""
errors.py — Failure taxonomy for the location / map-configuration chain.

None of these ever reach the UI as fatal errors. Transports raise the
exception types below; the step that called them converts the failure into
the next fallback (see location_resolver.py and map_config.py).
"""

from enum import Enum


class LocationError(str, Enum):
    PERMISSION_DENIED = "PermissionDenied"
    LOCATION_UNAVAILABLE = "LocationUnavailable"  # timeout or device error
    GEOCODING_FAILED = "GeocodingFailed"
    CONFIG_FETCH_FAILED = "ConfigFetchFailed"
    MALFORMED_RESPONSE = "MalformedResponse"


# Only location acquisition failures are surfaced to the user.
ADVISORY_MESSAGES: dict[LocationError, str] = {
    LocationError.PERMISSION_DENIED: "Permission to access location was denied",
    LocationError.LOCATION_UNAVAILABLE: "Failed to get location",
}


class RiskMapError(Exception):
    """Base class for errors raised by riskmap transports."""

    kind: LocationError

    def __init__(self, message: str, kind: LocationError | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class PositionUnavailableError(RiskMapError):
    """The device could not produce a position fix."""

    kind = LocationError.LOCATION_UNAVAILABLE


class GeocodingError(RiskMapError):
    kind = LocationError.GEOCODING_FAILED


class ConfigFetchError(RiskMapError):
    """Network / HTTP failure talking to the map configuration service."""

    kind = LocationError.CONFIG_FETCH_FAILED


class MalformedResponseError(RiskMapError):
    """The configuration service answered, but not with the documented shape."""

    kind = LocationError.MALFORMED_RESPONSE
