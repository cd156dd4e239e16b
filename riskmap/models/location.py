"""
location.py — Pydantic models for device location and map configuration.

Wire names follow the mobile client / config service JSON (camelCase):
  {
    "tileServer": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    "initialRegion": {"latitude": 40.71, "longitude": -74.0,
                      "latitudeDelta": 0.0922, "longitudeDelta": 0.0421},
    "locationName": "Lower Manhattan, New York"
  }
Python code uses the snake_case attribute names; FastAPI serialises by alias.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PermissionStatus = Literal["granted", "denied", "undetermined"]

# Shown while a coordinate is known but its name is still being looked up.
PLACEHOLDER_NAME = "Current Location"
# Risk level and evacuation zone until something assigns them.
UNKNOWN = "Unknown"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Coordinate(BaseModel):
    """A resolved WGS84 position. Both axes are always present."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def as_pair(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class NamedLocation(_CamelModel):
    """
    The user's location as shared with every screen.

    Starts empty at process start, gains a coordinate first and a name
    later. Missing either axis means "unresolved".
    """

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None
    risk_level: str = UNKNOWN
    evacuation_zone: str = UNKNOWN

    @property
    def coordinate(self) -> Optional[Coordinate]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    @property
    def display_name(self) -> str:
        return self.name or PLACEHOLDER_NAME


class MapRegion(_FrozenCamelModel):
    """Map viewport: centre plus angular span."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    latitude_delta: float = Field(..., gt=0)
    longitude_delta: float = Field(..., gt=0)

    @property
    def center(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class MapConfiguration(_FrozenCamelModel):
    """Tile source + starting viewport. Immutable once fetched."""

    tile_server: str = Field(..., min_length=1)
    initial_region: MapRegion
    location_name: Optional[str] = None


class Address(BaseModel):
    """One reverse-geocoding candidate, reduced to the parts we name places with."""

    name: Optional[str] = None
    street: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
