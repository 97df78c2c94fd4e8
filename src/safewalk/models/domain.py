"""Domain models for coordinates, risk regions, routes and alerts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import InvalidInput


@dataclass(frozen=True, slots=True)
class Coordinates:
    """Immutable WGS84 coordinate in decimal degrees."""

    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict) -> "Coordinates":
        return validate_coordinates(cls(float(data["latitude"]), float(data["longitude"])))


def validate_coordinates(point: Coordinates) -> Coordinates:
    """Reject NaN, infinite or out-of-range coordinates."""

    if point is None:
        raise InvalidInput("Coordinates are required.")
    lat, lon = point.latitude, point.longitude
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidInput(f"Coordinates must be finite numbers, got ({lat}, {lon}).")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInput(f"Latitude {lat} is outside [-90, 90].")
    if not -180.0 <= lon <= 180.0:
        raise InvalidInput(f"Longitude {lon} is outside [-180, 180].")
    return point


@dataclass(frozen=True, slots=True)
class RiskRegion:
    """Aggregated, severity-weighted occurrence density around a centroid."""

    id: str
    centroid: Coordinates
    radius_meters: float
    risk_index: float
    dominant_crime_type: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.risk_index <= 100.0:
            raise InvalidInput(f"Risk index for region '{self.id}' must be within 0..100, got {self.risk_index}.")
        if self.radius_meters < 0:
            raise InvalidInput(f"Radius for region '{self.id}' must be non-negative.")
        validate_coordinates(self.centroid)


class Maneuver(str, Enum):
    DEPART = "depart"
    ARRIVE = "arrive"
    STRAIGHT = "straight"
    TURN_SLIGHT_LEFT = "turn-slight-left"
    TURN_SLIGHT_RIGHT = "turn-slight-right"
    TURN_LEFT = "turn-left"
    TURN_RIGHT = "turn-right"
    TURN_SHARP_LEFT = "turn-sharp-left"
    TURN_SHARP_RIGHT = "turn-sharp-right"
    UTURN = "uturn"


class RoutePreference(str, Enum):
    FASTEST = "fastest"
    SAFEST = "safest"

    @classmethod
    def coerce(cls, value: "RoutePreference | str | None") -> "RoutePreference":
        """Resolve a caller-supplied preference; unspecified means safest."""
        if value is None:
            return cls.SAFEST
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidInput(f"Unknown route preference '{value}'.") from exc

    @property
    def prefer_safe(self) -> bool:
        return self is RoutePreference.SAFEST


class SessionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    RECALCULATING = "recalculating"
    ENDED = "ended"


@dataclass(frozen=True, slots=True)
class Instruction:
    """A single maneuver; distance is measured from the previous instruction point."""

    maneuver: Maneuver
    text: str
    distance_meters: float
    coordinates: Coordinates


@dataclass(frozen=True, slots=True)
class Route:
    """A scored, annotated route. Never mutated once assembled."""

    id: str
    origin: Coordinates
    destination: Coordinates
    waypoints: tuple[Coordinates, ...]
    polyline: str
    distance_meters: float
    duration_seconds: float
    max_risk_index: float
    average_risk_index: float
    requires_warning: bool
    warning_message: Optional[str]
    instructions: tuple[Instruction, ...]
    risk_regions_on_route: frozenset[RiskRegion]
    preference: RoutePreference = RoutePreference.SAFEST
    risk_level: str = "minimal"

    def __post_init__(self) -> None:
        if len(self.waypoints) < 2:
            raise InvalidInput("A route needs at least two waypoints.")
        if not self.instructions or self.instructions[-1].maneuver is not Maneuver.ARRIVE:
            raise InvalidInput("A route's instructions must end with an arrive maneuver.")
        if self.instructions[0].maneuver is not Maneuver.DEPART:
            raise InvalidInput("A route's instructions must start with a depart maneuver.")
        if self.max_risk_index < self.average_risk_index:
            raise InvalidInput("Maximum risk index cannot be lower than the average risk index.")


@dataclass(slots=True)
class Alert:
    """Ephemeral proximity alert for a high-risk region."""

    risk_region_id: str
    crime_type: Optional[str]
    distance_meters: float
    triggered_at: datetime
    risk_index: float = 0.0
    alert_type: str = "approaching_high_risk"
