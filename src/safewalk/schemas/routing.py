"""Route request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinates


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


class RouteRequest(BaseModel):
    origin: CoordinatesModel
    destination: CoordinatesModel
    preference: Optional[str] = Field(
        default=None,
        description="'fastest' or 'safest'. Defaults to 'safest'.",
    )


class InstructionModel(BaseModel):
    maneuver: str
    text: str
    distance: float
    coordinates: CoordinatesModel


class RouteResponse(BaseModel):
    id: str
    distance: float
    duration: float
    maxRiskIndex: float
    averageRiskIndex: float
    requiresWarning: bool
    warningMessage: Optional[str] = None
    riskLevel: str
    preference: str
    instructions: List[InstructionModel]
    polyline: str


class AlternativesResponse(BaseModel):
    routes: List[RouteResponse]
