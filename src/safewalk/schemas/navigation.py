"""Navigation session schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from .alerts import AlertModel, AlertPreferencesModel
from .routing import CoordinatesModel, InstructionModel, RouteRequest, RouteResponse


class StartSessionRequest(RouteRequest):
    pass


class PositionUpdateRequest(BaseModel):
    position: CoordinatesModel
    speedKmh: Optional[float] = 0.0
    preferences: Optional[AlertPreferencesModel] = None


class SessionResponse(BaseModel):
    sessionId: str
    state: str
    preference: str
    route: Optional[RouteResponse] = None
    currentInstructionIndex: int
    currentInstruction: Optional[InstructionModel] = None
    traveled: List[CoordinatesModel]
    remaining: List[CoordinatesModel]
    progressPercent: float
    remainingDistance: float
    remainingDuration: float
    pendingAlternative: Optional[RouteResponse] = None
    alerts: List[AlertModel] = []
    lastError: Optional[str] = None


class DeviationResponse(BaseModel):
    deviated: bool
    distanceFromRoute: float
    recalculated: bool
    error: Optional[str] = None
    session: SessionResponse


class TrafficResponse(BaseModel):
    alternativeAvailable: bool
    alternative: Optional[RouteResponse] = None
