"""Alert check schemas."""

from __future__ import annotations

from datetime import datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinates, RiskRegion
from ..services.alerts.preferences import AlertPreferences
from .routing import CoordinatesModel


class AlertPreferencesModel(BaseModel):
    alertsEnabled: bool = True
    enabledCrimeTypes: List[str] = Field(default_factory=list, description="Empty means every crime type.")
    activeHoursStart: Optional[time] = None
    activeHoursEnd: Optional[time] = None
    activeDays: List[int] = Field(default_factory=list, description="0 = Sunday .. 6 = Saturday.")

    def to_domain(self) -> AlertPreferences:
        return AlertPreferences(
            alerts_enabled=self.alertsEnabled,
            enabled_crime_types=frozenset(self.enabledCrimeTypes),
            active_hours_start=self.activeHoursStart,
            active_hours_end=self.activeHoursEnd,
            active_days=frozenset(self.activeDays),
        )


class RiskRegionModel(BaseModel):
    id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radiusMeters: float = Field(..., ge=0)
    riskIndex: float = Field(..., ge=0, le=100)
    dominantCrimeType: Optional[str] = None

    def to_domain(self) -> RiskRegion:
        return RiskRegion(
            id=self.id,
            centroid=Coordinates(self.latitude, self.longitude),
            radius_meters=self.radiusMeters,
            risk_index=self.riskIndex,
            dominant_crime_type=self.dominantCrimeType,
        )


class AlertCheckRequest(BaseModel):
    position: CoordinatesModel
    speedKmh: Optional[float] = 0.0
    regions: Optional[List[RiskRegionModel]] = Field(
        default=None,
        description="Regions to check. When omitted, regions near the position are loaded.",
    )
    alreadyAlerted: List[str] = Field(default_factory=list)
    preferences: Optional[AlertPreferencesModel] = None


class AlertModel(BaseModel):
    riskRegionId: str
    crimeType: Optional[str] = None
    distance: float
    riskIndex: float
    alertType: str
    triggeredAt: datetime


class AlertCheckResponse(BaseModel):
    alertDistance: float
    alerts: List[AlertModel]
