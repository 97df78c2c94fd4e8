"""Proximity alerts for high-risk regions during navigation."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Callable, Iterable, MutableSet, Optional

from ...config import settings
from ...models.domain import Alert, Coordinates, RiskRegion, validate_coordinates
from ..geospatial import distance_meters
from .preferences import AlertPreferences

logger = logging.getLogger(__name__)

ALERT_APPROACHING = "approaching_high_risk"
ALERT_INSIDE = "high_risk_region"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertService:
    """Speed-aware proximity checks; per-session de-duplication lives in the caller's id set."""

    def __init__(
        self,
        *,
        min_alert_distance: float | None = None,
        default_alert_distance: float | None = None,
        high_speed_alert_distance: float | None = None,
        speed_threshold_kmh: float | None = None,
        risk_threshold: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.min_alert_distance = (
            min_alert_distance if min_alert_distance is not None else settings.min_alert_distance_meters
        )
        self.default_alert_distance = (
            default_alert_distance if default_alert_distance is not None else settings.default_alert_distance_meters
        )
        self.high_speed_alert_distance = (
            high_speed_alert_distance
            if high_speed_alert_distance is not None
            else settings.high_speed_alert_distance_meters
        )
        self.speed_threshold_kmh = (
            speed_threshold_kmh if speed_threshold_kmh is not None else settings.alert_speed_threshold_kmh
        )
        self.risk_threshold = risk_threshold if risk_threshold is not None else settings.alert_risk_threshold
        self._clock = clock

    def calculate_alert_distance(self, speed_kmh: Optional[float]) -> float:
        """Alert radius in metres for the current speed.

        Stationary travellers get the minimum radius; the radius grows with
        speed and never drops below the high-speed distance above the
        speed threshold.
        """
        speed = speed_kmh if speed_kmh is not None and math.isfinite(speed_kmh) else 0.0
        speed = max(0.0, speed)
        scale = speed / self.speed_threshold_kmh

        if speed > self.speed_threshold_kmh:
            return max(self.high_speed_alert_distance, self.high_speed_alert_distance * scale)
        if speed > 0:
            return max(self.min_alert_distance, self.default_alert_distance * scale)
        return self.min_alert_distance

    def should_alert(self, region: RiskRegion, preferences: Optional[AlertPreferences], now: datetime) -> bool:
        if preferences is None:
            return True
        if not preferences.alerts_enabled:
            return False
        if not preferences.is_active_at(now):
            return False
        return preferences.is_crime_type_enabled(region.dominant_crime_type)

    def check_alert_conditions(
        self,
        position: Coordinates,
        speed_kmh: Optional[float],
        regions: Iterable[RiskRegion],
        alerted_ids: MutableSet[str],
        preferences: Optional[AlertPreferences] = None,
    ) -> list[Alert]:
        """Alerts for high-risk regions within reach; alerted ids are added to ``alerted_ids``."""
        if preferences is not None and not preferences.alerts_enabled:
            return []
        validate_coordinates(position)

        now = self._clock()
        if preferences is not None and not preferences.is_active_at(now):
            return []

        alert_distance = self.calculate_alert_distance(speed_kmh)
        alerts: list[Alert] = []
        for region in regions:
            if region.risk_index < self.risk_threshold or region.id in alerted_ids:
                continue
            distance = distance_meters(position, region.centroid)
            if distance > alert_distance:
                continue
            if not self.should_alert(region, preferences, now):
                continue
            alerted_ids.add(region.id)
            alerts.append(
                Alert(
                    risk_region_id=region.id,
                    crime_type=region.dominant_crime_type,
                    distance_meters=distance,
                    triggered_at=now,
                    risk_index=region.risk_index,
                    alert_type=ALERT_INSIDE if distance <= region.radius_meters else ALERT_APPROACHING,
                )
            )

        alerts.sort(key=lambda alert: alert.distance_meters)
        if alerts:
            logger.info(f"Raised {len(alerts)} risk alert(s) within {alert_distance:.0f} m")
        return alerts
