"""Risk scoring for route polylines against aggregated risk regions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...models.domain import Coordinates, RiskRegion
from ..geospatial import distance_meters

RISK_LEVEL_MINIMAL = "minimal"
RISK_LEVEL_LOW = "low"
RISK_LEVEL_MODERATE = "moderate"
RISK_LEVEL_HIGH = "high"

_WARNING_TEMPLATES = {
    RISK_LEVEL_HIGH: "Warning: this route passes through a high risk area{crime}. Stay alert and consider another route.",
    RISK_LEVEL_MODERATE: "Caution: this route passes through a moderate risk area{crime}.",
    RISK_LEVEL_LOW: "Note: this route passes through a low risk area{crime}.",
}


@dataclass(slots=True)
class RiskAnalysis:
    max_risk_index: float
    average_risk_index: float
    requires_warning: bool
    warning_message: Optional[str]
    risk_level: str
    regions_on_route: frozenset[RiskRegion] = field(default_factory=frozenset)
    dominant_crime_type: Optional[str] = None
    high_risk_region_count: int = 0
    point_risks: list[float] = field(default_factory=list)


def risk_level_label(risk_index: float) -> str:
    """Four-bucket label shared by route scoring and UI highlighting."""

    if risk_index >= 70:
        return RISK_LEVEL_HIGH
    if risk_index >= 50:
        return RISK_LEVEL_MODERATE
    if risk_index >= 30:
        return RISK_LEVEL_LOW
    return RISK_LEVEL_MINIMAL


def region_contribution(point: Coordinates, region: RiskRegion) -> float:
    """Binary inclusion: the full risk index inside the radius, nothing outside."""

    if distance_meters(point, region.centroid) <= region.radius_meters:
        return region.risk_index
    return 0.0


class RiskScorer:
    """Scores polylines; holds only thresholds, safe to share between sessions."""

    def __init__(
        self,
        warning_threshold: float | None = None,
        high_threshold: float | None = None,
    ) -> None:
        self.warning_threshold = warning_threshold if warning_threshold is not None else settings.risk_warning_threshold
        self.high_threshold = high_threshold if high_threshold is not None else settings.risk_high_threshold

    def point_risk(self, point: Coordinates, regions: Iterable[RiskRegion]) -> tuple[float, Optional[RiskRegion]]:
        best_value = 0.0
        best_region: Optional[RiskRegion] = None
        for region in regions:
            value = region_contribution(point, region)
            if value > best_value:
                best_value = value
                best_region = region
        return best_value, best_region

    def score(self, polyline: Sequence[Coordinates], regions: Sequence[RiskRegion]) -> RiskAnalysis:
        if not polyline:
            return RiskAnalysis(0.0, 0.0, False, None, RISK_LEVEL_MINIMAL)

        point_risks: list[float] = []
        touched: set[RiskRegion] = set()
        max_risk = 0.0
        max_region: Optional[RiskRegion] = None
        for point in polyline:
            inside = [region for region in regions if distance_meters(point, region.centroid) <= region.radius_meters]
            touched.update(inside)
            value, region = self.point_risk(point, inside)
            point_risks.append(value)
            if value > max_risk:
                max_risk = value
                max_region = region

        average = sum(point_risks) / len(point_risks)
        # float summation can overshoot the maximum by an ulp
        average = min(average, max_risk)
        requires_warning = max_risk >= self.warning_threshold
        dominant_crime = max_region.dominant_crime_type if max_region else None

        return RiskAnalysis(
            max_risk_index=max_risk,
            average_risk_index=average,
            requires_warning=requires_warning,
            warning_message=self.warning_message(max_risk, dominant_crime) if requires_warning else None,
            risk_level=risk_level_label(max_risk),
            regions_on_route=frozenset(touched),
            dominant_crime_type=dominant_crime,
            high_risk_region_count=sum(1 for region in touched if region.risk_index >= self.high_threshold),
            point_risks=point_risks,
        )

    def warning_message(self, max_risk: float, crime_type: Optional[str]) -> str:
        if max_risk >= self.high_threshold:
            level = RISK_LEVEL_HIGH
        else:
            # escalation follows the configured high threshold, not the label buckets
            level = {RISK_LEVEL_MINIMAL: RISK_LEVEL_LOW, RISK_LEVEL_HIGH: RISK_LEVEL_MODERATE}.get(
                risk_level_label(max_risk), risk_level_label(max_risk)
            )
        crime = f" (mostly {crime_type})" if crime_type else ""
        return _WARNING_TEMPLATES[level].format(crime=crime)


def compare_route_safety(first: RiskAnalysis, second: RiskAnalysis) -> int:
    """Return -1 if first is safer, 1 if second is safer, 0 if equal."""

    for a, b in (
        (first.max_risk_index, second.max_risk_index),
        (first.average_risk_index, second.average_risk_index),
    ):
        if a != b:
            return -1 if a < b else 1
    return 0
