import math

import pytest

from safewalk.models.domain import Coordinates, RiskRegion
from safewalk.services.geospatial import EARTH_RADIUS_M
from safewalk.services.risk import scorer as risk_scorer
from safewalk.services.risk.scorer import RiskScorer, compare_route_safety, risk_level_label

METERS_PER_DEGREE_LAT = EARTH_RADIUS_M * math.pi / 180
BASE = Coordinates(-23.55, -46.63)


def _north(point: Coordinates, meters: float) -> Coordinates:
    return Coordinates(point.latitude + meters / METERS_PER_DEGREE_LAT, point.longitude)


def _east(point: Coordinates, meters: float) -> Coordinates:
    scale = METERS_PER_DEGREE_LAT * math.cos(math.radians(point.latitude))
    return Coordinates(point.latitude, point.longitude + meters / scale)


def _line(count: int, step: float = 100.0) -> list[Coordinates]:
    return [_north(BASE, step * i) for i in range(count)]


def _region(rid: str, centroid: Coordinates, risk: float, radius: float = 100.0, crime: str | None = None) -> RiskRegion:
    return RiskRegion(id=rid, centroid=centroid, radius_meters=radius, risk_index=risk, dominant_crime_type=crime)


def test_route_near_high_risk_region_escalates_warning():
    polyline = _line(6)
    region = _region("R1", _east(polyline[3], 50), 80, crime="robbery")

    analysis = RiskScorer().score(polyline, [region])

    assert analysis.max_risk_index == 80
    assert analysis.requires_warning is True
    assert analysis.warning_message.startswith("Warning:")
    assert "robbery" in analysis.warning_message
    assert analysis.risk_level == "high"
    assert analysis.regions_on_route == frozenset({region})
    assert analysis.high_risk_region_count == 1


def test_region_outside_radius_contributes_nothing():
    polyline = _line(3)
    far = _region("far", _east(polyline[1], 150), 90)

    analysis = RiskScorer().score(polyline, [far])

    assert analysis.max_risk_index == 0
    assert analysis.average_risk_index == 0
    assert analysis.requires_warning is False
    assert analysis.warning_message is None
    assert analysis.risk_level == "minimal"


def test_average_and_max_use_strongest_region_per_point():
    polyline = _line(4)
    regions = [
        _region("A", polyline[0], 40, radius=10),
        _region("B", polyline[0], 60, radius=10),
        _region("C", polyline[2], 20, radius=10),
    ]

    analysis = RiskScorer().score(polyline, regions)

    assert analysis.point_risks == [60, 0, 20, 0]
    assert analysis.max_risk_index == 60
    assert analysis.average_risk_index == pytest.approx(20)
    assert analysis.warning_message.startswith("Caution:")


@pytest.mark.parametrize("risk", [0.0, 29.9, 30.0, 55.5, 70.0, 100.0])
def test_average_never_exceeds_max(risk):
    polyline = _line(5)
    regions = [_region(f"R{i}", point, risk, radius=5) for i, point in enumerate(polyline)]
    analysis = RiskScorer().score(polyline, regions)
    assert 0 <= analysis.average_risk_index <= analysis.max_risk_index <= 100


def test_warning_threshold_boundary():
    polyline = _line(2)
    scorer = RiskScorer()
    assert scorer.score(polyline, [_region("low", polyline[0], 29.99, radius=5)]).requires_warning is False
    assert scorer.score(polyline, [_region("edge", polyline[0], 30, radius=5)]).requires_warning is True


def test_thresholds_come_from_settings(monkeypatch):
    monkeypatch.setattr(risk_scorer.settings, "risk_warning_threshold", 50.0)
    polyline = _line(2)
    analysis = RiskScorer().score(polyline, [_region("R", polyline[0], 40, radius=5)])
    assert analysis.requires_warning is False


@pytest.mark.parametrize(
    "risk, label",
    [(0, "minimal"), (29.9, "minimal"), (30, "low"), (49.9, "low"), (50, "moderate"), (69.9, "moderate"), (70, "high")],
)
def test_risk_level_label(risk, label):
    assert risk_level_label(risk) == label


def test_compare_route_safety_orders_by_max_then_average():
    scorer = RiskScorer()
    polyline = _line(4)
    high = scorer.score(polyline, [_region("H", polyline[0], 80, radius=5)])
    low = scorer.score(polyline, [_region("L", polyline[0], 40, radius=5)])
    low_everywhere = scorer.score(polyline, [_region(f"L{i}", p, 40, radius=5) for i, p in enumerate(polyline)])

    assert compare_route_safety(low, high) == -1
    assert compare_route_safety(high, low) == 1
    assert compare_route_safety(low, low_everywhere) == -1
    assert compare_route_safety(low, low) == 0
