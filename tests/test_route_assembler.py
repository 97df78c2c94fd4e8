import math

import pytest

from safewalk.data.risk_regions_repository import StaticRiskRegionSource
from safewalk.errors import InvalidInput, RouteUnavailable
from safewalk.models.domain import Coordinates, Maneuver, RiskRegion, RoutePreference
from safewalk.services.geospatial import EARTH_RADIUS_M
from safewalk.services.routing import service as routing_service
from safewalk.services.routing.models import PathCandidate
from safewalk.services.routing.polyline import encode_polyline
from safewalk.services.routing.service import RouteAssembler

METERS_PER_DEGREE_LAT = EARTH_RADIUS_M * math.pi / 180
ORIGIN = Coordinates(-23.55, -46.63)


def _north(point: Coordinates, meters: float) -> Coordinates:
    return Coordinates(point.latitude + meters / METERS_PER_DEGREE_LAT, point.longitude)


def _east(point: Coordinates, meters: float) -> Coordinates:
    scale = METERS_PER_DEGREE_LAT * math.cos(math.radians(point.latitude))
    return Coordinates(point.latitude, point.longitude + meters / scale)


DESTINATION = _north(ORIGIN, 1000)


def _candidate(waypoints, distance=None, duration=0.0) -> PathCandidate:
    return PathCandidate(
        waypoints=list(waypoints),
        polyline=encode_polyline(waypoints),
        distance_meters=distance if distance is not None else 0.0,
        duration_seconds=duration,
    )


def _straight(origin=ORIGIN, meters=1000, count=11) -> list[Coordinates]:
    return [_north(origin, meters * i / (count - 1)) for i in range(count)]


def _detour(offset_meters: float) -> list[Coordinates]:
    points = [_east(point, offset_meters) for point in _straight()[1:-1]]
    return [ORIGIN] + points + [DESTINATION]


class DummyProvider:
    def __init__(self, primary, alternatives=(), fail_alternatives=False):
        self.primary = primary
        self.alternatives = list(alternatives)
        self.fail_alternatives = fail_alternatives
        self.calls = []

    def get_route(self, origin, destination, prefer_safe):
        self.calls.append(("route", prefer_safe))
        if isinstance(self.primary, Exception):
            raise self.primary
        return self.primary

    def get_alternatives(self, origin, destination, prefer_safe):
        self.calls.append(("alternatives", prefer_safe))
        if self.fail_alternatives:
            raise ConnectionError("provider down")
        return self.alternatives


def _hotspot(risk: float = 85.0) -> RiskRegion:
    return RiskRegion(
        id="hotspot",
        centroid=_north(ORIGIN, 500),
        radius_meters=60,
        risk_index=risk,
        dominant_crime_type="robbery",
    )


def test_fastest_route_uses_primary_path_only():
    provider = DummyProvider(_candidate(_straight(), distance=1000, duration=720))
    assembler = RouteAssembler(provider, StaticRiskRegionSource([]))

    route = assembler.compute_route(ORIGIN, DESTINATION, "fastest")

    assert provider.calls == [("route", False)]
    assert route.preference is RoutePreference.FASTEST
    assert route.distance_meters == 1000
    assert route.duration_seconds == 720
    assert route.max_risk_index == 0
    assert route.requires_warning is False
    assert route.instructions[0].maneuver is Maneuver.DEPART
    assert route.instructions[-1].maneuver is Maneuver.ARRIVE
    assert route.waypoints[0] == ORIGIN


def test_safest_is_the_default_and_avoids_the_hotspot():
    risky = _candidate(_straight(), distance=1000)
    detour = _candidate(_detour(150), distance=1100)
    provider = DummyProvider(risky, alternatives=[risky, detour])
    assembler = RouteAssembler(provider, StaticRiskRegionSource([_hotspot()]))

    route = assembler.compute_route(ORIGIN, DESTINATION)

    assert provider.calls == [("route", True), ("alternatives", True)]
    assert route.preference is RoutePreference.SAFEST
    assert route.polyline == detour.polyline
    assert route.max_risk_index == 0


def test_safest_ignores_detours_that_are_too_long():
    risky = _candidate(_straight(), distance=1000)
    long_detour = _candidate(_detour(150), distance=1300)
    provider = DummyProvider(risky, alternatives=[long_detour])
    assembler = RouteAssembler(provider, StaticRiskRegionSource([_hotspot()]))

    route = assembler.compute_route(ORIGIN, DESTINATION, RoutePreference.SAFEST)

    assert route.polyline == risky.polyline
    assert route.max_risk_index == 85
    assert route.requires_warning is True
    assert route.warning_message.startswith("Warning:")
    assert route.risk_level == "high"


def test_safest_survives_alternative_failures():
    provider = DummyProvider(_candidate(_straight(), distance=1000), fail_alternatives=True)
    assembler = RouteAssembler(provider, StaticRiskRegionSource([]))
    route = assembler.compute_route(ORIGIN, DESTINATION, "safest")
    assert route.distance_meters == 1000


def test_missing_duration_is_estimated_from_walking_speed(monkeypatch):
    monkeypatch.setattr(routing_service.settings, "walking_speed_kmh", 3.6)
    provider = DummyProvider(_candidate(_straight(), distance=0.0, duration=0.0))
    assembler = RouteAssembler(provider, StaticRiskRegionSource([]))

    route = assembler.compute_route(ORIGIN, DESTINATION, "fastest")

    assert route.distance_meters == pytest.approx(1000, rel=1e-6)
    assert route.duration_seconds == pytest.approx(1000, rel=1e-6)


@pytest.mark.parametrize("error", [ConnectionError("boom"), ValueError("OSRM returned no routes.")])
def test_provider_failures_become_route_unavailable(error):
    assembler = RouteAssembler(DummyProvider(error), StaticRiskRegionSource([]))
    with pytest.raises(RouteUnavailable):
        assembler.compute_route(ORIGIN, DESTINATION, "fastest")


def test_empty_path_is_route_unavailable():
    provider = DummyProvider(PathCandidate(waypoints=[ORIGIN], polyline="", distance_meters=0, duration_seconds=0))
    assembler = RouteAssembler(provider, StaticRiskRegionSource([]))
    with pytest.raises(RouteUnavailable):
        assembler.compute_route(ORIGIN, DESTINATION, "fastest")


def test_risk_source_failure_is_route_unavailable():
    class BrokenSource:
        def get_regions_near(self, bbox):
            raise ConnectionError("heatmap offline")

    assembler = RouteAssembler(DummyProvider(_candidate(_straight())), BrokenSource())
    with pytest.raises(RouteUnavailable):
        assembler.compute_route(ORIGIN, DESTINATION, "fastest")


def test_invalid_input_is_rejected_before_calling_provider():
    provider = DummyProvider(_candidate(_straight()))
    assembler = RouteAssembler(provider, StaticRiskRegionSource([]))
    with pytest.raises(InvalidInput):
        assembler.compute_route(Coordinates(float("nan"), 0.0), DESTINATION)
    with pytest.raises(InvalidInput):
        assembler.compute_route(ORIGIN, DESTINATION, "scenic")
    assert provider.calls == []


def test_unconfigured_provider_is_route_unavailable(monkeypatch):
    monkeypatch.setattr(routing_service.settings, "osrm_base_url", None)
    assembler = RouteAssembler(risk_source=StaticRiskRegionSource([]))
    with pytest.raises(RouteUnavailable):
        assembler.compute_route(ORIGIN, DESTINATION)


def test_alternatives_are_scored_and_failures_yield_empty_list():
    provider = DummyProvider(
        _candidate(_straight()),
        alternatives=[_candidate(_straight(), distance=1000), _candidate(_detour(150), distance=1100)],
    )
    assembler = RouteAssembler(provider, StaticRiskRegionSource([_hotspot()]))

    routes = assembler.compute_alternatives(ORIGIN, DESTINATION, "fastest")

    assert [route.max_risk_index for route in routes] == [85, 0]
    assert all(route.preference is RoutePreference.FASTEST for route in routes)

    failing = RouteAssembler(DummyProvider(_candidate(_straight()), fail_alternatives=True), StaticRiskRegionSource([]))
    assert failing.compute_alternatives(ORIGIN, DESTINATION) == []
