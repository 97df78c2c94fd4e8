import httpx
import pytest

from safewalk.models.domain import Coordinates
from safewalk.services.routing import osrm_client
from safewalk.services.routing.osrm_client import OSRMClient, check_health
from safewalk.services.routing.polyline import encode_polyline

ORIGIN = Coordinates(-23.5616, -46.6560)
DESTINATION = Coordinates(-23.5650, -46.6520)
GEOMETRY = encode_polyline([ORIGIN, Coordinates(-23.5630, -46.6545), DESTINATION])


def _route(distance: float = 620.0, duration: float = 450.0, geometry: str = GEOMETRY) -> dict:
    return {"distance": distance, "duration": duration, "geometry": geometry}


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(osrm_client.time, "sleep", lambda seconds: None)


def _client(handler, **kwargs) -> OSRMClient:
    return OSRMClient(
        base_url="http://osrm.test/",
        profile="foot",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_get_route_requests_walking_profile_and_decodes_geometry():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": "Ok", "routes": [_route()]})

    candidate = _client(handler).get_route(ORIGIN, DESTINATION, prefer_safe=False)

    request = seen[0]
    assert request.url.path == "/route/v1/foot/-46.656,-23.5616;-46.652,-23.565"
    assert request.url.params["overview"] == "full"
    assert request.url.params["alternatives"] == "false"
    assert len(candidate.waypoints) == 3
    assert candidate.polyline == GEOMETRY
    assert candidate.distance_meters == 620.0
    assert candidate.duration_seconds == 450.0


def test_safe_profile_and_alternatives():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": "Ok", "routes": [_route(), _route(700.0, 500.0)]})

    client = _client(handler, safe_profile="foot-safe", max_alternatives=2)
    candidates = client.get_alternatives(ORIGIN, DESTINATION, prefer_safe=True)

    assert seen[0].url.path.startswith("/route/v1/foot-safe/")
    assert seen[0].url.params["alternatives"] == "2"
    assert [candidate.distance_meters for candidate in candidates] == [620.0, 700.0]


def test_missing_geometry_falls_back_to_straight_segment():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "Ok", "routes": [_route(geometry="")]})

    candidate = _client(handler).get_route(ORIGIN, DESTINATION, prefer_safe=False)
    assert candidate.waypoints == [ORIGIN, DESTINATION]


def test_error_code_is_value_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "NoRoute", "message": "Impossible route between points"})

    with pytest.raises(ValueError, match="Impossible route"):
        _client(handler).get_route(ORIGIN, DESTINATION, prefer_safe=False)


def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"code": "InvalidQuery"})

    with pytest.raises(ValueError):
        _client(handler, max_retries=3).get_route(ORIGIN, DESTINATION, prefer_safe=False)
    assert len(calls) == 1


def test_server_errors_are_retried_then_raise_connection_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    with pytest.raises(ConnectionError):
        _client(handler, max_retries=2).get_route(ORIGIN, DESTINATION, prefer_safe=False)
    assert len(calls) == 3


def test_transient_network_error_recovers():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"code": "Ok", "routes": [_route()]})

    candidate = _client(handler, max_retries=1).get_route(ORIGIN, DESTINATION, prefer_safe=False)
    assert len(calls) == 2
    assert candidate.distance_meters == 620.0


def test_missing_base_url_is_rejected(monkeypatch):
    monkeypatch.setattr(osrm_client.settings, "osrm_base_url", None)
    with pytest.raises(ValueError):
        OSRMClient()
    assert check_health() is False
