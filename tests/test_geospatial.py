import math

import pytest

from safewalk.errors import InvalidInput
from safewalk.models.domain import Coordinates
from safewalk.services import geospatial

METERS_PER_DEGREE_LAT = geospatial.EARTH_RADIUS_M * math.pi / 180


def _north(point: Coordinates, meters: float) -> Coordinates:
    return Coordinates(point.latitude + meters / METERS_PER_DEGREE_LAT, point.longitude)


def _east(point: Coordinates, meters: float) -> Coordinates:
    scale = METERS_PER_DEGREE_LAT * math.cos(math.radians(point.latitude))
    return Coordinates(point.latitude, point.longitude + meters / scale)


BASE = Coordinates(-23.55, -46.63)


def test_distance_is_zero_for_same_point_and_symmetric():
    other = Coordinates(-23.56, -46.64)
    assert geospatial.distance_meters(BASE, BASE) == 0.0
    assert geospatial.distance_meters(BASE, other) == pytest.approx(geospatial.distance_meters(other, BASE))


def test_distance_along_meridian_matches_arc_length():
    assert geospatial.distance_meters(BASE, _north(BASE, 250)) == pytest.approx(250, rel=1e-9)


def test_bearing_cardinal_directions_and_range():
    assert geospatial.bearing_degrees(BASE, _north(BASE, 100)) == pytest.approx(0.0, abs=1e-9)
    east = Coordinates(BASE.latitude, BASE.longitude + 0.001)
    assert geospatial.bearing_degrees(BASE, east) == pytest.approx(90.0, abs=0.01)
    south = geospatial.bearing_degrees(_north(BASE, 100), BASE)
    assert south == pytest.approx(180.0, abs=1e-9)
    west = geospatial.bearing_degrees(east, BASE)
    assert 0.0 <= west < 360.0
    assert west == pytest.approx(270.0, abs=0.01)


@pytest.mark.parametrize(
    "b1, b2, expected",
    [(0, 90, 90), (90, 0, -90), (350, 10, 20), (10, 350, -20), (0, 180, 180), (180, 0, 180)],
)
def test_bearing_delta_normalized(b1, b2, expected):
    assert geospatial.bearing_delta(b1, b2) == pytest.approx(expected)


def test_nearest_point_index_prefers_lowest_index_on_ties():
    polyline = [BASE, _north(BASE, 100), BASE]
    assert geospatial.nearest_point_index(BASE, polyline) == 0
    assert geospatial.nearest_point_index(_north(BASE, 90), polyline) == 1


def test_nearest_point_index_rejects_empty_polyline_and_bad_points():
    with pytest.raises(InvalidInput):
        geospatial.nearest_point_index(BASE, [])
    with pytest.raises(InvalidInput):
        geospatial.nearest_point_index(Coordinates(float("nan"), 0.0), [BASE])
    with pytest.raises(InvalidInput):
        geospatial.nearest_point_index(Coordinates(91.0, 0.0), [BASE])


def test_cumulative_distances_and_length():
    polyline = [BASE, _north(BASE, 100), _north(BASE, 300)]
    totals = geospatial.cumulative_distances(polyline)
    assert totals[0] == 0.0
    assert totals[1] == pytest.approx(100, rel=1e-9)
    assert totals[2] == pytest.approx(300, rel=1e-9)
    assert geospatial.polyline_length_meters(polyline) == pytest.approx(300, rel=1e-9)


def test_progress_percent_by_vertex():
    polyline = [_north(BASE, 100 * i) for i in range(5)]
    assert geospatial.polyline_progress_percent(polyline, None) == 0.0
    assert geospatial.polyline_progress_percent(polyline, polyline[2]) == pytest.approx(50.0)
    assert geospatial.polyline_progress_percent(polyline, polyline[-1]) == pytest.approx(100.0)


def test_distance_to_polyline_uses_segments_not_vertices():
    polyline = [BASE, _north(BASE, 1000)]
    beside = _east(_north(BASE, 500), 20)
    distance, segment = geospatial.distance_to_polyline(beside, polyline)
    assert segment == 0
    assert distance == pytest.approx(20, rel=0.01)


def test_bounding_box_padding_contains_nearby_points():
    polyline = [BASE, _north(BASE, 100)]
    box = geospatial.bounding_box(polyline, padding_meters=50)
    assert geospatial.point_in_bounding_box(_north(BASE, 140), box)
    assert not geospatial.point_in_bounding_box(_north(BASE, 200), box)
    assert geospatial.point_in_bounding_box(_north(BASE, 200), box, padding_meters=100)
