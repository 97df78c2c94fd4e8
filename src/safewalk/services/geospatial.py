"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from shapely.geometry import LineString, MultiPoint, Point

from ..errors import InvalidInput
from ..models.domain import Coordinates, validate_coordinates

EARTH_RADIUS_M = 6_371_000.0
# Distances below this are treated as "the same place".
DISTANCE_TOLERANCE_M = 1e-6


def distance_meters(a: Coordinates, b: Coordinates) -> float:
    """Compute great-circle distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def bearing_degrees(a: Coordinates, b: Coordinates) -> float:
    """Calculate the initial bearing from a to b, normalized to [0, 360)."""

    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = (math.degrees(math.atan2(y, x)) + 360) % 360
    # (-1e-17 + 360) % 360 rounds to 360.0
    return 0.0 if bearing >= 360.0 else bearing


def bearing_delta(b1: float, b2: float) -> float:
    """Signed turn from bearing b1 to b2 in (-180, 180]; positive turns clockwise (right)."""

    delta = (b2 - b1) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta


def _require_polyline(polyline: Sequence[Coordinates]) -> None:
    if not polyline:
        raise InvalidInput("Polyline must contain at least one point.")


def nearest_point_index(point: Coordinates, polyline: Sequence[Coordinates]) -> int:
    """Index of the polyline vertex closest to point; ties go to the earliest vertex."""

    validate_coordinates(point)
    _require_polyline(polyline)
    best_index = 0
    best_distance = math.inf
    for index, vertex in enumerate(polyline):
        dist = distance_meters(point, vertex)
        # strict comparison keeps the lowest index on ties
        if dist < best_distance:
            best_distance = dist
            best_index = index
    return best_index


def polyline_progress_percent(polyline: Sequence[Coordinates], point: Optional[Coordinates]) -> float:
    """Progress along the polyline as a percentage of vertices passed."""

    if point is None or len(polyline) < 2:
        return 0.0
    index = nearest_point_index(point, polyline)
    percent = index / (len(polyline) - 1) * 100.0
    return min(100.0, max(0.0, percent))


def _project(point: Coordinates, origin: Coordinates) -> tuple[float, float]:
    """Equirectangular projection to metres around origin; accurate for short segments."""

    x = math.radians(point.longitude - origin.longitude) * EARTH_RADIUS_M * math.cos(math.radians(origin.latitude))
    y = math.radians(point.latitude - origin.latitude) * EARTH_RADIUS_M
    return x, y


def point_to_segment_distance(point: Coordinates, start: Coordinates, end: Coordinates) -> float:
    """Shortest distance in metres from point to the segment start-end."""

    if distance_meters(start, end) <= DISTANCE_TOLERANCE_M:
        return distance_meters(point, start)
    segment = LineString([_project(start, point), _project(end, point)])
    return segment.distance(Point(0.0, 0.0))


def distance_to_polyline(point: Coordinates, polyline: Sequence[Coordinates]) -> tuple[float, int]:
    """Minimum distance from point to any polyline segment, with that segment's index."""

    validate_coordinates(point)
    _require_polyline(polyline)
    if len(polyline) == 1:
        return distance_meters(point, polyline[0]), 0

    best = (math.inf, 0)
    for index in range(len(polyline) - 1):
        dist = point_to_segment_distance(point, polyline[index], polyline[index + 1])
        if dist < best[0]:
            best = (dist, index)
    return best


def cumulative_distances(polyline: Sequence[Coordinates]) -> list[float]:
    """Running distance from the first vertex to each vertex, in metres."""

    totals = [0.0] * len(polyline)
    for index in range(1, len(polyline)):
        totals[index] = totals[index - 1] + distance_meters(polyline[index - 1], polyline[index])
    return totals


def polyline_length_meters(polyline: Sequence[Coordinates]) -> float:
    if len(polyline) < 2:
        return 0.0
    return cumulative_distances(polyline)[-1]


def bounding_box(
    polyline: Sequence[Coordinates], padding_meters: float = 0.0
) -> tuple[float, float, float, float]:
    """Return (min_lat, min_lon, max_lat, max_lon) around the polyline, padded in metres."""

    _require_polyline(polyline)
    min_lon, min_lat, max_lon, max_lat = MultiPoint(
        [(vertex.longitude, vertex.latitude) for vertex in polyline]
    ).bounds
    if padding_meters > 0:
        lat_pad = math.degrees(padding_meters / EARTH_RADIUS_M)
        mid_lat = math.radians((min_lat + max_lat) / 2)
        lon_pad = lat_pad / max(math.cos(mid_lat), 1e-6)
        min_lat, max_lat = max(-90.0, min_lat - lat_pad), min(90.0, max_lat + lat_pad)
        min_lon, max_lon = max(-180.0, min_lon - lon_pad), min(180.0, max_lon + lon_pad)
    return min_lat, min_lon, max_lat, max_lon


def point_in_bounding_box(
    point: Coordinates, box: tuple[float, float, float, float], padding_meters: float = 0.0
) -> bool:
    """Return True if point lies inside box grown by padding_meters."""

    min_lat, min_lon, max_lat, max_lon = box
    lat_pad = math.degrees(padding_meters / EARTH_RADIUS_M)
    lon_pad = lat_pad / max(math.cos(math.radians(point.latitude)), 1e-6)
    return (
        min_lat - lat_pad <= point.latitude <= max_lat + lat_pad
        and min_lon - lon_pad <= point.longitude <= max_lon + lon_pad
    )
