"""Google encoded polyline codec (precision 1e-5), the format OSRM returns."""

from __future__ import annotations

from typing import Iterable

from ...errors import InvalidInput
from ...models.domain import Coordinates

PRECISION = 1e5


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[Coordinates]) -> str:
    """Encode coordinates into a polyline string."""

    encoded = []
    prev_lat = 0
    prev_lon = 0
    for point in points:
        lat = round(point.latitude * PRECISION)
        lon = round(point.longitude * PRECISION)
        encoded.append(_encode_value(lat - prev_lat))
        encoded.append(_encode_value(lon - prev_lon))
        prev_lat, prev_lon = lat, lon
    return "".join(encoded)


def decode_polyline(polyline: str) -> list[Coordinates]:
    """Decode a polyline string into coordinates.

    Args:
        polyline: Encoded polyline string

    Returns:
        List of Coordinates in path order
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0

    def _next_value() -> int:
        nonlocal index
        shift = 0
        result = 0
        while True:
            if index >= len(polyline):
                raise InvalidInput("Truncated polyline string.")
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        return ~(result >> 1) if (result & 1) else (result >> 1)

    while index < len(polyline):
        lat += _next_value()
        lon += _next_value()
        coordinates.append(Coordinates(lat / PRECISION, lon / PRECISION))

    return coordinates

