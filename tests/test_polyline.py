import pytest

from safewalk.errors import InvalidInput
from safewalk.models.domain import Coordinates
from safewalk.services.routing.polyline import decode_polyline, encode_polyline

# Reference example from the encoded polyline algorithm format documentation.
REFERENCE_POINTS = [
    Coordinates(38.5, -120.2),
    Coordinates(40.7, -120.95),
    Coordinates(43.252, -126.453),
]
REFERENCE_ENCODED = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_encode_reference_polyline():
    assert encode_polyline(REFERENCE_POINTS) == REFERENCE_ENCODED


def test_decode_reference_polyline():
    decoded = decode_polyline(REFERENCE_ENCODED)
    assert len(decoded) == 3
    for actual, expected in zip(decoded, REFERENCE_POINTS):
        assert actual.latitude == pytest.approx(expected.latitude)
        assert actual.longitude == pytest.approx(expected.longitude)


def test_decode_empty_string_yields_no_points():
    assert decode_polyline("") == []


def test_decode_truncated_string_raises():
    with pytest.raises(InvalidInput):
        decode_polyline(REFERENCE_ENCODED[:-2])
