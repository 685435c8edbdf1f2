import datetime as dt

import pytest

from gpxstages.analyze.geodesic import distance_metres, speed_kmh, speed_kmh_from_duration
from gpxstages.model import RawPoint


def test_distance_to_self_is_zero():
    p = RawPoint(lat=51.5, lon=-0.1)
    assert distance_metres(p, p) == 0.0


@pytest.mark.parametrize(
    "a, b",
    [
        ((51.5, -0.1), (51.6, 0.2)),
        ((-33.9, 151.2), (-33.8, 151.3)),
        ((0.0, 179.9), (0.0, -179.9)),
    ],
)
def test_distance_is_symmetric(a, b):
    assert distance_metres(a, b) == pytest.approx(distance_metres(b, a))
    assert distance_metres(a, b) > 0


def test_longitude_degree_shrinks_with_latitude():
    at_equator = distance_metres((0.0, 0.0), (0.0, 1.0))
    at_60 = distance_metres((60.0, 0.0), (60.0, 1.0))
    assert at_equator == pytest.approx(111_195, rel=1e-3)
    assert at_60 == pytest.approx(at_equator / 2, rel=1e-3)


def test_accepts_points_and_tuples():
    p = RawPoint(lat=51.5, lon=-0.1)
    q = RawPoint(lat=51.501, lon=-0.1)
    assert distance_metres(p, q) == pytest.approx(distance_metres((51.5, -0.1), (51.501, -0.1)))


def test_speed_kmh():
    assert speed_kmh(1000.0, 3600.0) == pytest.approx(1.0)
    assert speed_kmh(10.0, 1.0) == pytest.approx(36.0)
    assert speed_kmh(10.0, 0.0) is None
    assert speed_kmh_from_duration(10.0, dt.timedelta(seconds=2)) == pytest.approx(18.0)
    assert speed_kmh_from_duration(10.0, None) is None
