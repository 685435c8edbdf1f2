import datetime as dt
import math
from pathlib import Path

import pytest

from gpxstages.model import Extensions, RawPoint

T0 = dt.datetime(2024, 6, 1, 8, 0, 0, tzinfo=dt.timezone.utc)

# haversine's mean earth radius; moving due north by this many metres
# changes latitude by exactly one degree.
METRES_PER_DEGREE_LAT = 6371008.8 * math.pi / 180.0


@pytest.fixture
def sample_gpx_path() -> Path:
    return Path(__file__).parent / "data" / "sample.gpx"


@pytest.fixture
def make_track():
    """
    Build RawPoints heading due north.

    Each step is (seconds_since_previous, metres_north) or
    (seconds_since_previous, metres_north, ele). The first step's seconds
    are relative to T0.
    """
    def _make(steps, lat0=51.5, lon0=-0.1, **ext):
        pts = []
        t = T0
        lat = lat0
        for step in steps:
            secs, metres = step[0], step[1]
            ele = step[2] if len(step) > 2 else None
            t = t + dt.timedelta(seconds=secs)
            lat = lat + metres / METRES_PER_DEGREE_LAT
            extensions = Extensions(**ext) if ext else None
            pts.append(RawPoint(lat=lat, lon=lon0, ele=ele, time=t, extensions=extensions))
        return pts
    return _make


@pytest.fixture
def scenario_b_steps():
    """
    11 points: 3 fast steps, a stop at points 4-8 (slow drift of 120 m only
    after 10 minutes), then 2 fast steps.
    """
    return [
        (0, 0, 100.0),
        (30, 300, 102.0),
        (30, 300, 105.0),
        (30, 300, 104.0),
        (60, 0, 104.0),
        (60, 0, 104.0),
        (60, 0, 104.0),
        (60, 0, 104.0),
        (600, 120, 103.0),
        (30, 300, 110.0),
        (30, 300, 108.0),
    ]
