import datetime as dt

import pytest

from gpxstages.analyze.enrich import avg_heart_rate, avg_temperature, enrich, has_complete_times
from gpxstages.analyze.geodesic import distance_metres
from gpxstages.errors import EnrichmentError, NonMonotonicTimeError
from gpxstages.model import RawPoint


def test_empty_input():
    assert enrich([]) == ()


def test_first_point_is_seeded(make_track):
    pts = enrich(make_track([(0, 0, 50.0), (10, 100, 51.0)]))
    first = pts[0]
    assert first.index == 0
    assert first.delta_metres == 0.0
    assert first.running_metres == 0.0
    assert first.delta_time == dt.timedelta(0)
    assert first.running_delta_time == dt.timedelta(0)
    assert first.speed_kmh == 0.0
    assert first.ele_delta_metres == 0.0
    assert first.running_ascent_metres == 0.0
    assert first.running_descent_metres == 0.0
    assert first.start_time == first.time


def test_running_values_accumulate(make_track):
    raw = make_track([(0, 0), (10, 50), (20, 0), (5, 30), (60, 200)])
    pts = enrich(raw)

    assert len(pts) == len(raw)
    for i in range(1, len(pts)):
        assert pts[i].index == i
        assert pts[i].delta_metres == pytest.approx(distance_metres(raw[i - 1], raw[i]))
        assert pts[i].running_metres == pytest.approx(pts[i - 1].running_metres + pts[i].delta_metres)
        assert pts[i].running_metres >= pts[i - 1].running_metres
        assert pts[i].running_delta_time == pts[i].time - pts[0].time

    assert pts[-1].running_metres == pytest.approx(280.0)


def test_speed_and_start_time(make_track):
    pts = enrich(make_track([(0, 0), (10, 100)]))
    assert pts[1].delta_time == dt.timedelta(seconds=10)
    assert pts[1].speed_kmh == pytest.approx(36.0)
    assert pts[1].start_time == pts[0].time


def test_ascent_and_descent(make_track):
    pts = enrich(make_track([(0, 0, 100.0), (10, 10, 104.0), (10, 10, 101.0), (10, 10, 102.5)]))
    assert [p.ele_delta_metres for p in pts] == pytest.approx([0.0, 4.0, -3.0, 1.5])
    assert pts[-1].running_ascent_metres == pytest.approx(5.5)
    assert pts[-1].running_descent_metres == pytest.approx(3.0)


def test_missing_elevation_carries_forward(make_track):
    eles = [100.0, 101.0, 103.0, 102.0, 105.0, None, None, None, 107.0, 110.0]
    pts = enrich(make_track([(10 if i else 0, 20, e) for i, e in enumerate(eles)]))

    for i in (5, 6, 7):
        assert pts[i].ele_delta_metres is None
        assert pts[i].running_ascent_metres == pts[4].running_ascent_metres
        assert pts[i].running_descent_metres == pts[4].running_descent_metres
    # Point 8 has no previous elevation to compare with either.
    assert pts[8].ele_delta_metres is None
    assert pts[8].running_ascent_metres == pytest.approx(6.0)
    assert pts[9].running_ascent_metres == pytest.approx(9.0)
    assert pts[9].running_descent_metres == pytest.approx(1.0)


def test_no_elevation_at_all(make_track):
    pts = enrich(make_track([(0, 0), (10, 10), (10, 10)]))
    assert all(p.running_ascent_metres is None for p in pts)
    assert all(p.running_descent_metres is None for p in pts)


def test_missing_time_leaves_speed_unset():
    t0 = dt.datetime(2024, 6, 1, 8, 0, tzinfo=dt.timezone.utc)
    raw = [
        RawPoint(51.5, -0.1, time=t0),
        RawPoint(51.501, -0.1, time=None),
        RawPoint(51.502, -0.1, time=t0 + dt.timedelta(seconds=20)),
    ]
    pts = enrich(raw)
    assert not has_complete_times(raw)

    assert pts[1].delta_time is None
    assert pts[1].running_delta_time is None
    assert pts[1].speed_kmh is None
    assert pts[1].start_time is None
    # Distance does not depend on time.
    assert pts[1].delta_metres > 0
    # No delta for point 2 either, but its running time is known.
    assert pts[2].delta_time is None
    assert pts[2].speed_kmh is None
    assert pts[2].running_delta_time == dt.timedelta(seconds=20)


@pytest.mark.parametrize("bad_offset", [0, -5])
def test_non_increasing_time_is_rejected(make_track, bad_offset):
    raw = make_track([(0, 0), (10, 10), (10, 10), (bad_offset, 10), (10, 10)])
    with pytest.raises(NonMonotonicTimeError) as excinfo:
        enrich(raw)
    assert excinfo.value.index == 3
    assert excinfo.value.field == "time"
    assert isinstance(excinfo.value, EnrichmentError)


def test_averages_skip_missing_values(sample_gpx_path):
    from gpxstages.formats.gpx import load_trackpoints

    raw, _ = load_trackpoints(sample_gpx_path)
    assert avg_heart_rate(raw) == pytest.approx(130.0)
    assert avg_temperature(raw) == pytest.approx((18.0 + 18.5 + 19.5) / 3)
    assert avg_heart_rate([RawPoint(0.0, 0.0)]) is None
