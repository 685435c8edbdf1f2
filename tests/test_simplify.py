import pytest

from gpxstages.analyze.simplify import metres_to_epsilon, simplify, simplify_indices
from gpxstages.model import RawPoint


def line(n, step_deg=1.0 / 111111.0):
    return [RawPoint(lat=51.5 + i * step_deg, lon=-0.1) for i in range(n)]


def test_metres_to_epsilon():
    assert metres_to_epsilon(111111) == pytest.approx(1.0)
    assert metres_to_epsilon(10) == pytest.approx(9.0e-5, rel=1e-3)


def test_straight_line_collapses_to_endpoints():
    pts = line(5)
    out = simplify(pts, metres_to_epsilon(10))
    assert out == [pts[0], pts[-1]]


def test_far_point_is_kept():
    pts = [
        RawPoint(51.5, -0.1),
        RawPoint(51.5005, -0.0995),
        RawPoint(51.501, -0.0990),  # ~70 m east of the line
        RawPoint(51.5015, -0.0995),
        RawPoint(51.502, -0.1),
    ]
    assert simplify_indices(pts, metres_to_epsilon(10)) == [0, 2, 4]
    assert simplify_indices(pts, metres_to_epsilon(1000)) == [0, 4]


def test_zero_epsilon_keeps_every_corner():
    pts = [RawPoint(51.5 + i * 0.001, -0.1 + (i % 2) * 0.001) for i in range(7)]
    assert simplify(pts, 0.0) == pts


@pytest.mark.parametrize("n", [0, 1, 2])
def test_short_input_is_returned_unchanged(n):
    pts = line(n)
    assert simplify(pts, 1.0) == pts


def test_result_is_ordered_subsequence():
    pts = [RawPoint(51.5 + i * 0.0001, -0.1 + ((i * 7) % 5) * 0.00003) for i in range(200)]
    idx = simplify_indices(pts, metres_to_epsilon(2))
    assert idx[0] == 0
    assert idx[-1] == len(pts) - 1
    assert idx == sorted(set(idx))
    assert 2 <= len(idx) <= len(pts)


def test_negative_epsilon_is_rejected():
    with pytest.raises(ValueError):
        simplify(line(5), -1.0)


def test_long_track_does_not_recurse():
    pts = [RawPoint(51.5 + i * 1e-5, -0.1 + (i % 2) * 1e-4) for i in range(1500)]
    assert len(simplify(pts, 0.0)) == len(pts)
