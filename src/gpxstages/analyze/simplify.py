# gpxstages/analyze/simplify.py
"""
Track simplification with Ramer-Douglas-Peucker.

https://en.wikipedia.org/wiki/Ramer%E2%80%93Douglas%E2%80%93Peucker_algorithm

The track is treated as a flat polyline of (lon, lat) pairs. That is a
planar approximation, but over the few metres that matter for tolerance it
is close enough.

Rough results for a 200 km ride recorded at 1 point per second
(31358 points):

  metres   points kept   quality
  1        4374 (13%)    near-perfect map to the road
  5        1484 (4.7%)   mainly stays within the road lines
  10       978 (3.1%)    good enough for an Audax DIY submission
  20       636 (2.0%)    within a few metres of the road
  50       387 (1.2%)    cuts off a lot of corners
  100      236 (0.8%)    significant corner truncation
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

P = TypeVar("P")

# 1 degree of latitude is roughly 111,111 metres.
METRES_PER_DEGREE = 111111.0


def metres_to_epsilon(metres: float) -> float:
    """Convert a user-facing "metres of accuracy" into an epsilon in degrees."""
    return metres / METRES_PER_DEGREE


def _segment_distance(px: float, py: float, ax: float, ay: float, bx: float, by: float) -> float:
    """Distance from (px, py) to the segment a-b."""
    dx = bx - ax
    dy = by - ay
    if dx == 0.0 and dy == 0.0:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def simplify_indices(points: Sequence, epsilon: float) -> list[int]:
    """
    Return the indexes of the points RDP keeps, in ascending order.

    `points` need lat/lon attributes. The first and last points are always
    kept. Uses an explicit stack so long tracks do not hit the recursion
    limit.
    """
    if epsilon < 0:
        raise ValueError(f"epsilon must be >= 0, got {epsilon}")

    n = len(points)
    if n <= 2:
        return list(range(n))

    xy = [(p.lon, p.lat) for p in points]
    keep = [False] * n
    keep[0] = keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        ax, ay = xy[first]
        bx, by = xy[last]
        max_dist = -1.0
        index = first
        for i in range(first + 1, last):
            d = _segment_distance(xy[i][0], xy[i][1], ax, ay, bx, by)
            if d > max_dist:
                index = i
                max_dist = d

        if max_dist > epsilon:
            keep[index] = True
            stack.append((first, index))
            stack.append((index, last))

    return [i for i, k in enumerate(keep) if k]


def simplify(points: Sequence[P], epsilon: float) -> list[P]:
    """Return the subsequence of `points` kept by RDP with tolerance `epsilon` (degrees)."""
    return [points[i] for i in simplify_indices(points, epsilon)]
