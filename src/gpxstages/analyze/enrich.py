# gpxstages/analyze/enrich.py
"""
Trackpoint enrichment.

Turns an ordered sequence of RawPoints into EnrichedPoints carrying
per-point deltas (distance, time, elevation, speed) and running sums from
the start of the track. One pass, no state outside the call.
"""

from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from gpxstages.analyze.geodesic import distance_metres, speed_kmh_from_duration
from gpxstages.errors import NonMonotonicTimeError
from gpxstages.model import EnrichedPoint, RawPoint

logger = logging.getLogger(__name__)

_ZERO = _dt.timedelta(0)


@dataclass(frozen=True)
class _RunningTotals:
    """Fold state threaded through the enrichment scan."""
    running_metres: float = 0.0
    running_ascent_metres: Optional[float] = None
    running_descent_metres: Optional[float] = None


def _as_enriched(index: int, p: RawPoint, **derived) -> EnrichedPoint:
    return EnrichedPoint(
        lat=p.lat,
        lon=p.lon,
        ele=p.ele,
        time=p.time,
        extensions=p.extensions,
        index=index,
        **derived,
    )


def _first_point(p: RawPoint) -> tuple[EnrichedPoint, _RunningTotals]:
    derived: dict = {"delta_metres": 0.0, "running_metres": 0.0}
    totals = _RunningTotals()

    # Seed the running values so later points have something to add to.
    if p.time is not None:
        derived.update(delta_time=_ZERO, running_delta_time=_ZERO, speed_kmh=0.0)
    if p.ele is not None:
        derived.update(
            ele_delta_metres=0.0,
            running_ascent_metres=0.0,
            running_descent_metres=0.0,
        )
        totals = replace(totals, running_ascent_metres=0.0, running_descent_metres=0.0)

    return _as_enriched(0, p, **derived), totals


def _time_delta(index: int, later: Optional[_dt.datetime], earlier: Optional[_dt.datetime],
                field: str) -> Optional[_dt.timedelta]:
    if later is None or earlier is None:
        return None
    dt = later - earlier
    if dt <= _ZERO:
        raise NonMonotonicTimeError(index, field, f"{earlier.isoformat()} -> {later.isoformat()}")
    return dt


def _next_point(index: int, prev: RawPoint, cur: RawPoint, t0: Optional[_dt.datetime],
                totals: _RunningTotals) -> tuple[EnrichedPoint, _RunningTotals]:
    delta_metres = distance_metres(prev, cur)
    running_metres = totals.running_metres + delta_metres

    delta_time = _time_delta(index, cur.time, prev.time, "time")
    running_delta_time = _time_delta(index, cur.time, t0, "time")

    # No delta_time means no speed. This is a deliberate choice: speed is
    # left unresolved like every other derived field with missing input.
    speed = speed_kmh_from_duration(delta_metres, delta_time)

    ele_delta = None
    ascent = totals.running_ascent_metres
    descent = totals.running_descent_metres
    if cur.ele is not None and prev.ele is not None:
        ele_delta = cur.ele - prev.ele
        if ele_delta > 0.0:
            ascent = (ascent or 0.0) + ele_delta
            descent = descent or 0.0
        else:
            descent = (descent or 0.0) + abs(ele_delta)
            ascent = ascent or 0.0

    point = _as_enriched(
        index, cur,
        delta_metres=delta_metres,
        running_metres=running_metres,
        delta_time=delta_time,
        running_delta_time=running_delta_time,
        speed_kmh=speed,
        ele_delta_metres=ele_delta,
        running_ascent_metres=ascent,
        running_descent_metres=descent,
    )
    return point, _RunningTotals(running_metres, ascent, descent)


def enrich(points: Sequence[RawPoint]) -> tuple[EnrichedPoint, ...]:
    """
    Enrich an ordered sequence of RawPoints.

    Returns a tuple of EnrichedPoints of the same length and order.

    Raises:
      NonMonotonicTimeError if two adjacent timestamps are equal or go
      backwards. The error names the index of the later point.
    """
    if not points:
        return ()

    first, totals = _first_point(points[0])
    out: list[EnrichedPoint] = [first]
    t0 = points[0].time

    for idx in range(1, len(points)):
        point, totals = _next_point(idx, points[idx - 1], points[idx], t0, totals)
        out.append(point)

    logger.debug(
        "Enriched %d trackpoints, %.3f km, ascent=%s m, descent=%s m",
        len(out), out[-1].running_km,
        out[-1].running_ascent_metres, out[-1].running_descent_metres,
    )
    return tuple(out)


def has_complete_times(points: Iterable[RawPoint]) -> bool:
    """True if every point carries a timestamp."""
    return all(p.time is not None for p in points)


def avg_heart_rate(points: Iterable[RawPoint]) -> Optional[float]:
    """Average heart rate over the points that carry one."""
    hrs = [p.heart_rate for p in points if p.heart_rate is not None]
    return sum(hrs) / len(hrs) if hrs else None


def avg_temperature(points: Iterable[RawPoint]) -> Optional[float]:
    """Average air temperature over the points that carry one."""
    temps = [p.air_temp for p in points if p.air_temp is not None]
    return sum(temps) / len(temps) if temps else None
