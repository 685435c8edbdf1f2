# gpxstages/analyze/stages.py
"""
Stage and StageList, plus the read-only roll-ups the reports need.

A Stage does not hold trackpoints. It is an inclusive index range into the
tuple of EnrichedPoints it was detected from, and every query that needs
point data takes that tuple as an explicit argument.
"""

from __future__ import annotations

import datetime as _dt
import enum
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from gpxstages.analyze.geodesic import speed_kmh_from_duration
from gpxstages.model import EnrichedPoint

Points = Sequence[EnrichedPoint]


class StageType(enum.Enum):
    MOVING = "Moving"
    CONTROL = "Control"

    def __str__(self) -> str:
        return self.value

    def toggle(self) -> "StageType":
        return StageType.CONTROL if self is StageType.MOVING else StageType.MOVING


def _pick(points: Points, idx: Optional[int]) -> Optional[EnrichedPoint]:
    return None if idx is None else points[idx]


@dataclass(frozen=True)
class Stage:
    """
    A contiguous run of trackpoints [start_index, end_index] classified as
    Moving or Control.

    The *_idx fields are the indexes of extreme points within the stage,
    worked out once when the stage is built. They are None when the data
    is not available (see detect.make_stage for the rules).
    """
    stage_type: StageType
    start_index: int
    end_index: int
    min_elevation_idx: Optional[int] = None
    max_elevation_idx: Optional[int] = None
    max_speed_idx: Optional[int] = None
    max_heart_rate_idx: Optional[int] = None
    min_air_temp_idx: Optional[int] = None
    max_air_temp_idx: Optional[int] = None
    avg_heart_rate: Optional[float] = None
    avg_air_temp: Optional[float] = None

    def __post_init__(self) -> None:
        if self.end_index < self.start_index:
            raise ValueError(
                f"Stage must contain at least 1 trackpoint, got [{self.start_index}, {self.end_index}]"
            )

    @property
    def point_count(self) -> int:
        return self.end_index - self.start_index + 1

    def start_point(self, points: Points) -> EnrichedPoint:
        return points[self.start_index]

    def end_point(self, points: Points) -> EnrichedPoint:
        return points[self.end_index]

    # ---- time ------------------------------------------------

    def duration(self, points: Points) -> Optional[_dt.timedelta]:
        """
        Elapsed time from the start_time of the first point to the time of
        the last point, so a single-point stop covering 25 minutes reports
        25 minutes.
        """
        start = points[self.start_index].start_time
        end = points[self.end_index].time
        if start is None or end is None:
            return None
        return end - start

    def running_duration(self, points: Points) -> Optional[_dt.timedelta]:
        """Elapsed time from the start of the track to the end of this stage."""
        start = points[0].time
        end = points[self.end_index].time
        if start is None or end is None:
            return None
        return end - start

    # ---- distance and speed ----------------------------------

    def distance_metres(self, points: Points) -> float:
        """
        Distance covered during the stage. Includes the hop from the
        previous stage's last point, since that is when this stage began.
        """
        start = points[self.start_index]
        return points[self.end_index].running_metres - start.running_metres + start.delta_metres

    def distance_km(self, points: Points) -> float:
        return self.distance_metres(points) / 1000.0

    def running_distance_km(self, points: Points) -> float:
        return points[self.end_index].running_km

    def average_speed_kmh(self, points: Points) -> Optional[float]:
        return speed_kmh_from_duration(self.distance_metres(points), self.duration(points))

    def running_average_speed_kmh(self, points: Points) -> Optional[float]:
        return speed_kmh_from_duration(
            points[self.end_index].running_metres, self.running_duration(points)
        )

    # ---- climbing --------------------------------------------

    def _running_diff(self, points: Points, attr: str) -> Optional[float]:
        """
        Change in a running climb total over the stage.

        Running totals are None only until the first elevation delta is
        known, so a None before the stage counts as 0.
        """
        end = getattr(points[self.end_index], attr)
        if end is None:
            return None
        before = self.start_index - 1 if self.start_index > 0 else 0
        start = getattr(points[before], attr)
        return end - (start or 0.0)

    def ascent_metres(self, points: Points) -> Optional[float]:
        return self._running_diff(points, "running_ascent_metres")

    def descent_metres(self, points: Points) -> Optional[float]:
        return self._running_diff(points, "running_descent_metres")

    def running_ascent_metres(self, points: Points) -> Optional[float]:
        return points[self.end_index].running_ascent_metres

    def running_descent_metres(self, points: Points) -> Optional[float]:
        return points[self.end_index].running_descent_metres

    def ascent_rate_per_km(self, points: Points) -> Optional[float]:
        ascent = self.ascent_metres(points)
        km = self.distance_km(points)
        if ascent is None or km <= 0:
            return None
        return ascent / km

    def descent_rate_per_km(self, points: Points) -> Optional[float]:
        descent = self.descent_metres(points)
        km = self.distance_km(points)
        if descent is None or km <= 0:
            return None
        return descent / km

    # ---- extreme points --------------------------------------

    def min_elevation(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.min_elevation_idx)

    def max_elevation(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.max_elevation_idx)

    def max_speed(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.max_speed_idx)

    def max_heart_rate(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.max_heart_rate_idx)

    def min_air_temp(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.min_air_temp_idx)

    def max_air_temp(self, points: Points) -> Optional[EnrichedPoint]:
        return _pick(points, self.max_air_temp_idx)

    def highlighted_indexes(self) -> set[int]:
        idxs = {
            self.start_index, self.end_index,
            self.min_elevation_idx, self.max_elevation_idx, self.max_speed_idx,
            self.max_heart_rate_idx, self.min_air_temp_idx, self.max_air_temp_idx,
        }
        idxs.discard(None)
        return idxs


def _extreme(candidates: list[EnrichedPoint], key: Callable[[EnrichedPoint], float],
             largest: bool) -> Optional[EnrichedPoint]:
    """First point in scan order with the smallest/largest key."""
    best = None
    for p in candidates:
        if best is None:
            best = p
        elif largest and key(p) > key(best):
            best = p
        elif not largest and key(p) < key(best):
            best = p
    return best


class StageList:
    """
    Ordered, contiguous, alternating Stages covering a whole track.

    Built by detect.detect_stages. An empty StageList means stage detection
    was not possible (too few points, or missing timestamps).
    """

    def __init__(self, stages: Optional[list[Stage]] = None) -> None:
        self._stages: list[Stage] = list(stages or [])

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __getitem__(self, idx: int) -> Stage:
        return self._stages[idx]

    def __bool__(self) -> bool:
        return bool(self._stages)

    def __repr__(self) -> str:
        spans = ", ".join(f"{s.stage_type}[{s.start_index}-{s.end_index}]" for s in self._stages)
        return f"StageList({spans})"

    def of_type(self, stage_type: StageType) -> list[Stage]:
        return [s for s in self._stages if s.stage_type is stage_type]

    # ---- bounds ----------------------------------------------

    def first_point(self, points: Points) -> EnrichedPoint:
        return points[self._stages[0].start_index]

    def last_point(self, points: Points) -> EnrichedPoint:
        return points[self._stages[-1].end_index]

    def start_time(self, points: Points) -> Optional[_dt.datetime]:
        return self.first_point(points).time

    def end_time(self, points: Points) -> Optional[_dt.datetime]:
        return self.last_point(points).time

    # ---- time ------------------------------------------------

    def duration(self, points: Points) -> Optional[_dt.timedelta]:
        start = self.start_time(points)
        end = self.end_time(points)
        if start is None or end is None:
            return None
        return end - start

    def total_control_time(self, points: Points) -> _dt.timedelta:
        total = _dt.timedelta(0)
        for s in self.of_type(StageType.CONTROL):
            total += s.duration(points) or _dt.timedelta(0)
        return total

    def total_moving_time(self, points: Points) -> Optional[_dt.timedelta]:
        duration = self.duration(points)
        if duration is None:
            return None
        return duration - self.total_control_time(points)

    # ---- distance and speed ----------------------------------

    def distance_metres(self, points: Points) -> float:
        return sum(s.distance_metres(points) for s in self._stages)

    def distance_km(self, points: Points) -> float:
        return self.distance_metres(points) / 1000.0

    def average_moving_speed_kmh(self, points: Points) -> Optional[float]:
        """Average speed excluding time spent at controls."""
        return speed_kmh_from_duration(self.distance_metres(points), self.total_moving_time(points))

    def average_overall_speed_kmh(self, points: Points) -> Optional[float]:
        """Average speed including time spent at controls."""
        return speed_kmh_from_duration(self.distance_metres(points), self.duration(points))

    def distance_weighted_average_speed_kmh(self, points: Points) -> Optional[float]:
        """Moving stages' average speeds, weighted by the distance of each stage."""
        weighted = 0.0
        total = 0.0
        for s in self.of_type(StageType.MOVING):
            speed = s.average_speed_kmh(points)
            if speed is None:
                continue
            d = s.distance_metres(points)
            weighted += speed * d
            total += d
        return weighted / total if total > 0 else None

    # ---- climbing --------------------------------------------

    def total_ascent_metres(self, points: Points) -> Optional[float]:
        vals = [s.ascent_metres(points) for s in self._stages]
        vals = [v for v in vals if v is not None]
        return sum(vals) if vals else None

    def total_descent_metres(self, points: Points) -> Optional[float]:
        vals = [s.descent_metres(points) for s in self._stages]
        vals = [v for v in vals if v is not None]
        return sum(vals) if vals else None

    # ---- extreme points --------------------------------------

    def _collect(self, points: Points, getter: str) -> list[EnrichedPoint]:
        out = []
        for s in self._stages:
            p = getattr(s, getter)(points)
            if p is not None:
                out.append(p)
        return out

    def min_elevation(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "min_elevation"), lambda p: p.ele, largest=False)

    def max_elevation(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "max_elevation"), lambda p: p.ele, largest=True)

    def max_speed(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "max_speed"), lambda p: p.speed_kmh, largest=True)

    def max_heart_rate(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "max_heart_rate"), lambda p: p.heart_rate, largest=True)

    def min_temperature(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "min_air_temp"), lambda p: p.air_temp, largest=False)

    def max_temperature(self, points: Points) -> Optional[EnrichedPoint]:
        return _extreme(self._collect(points, "max_air_temp"), lambda p: p.air_temp, largest=True)

    def highlighted_indexes(self) -> set[int]:
        """Every point index a stage uses as a boundary or an extreme."""
        out: set[int] = set()
        for s in self._stages:
            out |= s.highlighted_indexes()
        return out
