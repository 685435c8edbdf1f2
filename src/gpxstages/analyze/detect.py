# gpxstages/analyze/detect.py
"""
Stage detection: split an enriched track into alternating Moving and
Control stages.

Invariants of the result (checked after every run):
  - the first stage starts at point 0
  - the last stage ends at the last point
  - stages do not share points: stages[i].end_index + 1 == stages[i+1].start_index
  - stage types alternate Moving, Control, Moving, ...

All timing uses EnrichedPoint.start_time rather than the raw timestamp. A
device that is stopped may not write a point for many minutes, and the
point it finally writes is stamped with the END of the stop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from gpxstages.analyze.enrich import has_complete_times
from gpxstages.analyze.geodesic import distance_metres, speed_kmh
from gpxstages.analyze.stages import Stage, StageList, StageType
from gpxstages.errors import StageDetectionError
from gpxstages.model import EnrichedPoint

logger = logging.getLogger(__name__)

# Heuristic used to decide whether the track begins with a Moving or a
# Control stage. Not configurable.
STARTING_WINDOW_SECONDS = 180.0
STARTING_MOVING_SPEED_KMH = 5.0


@dataclass(frozen=True)
class StageDetectionParameters:
    """
    Thresholds for the stage-finding scans.

    stopped_speed_kmh:
      A point at or below this speed is "stopped". Means a dead stop.
    min_control_seconds:
      A stop must last at least this long to become a Control stage.
      Shorter ones (traffic lights, junctions) stay inside a Moving stage.
    control_resumption_metres:
      You are moving again once you are this far from where you stopped.
    """
    stopped_speed_kmh: float = 0.15
    min_control_seconds: float = 300.0
    control_resumption_metres: float = 100.0

    @classmethod
    def from_config(cls, cfg) -> "StageDetectionParameters":
        """Build from a config.StageConfig (minutes are converted to seconds)."""
        return cls(
            stopped_speed_kmh=cfg.stopped_speed_kmh,
            min_control_seconds=cfg.min_control_seconds,
            control_resumption_metres=cfg.control_resumption_metres,
        )


def _elapsed_seconds(later: EnrichedPoint, earlier: EnrichedPoint) -> float:
    return (later.time - earlier.start_time).total_seconds()


def starting_stage_type(points: Sequence[EnrichedPoint]) -> StageType:
    """
    Decide the type of the first stage.

    Point 0 always has speed 0, which says nothing. Instead look at the
    average speed from point 1 over roughly the first 3 minutes. You may
    well have switched the GPS on and then not gone anywhere for a while,
    so a Control stage first is possible.
    """
    last_valid_idx = len(points) - 1
    window_start = points[1]

    end_idx = last_valid_idx
    for idx in range(1, len(points)):
        if _elapsed_seconds(points[idx], window_start) >= STARTING_WINDOW_SECONDS:
            end_idx = idx
            break

    end = points[end_idx]
    metres = end.running_metres - points[0].running_metres
    speed = speed_kmh(metres, _elapsed_seconds(end, window_start))
    logger.debug(
        "Starting window is points 1..%d, %.1f m, speed=%s km/h", end_idx, metres, speed
    )

    if speed is not None and speed >= STARTING_MOVING_SPEED_KMH:
        return StageType.MOVING
    return StageType.CONTROL


def find_stop_index(points: Sequence[EnrichedPoint], start_idx: int, last_valid_idx: int,
                    params: StageDetectionParameters) -> int:
    """
    Find the last point of a Moving stage that begins at start_idx.

    The stage ends on the point BEFORE speed drops to stopped_speed_kmh,
    provided we then stay within control_resumption_metres of that point
    for at least min_control_seconds. Short stops are skipped and the scan
    carries on from where it got to. If the track runs out first, the
    stage ends on the last point.
    """
    end_idx = start_idx + 1

    while end_idx <= last_valid_idx:
        while end_idx <= last_valid_idx and points[end_idx].speed_kmh > params.stopped_speed_kmh:
            end_idx += 1

        # end_idx may now be PAST the last valid index.
        if end_idx >= last_valid_idx:
            logger.debug("find_stop_index(%d): exhausted trackpoints looking for a stop", start_idx)
            return last_valid_idx

        candidate = points[end_idx - 1]
        logger.debug(
            "find_stop_index(%d): speed dropped at %d, candidate stop at %d",
            start_idx, end_idx, candidate.index,
        )

        while (end_idx <= last_valid_idx
               and points[end_idx].running_metres - candidate.running_metres
               <= params.control_resumption_metres):
            end_idx += 1

        if end_idx >= last_valid_idx:
            logger.debug("find_stop_index(%d): exhausted trackpoints while stopped", start_idx)
            return last_valid_idx

        # The candidate's start_time is used so that a single point stamped
        # 25 minutes after the previous one counts all of those 25 minutes.
        stop_seconds = _elapsed_seconds(points[end_idx], candidate)
        if stop_seconds >= params.min_control_seconds:
            logger.info("Found stop at point %d lasting %.0f s", candidate.index, stop_seconds)
            return candidate.index

        logger.debug(
            "find_stop_index(%d): rejecting stop at %d, only %.0f s",
            start_idx, candidate.index, stop_seconds,
        )
        end_idx += 1

    return last_valid_idx


def find_resume_index(points: Sequence[EnrichedPoint], start_idx: int, last_valid_idx: int,
                      params: StageDetectionParameters) -> int:
    """
    Find the last point of a Control stage that begins at start_idx.

    Uses the straight-line distance from the stage's first point (not the
    running distance, which GPS jitter inflates while standing still). The
    first point further away than control_resumption_metres ends the stage.
    """
    origin = points[start_idx]

    for end_idx in range(start_idx + 1, last_valid_idx + 1):
        if distance_metres(origin, points[end_idx]) > params.control_resumption_metres:
            return end_idx

    return last_valid_idx


def _index_of_extreme(points: Sequence[EnrichedPoint], attr: str, largest: bool) -> Optional[int]:
    best = None
    for p in points:
        v = getattr(p, attr)
        if v is None:
            continue
        if best is None or (v > getattr(best, attr) if largest else v < getattr(best, attr)):
            best = p
    return None if best is None else best.index


def _average(points: Sequence[EnrichedPoint], attr: str) -> Optional[float]:
    vals = [getattr(p, attr) for p in points if getattr(p, attr) is not None]
    return sum(vals) / len(vals) if vals else None


def make_stage(points: Sequence[EnrichedPoint], stage_type: StageType,
               start_idx: int, end_idx: int) -> Stage:
    """
    Build a Stage over points[start_idx..end_idx] (inclusive).

    Elevation and speed extremes are all-or-nothing: if any point in the
    range lacks the value the extreme is None for the whole stage. Heart
    rate and temperature are worked out over whichever points have them.
    Ties go to the first point in scan order.
    """
    span = points[start_idx:end_idx + 1]

    has_ele = all(p.ele is not None for p in span)
    has_speed = all(p.speed_kmh is not None for p in span)

    return Stage(
        stage_type=stage_type,
        start_index=start_idx,
        end_index=end_idx,
        min_elevation_idx=_index_of_extreme(span, "ele", largest=False) if has_ele else None,
        max_elevation_idx=_index_of_extreme(span, "ele", largest=True) if has_ele else None,
        max_speed_idx=_index_of_extreme(span, "speed_kmh", largest=True) if has_speed else None,
        max_heart_rate_idx=_index_of_extreme(span, "heart_rate", largest=True),
        min_air_temp_idx=_index_of_extreme(span, "air_temp", largest=False),
        max_air_temp_idx=_index_of_extreme(span, "air_temp", largest=True),
        avg_heart_rate=_average(span, "heart_rate"),
        avg_air_temp=_average(span, "air_temp"),
    )


def _next_stage_end(points: Sequence[EnrichedPoint], stage_type: StageType, start_idx: int,
                    last_valid_idx: int, params: StageDetectionParameters) -> int:
    if stage_type is StageType.MOVING:
        return find_stop_index(points, start_idx, last_valid_idx, params)
    return find_resume_index(points, start_idx, last_valid_idx, params)


def check_stages(stages: StageList, num_points: int) -> None:
    """
    Verify a StageList tiles [0, num_points - 1] with alternating types.

    Raises:
      StageDetectionError describing the first violation.
    """
    if not stages:
        return
    if stages[0].start_index != 0:
        raise StageDetectionError(f"first stage starts at {stages[0].start_index}, not 0")
    if stages[-1].end_index != num_points - 1:
        raise StageDetectionError(f"last stage ends at {stages[-1].end_index}, not {num_points - 1}")
    ordered = list(stages)
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.end_index + 1 != cur.start_index:
            raise StageDetectionError(
                f"stage starting at {cur.start_index} does not follow stage ending at {prev.end_index}"
            )
        if prev.stage_type is cur.stage_type:
            raise StageDetectionError(
                f"two consecutive {cur.stage_type} stages at {prev.start_index} and {cur.start_index}"
            )


def detect_stages(points: Sequence[EnrichedPoint],
                  params: Optional[StageDetectionParameters] = None) -> StageList:
    """
    Detect the stages in an enriched track.

    Returns an empty StageList (not an error) for tracks with fewer than 2
    points, or where any point has no timestamp, since none of the timing
    rules mean anything without them.
    """
    params = params or StageDetectionParameters()

    if len(points) < 2:
        logger.warning("Track has %d point(s), not detecting stages", len(points))
        return StageList()

    if not has_complete_times(points):
        logger.warning("Track has trackpoints with no time, not detecting stages")
        return StageList()

    logger.info(
        "Detecting stages using stopped_speed_kmh=%s, min_control_seconds=%s, control_resumption_metres=%s",
        params.stopped_speed_kmh, params.min_control_seconds, params.control_resumption_metres,
    )

    last_valid_idx = len(points) - 1
    stage_type = starting_stage_type(points)
    logger.info("First stage is %s", stage_type)

    bounds: list[tuple[StageType, int, int]] = []
    start_idx = 0
    while start_idx < last_valid_idx:
        end_idx = _next_stage_end(points, stage_type, start_idx, last_valid_idx, params)
        bounds.append((stage_type, start_idx, end_idx))
        logger.debug("%s stage from point %d to %d", stage_type, start_idx, end_idx)
        start_idx = end_idx + 1
        stage_type = stage_type.toggle()

    # A single trailing point cannot start a stage of its own; it belongs
    # to the stage before it.
    last_type, last_start, last_end = bounds[-1]
    if last_end < last_valid_idx:
        bounds[-1] = (last_type, last_start, last_valid_idx)

    stages = StageList([make_stage(points, t, s, e) for t, s, e in bounds])
    check_stages(stages, len(points))

    logger.info(
        "Found %d stages (%d controls)", len(stages), len(stages.of_type(StageType.CONTROL))
    )
    return stages
