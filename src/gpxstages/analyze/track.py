# gpxstages/analyze/track.py
"""
Track analysis functions for gpxstages
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from gpxstages.analyze.detect import StageDetectionParameters, detect_stages
from gpxstages.analyze.enrich import avg_heart_rate, avg_temperature, enrich
from gpxstages.analyze.stages import StageList, StageType
from gpxstages.formats.gpx import TrackInfo, load_trackpoints
from gpxstages.model import EnrichedPoint, RawPoint


@dataclass(frozen=True)
class TrackAnalysis:
    """
    Everything derived from one track. `stages` index into `points`, so
    keep them together.
    """
    raw: Sequence[RawPoint]
    points: tuple[EnrichedPoint, ...]
    stages: StageList
    info: Optional[TrackInfo] = None
    path: Optional[Path] = None


def analyze_points(raw: Sequence[RawPoint],
                   params: Optional[StageDetectionParameters] = None,
                   *, info: Optional[TrackInfo] = None,
                   path: Optional[Path] = None) -> TrackAnalysis:
    """
    Enrich and segment an in-memory track.

    Raises:
      NonMonotonicTimeError from enrichment.
    """
    points = enrich(raw)
    stages = detect_stages(points, params)
    return TrackAnalysis(raw=raw, points=points, stages=stages, info=info, path=path)


def analyze_track(gpx_path: Path,
                  params: Optional[StageDetectionParameters] = None) -> TrackAnalysis:
    raw, info = load_trackpoints(gpx_path)
    return analyze_points(raw, params, info=info, path=gpx_path)


def summarize(analysis: TrackAnalysis) -> dict:
    """Flat summary of a track, suitable for printing or TSV output."""
    points = analysis.points
    stages = analysis.stages

    stats: dict = {
        "points": len(points),
        "stages": len(stages),
        "controls": len(stages.of_type(StageType.CONTROL)),
        "distance_m": points[-1].running_metres if points else 0.0,
        "avg_heart_rate": avg_heart_rate(points),
        "avg_temperature": avg_temperature(points),
    }

    if not stages:
        return stats

    duration = stages.duration(points)
    moving = stages.total_moving_time(points)
    max_speed = stages.max_speed(points)
    min_ele = stages.min_elevation(points)
    max_ele = stages.max_elevation(points)

    stats.update({
        "duration_s": duration.total_seconds() if duration is not None else None,
        "moving_s": moving.total_seconds() if moving is not None else None,
        "control_s": stages.total_control_time(points).total_seconds(),
        "avg_moving_speed_kmh": stages.average_moving_speed_kmh(points),
        "avg_overall_speed_kmh": stages.average_overall_speed_kmh(points),
        "max_speed_kmh": max_speed.speed_kmh if max_speed is not None else None,
        "ascent_m": stages.total_ascent_metres(points),
        "descent_m": stages.total_descent_metres(points),
        "min_elevation_m": min_ele.ele if min_ele is not None else None,
        "max_elevation_m": max_ele.ele if max_ele is not None else None,
    })
    return stats
