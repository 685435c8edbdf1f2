# gpxstages/report/text.py
"""
Plain-text stage report.

One summary block for the whole track, then one row per stage. Control
rows only show timing and location; distance, speed and climbing are blank
because they are just GPS drift while standing still.
"""

from __future__ import annotations

import datetime as _dt
from typing import Optional, TextIO

from gpxstages.analyze.stages import Stage, StageType
from gpxstages.analyze.track import TrackAnalysis, summarize
from gpxstages.model import EnrichedPoint


def format_utc(t: Optional[_dt.datetime]) -> str:
    if t is None:
        return "-"
    return t.astimezone(_dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def format_duration(d: Optional[_dt.timedelta]) -> str:
    if d is None:
        return "-"
    secs = int(round(d.total_seconds()))
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    return f"{h}:{m:02d}:{s:02d}"


def _num(v: Optional[float], fmt: str = ".2f") -> str:
    return "-" if v is None else format(v, fmt)


def _elevation_point(p: Optional[EnrichedPoint]) -> str:
    if p is None:
        return "-"
    return f"{p.ele:.1f} m at {p.running_km:.2f} km"


def _stage_row(n: int, stage: Stage, analysis: TrackAnalysis) -> str:
    pts = analysis.points
    start = stage.start_point(pts)
    end = stage.end_point(pts)
    common = (
        f"{n:>3}  {str(stage.stage_type):<7}  "
        f"{stage.start_index:>6}-{stage.end_index:<6}  "
        f"{format_utc(start.start_time):<20}  {format_utc(end.time):<20}  "
        f"{format_duration(stage.duration(pts)):>9}  "
    )
    if stage.stage_type is StageType.CONTROL:
        return common + f"({start.lat:.5f},{start.lon:.5f})"

    max_speed = stage.max_speed(pts)
    return common + (
        f"{stage.distance_km(pts):>8.2f} {stage.running_distance_km(pts):>8.2f}  "
        f"{_num(stage.average_speed_kmh(pts)):>6}  "
        f"{_num(max_speed.speed_kmh if max_speed else None, '.1f'):>6}  "
        f"{_num(stage.ascent_metres(pts), '.0f'):>6} {_num(stage.descent_metres(pts), '.0f'):>6}  "
        f"{_elevation_point(stage.max_elevation(pts))}"
    )


def write_stage_report(w: TextIO, analysis: TrackAnalysis) -> None:
    """Write the summary and stage table for one track to `w`."""
    stats = summarize(analysis)
    pts = analysis.points
    stages = analysis.stages

    title = analysis.path.name if analysis.path is not None else "track"
    w.write(f"{title}\n")
    w.write(f"  points            : {stats['points']}\n")
    w.write(f"  distance (km)     : {stats['distance_m'] / 1000.0:.2f}\n")

    if not stages:
        w.write("  stages            : none detected\n")
        return

    w.write(f"  start             : {format_utc(stages.start_time(pts))}\n")
    w.write(f"  end               : {format_utc(stages.end_time(pts))}\n")
    w.write(f"  total time        : {format_duration(stages.duration(pts))}\n")
    w.write(f"  moving time       : {format_duration(stages.total_moving_time(pts))}\n")
    w.write(f"  control time      : {format_duration(stages.total_control_time(pts))}\n")
    w.write(f"  moving speed      : {_num(stats['avg_moving_speed_kmh'])} km/h\n")
    w.write(f"  overall speed     : {_num(stats['avg_overall_speed_kmh'])} km/h\n")
    w.write(f"  max speed         : {_num(stats['max_speed_kmh'], '.1f')} km/h\n")
    w.write(f"  ascent / descent  : {_num(stats['ascent_m'], '.0f')} / {_num(stats['descent_m'], '.0f')} m\n")
    w.write(f"  min elevation     : {_elevation_point(stages.min_elevation(pts))}\n")
    w.write(f"  max elevation     : {_elevation_point(stages.max_elevation(pts))}\n")
    if stats["avg_heart_rate"] is not None:
        max_hr = stages.max_heart_rate(pts)
        w.write(f"  heart rate        : avg {stats['avg_heart_rate']:.0f}, max {max_hr.heart_rate if max_hr else '-'}\n")
    if stats["avg_temperature"] is not None:
        lo = stages.min_temperature(pts)
        hi = stages.max_temperature(pts)
        w.write(
            f"  air temp (C)      : avg {stats['avg_temperature']:.1f}, "
            f"min {_num(lo.air_temp if lo else None, '.1f')}, max {_num(hi.air_temp if hi else None, '.1f')}\n"
        )
    w.write(f"  stages / controls : {stats['stages']} / {stats['controls']}\n\n")

    w.write(
        "  #  type     points         start                 end                    duration  "
        "    km   cum km   km/h     max  ascent descent  max elevation\n"
    )
    for n, stage in enumerate(stages, start=1):
        w.write(_stage_row(n, stage, analysis) + "\n")
