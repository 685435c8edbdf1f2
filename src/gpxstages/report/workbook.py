# gpxstages/report/workbook.py
"""
Excel workbook output.

Two sheets: "Stages", one row per stage, and "Track Points", one row per
enriched trackpoint. Points that a stage uses as a boundary or an extreme
are filled and carry a note saying why, so they can be found in a long
track.
"""

from __future__ import annotations

import datetime as _dt
from pathlib import Path
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from gpxstages.analyze.stages import StageList
from gpxstages.analyze.track import TrackAnalysis

STAGE_HEADERS = (
    "#", "Type", "First point", "Last point", "Start (UTC)", "End (UTC)", "Duration (s)",
    "Distance (km)", "Running distance (km)", "Avg speed (km/h)", "Max speed (km/h)",
    "Ascent (m)", "Descent (m)", "Ascent m/km", "Descent m/km",
    "Running ascent (m)", "Running descent (m)", "Avg heart rate", "Avg air temp (C)",
)

POINT_HEADERS = (
    "Index", "Time (UTC)", "Latitude", "Longitude", "Elevation (m)", "Distance (m)",
    "Running distance (km)", "Delta time (s)", "Running time (s)", "Speed (km/h)",
    "Running ascent (m)", "Running descent (m)", "Heart rate", "Air temp (C)", "Cadence",
    "Notes",
)

HIGHLIGHT_FILL = PatternFill(fill_type="solid", start_color="FFF2CC", end_color="FFF2CC")
HEADER_FONT = Font(bold=True)

# Stage attribute holding an extreme point index -> note text.
_EXTREME_NOTES = (
    ("min_elevation_idx", "min elevation"),
    ("max_elevation_idx", "max elevation"),
    ("max_speed_idx", "max speed"),
    ("max_heart_rate_idx", "max heart rate"),
    ("min_air_temp_idx", "min air temp"),
    ("max_air_temp_idx", "max air temp"),
)


def point_notes(stages: StageList) -> dict[int, list[str]]:
    """
    Map each highlighted point index to the reasons it is highlighted.

    The keys are exactly StageList.highlighted_indexes().
    """
    notes: dict[int, list[str]] = {}
    for n, stage in enumerate(stages, start=1):
        notes.setdefault(stage.start_index, []).append(f"stage {n} {stage.stage_type} start")
        notes.setdefault(stage.end_index, []).append(f"stage {n} {stage.stage_type} end")
        for attr, text in _EXTREME_NOTES:
            idx = getattr(stage, attr)
            if idx is not None:
                notes.setdefault(idx, []).append(f"stage {n} {text}")
    return notes


def _excel_time(t: Optional[_dt.datetime]) -> Optional[_dt.datetime]:
    # Excel has no time zones; everything is written as naive UTC.
    if t is None:
        return None
    return t.astimezone(_dt.timezone.utc).replace(tzinfo=None)


def _seconds(d: Optional[_dt.timedelta]) -> Optional[float]:
    return None if d is None else d.total_seconds()


def _write_stages(ws, analysis: TrackAnalysis) -> None:
    pts = analysis.points
    ws.append(STAGE_HEADERS)
    for n, stage in enumerate(analysis.stages, start=1):
        max_speed = stage.max_speed(pts)
        ws.append([
            n,
            str(stage.stage_type),
            stage.start_index,
            stage.end_index,
            _excel_time(stage.start_point(pts).start_time),
            _excel_time(stage.end_point(pts).time),
            _seconds(stage.duration(pts)),
            stage.distance_km(pts),
            stage.running_distance_km(pts),
            stage.average_speed_kmh(pts),
            max_speed.speed_kmh if max_speed is not None else None,
            stage.ascent_metres(pts),
            stage.descent_metres(pts),
            stage.ascent_rate_per_km(pts),
            stage.descent_rate_per_km(pts),
            stage.running_ascent_metres(pts),
            stage.running_descent_metres(pts),
            stage.avg_heart_rate,
            stage.avg_air_temp,
        ])


def _write_points(ws, analysis: TrackAnalysis) -> None:
    notes = point_notes(analysis.stages)
    ws.append(POINT_HEADERS)
    for p in analysis.points:
        ws.append([
            p.index,
            _excel_time(p.time),
            p.lat,
            p.lon,
            p.ele,
            p.delta_metres,
            p.running_km,
            _seconds(p.delta_time),
            _seconds(p.running_delta_time),
            p.speed_kmh,
            p.running_ascent_metres,
            p.running_descent_metres,
            p.heart_rate,
            p.air_temp,
            p.cadence,
            "; ".join(notes.get(p.index, [])) or None,
        ])
        if p.index in notes:
            # header is row 1, point 0 is row 2
            for cell in ws[p.index + 2]:
                cell.fill = HIGHLIGHT_FILL


def write_workbook(analysis: TrackAnalysis, out_path: Path) -> None:
    """Write the "Stages" and "Track Points" sheets for one track to out_path."""
    wb = Workbook()
    stages_ws = wb.active
    stages_ws.title = "Stages"
    _write_stages(stages_ws, analysis)

    points_ws = wb.create_sheet("Track Points")
    _write_points(points_ws, analysis)

    for ws in (stages_ws, points_ws):
        for cell in ws[1]:
            cell.font = HEADER_FONT
        ws.freeze_panes = "A2"

    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(out_path)
