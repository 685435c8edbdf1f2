# gpxstages/util/paths.py
from __future__ import annotations

from pathlib import Path

SIMPLIFIED_SUFFIX = ".simplified.gpx"


def with_suffix(path: Path, suffix: str) -> Path:
    """track.gpx -> track<suffix>, next to the input."""
    return path.with_name(path.stem + suffix)


def simplified_path(path: Path) -> Path:
    return with_suffix(path, SIMPLIFIED_SUFFIX)


def stages_report_path(path: Path) -> Path:
    return with_suffix(path, ".stages.txt")


def stages_plot_path(path: Path) -> Path:
    return with_suffix(path, ".stages.png")


def stages_workbook_path(path: Path) -> Path:
    return with_suffix(path, ".stages.xlsx")


def is_output_file(path: Path) -> bool:
    """
    True for files this tool wrote itself. Picking them up again as input
    would give "x.simplified.simplified.gpx".
    """
    return path.name.lower().endswith(SIMPLIFIED_SUFFIX)


def list_gpx_inputs(root: Path) -> list[Path]:
    """All *.gpx files under root (recursively), excluding our own outputs, sorted."""
    if not root.is_dir():
        return []
    out = [p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == ".gpx"
           and not is_output_file(p)]
    out.sort()
    return out
