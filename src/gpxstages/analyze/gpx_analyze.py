#!/usr/bin/env python3
"""
gpxstages: analyse GPX ride files.

For each input file:
  - enrich the trackpoints and detect Moving/Control stages
  - print a stage report (or one TSV line per file with --tsv)
  - optionally write the report next to the input (--write-report)
  - optionally plot the stages (--plot)
  - optionally write a stage and trackpoint workbook (--write-workbook)
  - optionally write a simplified copy of the track (--metres N)

Files are independent: a corrupt file is reported and skipped, and the exit
status is 1 if any file failed.
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from gpxstages.analyze.detect import StageDetectionParameters
from gpxstages.analyze.simplify import metres_to_epsilon, simplify
from gpxstages.analyze.track import TrackAnalysis, analyze_points, summarize
from gpxstages.config import (
    SIMPLIFY_METRES_MAX,
    SIMPLIFY_METRES_MIN,
    load_config,
    validate_accuracy_metres,
)
from gpxstages.errors import ConfigError, GpxStagesError
from gpxstages.formats.gpx import build_gpx, load_trackpoints, write_gpx
from gpxstages.report.text import write_stage_report
from gpxstages.util.logging import log, setup_logging
from gpxstages.util.paths import (
    is_output_file,
    list_gpx_inputs,
    simplified_path,
    stages_plot_path,
    stages_report_path,
    stages_workbook_path,
)

logger = logging.getLogger(__name__)

TSV_COLUMNS = (
    "points", "stages", "controls", "distance_m", "duration_s", "moving_s",
    "control_s", "avg_moving_speed_kmh", "max_speed_kmh", "ascent_m", "descent_m",
)


def print_tsv_row(path: Path, stats: dict) -> None:
    cells = [str(path)]
    for col in TSV_COLUMNS:
        v = stats.get(col)
        if v is None:
            cells.append("")
        elif isinstance(v, float):
            cells.append(f"{v:.3f}")
        else:
            cells.append(str(v))
    print("\t".join(cells))


def _accuracy_metres(text: str) -> int:
    try:
        return validate_accuracy_metres(int(text))
    except (ValueError, ConfigError) as e:
        raise argparse.ArgumentTypeError(
            f"must be an integer in {SIMPLIFY_METRES_MIN}..{SIMPLIFY_METRES_MAX}"
        ) from e


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="gpxstages",
                                 description="Analyse GPX ride files into moving and control stages.")
    ap.add_argument("gpx", nargs="*",
                    help="One or more GPX files. If omitted, every .gpx under --dir is used.")
    ap.add_argument("--dir", default=".",
                    help="Directory searched for .gpx files when none are given (default: .)")
    ap.add_argument("-m", "--metres", type=_accuracy_metres, default=None,
                    help="Write a simplified copy using Ramer-Douglas-Peucker with METRES accuracy (1-1000)")
    ap.add_argument("--stopped-speed", type=float, default=None,
                    help="Speed in km/h at or below which you are considered stopped (default 0.15)")
    ap.add_argument("--min-control-time", type=float, default=None,
                    help="Minimum length of a control, in minutes (default 5.0)")
    ap.add_argument("--control-resumption-distance", type=float, default=None,
                    help="Metres you must move from a stop to be moving again (default 100.0)")
    ap.add_argument("--write-report", action="store_true",
                    help="Also write the stage report to <name>.stages.txt")
    ap.add_argument("--plot", action="store_true",
                    help="Write a plot of the stages to <name>.stages.png")
    ap.add_argument("--write-workbook", action="store_true",
                    help="Write stages and trackpoints to <name>.stages.xlsx, highlighting stage boundaries and extremes")
    ap.add_argument("--tsv", action="store_true",
                    help="Print tab-separated output (good for piping).")
    ap.add_argument("-f", "--force", action="store_true",
                    help="Overwrite existing output files")
    ap.add_argument("-v", "--verbose", action="store_true",
                    help="Log the stage detection scans")
    return ap


def _writable(path: Path, force: bool) -> bool:
    if path.exists() and not force:
        log(f"Skipping {path} because it already exists (use --force to overwrite)")
        return False
    return True


def write_simplified(path: Path, analysis: TrackAnalysis, metres: int, *, force: bool) -> Optional[Path]:
    out = simplified_path(path)
    if not _writable(out, force):
        return None

    epsilon = metres_to_epsilon(metres)
    kept = simplify(analysis.raw, epsilon)
    write_gpx(build_gpx(kept, analysis.info), out)
    log(
        f"Ramer-Douglas-Peucker with {metres}m accuracy (epsilon={epsilon:.3e}) "
        f"reduced {len(analysis.raw)} trackpoints to {len(kept)}: {out}"
    )
    return out


def process_file(path: Path, params: StageDetectionParameters, args: argparse.Namespace) -> None:
    """
    Analyse one file and write whatever outputs were asked for.

    Raises:
      GpxStagesError (or OSError) if the file cannot be analysed.
    """
    raw, info = load_trackpoints(path)
    analysis = analyze_points(raw, params, info=info, path=path)

    if args.tsv:
        print_tsv_row(path, summarize(analysis))
    else:
        buf = io.StringIO()
        write_stage_report(buf, analysis)
        print(buf.getvalue())
        if args.write_report:
            out = stages_report_path(path)
            if _writable(out, args.force):
                out.write_text(buf.getvalue(), encoding="utf-8")
                log(f"Wrote {out}")

    if args.plot:
        out = stages_plot_path(path)
        if _writable(out, args.force):
            from gpxstages.visualize.plot import plot_stages
            plot_stages(analysis, out)
            log(f"Wrote {out}")

    if args.write_workbook:
        out = stages_workbook_path(path)
        if _writable(out, args.force):
            from gpxstages.report.workbook import write_workbook
            write_workbook(analysis, out)
            log(f"Wrote {out}")

    if args.metres is not None:
        write_simplified(path, analysis, args.metres, force=args.force)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        cfg = load_config()
        stage_cfg = cfg.stages.with_overrides(
            stopped_speed_kmh=args.stopped_speed,
            min_control_minutes=args.min_control_time,
            control_resumption_metres=args.control_resumption_distance,
        )
    except ConfigError as e:
        raise SystemExit(f"gpxstages: {e}")

    if args.metres is None:
        args.metres = cfg.simplify.accuracy_metres

    params = StageDetectionParameters.from_config(stage_cfg)
    logger.debug("Using %s", params)

    if args.gpx:
        selected = [Path(p).expanduser() for p in args.gpx if not is_output_file(Path(p))]
    else:
        selected = list_gpx_inputs(Path(args.dir).expanduser())
    if not selected:
        log("No .gpx files found")
        return 0

    if args.tsv:
        print("file\t" + "\t".join(TSV_COLUMNS))

    failures = 0
    for path in selected:
        if not path.is_file():
            log(f"Skipping (not a file): {path}")
            continue
        try:
            process_file(path, params, args)
        except (GpxStagesError, OSError) as e:
            failures += 1
            logger.error("%s: %s", path, e)
            log(f"FAILED {path}: {e}")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
