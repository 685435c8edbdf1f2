"""
Plotting routines for gpxstages
"""

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt

from gpxstages.analyze.stages import StageType
from gpxstages.analyze.track import TrackAnalysis

STAGE_COLOURS = {StageType.MOVING: "tab:blue", StageType.CONTROL: "tab:red"}


def plot_stages(analysis: TrackAnalysis, out_path: Optional[Path] = None):
    """
    Draw the track with each stage in its own colour and controls marked.

    Saves to out_path if given, otherwise shows the figure. Returns the
    figure either way.
    """
    pts = analysis.points
    fig, ax = plt.subplots(figsize=(8, 6))

    for stage in analysis.stages:
        span = pts[stage.start_index:stage.end_index + 1]
        colour = STAGE_COLOURS[stage.stage_type]
        ax.plot([p.lon for p in span], [p.lat for p in span], color=colour, linewidth=1)
        if stage.stage_type is StageType.CONTROL:
            start = stage.start_point(pts)
            ax.scatter([start.lon], [start.lat], color=colour, s=30, zorder=3)

    if analysis.stages:
        marked = [pts[i] for i in sorted(analysis.stages.highlighted_indexes())]
        ax.scatter([p.lon for p in marked], [p.lat for p in marked], color="black", s=6, zorder=2)
    else:
        ax.plot([p.lon for p in pts], [p.lat for p in pts], color="grey", linewidth=1)

    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title("Track stages (blue moving, red controls)")

    if out_path is not None:
        fig.savefig(out_path, dpi=120)
        plt.close(fig)
    else:
        plt.show()
    return fig
