# gpxstages/model.py
"""
Trackpoint data model for gpxstages.

RawPoint is what the GPX reader produces. EnrichedPoint is a RawPoint plus
the derived per-point data (deltas and running sums) that stage detection
and the reports work from. Both are frozen: they are created once and never
mutated.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Extensions:
    """
    Garmin TrackPointExtension v1 values.

    See https://www8.garmin.com/xmlschemas/TrackPointExtensionv1.xsd
    """
    air_temp: Optional[float] = None
    water_temp: Optional[float] = None
    depth: Optional[float] = None
    heart_rate: Optional[int] = None     # 1..255 bpm
    cadence: Optional[int] = None        # 0..254 rpm


@dataclass(frozen=True)
class RawPoint:
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[_dt.datetime] = None
    extensions: Optional[Extensions] = None

    @property
    def heart_rate(self) -> Optional[int]:
        return self.extensions.heart_rate if self.extensions else None

    @property
    def cadence(self) -> Optional[int]:
        return self.extensions.cadence if self.extensions else None

    @property
    def air_temp(self) -> Optional[float]:
        return self.extensions.air_temp if self.extensions else None


@dataclass(frozen=True)
class EnrichedPoint(RawPoint):
    """
    A RawPoint with derived data filled in by enrichment.

    Fields that depend on time or elevation are None when the source data
    is missing. running_ascent_metres/running_descent_metres carry forward
    unchanged across points with no elevation.
    """
    index: int = 0
    delta_metres: float = 0.0
    running_metres: float = 0.0
    delta_time: Optional[_dt.timedelta] = None
    running_delta_time: Optional[_dt.timedelta] = None
    speed_kmh: Optional[float] = None
    ele_delta_metres: Optional[float] = None
    running_ascent_metres: Optional[float] = None
    running_descent_metres: Optional[float] = None

    @property
    def start_time(self) -> Optional[_dt.datetime]:
        """
        The time this point started being recorded.

        A trackpoint's timestamp marks the END of the period it covers.
        Most are written at 1 second intervals, but while stopped a device
        may write nothing for 20 minutes, so the next point's time is 20
        minutes after the stop actually began. Durations of stages must be
        measured from start_time, not time.

        The first point has no predecessor, so its start_time is its time.
        """
        if self.index == 0:
            return self.time
        if self.time is None or self.delta_time is None:
            return None
        return self.time - self.delta_time

    @property
    def running_km(self) -> float:
        return self.running_metres / 1000.0
