# gpxstages/errors

"""
gpxstages.errors

Central exception hierarchy for gpxstages.

Callers can catch GpxStagesError (broad) or specific subclasses (narrow).
A failure while analysing one track never affects the next one, so the CLI
catches GpxStagesError per file.
"""

from __future__ import annotations


class GpxStagesError(RuntimeError):
    """Base class for all gpxstages runtime errors."""


# ---- Configuration errors ----------------------

class ConfigError(GpxStagesError):
    """A config file could not be parsed, or holds an out-of-range value."""


# ---- Input / format errors ---------------------

class InvalidGpxError(GpxStagesError):
    """GPX file could not be parsed or did not contain expected data structures."""


# ---- Analysis errors ---------------------------

class EnrichmentError(GpxStagesError):
    """A track could not be enriched with derived per-point data."""


class NonMonotonicTimeError(EnrichmentError):
    """
    Two adjacent trackpoints have a non-positive time delta.

    Carries the offending point index and field so corrupt input can be
    located in the source file.
    """

    def __init__(self, index: int, field: str, detail: str = "") -> None:
        self.index = index
        self.field = field
        msg = f"trackpoint {index}: '{field}' is not strictly increasing"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class StageDetectionError(GpxStagesError):
    """The detected stages do not tile the track (internal consistency failure)."""
