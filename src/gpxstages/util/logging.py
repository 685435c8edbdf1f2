# gpxstages/util/logging.py
from __future__ import annotations

import datetime
import logging
import sys

# Same shape as log(): local time with timezone, two spaces, message.
_LOG_FORMAT = "%(asctime)s  %(levelname)-7s %(name)s: %(message)s"


class _LocalIsoFormatter(logging.Formatter):
    def formatTime(self, record, datefmt=None):
        ts = datetime.datetime.fromtimestamp(record.created).astimezone()
        return ts.isoformat(timespec="seconds")


def log(msg: str) -> None:
    """Print a timestamped log line (local time with timezone)."""
    ts = datetime.datetime.now().astimezone().isoformat(timespec="seconds")
    print(f"{ts}  {msg}")


def setup_logging(verbose: bool = False) -> None:
    """
    Configure the root logger for the library modules.

    Library code logs through logging.getLogger(__name__); warnings show by
    default, the per-stage scan trace needs --verbose.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_LocalIsoFormatter(_LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)
