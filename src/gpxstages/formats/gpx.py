# gpxstages/formats/gpx.py
"""
GPX reading and writing.

The analysis code never sees XML: this module turns <trkpt> elements
(Garmin TrackPointExtension values included) into RawPoints, and turns a
list of points back into a one-track GPX 1.1 document for the simplified
output.
"""

from __future__ import annotations

import datetime as _dt
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional
from xml.etree import ElementTree as ET

from gpxstages.errors import InvalidGpxError
from gpxstages.model import Extensions, RawPoint

GPX_NS = {"gpx": "http://www.topografix.com/GPX/1/1"}

CREATOR = "gpxstages"

_UTC = _dt.timezone.utc

# fromisoformat before Python 3.11 only accepts 3 or 6 fractional digits.
_FRACTION = re.compile(r"\.(\d+)")


def qn(tag: str) -> str:
    """"trkpt" -> "{http://www.topografix.com/GPX/1/1}trkpt", as ElementTree spells it."""
    return "{%s}%s" % (GPX_NS["gpx"], tag)


def _local(tag: str) -> str:
    """Strip the namespace from an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


def _parse_gpx_time(text: Optional[str], where: str) -> Optional[_dt.datetime]:
    """
    Parse a GPX <time> value into an aware UTC datetime.

    Handles "2024-06-01T08:00:00Z", fractional seconds and explicit
    offsets. Naive values are taken as UTC. An empty value is None.

    Raises:
      InvalidGpxError if the value is present but not a timestamp.
      `where` names the element in the message.
    """
    s = (text or "").strip()
    if not s:
        return None
    if s[-1] in "Zz":
        s = s[:-1] + "+00:00"
    s = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], s, count=1)
    try:
        parsed = _dt.datetime.fromisoformat(s)
    except ValueError as e:
        raise InvalidGpxError(f"{where}: invalid time {text!r}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=_UTC)
    return parsed.astimezone(_UTC)


def _format_gpx_time(t: _dt.datetime) -> str:
    if t.tzinfo is None:
        t = t.replace(tzinfo=_UTC)
    return t.astimezone(_UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _float_or_none(text: Optional[str]) -> Optional[float]:
    if text is None or not text.strip():
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _int_or_none(text: Optional[str]) -> Optional[int]:
    v = _float_or_none(text)
    return None if v is None else int(round(v))


def read_gpx(path: Path) -> ET.ElementTree:
    """
    Parse a GPX file.

    Raises:
      InvalidGpxError if the file is not well-formed XML
      OSError if it cannot be read
    """
    try:
        return ET.parse(path)
    except ET.ParseError as e:
        raise InvalidGpxError(f"{path}: {e}") from e


# Garmin TrackPointExtension v1/v2 element names -> Extensions fields.
_EXTENSION_FIELDS = {
    "atemp": ("air_temp", _float_or_none),
    "wtemp": ("water_temp", _float_or_none),
    "depth": ("depth", _float_or_none),
    "hr": ("heart_rate", _int_or_none),
    "cad": ("cadence", _int_or_none),
}


def _parse_extensions(trkpt: ET.Element) -> Optional[Extensions]:
    """
    Read Garmin TrackPointExtension values from a <trkpt>.

    Matching is on local element names, so both the v1 and v2 schemas (and
    whatever prefix the device used) work.
    """
    ext = trkpt.find("gpx:extensions", GPX_NS)
    if ext is None:
        return None

    found = {}
    for el in ext.iter():
        field = _EXTENSION_FIELDS.get(_local(el.tag))
        if field is None:
            continue
        name, conv = field
        value = conv(el.text)
        if value is not None:
            found[name] = value

    return Extensions(**found) if found else None


def _parse_trkpt(trkpt: ET.Element, n: int) -> RawPoint:
    try:
        lat = float(trkpt.get("lat"))
        lon = float(trkpt.get("lon"))
    except (TypeError, ValueError) as e:
        raise InvalidGpxError(f"trackpoint {n}: missing or invalid lat/lon") from e

    return RawPoint(
        lat=lat,
        lon=lon,
        ele=_float_or_none(trkpt.findtext("gpx:ele", namespaces=GPX_NS)),
        time=_parse_gpx_time(trkpt.findtext("gpx:time", namespaces=GPX_NS), f"trackpoint {n}"),
        extensions=_parse_extensions(trkpt),
    )


def extract_trackpoints(tree: ET.ElementTree) -> list[RawPoint]:
    """
    Extract ordered trackpoints from a GPX tree.

    Every <trk> and <trkseg> is flattened into one sequence in document
    order. Points without a <time> or <ele> are kept; those fields are None.
    """
    root = tree.getroot()
    return [_parse_trkpt(trkpt, n) for n, trkpt in enumerate(root.findall(".//gpx:trkpt", GPX_NS))]


@dataclass(frozen=True)
class TrackInfo:
    """Names carried over to the simplified output."""
    name: Optional[str]
    type: Optional[str]
    metadata_time: Optional[_dt.datetime]


def extract_track_info(tree: ET.ElementTree) -> TrackInfo:
    root = tree.getroot()
    trk = root.find("gpx:trk", GPX_NS)
    name = trk.findtext("gpx:name", namespaces=GPX_NS) if trk is not None else None
    trk_type = trk.findtext("gpx:type", namespaces=GPX_NS) if trk is not None else None
    md_time = root.findtext("gpx:metadata/gpx:time", default="", namespaces=GPX_NS)
    return TrackInfo(name=name, type=trk_type, metadata_time=_parse_gpx_time(md_time, "metadata"))


def load_trackpoints(path: Path) -> tuple[list[RawPoint], TrackInfo]:
    """Read a GPX file and return its trackpoints and track names."""
    tree = read_gpx(path)
    return extract_trackpoints(tree), extract_track_info(tree)


def build_gpx(points: Iterable[RawPoint], info: Optional[TrackInfo] = None) -> ET.Element:
    """
    Build a GPX 1.1 document with one track and one segment.

    Only position, elevation and time are written. Extensions are dropped,
    which is most of the size saving on Garmin files.
    """
    ET.register_namespace("", GPX_NS["gpx"])
    root = ET.Element(qn("gpx"), {"version": "1.1", "creator": CREATOR})

    if info is not None and info.metadata_time is not None:
        md = ET.SubElement(root, qn("metadata"))
        ET.SubElement(md, qn("time")).text = _format_gpx_time(info.metadata_time)

    trk = ET.SubElement(root, qn("trk"))
    if info is not None and info.name:
        ET.SubElement(trk, qn("name")).text = info.name
    if info is not None and info.type:
        ET.SubElement(trk, qn("type")).text = info.type

    seg = ET.SubElement(trk, qn("trkseg"))
    for p in points:
        # 6 d.p. is precise to about 11 cm.
        pt = ET.SubElement(seg, qn("trkpt"), {"lat": f"{p.lat:.6f}", "lon": f"{p.lon:.6f}"})
        if p.ele is not None:
            ET.SubElement(pt, qn("ele")).text = f"{p.ele:.1f}"
        if p.time is not None:
            ET.SubElement(pt, qn("time")).text = _format_gpx_time(p.time)

    return root


def write_gpx(root: ET.Element, out_path: Path, *, pretty: bool = True) -> None:
    """Write `root` to out_path as UTF-8 with an XML declaration, creating parent directories."""
    tree = ET.ElementTree(root)
    if pretty:
        ET.indent(tree, space="  ")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    tree.write(out_path, encoding="utf-8", xml_declaration=True)
