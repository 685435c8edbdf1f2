import datetime as dt

import pytest

from gpxstages.errors import InvalidGpxError
from gpxstages.formats.gpx import build_gpx, load_trackpoints, write_gpx


def test_load_sample(sample_gpx_path):
    raw, info = load_trackpoints(sample_gpx_path)

    # two <trkseg>s flattened into one sequence
    assert len(raw) == 6
    assert [p.lat for p in raw] == pytest.approx([51.5, 51.501, 51.502, 51.503, 51.504, 51.505])
    assert raw[0].ele == 20.0
    assert raw[0].time == dt.datetime(2024, 6, 1, 8, 0, tzinfo=dt.timezone.utc)

    assert raw[0].heart_rate == 110
    assert raw[0].cadence == 80
    assert raw[0].air_temp == 18.0
    assert raw[1].cadence is None
    assert raw[2].extensions is None

    assert info.name == "Morning Ride"
    assert info.type == "cycling"
    assert info.metadata_time == dt.datetime(2024, 6, 1, 7, 59, 30, tzinfo=dt.timezone.utc)


def test_points_without_time_or_elevation(tmp_path):
    p = tmp_path / "bare.gpx"
    p.write_text(
        '<?xml version="1.0"?>\n'
        '<gpx xmlns="http://www.topografix.com/GPX/1/1" version="1.1">'
        "<trk><trkseg>"
        '<trkpt lat="1.0" lon="2.0"/>'
        '<trkpt lat="1.5" lon="2.5"><time>2024-06-01T08:00:00+02:00</time></trkpt>'
        "</trkseg></trk></gpx>",
        encoding="utf-8",
    )
    raw, info = load_trackpoints(p)

    assert raw[0].ele is None
    assert raw[0].time is None
    assert raw[1].time == dt.datetime(2024, 6, 1, 6, 0, tzinfo=dt.timezone.utc)
    assert info.name is None


def test_malformed_xml_is_rejected(tmp_path):
    p = tmp_path / "broken.gpx"
    p.write_text("<gpx><trk>", encoding="utf-8")
    with pytest.raises(InvalidGpxError):
        load_trackpoints(p)


def test_bad_coordinates_are_rejected(tmp_path):
    p = tmp_path / "nolat.gpx"
    p.write_text(
        '<gpx xmlns="http://www.topografix.com/GPX/1/1"><trk><trkseg>'
        '<trkpt lon="2.0"/></trkseg></trk></gpx>',
        encoding="utf-8",
    )
    with pytest.raises(InvalidGpxError, match="trackpoint 0"):
        load_trackpoints(p)


def test_written_gpx_reads_back(sample_gpx_path, tmp_path):
    raw, info = load_trackpoints(sample_gpx_path)
    out = tmp_path / "sub" / "out.gpx"

    write_gpx(build_gpx([raw[0], raw[3], raw[5]], info), out)
    back, back_info = load_trackpoints(out)

    assert [(p.lat, p.lon, p.ele, p.time) for p in back] == [
        (p.lat, p.lon, p.ele, p.time) for p in (raw[0], raw[3], raw[5])
    ]
    # extensions are not written
    assert all(p.extensions is None for p in back)
    assert back_info == info
    assert 'creator="gpxstages"' in out.read_text(encoding="utf-8")


def _one_point_gpx(tmp_path, time_text):
    p = tmp_path / "t.gpx"
    p.write_text(
        '<gpx xmlns="http://www.topografix.com/GPX/1/1"><trk><trkseg>'
        '<trkpt lat="1.0" lon="2.0"><time>2024-06-01T08:00:00Z</time></trkpt>'
        f'<trkpt lat="1.1" lon="2.0"><time>{time_text}</time></trkpt>'
        "</trkseg></trk></gpx>",
        encoding="utf-8",
    )
    return p


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-06-01T08:00:00.5Z", dt.datetime(2024, 6, 1, 8, 0, 0, 500000, tzinfo=dt.timezone.utc)),
        ("2024-06-01T08:00:00.1234567Z", dt.datetime(2024, 6, 1, 8, 0, 0, 123456, tzinfo=dt.timezone.utc)),
        ("2024-06-01T08:00:01", dt.datetime(2024, 6, 1, 8, 0, 1, tzinfo=dt.timezone.utc)),
    ],
)
def test_time_variants(tmp_path, text, expected):
    raw, _ = load_trackpoints(_one_point_gpx(tmp_path, text))
    assert raw[1].time == expected


@pytest.mark.parametrize("text", ["yesterday", "2024-13-01T08:00:00Z", "2024-06-01T25:00:00Z"])
def test_malformed_time_is_rejected(tmp_path, text):
    with pytest.raises(InvalidGpxError, match=r"trackpoint 1: invalid time"):
        load_trackpoints(_one_point_gpx(tmp_path, text))
