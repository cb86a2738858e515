# trackmax/formats/gpx.py
"""
GPX 1.1 reader and writer.

Reading:
- <trkpt> and <rtept> both become track points (routes carry no <time>)
- <ele>, <time>, and the sensor extensions, matched by local name so the
  gpxtpx:, gpxdata: and ns3: flavours all work
- <type> (numeric) sets the activity type

Writing uses the Garmin TrackPointExtension for atemp/hr/cad and a bare
<power> element, which is what most GPX consumers understand.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from xml.etree import ElementTree as ET

from trackmax.analyze.track import ActivityType, SensorData, Track, TrackPoint
from trackmax.errors import InvalidInputError
from trackmax.formats.options import (
    OutputOptions,
    channel_enabled,
    int_or_zero,
    point_time,
    resolve_activity_type,
)
from trackmax.formats.xmlutil import (
    format_time,
    iter_elements,
    local_name,
    parse_float,
    parse_int,
    parse_time,
    text_of,
    to_document,
)
from trackmax.version import PROG_NAME, __version__

# GPX 1.1 default namespace
GPX_NS = "http://www.topografix.com/GPX/1/1"
GPXTPX_NS = "http://www.garmin.com/xmlschemas/TrackPointExtension/v1"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("gpxtpx", GPXTPX_NS)
ET.register_namespace("xsi", XSI_NS)

_POINT_TAGS = ("trkpt", "rtept")

# Extension element (local name) -> (TrackPoint field, channel bit)
_EXTENSIONS = {
    "power": ("power", SensorData.POWER),
    "atemp": ("temperature", SensorData.ATEMP),
    "hr": ("heart_rate", SensorData.HR),
    "cad": ("cadence", SensorData.CADENCE),
    "cadence": ("cadence", SensorData.CADENCE),
}


def qn(tag: str, ns: str = GPX_NS) -> str:
    """
    Build an ElementTree-qualified name.

    ElementTree represents namespaced tags internally as
      "{namespace-uri}tag"
    """
    return f"{{{ns}}}{tag}"


def _activity_type(text: str) -> Optional[ActivityType]:
    try:
        return ActivityType(int(text))
    except ValueError:
        pass
    try:
        return ActivityType.from_name(text)
    except KeyError:
        return None


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------
def read_gpx(path: Path, track: Track) -> int:
    """
    Append the track/route points of a GPX file to `track`.

    Returns the number of points read.

    Raises:
      InvalidInputError
    """
    label = path.name
    current: Optional[TrackPoint] = None
    metadata = 0
    root_seen = False
    count = 0

    for event, elem, line in iter_elements(path):
        tag = local_name(elem.tag)
        where = f"{label}:{line}"

        if not root_seen:
            if tag != "gpx":
                raise InvalidInputError(f"Input file {path} is not a recognized GPX file")
            root_seen = True

        if event == "start":
            if tag == "metadata":
                metadata += 1
            elif tag in _POINT_TAGS and not metadata:
                if current is not None:
                    raise InvalidInputError(f"Nested <{tag}> block at {where}")
                current = track.new_point(label, line)
                current.latitude = parse_float(elem.get("lat"), "latitude", where)
                current.longitude = parse_float(elem.get("lon"), "longitude", where)
            continue

        # Ignore the metadata
        if tag == "metadata":
            metadata -= 1
            continue
        if metadata:
            continue

        if tag in _POINT_TAGS:
            current = None
            count += 1
            elem.clear()
        elif current is None:
            if tag == "type" and track.activity_type is ActivityType.UNDEF:
                act = _activity_type(text_of(elem))
                if act is not None:
                    track.activity_type = act
        elif tag == "ele":
            current.elevation = parse_float(elem.text, "elevation", where)
        elif tag == "time":
            ts = parse_time(text_of(elem))
            if ts is None:
                raise InvalidInputError(f"TrkPt {current.label()} has an invalid timestamp {elem.text!r}")
            current.timestamp = ts
        elif tag in _EXTENSIONS:
            name, bit = _EXTENSIONS[tag]
            setattr(current, name, parse_int(elem.text, tag, where))
            track.in_mask |= bit

    if not root_seen:
        raise InvalidInputError(f"Input file {path} is empty")
    return count


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------
def render_gpx(track: Track, opts: OutputOptions) -> str:
    root = ET.Element(qn("gpx"), {
        "creator": PROG_NAME,
        "version": "1.1",
        qn("schemaLocation", XSI_NS): f"{GPX_NS} http://www.topografix.com/GPX/1/1/gpx.xsd",
    })

    md = ET.SubElement(root, qn("metadata"))
    if opts.name:
        ET.SubElement(md, qn("name")).text = opts.name
    ET.SubElement(md, qn("author")).text = f"{PROG_NAME} version {__version__}"
    if opts.command_line:
        ET.SubElement(md, qn("desc")).text = opts.command_line
    ET.SubElement(md, qn("time")).text = format_time(opts.now_ts(), millis=False)

    trk = ET.SubElement(root, qn("trk"))
    if opts.name:
        ET.SubElement(trk, qn("name")).text = opts.name
    ET.SubElement(trk, qn("type")).text = str(int(resolve_activity_type(track, opts)))
    seg = ET.SubElement(trk, qn("trkseg"))

    power = channel_enabled(track, opts, SensorData.POWER)
    tpx_channels = [
        (bit, tag, name)
        for bit, tag, name in (
            (SensorData.ATEMP, "atemp", "temperature"),
            (SensorData.HR, "hr", "heart_rate"),
            (SensorData.CADENCE, "cad", "cadence"),
        )
        if channel_enabled(track, opts, bit)
    ]

    for p in track:
        trkpt = ET.SubElement(seg, qn("trkpt"), {"lat": f"{p.latitude:.10f}", "lon": f"{p.longitude:.10f}"})
        ET.SubElement(trkpt, qn("ele")).text = f"{p.elevation:.10f}"
        ET.SubElement(trkpt, qn("time")).text = format_time(point_time(track, p))
        if power or tpx_channels:
            ext = ET.SubElement(trkpt, qn("extensions"))
            if power:
                ET.SubElement(ext, qn("power")).text = str(int_or_zero(p.power))
            if tpx_channels:
                tpx = ET.SubElement(ext, qn("TrackPointExtension", GPXTPX_NS))
                for _bit, tag, name in tpx_channels:
                    ET.SubElement(tpx, qn(tag, GPXTPX_NS)).text = str(int_or_zero(getattr(p, name)))

    return to_document(root, default_namespace=GPX_NS)
