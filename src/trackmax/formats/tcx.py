# trackmax/formats/tcx.py
"""
TCX (Garmin Training Center) reader and writer.

Different apps write the same trackpoint in slightly different ways
(Garmin Connect uses ns3:TPX, Strava/RWGPS/BigRing use a default-namespace
TPX, FulGaz puts HeartRateBpm first), so elements are matched by local
name and position in the tree doesn't matter within a <Trackpoint>.
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

TCX_NS = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
ACTEXT_NS = "http://www.garmin.com/xmlschemas/ActivityExtension/v2"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

# ElementTree reserves the "ns<digits>" prefixes Garmin Connect uses
ET.register_namespace("ax", ACTEXT_NS)
ET.register_namespace("xsi", XSI_NS)

SPORT_NAMES = {
    ActivityType.RIDE: "Biking",
    ActivityType.HIKE: "Hiking",
    ActivityType.RUN: "Running",
    ActivityType.WALK: "Walking",
    ActivityType.VRIDE: "Virtual Cycling",
    ActivityType.OTHER: "Other",
}
_SPORTS = {name: act for act, name in SPORT_NAMES.items()}


def qn(tag: str, ns: str = TCX_NS) -> str:
    return f"{{{ns}}}{tag}"


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------
def read_tcx(path: Path, track: Track) -> int:
    """
    Append the trackpoints of a TCX file to `track`.

    Returns the number of points read.

    Raises:
      InvalidInputError
    """
    label = path.name
    current: Optional[TrackPoint] = None
    in_track = False
    root_seen = False
    count = 0

    for event, elem, line in iter_elements(path):
        tag = local_name(elem.tag)
        where = f"{label}:{line}"

        if not root_seen:
            if tag != "TrainingCenterDatabase":
                raise InvalidInputError(f"Input file {path} is not a recognized TCX file")
            root_seen = True

        if event == "start":
            if tag == "Activity" and track.activity_type is ActivityType.UNDEF:
                act = _SPORTS.get(elem.get("Sport", ""))
                if act is not None:
                    track.activity_type = act
            elif tag == "Track":
                if in_track:
                    raise InvalidInputError(f"Nested <Track> block at {where}")
                in_track = True
            elif tag == "Trackpoint" and in_track:
                if current is not None:
                    raise InvalidInputError(f"Nested <Trackpoint> block at {where}")
                current = track.new_point(label, line)
            continue

        if tag == "Track":
            in_track = False
        elif current is None:
            continue
        elif tag == "Trackpoint":
            current = None
            count += 1
            elem.clear()
        elif tag == "Time":
            ts = parse_time(text_of(elem))
            if ts is None:
                raise InvalidInputError(f"TrkPt {current.label()} has an invalid timestamp {elem.text!r}")
            current.timestamp = ts
        elif tag == "LatitudeDegrees":
            current.latitude = parse_float(elem.text, "latitude", where)
        elif tag == "LongitudeDegrees":
            current.longitude = parse_float(elem.text, "longitude", where)
        elif tag == "AltitudeMeters":
            current.elevation = parse_float(elem.text, "elevation", where)
        elif tag == "DistanceMeters":
            current.distance = parse_float(elem.text, "distance", where)
        elif tag == "GradePercent":
            current.grade = parse_float(elem.text, "grade", where)
        elif tag == "Speed":
            current.speed = parse_float(elem.text, "speed", where)
        elif tag == "Watts":
            current.power = parse_int(elem.text, "power", where)
            track.in_mask |= SensorData.POWER
        elif tag == "Cadence":
            current.cadence = parse_int(elem.text, "cadence", where)
            track.in_mask |= SensorData.CADENCE
        elif tag == "Value" and text_of(elem):
            # Only <HeartRateBpm> has a <Value> inside a <Trackpoint>
            current.heart_rate = parse_int(elem.text, "heart rate", where)
            track.in_mask |= SensorData.HR

    if not root_seen:
        raise InvalidInputError(f"Input file {path} is empty")
    return count


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------
def render_tcx(track: Track, opts: OutputOptions) -> str:
    """Render `track` as a single-lap activity, Garmin Connect style."""
    now = format_time(opts.now_ts(), millis=False)

    root = ET.Element(qn("TrainingCenterDatabase"), {
        qn("schemaLocation", XSI_NS): f"{TCX_NS} http://www.garmin.com/xmlschemas/TrainingCenterDatabasev2.xsd",
    })
    acts = ET.SubElement(root, qn("Activities"))
    act = ET.SubElement(acts, qn("Activity"), {"Sport": SPORT_NAMES[resolve_activity_type(track, opts)]})
    ET.SubElement(act, qn("Id")).text = now

    lap = ET.SubElement(act, qn("Lap"), {"StartTime": now})
    ET.SubElement(lap, qn("TotalTimeSeconds")).text = f"{track.time:.3f}"
    ET.SubElement(lap, qn("DistanceMeters")).text = f"{track.distance:.10f}"
    max_speed = track.maxima.get("speed")
    ET.SubElement(lap, qn("MaximumSpeed")).text = f"{max_speed.value if max_speed else 0.0:.10f}"

    hr = channel_enabled(track, opts, SensorData.HR)
    cad = channel_enabled(track, opts, SensorData.CADENCE)
    power = channel_enabled(track, opts, SensorData.POWER)
    if hr:
        avg_hr = track.average("heart_rate")
        max_hr = track.maxima.get("heart_rate")
        ET.SubElement(ET.SubElement(lap, qn("AverageHeartRateBpm")), qn("Value")).text = str(int(avg_hr or 0))
        ET.SubElement(ET.SubElement(lap, qn("MaximumHeartRateBpm")), qn("Value")).text = str(
            int(max_hr.value) if max_hr else 0
        )
    if cad:
        # The lap-level <Cadence> is the max cadence
        max_cad = track.maxima.get("cadence")
        ET.SubElement(lap, qn("Cadence")).text = str(int(max_cad.value) if max_cad else 0)
    ET.SubElement(lap, qn("TriggerMethod")).text = "Manual"

    trk = ET.SubElement(lap, qn("Track"))
    for p in track:
        tp = ET.SubElement(trk, qn("Trackpoint"))
        ET.SubElement(tp, qn("Time")).text = format_time(point_time(track, p))
        pos = ET.SubElement(tp, qn("Position"))
        ET.SubElement(pos, qn("LatitudeDegrees")).text = f"{p.latitude:.10f}"
        ET.SubElement(pos, qn("LongitudeDegrees")).text = f"{p.longitude:.10f}"
        ET.SubElement(tp, qn("AltitudeMeters")).text = f"{p.elevation:.10f}"
        ET.SubElement(tp, qn("DistanceMeters")).text = f"{p.distance or 0.0:.10f}"
        if hr:
            ET.SubElement(ET.SubElement(tp, qn("HeartRateBpm")), qn("Value")).text = str(int_or_zero(p.heart_rate))
        if cad:
            ET.SubElement(tp, qn("Cadence")).text = str(int_or_zero(p.cadence))
        tpx = ET.SubElement(ET.SubElement(tp, qn("Extensions")), qn("TPX", ACTEXT_NS))
        ET.SubElement(tpx, qn("Speed", ACTEXT_NS)).text = f"{p.speed or 0.0:.10f}"
        if power:
            ET.SubElement(tpx, qn("Watts", ACTEXT_NS)).text = str(int_or_zero(p.power))

    author = ET.SubElement(root, qn("Author"), {qn("type", XSI_NS): "Application_t"})
    ET.SubElement(author, qn("Name")).text = PROG_NAME
    version = ET.SubElement(ET.SubElement(author, qn("Build")), qn("Version"))
    major, minor = __version__.split(".")[:2]
    ET.SubElement(version, qn("VersionMajor")).text = major
    ET.SubElement(version, qn("VersionMinor")).text = minor
    ET.SubElement(author, qn("LangID")).text = "en"

    return to_document(root, default_namespace=TCX_NS)
