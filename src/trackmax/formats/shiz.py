# trackmax/formats/shiz.py
"""
FulGaz ".shiz" writer.

A JSON document (valid as of FulGaz 4.2.15) with an "extra" block of
ride totals and one trkpt object per point, each on its own line.
Duration is hh:mm:ss, distances are km, speed is km/h. Point values are
JSON strings, as FulGaz expects.
"""

from __future__ import annotations

import datetime as _dt
import json

from trackmax.analyze.track import SensorData, Track
from trackmax.formats.options import (
    OutputOptions,
    channel_enabled,
    fmt_hms,
    int_or_zero,
    m_to_km,
    mps_to_kph,
)

_COMPACT = (",", ":")


def render_shiz(track: Track, opts: OutputOptions) -> str:
    processed = _dt.datetime.fromtimestamp(opts.now_ts(), tz=_dt.timezone.utc)
    extra = {
        "duration": fmt_hms(track.time),
        "distance": round(m_to_km(track.distance), 5),
        "toughness": "100",
        "elevation_gain": int(track.elev_gain),
        "date_processed": processed.strftime("%A, %B %d, %Y"),
        "speed_filter": "0",
        "elevation_filter": "0",
        "grade_filter": "0",
        "timeshift": "0",
    }

    first = track.first()
    base_time = first.timestamp if first is not None else 0.0
    power = channel_enabled(track, opts, SensorData.POWER)
    cadence = channel_enabled(track, opts, SensorData.CADENCE)

    points = []
    for p in track:
        points.append(json.dumps({
            "-lon": f"{p.longitude:.7f}",
            "-lat": f"{p.latitude:.7f}",
            "speed": f"{mps_to_kph(p.speed):.1f}",
            "ele": f"{p.elevation:.3f}",
            "distance": f"{m_to_km(p.distance):.5f}",
            "bearing": f"{p.bearing:.2f}",
            "slope": f"{p.grade or 0.0:.1f}",
            "time": fmt_hms(p.timestamp - base_time),
            "index": p.index,
            "cadence": int_or_zero(p.cadence) if cadence else 0,
            "p": int_or_zero(p.power) if power else 0,
        }, separators=_COMPACT))

    head = '{"extra":' + json.dumps(extra, separators=_COMPACT) + ',"gpx":{"trk":{"trkseg":{"trkpt":['
    return head + ",\n".join(points) + ']}},"seg":[]}}\n'
