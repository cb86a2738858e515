# trackmax/formats/tabular.py
"""
CSV output (one row per point, every raw and derived value) and the
matching reader.

Units in the file: distance in km, speed in km/h, grade in percent,
everything else in SI units. Absolute times are seconds since the Epoch;
relative times (sec or hh:mm:ss) are measured from the first point and
can't be read back.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

from trackmax.analyze.track import SensorData, Track
from trackmax.config import TimeFormat
from trackmax.errors import InvalidInputError
from trackmax.formats.options import (
    OutputOptions,
    fmt_rel_time,
    int_or_zero,
    m_to_km,
    mps_to_kph,
    point_time,
)
from trackmax.formats.xmlutil import parse_float, parse_int

COLUMNS = (
    "<inFile>", "<line#>", "<trkpt>", "<time>", "<lat>", "<lon>", "<ele>",
    "<power>", "<atemp>", "<cadence>", "<hr>", "<deltaT>", "<run>", "<rise>",
    "<dist>", "<distance>", "<speed>", "<grade>", "<deltaG>",
)

# Column -> (TrackPoint field, channel bit)
_CHANNELS = {
    "<power>": ("power", SensorData.POWER),
    "<atemp>": ("temperature", SensorData.ATEMP),
    "<cadence>": ("cadence", SensorData.CADENCE),
    "<hr>": ("heart_rate", SensorData.HR),
}


def render_csv(track: Track, opts: OutputOptions) -> str:
    buf = io.StringIO()
    buf.write(",".join(COLUMNS) + "\n")

    for p in track:
        if opts.rel_time is TimeFormat.NONE:
            ts = f"{point_time(track, p):.3f}"
        else:
            ts = fmt_rel_time(p.timestamp - track.base_time, opts.rel_time)
        buf.write(
            f"{p.source_file},{p.source_line},{p.index},{ts},"
            f"{p.latitude:.10f},{p.longitude:.10f},{p.elevation:.10f},"
            f"{int_or_zero(p.power)},{int_or_zero(p.temperature)},"
            f"{int_or_zero(p.cadence)},{int_or_zero(p.heart_rate)},"
            f"{p.delta_time:.10f},{p.run:.3f},{p.rise:.10f},{p.dist:.10f},"
            f"{m_to_km(p.distance):.10f},{mps_to_kph(p.speed):.10f},"
            f"{p.grade or 0.0:.2f},{p.grade_delta:.2f}\n"
        )

    return buf.getvalue()


def read_csv(path: Path, track: Track) -> int:
    """
    Append the points of a CSV file written by render_csv() to `track`.

    Only the raw columns are used; derived values are recomputed by the
    pipeline. A sensor channel counts as present if any row has a
    non-zero value for it.

    Raises:
      InvalidInputError
    """
    label = path.name
    count = 0
    try:
        with path.open("r", encoding="utf-8", newline="") as fp:
            reader = csv.reader(fp)
            banner = next(reader, None)
            if banner is None or tuple(c.strip() for c in banner) != COLUMNS:
                raise InvalidInputError(f"Input file {path} is not a recognized CSV file")

            for row in reader:
                if not row:
                    continue
                line = reader.line_num
                where = f"{label}:{line}"
                if len(row) != len(COLUMNS):
                    raise InvalidInputError(f"Expected {len(COLUMNS)} columns, got {len(row)} at {where}")
                rec = dict(zip(COLUMNS, row))

                if ":" in rec["<time>"]:
                    raise InvalidInputError(f"Relative hh:mm:ss timestamps can't be read back ({where})")

                p = track.new_point(label, line)
                p.timestamp = parse_float(rec["<time>"], "time", where)
                p.latitude = parse_float(rec["<lat>"], "latitude", where)
                p.longitude = parse_float(rec["<lon>"], "longitude", where)
                p.elevation = parse_float(rec["<ele>"], "elevation", where)
                for col, (name, bit) in _CHANNELS.items():
                    value = parse_int(rec[col], col, where)
                    setattr(p, name, value)
                    if value:
                        track.in_mask |= bit
                count += 1
    except OSError as e:
        raise InvalidInputError(f"Failed to read input file {path} ({e})") from e
    except csv.Error as e:
        raise InvalidInputError(f"Malformed CSV in {path}: {e}") from e

    return count
