# trackmax/formats/summary.py
"""
Human-readable activity summary.

Only the aggregate is needed here; points are looked up through the
back-references stored in the extrema.
"""

from __future__ import annotations

import datetime as _dt
from typing import Callable, Optional

from trackmax.analyze.track import Extremum, SensorData, Track, TrackPoint
from trackmax.formats.options import OutputOptions, fmt_hms, m_to_km, mps_to_kph, point_time

# (mask bit, aggregate channel, label suffix, value format)
_SENSOR_LINES = (
    (SensorData.CADENCE, "cadence", "Cadence", "{:d} rpm"),
    (SensorData.HR, "heart_rate", "HR", "{:d} bpm"),
    (SensorData.POWER, "power", "Power", "{:d} watts"),
    (SensorData.ATEMP, "temperature", "Temp", "{:d} C"),
)


def _line(label: str, text: str) -> str:
    return f"{label:>15}: {text}"


def _extremum(
    track: Track,
    label: str,
    ext: Optional[Extremum],
    fmt: str,
    extra: Optional[Callable[[TrackPoint], str]] = None,
) -> Optional[str]:
    """'<value> @ TrkPt #i (file:line) : time = ..., distance = ...' or None."""
    if ext is None:
        return None
    p = track.point(ext.index)
    text = (
        f"{fmt.format(ext.value)} @ TrkPt {p.label()} : "
        f"time = {int(p.timestamp - track.base_time)} s, "
        f"distance = {m_to_km(p.distance):.3f} km"
    )
    if extra is not None:
        text += extra(p)
    return _line(label, text)


def _speed(ext: Optional[Extremum]) -> Optional[Extremum]:
    return Extremum(mps_to_kph(ext.value), ext.index) if ext is not None else None


def _whole(ext: Optional[Extremum]) -> Optional[Extremum]:
    return Extremum(int(ext.value), ext.index) if ext is not None else None


def render_summary(track: Track, opts: OutputOptions) -> str:
    lines: list[Optional[str]] = [
        _line("numTrkPts", str(track.num_points_read)),
        _line("numDupTrkPts", str(track.num_dup_points)),
        _line("numTrimTrkPts", str(track.num_trim_points)),
        _line("numDiscTrkPts", str(track.num_disc_points)),
        _line("numElevAdj", str(track.num_elev_adj)),
    ]
    if track.num_speed_adj:
        lines.append(_line("numSpeedAdj", str(track.num_speed_adj)))

    start = _dt.datetime.fromtimestamp(int(point_time(track, track.first())), tz=_dt.timezone.utc)
    lines += [
        _line("dateAndTime", start.strftime("%Y-%m-%dT%H:%M:%S")),
        _line("elapsedTime", fmt_hms(track.end_time - track.start_time)),
        _line("totalTime", fmt_hms(track.time)),
        _line("movingTime", fmt_hms(track.moving_time)),
        _line("stoppedTime", fmt_hms(track.stopped_time)),
        _line("distance", f"{m_to_km(track.distance):.3f} km"),
        _line("elevGain", f"{track.elev_gain:.3f} m"),
        _line("elevLoss", f"{track.elev_loss:.3f} m"),
    ]

    maxima, minima = track.maxima, track.minima

    def deltas(p: TrackPoint) -> str:
        return f", deltaD = {p.dist:.3f} m, deltaT = {p.delta_time:.3f} s"

    def run_rise(p: TrackPoint) -> str:
        return f", run = {p.run:.3f} m, rise = {p.rise:.3f} m"

    lines += [
        _extremum(track, "maxElev", maxima.get("elevation"), "{:.3f} m"),
        _extremum(track, "minElev", minima.get("elevation"), "{:.3f} m"),
        _extremum(track, "maxSpeed", _speed(maxima.get("speed")), "{:.3f} km/h", deltas),
        _extremum(track, "minSpeed", _speed(minima.get("speed")), "{:.3f} km/h", deltas),
        _line("avgSpeed", f"{mps_to_kph(track.avg_speed):.3f} km/h"),
        _extremum(track, "maxGrade", maxima.get("grade"), "{:.2f}%", run_rise),
        _extremum(track, "minGrade", minima.get("grade"), "{:.2f}%", run_rise),
    ]
    avg_grade = track.average("grade")
    if avg_grade is not None:
        lines.append(_line("avgGrade", f"{avg_grade:.2f}%"))

    for bit, key, name, fmt in _SENSOR_LINES:
        if not (track.in_mask & bit):
            continue
        lines.append(_extremum(track, f"max{name}", _whole(maxima.get(key)), fmt))
        lines.append(_extremum(track, f"min{name}", _whole(minima.get(key)), fmt))
        avg = track.average(key)
        if avg is not None:
            lines.append(_line(f"avg{name}", fmt.format(int(avg))))

    lines += [
        _extremum(track, "maxDeltaD", track.max_delta_d, "{:.3f} m"),
        _extremum(track, "maxDeltaT", track.max_delta_t, "{:.3f} sec"),
        _extremum(track, "maxDeltaG", maxima.get("grade_delta"), "{:.2f}%"),
    ]

    return "\n".join(line for line in lines if line is not None) + "\n"
