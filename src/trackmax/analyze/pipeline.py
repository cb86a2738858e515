# trackmax/analyze/pipeline.py
"""
Pipeline orchestrator.

Runs the passes over one Track, strictly in order, and folds each pass's
result record into the Track:

  1) reference-point checks and start time
  2) cleanup (duplicates, non-monotonic points, trim)
  3) time-gap closing
  4) elevation smoothing (a pre-filter on raw readings)
  5) metrics derivation
  6) grade/power/speed smoothing (operates on derived values)
  7) grade and speed limiting
  8) elevation reconciliation
  9) aggregation

Verbatim mode skips the automatic corrections (4, 6, 7, 8).
"""

from __future__ import annotations

from trackmax.analyze.aggregate import aggregate
from trackmax.analyze.cleanup import check_points, close_time_gap
from trackmax.analyze.grade import limit_grades, reconcile_elevation, refresh_grade_deltas
from trackmax.analyze.metrics import derive_metrics
from trackmax.analyze.smoothing import smooth
from trackmax.analyze.track import Track
from trackmax.config import PipelineConfig, XmaMetric
from trackmax.errors import EmptyTrackError, MissingElevationError, MissingTimestampError
from trackmax.util.logging import Diagnostics


def _check_reference_point(track: Track, cfg: PipelineConfig) -> None:
    """The first point is the reference for every other one."""
    first = track.first()
    if first is None:
        raise EmptyTrackError("No track points found!")

    # Without it, the grade of the second point would be huge
    if first.elevation is None:
        raise MissingElevationError(f"TrkPt {first.label()} is missing its elevation data")

    if first.timestamp is None:
        # A route: a start time and a speed are needed to turn it into a ride
        if not cfg.start_time or not cfg.set_speed:
            raise MissingTimestampError(
                f"TrkPt {first.label()} is missing time information and no start time "
                "or average speed was specified to turn a route into an activity"
            )
        first.timestamp = cfg.start_time
    elif cfg.start_time:
        track.time_offset = cfg.start_time - first.timestamp


def run_pipeline(
    track: Track, cfg: PipelineConfig, diag: Diagnostics, *, rel_time: bool = False,
) -> Track:
    """
    Run every pass over `track` (in place) and return it.

    `rel_time` sets the base time used by writers to render relative
    timestamps.
    """
    cfg.validate()
    _check_reference_point(track, cfg)

    cleanup = check_points(track, cfg, diag)
    track.num_dup_points += cleanup.num_dup
    track.num_trim_points += cleanup.num_trim
    track.num_disc_points += cleanup.num_disc

    first = track.first()
    track.start_time = first.timestamp
    if rel_time:
        track.base_time = first.timestamp

    if cfg.close_gap:
        close_time_gap(track, cfg, diag)

    corrections = not cfg.verbatim
    smooth_elevation = corrections and cfg.smoothing and cfg.xma_metric is XmaMetric.ELEVATION

    if smooth_elevation:
        smooth(track, cfg, diag, derived=False)

    metrics = derive_metrics(track, cfg, diag)
    track.num_disc_points += metrics.num_disc
    track.distance = metrics.distance
    track.time = metrics.time
    track.stopped_time = metrics.stopped_time
    track.end_time = metrics.end_time
    track.max_delta_d = metrics.max_delta_d
    track.max_delta_t = metrics.max_delta_t

    if corrections:
        if cfg.smoothing and not smooth_elevation:
            smooth(track, cfg, diag)

        limits = limit_grades(track, cfg, diag)
        track.num_speed_adj += limits.num_speed_adj

        if not cfg.no_elev_adj:
            track.num_elev_adj += reconcile_elevation(track, diag).num_elev_adj

        refresh_grade_deltas(track)

    agg = aggregate(track)
    track.maxima = agg.maxima
    track.minima = agg.minima
    track.sums = agg.sums
    track.counts = agg.counts
    track.elev_gain = agg.elev_gain
    track.elev_loss = agg.elev_loss

    diag.info(
        f"{track.num_points} TrkPts kept ({track.num_dup_points} duplicate, "
        f"{track.num_trim_points} trimmed, {track.num_disc_points} discarded, "
        f"{track.num_elev_adj} elevation adjustments)"
    )
    return track
