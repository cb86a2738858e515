import math

import pytest

from trackmax.analyze.pipeline import run_pipeline
from trackmax.analyze.track import Track
from trackmax.config import XmaMetric
from trackmax.errors import ConfigError, EmptyTrackError, MissingElevationError, MissingTimestampError
from conftest import BASE_TIME


def _up_and_down(make_track):
    """Four points, 10 m apart at 1 m/s: +3%, flat, -3%."""
    d = math.sqrt(10.0 ** 2 + 0.3 ** 2)
    return make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=d, elevation=100.3),
        dict(north=20.0, t=d + 10.0, elevation=100.3),
        dict(north=30.0, t=2 * d + 10.0, elevation=100.0),
    ])


def test_empty_track_raises(cfg, diag):
    with pytest.raises(EmptyTrackError):
        run_pipeline(Track(), cfg, diag)


def test_first_point_without_elevation_raises(make_track, cfg, diag):
    track = make_track([dict(north=0.0, t=0.0), dict(north=10.0, t=10.0, elevation=100.0)])
    with pytest.raises(MissingElevationError):
        run_pipeline(track, cfg, diag)


def test_route_without_start_time_raises(make_track, cfg, diag):
    track = make_track([dict(north=0.0, elevation=100.0), dict(north=10.0, elevation=100.0)])
    with pytest.raises(MissingTimestampError):
        run_pipeline(track, cfg.with_overrides(set_speed=3.0), diag)


def test_invalid_config_is_rejected(make_track, cfg, diag):
    track = _up_and_down(make_track)
    with pytest.raises(ConfigError):
        run_pipeline(track, cfg.with_overrides(xma_window=4), diag)


def test_up_and_down_summary_values(make_track, cfg, diag):
    track = run_pipeline(_up_and_down(make_track), cfg, diag)

    assert len(track) == 4
    assert track.elev_gain == pytest.approx(0.3)
    assert track.elev_loss == pytest.approx(0.3)
    assert track.maxima["grade"].value == pytest.approx(3.0, rel=1e-6)
    assert track.maxima["grade"].index == 1
    assert track.minima["grade"].value == pytest.approx(-3.0, rel=1e-6)
    assert track.minima["grade"].index == 3
    assert track.maxima["speed"].value == pytest.approx(1.0, rel=1e-6)
    assert track.start_time == BASE_TIME
    assert track.end_time - track.start_time == pytest.approx(track.time)
    assert track.num_elev_adj == 0


def test_route_becomes_a_ride(make_track, cfg, diag):
    track = make_track([dict(north=i * 20.0, elevation=100.0 + i) for i in range(4)])
    speed = 10.0 / 3.6

    run_pipeline(track, cfg.with_overrides(set_speed=speed, start_time=BASE_TIME), diag)

    assert track.first().timestamp == BASE_TIME
    assert track.avg_speed == pytest.approx(speed)
    for p in list(track)[1:]:
        assert p.delta_time == pytest.approx(p.dist / speed)


def test_start_time_sets_offset(make_track, cfg, diag):
    track = _up_and_down(make_track)

    run_pipeline(track, cfg.with_overrides(start_time=BASE_TIME + 3600.0), diag)

    assert track.time_offset == pytest.approx(3600.0)
    assert track.first().timestamp == BASE_TIME


def test_rel_time_sets_base_time(make_track, cfg, diag):
    track = run_pipeline(_up_and_down(make_track), cfg, diag, rel_time=True)
    assert track.base_time == BASE_TIME


def test_trim_shortens_the_activity(make_track, cfg, diag):
    track = make_track(
        [dict(north=i * 10.0, t=i * 10.0, elevation=100.0, distance=i * 10.0) for i in range(10)]
    )

    run_pipeline(track, cfg.with_overrides(trim=(3, 5)), diag)

    assert track.num_trim_points == 3
    assert track.time == pytest.approx(90.0 - (50.0 - 20.0))
    assert track.distance == pytest.approx(90.0 - (50.0 - 20.0))


def test_point_counts_add_up(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=100.0),
        dict(north=10.0, t=12.0, elevation=100.0),   # duplicate
        dict(north=20.0, t=9.0, elevation=100.0),    # non-increasing time
        dict(north=20.0, t=20.0, elevation=100.0),
        dict(north=20.0, t=25.0, elevation=101.0),   # stopped
        dict(north=30.0, t=30.0, elevation=101.0),
    ])

    run_pipeline(track, cfg, diag)

    assert track.num_dup_points == 1
    assert track.num_disc_points == 2
    assert track.num_points_read == (
        track.num_points + track.num_dup_points + track.num_trim_points + track.num_disc_points
    )


def test_leading_zero_distances_are_kept(make_track, cfg, diag):
    track = make_track([
        dict(north=i * 10.0, t=float(i), elevation=100.0, distance=d)
        for i, d in enumerate([0.0, 0.0, 0.0, 30.0])
    ])

    run_pipeline(track, cfg, diag)

    assert len(track) == 4
    assert track.num_disc_points == 0
    assert track.distance == pytest.approx(30.0, rel=1e-6)
    assert track.last().distance == 30.0


def test_max_grade_with_elevation_reconciliation(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=102.0),
        dict(north=20.0, t=20.0, elevation=102.0),
    ])

    run_pipeline(track, cfg.with_overrides(max_grade=8.0), diag)

    p1 = track.point(1)
    assert p1.grade == 8.0
    assert p1.elevation == pytest.approx(100.0 + p1.run * 0.08)
    assert track.num_elev_adj == 1
    assert track.maxima["grade"].value == 8.0


def test_no_elev_adj_leaves_elevation(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=102.0),
    ])

    run_pipeline(track, cfg.with_overrides(max_grade=8.0, no_elev_adj=True), diag)

    assert track.last().grade == 8.0
    assert track.last().elevation == 102.0
    assert track.num_elev_adj == 0


def test_verbatim_skips_corrections(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=102.0),
    ])

    run_pipeline(track, cfg.with_overrides(verbatim=True, max_grade=8.0), diag)

    assert len(track) == 3
    assert track.num_dup_points == 0
    assert track.last().grade == pytest.approx(20.0, rel=1e-6)


def test_elevation_smoothing_runs_before_metrics(make_track, cfg, diag):
    track = make_track(
        [dict(north=i * 10.0, t=i * 10.0, elevation=e) for i, e in enumerate([100.0, 100.0, 103.0, 100.0, 100.0])]
    )

    run_pipeline(track, cfg.with_overrides(xma_metric=XmaMetric.ELEVATION, xma_window=3), diag)

    points = list(track)
    assert [p.elevation for p in points] == pytest.approx([100.0, 101.0, 101.0, 101.0, 100.0])
    for p1, p2 in zip(points, points[1:]):
        assert p2.rise == pytest.approx(p2.elevation - p1.elevation)
        assert not p2.grade_adjusted


def test_grade_smoothing_reconciles_elevation(make_track, cfg, diag):
    track = make_track(
        [dict(north=i * 10.0, t=i * 10.0, elevation=e) for i, e in enumerate([100.0, 100.0, 103.0, 103.0, 103.0])]
    )

    run_pipeline(track, cfg.with_overrides(xma_metric=XmaMetric.GRADE, xma_window=3), diag)

    points = list(track)
    assert points[1].grade_adjusted
    assert points[1].grade == pytest.approx(10.0, rel=1e-6)
    for p1, p2 in zip(points, points[1:]):
        if p2.grade_adjusted:
            assert p2.elevation == pytest.approx(p1.elevation + p2.run * p2.grade / 100.0)
