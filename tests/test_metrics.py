import math

import pytest

from trackmax.analyze.metrics import GRADE_LIMIT, compute_grade, derive_metrics
from trackmax.util.logging import SPONG, WARNING


def test_compute_grade():
    assert compute_grade(0.3, 10.0, 0.0) == pytest.approx(3.0)
    assert compute_grade(-1.0, 20.0, 0.0) == pytest.approx(-5.0)
    # No run: keep the previous grade
    assert compute_grade(1.0, 0.0, 4.5) == 4.5


def test_gps_only_track(make_track, cfg, diag):
    d = math.sqrt(10.0 ** 2 + 0.3 ** 2)
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=d, elevation=100.3),
        dict(north=20.0, t=d + 10.0, elevation=100.3),
    ])

    res = derive_metrics(track, cfg, diag)

    p0, p1, p2 = list(track)
    assert p0.distance == 0.0 and p0.speed == 0.0 and p0.grade == 0.0
    assert p1.run == pytest.approx(10.0, rel=1e-9)
    assert p1.rise == pytest.approx(0.3)
    assert p1.dist == pytest.approx(d, rel=1e-9)
    assert p1.grade == pytest.approx(3.0, rel=1e-6)
    assert p1.speed == pytest.approx(1.0, rel=1e-6)
    assert p1.bearing == pytest.approx(0.0, abs=1e-6)
    assert p2.grade == 0.0
    assert p2.grade_delta == pytest.approx(3.0, rel=1e-6)
    assert p2.distance == pytest.approx(d + 10.0, rel=1e-9)
    assert res.distance == pytest.approx(d + 10.0, rel=1e-9)
    assert res.time == pytest.approx(d + 10.0)
    assert res.max_delta_d.index == 1
    assert res.max_delta_t.index == 1


def test_distance_aware_track_derives_run(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0, distance=0.0),
        dict(north=10.0, t=10.0, elevation=106.0, distance=10.0),
    ])

    derive_metrics(track, cfg, diag)

    p = track.last()
    assert p.dist == 10.0
    assert p.run == pytest.approx(8.0)
    assert p.grade == pytest.approx(75.0)


def test_zero_distance_falls_back_to_gps(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0, distance=0.0),
        dict(north=10.0, t=10.0, elevation=100.0, distance=0.0),
        dict(north=20.0, t=20.0, elevation=100.0, distance=20.0),
    ])

    res = derive_metrics(track, cfg.with_overrides(verbatim=True), diag)

    p1, p2 = track.point(1), track.point(2)
    assert p1.dist == pytest.approx(10.0, rel=1e-6)
    assert p1.distance == pytest.approx(10.0, rel=1e-6)
    assert p2.dist == pytest.approx(10.0, rel=1e-6)
    assert res.stopped_time == 0.0
    assert res.distance == pytest.approx(20.0)


def test_zero_speed_is_recomputed(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0, speed=0.0),
        dict(north=10.0, t=10.0, elevation=100.0, speed=0.0),
        dict(north=20.0, t=20.0, elevation=100.0, speed=2.5),
    ])

    derive_metrics(track, cfg, diag)

    assert track.point(1).speed == pytest.approx(1.0, rel=1e-6)
    assert track.point(2).speed == 2.5


def test_inconsistent_dist_and_rise(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0, distance=0.0),
        dict(north=10.0, t=10.0, elevation=110.0, distance=5.0),
    ])

    derive_metrics(track, cfg, diag)

    p = track.last()
    assert p.run == p.dist == 5.0
    assert diag.count(WARNING) >= 1


def test_grade_is_clamped(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=1.0, t=10.0, elevation=105.0),
    ])

    derive_metrics(track, cfg, diag)

    assert track.last().grade == GRADE_LIMIT
    assert diag.count(WARNING) == 1


def test_route_timestamps_from_set_speed(make_track, cfg, diag):
    speed = 10.0 / 3.6
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=25.0, elevation=101.0),
        dict(north=40.0, elevation=100.5),
        dict(north=90.0, elevation=100.0),
    ])

    derive_metrics(track, cfg.with_overrides(set_speed=speed), diag)

    points = list(track)
    for p1, p2 in zip(points, points[1:]):
        assert p2.timestamp > p1.timestamp
        assert p2.delta_time == pytest.approx(p2.dist / speed)
        assert p2.speed == pytest.approx(speed)


def test_stopped_point_is_discarded(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=0.0, t=5.0, elevation=101.0),
        dict(north=10.0, t=15.0, elevation=101.0),
    ])

    res = derive_metrics(track, cfg, diag)

    assert res.num_disc == 1
    assert [p.index for p in track] == [0, 2]
    assert res.stopped_time == 0.0


def test_stopped_point_kept_in_verbatim(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=0.0, t=5.0, elevation=101.0),
        dict(north=10.0, t=15.0, elevation=101.0),
    ])

    res = derive_metrics(track, cfg.with_overrides(verbatim=True), diag)

    assert res.num_disc == 0
    assert len(track) == 3
    assert res.stopped_time == pytest.approx(5.0)
    assert res.time == pytest.approx(15.0)
    assert track.point(1).dist == 0.0


def test_implausible_speed_warns(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=500.0, t=10.0, elevation=100.0),
    ])

    derive_metrics(track, cfg, diag)

    assert track.last().speed == pytest.approx(50.0, rel=1e-6)
    assert diag.count(WARNING) == 1


def test_non_increasing_timestamp_in_verbatim_is_flagged(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=100.0),
        dict(north=20.0, t=10.0, elevation=100.0),
    ])

    derive_metrics(track, cfg.with_overrides(verbatim=True), diag)

    assert diag.count(SPONG) == 1
    # No time elapsed: the previous speed carries over
    assert track.last().speed == track.point(1).speed
