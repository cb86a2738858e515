import math

import pytest

from trackmax.analyze.grade import limit_grades, reconcile_elevation, refresh_grade_deltas
from trackmax.analyze.metrics import derive_metrics


def _graded(make_track, grades, **extra):
    return make_track(
        [dict(north=i * 10.0, t=i * 10.0, elevation=100.0, run=10.0, grade=g, **extra)
         for i, g in enumerate(grades)]
    )


def test_max_grade_clamps_and_flags(make_track, cfg, diag):
    track = make_track([
        dict(north=0.0, t=0.0, elevation=100.0),
        dict(north=10.0, t=10.0, elevation=102.0),
        dict(north=20.0, t=20.0, elevation=102.0),
    ])
    derive_metrics(track, cfg, diag)
    p1 = track.point(1)
    assert p1.grade == pytest.approx(20.0, rel=1e-6)

    res = limit_grades(track, cfg.with_overrides(max_grade=8.0), diag)
    rec = reconcile_elevation(track, diag)

    assert res.num_grade_adj == 1
    assert p1.grade == 8.0
    assert p1.grade_adjusted
    assert p1.elevation == pytest.approx(100.0 + p1.run * 0.08)
    assert p1.dist == pytest.approx(math.hypot(p1.run, p1.run * 0.08))
    assert rec.num_elev_adj == 1
    # The next point keeps its own elevation
    assert not track.point(2).grade_adjusted
    assert track.point(2).elevation == 102.0


def test_min_grade_clamps(make_track, cfg, diag):
    track = _graded(make_track, [0.0, -15.0, -5.0])

    res = limit_grades(track, cfg.with_overrides(min_grade=-10.0), diag)

    assert [p.grade for p in track] == [0.0, -10.0, -5.0]
    assert res.num_grade_adj == 1


def test_grade_change_clamp_uses_adjusted_previous(make_track, cfg, diag):
    track = _graded(make_track, [0.0, 0.0, 10.0, 10.0])

    res = limit_grades(track, cfg.with_overrides(max_grade_change=4.0), diag)

    assert [p.grade for p in track] == pytest.approx([0.0, 0.0, 4.0, 8.0])
    assert res.num_grade_adj == 2


def test_limits_hold_for_every_point_in_range(make_track, cfg, diag):
    grades = [0.0, 12.0, -14.0, 3.0, 25.0, -30.0, 9.9, -9.9]
    track = _graded(make_track, grades)

    limit_grades(track, cfg.with_overrides(max_grade=10.0, min_grade=-10.0), diag)

    for p in list(track)[1:]:
        assert -10.0 <= p.grade <= 10.0
        assert p.grade_adjusted == (abs(grades[p.index]) > 10.0)


def test_limits_only_apply_in_range(make_track, cfg, diag):
    track = _graded(make_track, [0.0, 20.0, 20.0, 20.0, 20.0])

    limit_grades(track, cfg.with_overrides(max_grade=8.0, range=(2, 3)), diag)

    assert [p.grade for p in track] == [0.0, 20.0, 8.0, 8.0, 20.0]
    assert [p.grade_adjusted for p in track] == [False, False, True, True, False]


def test_speed_change_clamp(make_track, cfg, diag):
    track = _graded(make_track, [0.0, 0.0, 0.0], speed=5.0)
    track.point(2).speed = 15.0

    res = limit_grades(track, cfg.with_overrides(max_speed_change=2.0), diag)

    assert track.point(2).speed == 7.0
    assert res.num_speed_adj == 1
    assert res.num_grade_adj == 0


def test_reconciliation_is_idempotent(make_track, cfg, diag):
    track = _graded(make_track, [0.0, 5.0, -3.0, 2.0])
    for p in track:
        p.grade_adjusted = True

    first = reconcile_elevation(track, diag)
    elevations = [p.elevation for p in track]
    second = reconcile_elevation(track, diag)

    assert first.num_elev_adj == 3
    assert second.num_elev_adj == 0
    assert [p.elevation for p in track] == elevations
    assert elevations == pytest.approx([100.0, 100.5, 100.2, 100.4])


def test_refresh_grade_deltas(make_track, cfg, diag):
    track = _graded(make_track, [0.0, 5.0, -3.0])

    refresh_grade_deltas(track)

    assert [p.grade_delta for p in track] == [0.0, 5.0, 8.0]
