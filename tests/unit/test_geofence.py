"""Tests for the geofence distance and time-window checks."""

from datetime import datetime, timedelta, timezone

import pytest

from rollcall_engine.geofence.validator import (
    attempt_window,
    ensure_utc,
    evaluate_attempt,
    haversine_distance,
)

VENUE_LAT, VENUE_LON = 14.5995, 120.9842
START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=2)


def _evaluate(lat=VENUE_LAT, lon=VENUE_LON, at=START, is_check_in=True, **kw):
    params = dict(
        venue_latitude=VENUE_LAT,
        venue_longitude=VENUE_LON,
        start_at=START,
        end_at=END,
        check_in_buffer_mins=30,
        check_out_buffer_mins=30,
        latitude=lat,
        longitude=lon,
        submitted_at=at,
        is_check_in=is_check_in,
    )
    params.update(kw)
    return evaluate_attempt(**params)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_distance(VENUE_LAT, VENUE_LON, VENUE_LAT, VENUE_LON) == 0.0

    def test_one_degree_latitude(self):
        # One degree of latitude is ~111.2 km on a 6371 km sphere.
        assert haversine_distance(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)

    def test_symmetric(self):
        a = haversine_distance(VENUE_LAT, VENUE_LON, 14.6, 121.0)
        b = haversine_distance(14.6, 121.0, VENUE_LAT, VENUE_LON)
        assert a == pytest.approx(b)

    def test_antipodal_points(self):
        assert haversine_distance(0, 0, 0, 180) == pytest.approx(20_015_087, rel=1e-3)


class TestWindow:
    def test_check_in_window_around_start(self):
        opens, closes = attempt_window(START, END, 30, 15, is_check_in=True)
        assert opens == START - timedelta(minutes=30)
        assert closes == START + timedelta(minutes=30)

    def test_check_out_window_around_end(self):
        opens, closes = attempt_window(START, END, 30, 15, is_check_in=False)
        assert opens == END - timedelta(minutes=15)
        assert closes == END + timedelta(minutes=15)

    def test_naive_inputs_are_utc(self):
        naive = datetime(2026, 3, 2, 9, 0)
        assert ensure_utc(naive) == START


class TestEvaluate:
    def test_at_venue_on_time(self):
        verdict = _evaluate()
        assert verdict.ok
        assert verdict.distance_meters == 0.0

    def test_outside_radius(self):
        verdict = _evaluate(lat=VENUE_LAT + 0.0018)
        assert verdict.within_time_window
        assert not verdict.within_geofence
        assert verdict.distance_meters > 150
        assert not verdict.ok

    def test_inside_radius(self):
        verdict = _evaluate(lat=VENUE_LAT + 0.00045)
        assert verdict.within_geofence
        assert 40 < verdict.distance_meters < 60

    def test_custom_radius(self):
        verdict = _evaluate(lat=VENUE_LAT + 0.0018, max_radius_m=500)
        assert verdict.within_geofence

    def test_radius_must_be_positive(self):
        with pytest.raises(ValueError):
            _evaluate(max_radius_m=0)

    def test_window_bounds_inclusive(self):
        assert _evaluate(at=START - timedelta(minutes=30)).within_time_window
        assert _evaluate(at=START + timedelta(minutes=30)).within_time_window

    def test_just_outside_window(self):
        early = _evaluate(at=START - timedelta(minutes=30, milliseconds=1))
        late = _evaluate(at=START + timedelta(minutes=30, milliseconds=1))
        assert not early.within_time_window
        assert not late.within_time_window

    def test_check_out_uses_end(self):
        assert not _evaluate(at=START, is_check_in=False).within_time_window
        assert _evaluate(at=END + timedelta(minutes=10), is_check_in=False).within_time_window

    def test_naive_submission_time(self):
        verdict = _evaluate(at=datetime(2026, 3, 2, 9, 10))
        assert verdict.within_time_window
