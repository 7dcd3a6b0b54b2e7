"""Tests for distance and time-delta helpers."""

import datetime as dt

import pytest

from loss_dedup.matching.geo import distance_km, hours_between, to_naive_utc


class TestDistance:
    def test_same_point_is_zero(self):
        assert distance_km((32.7767, -96.797), (32.7767, -96.797)) == 0.0

    def test_one_degree_latitude(self):
        assert distance_km((0.0, 0.0), (1.0, 0.0)) == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        a, b = (32.78, -96.80), (32.70, -96.75)
        assert distance_km(a, b) == pytest.approx(distance_km(b, a))

    def test_known_city_pair(self):
        # Dallas to Fort Worth, roughly 50 km
        d = distance_km((32.7767, -96.7970), (32.7555, -97.3308))
        assert 48 < d < 52


class TestHoursBetween:
    def test_absolute(self):
        t1 = dt.datetime(2026, 10, 1, 12, 0)
        t2 = dt.datetime(2026, 10, 1, 9, 0)
        assert hours_between(t1, t2) == 3.0
        assert hours_between(t2, t1) == 3.0

    def test_mixed_naive_and_aware(self):
        naive = dt.datetime(2026, 10, 1, 12, 0)
        aware = dt.datetime(2026, 10, 1, 7, 0, tzinfo=dt.timezone(dt.timedelta(hours=-5)))
        assert hours_between(naive, aware) == 0.0


def test_to_naive_utc_converts_offset():
    aware = dt.datetime(2026, 10, 1, 7, 0, tzinfo=dt.timezone(dt.timedelta(hours=-5)))
    assert to_naive_utc(aware) == dt.datetime(2026, 10, 1, 12, 0)


def test_to_naive_utc_keeps_naive():
    naive = dt.datetime(2026, 10, 1, 12, 0)
    assert to_naive_utc(naive) == naive
