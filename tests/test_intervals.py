from __future__ import annotations

import pytest

from pvt_vigilance.intervals import RandomIntervalGenerator


def test_same_seed_same_sequence() -> None:
    g1 = RandomIntervalGenerator(min_interval_s=2.0, max_interval_s=10.0, seed=42)
    g2 = RandomIntervalGenerator(min_interval_s=2.0, max_interval_s=10.0, seed=42)

    assert [g1.next() for _ in range(25)] == [g2.next() for _ in range(25)]


def test_different_seeds_diverge() -> None:
    g1 = RandomIntervalGenerator(min_interval_s=2.0, max_interval_s=10.0, seed=1)
    g2 = RandomIntervalGenerator(min_interval_s=2.0, max_interval_s=10.0, seed=2)

    assert g1.generate_many(20) != g2.generate_many(20)


def test_draws_stay_within_inclusive_bounds() -> None:
    gen = RandomIntervalGenerator(min_interval_s=2.0, max_interval_s=10.0, seed=7)

    for _ in range(100):
        value = gen.next()
        assert 2.0 <= value <= 10.0


def test_draws_are_whole_milliseconds() -> None:
    gen = RandomIntervalGenerator(min_interval_s=0.5, max_interval_s=0.6, seed=3)

    for value in gen.generate_many(50):
        ms = value * 1000.0
        assert ms == pytest.approx(round(ms), abs=1e-6)


def test_equal_bounds_always_return_that_value() -> None:
    gen = RandomIntervalGenerator(min_interval_s=3.0, max_interval_s=3.0, seed=99)

    assert gen.generate_many(10) == [3.0] * 10


def test_generate_many_length_and_bounds_properties() -> None:
    gen = RandomIntervalGenerator(min_interval_s=1.25, max_interval_s=4.5)

    assert gen.generate_many(0) == []
    assert len(gen.generate_many(12)) == 12
    assert gen.min_interval_s == pytest.approx(1.25)
    assert gen.max_interval_s == pytest.approx(4.5)
    assert gen.seed is None
