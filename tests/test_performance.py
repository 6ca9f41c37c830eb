from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pvt_vigilance.metrics import calculate_results
from pvt_vigilance.performance import (
    PerformanceLevel,
    evaluate_false_starts,
    evaluate_lapse_percentage,
    evaluate_lapses,
    evaluate_mean_rt,
    evaluate_misses,
    evaluate_reciprocal_mean,
    evaluate_result,
    evaluate_standard_deviation,
)
from pvt_vigilance.trial import TrialRecord

G, F, P = PerformanceLevel.GOOD, PerformanceLevel.FAIR, PerformanceLevel.POOR


@pytest.mark.parametrize(("value", "level"), [(250.0, G), (300.0, F), (400.0, F), (400.5, P)])
def test_mean_rt_bands(value: float, level: PerformanceLevel) -> None:
    assert evaluate_mean_rt(value) is level


@pytest.mark.parametrize(("value", "level"), [(59.9, G), (60.0, F), (100.0, F), (120.0, P)])
def test_sd_bands(value: float, level: PerformanceLevel) -> None:
    assert evaluate_standard_deviation(value) is level


def test_count_bands() -> None:
    assert [evaluate_lapses(n) for n in (0, 1, 2, 5, 6)] == [G, G, F, F, P]
    assert [evaluate_false_starts(n) for n in (0, 1, 2, 3)] == [G, F, F, P]
    assert [evaluate_misses(n) for n in (0, 1, 2)] == [G, F, P]


def test_percentage_and_reciprocal_bands() -> None:
    assert [evaluate_lapse_percentage(p) for p in (4.9, 5.0, 15.0, 15.1)] == [G, F, F, P]
    assert [evaluate_reciprocal_mean(r) for r in (3.6, 3.5, 2.5, 2.4)] == [G, F, F, P]


def test_display_names() -> None:
    assert G.display_name == "Good"
    assert P.display_name == "Needs Attention"


def test_evaluate_result_covers_every_metric() -> None:
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    trials = [
        TrialRecord(i, start + timedelta(seconds=3 * i), start + timedelta(seconds=3 * i, milliseconds=250), 250)
        for i in range(1, 6)
    ]
    levels = evaluate_result(calculate_results(trials, start, start + timedelta(minutes=1)))

    assert levels["mean_reaction_time"] is G
    assert levels["reciprocal_mean_rt"] is G
    assert levels["misses"] is G
    assert len(levels) == 8
