"""Good/fair/poor bands for PVT metrics (healthy-adult reference ranges)."""

from __future__ import annotations

from enum import Enum

from .results import PvtResult


class PerformanceLevel(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @property
    def display_name(self) -> str:
        return "Needs Attention" if self is PerformanceLevel.POOR else self.value.capitalize()

    @property
    def default_color(self) -> tuple[int, int, int]:
        return {
            PerformanceLevel.GOOD: (76, 175, 80),
            PerformanceLevel.FAIR: (255, 152, 0),
            PerformanceLevel.POOR: (244, 67, 54),
        }[self]


RT_GOOD_MS = 300.0
RT_FAIR_MS = 400.0
SD_GOOD_MS = 60.0
SD_FAIR_MS = 100.0
LAPSES_GOOD = 1
LAPSES_FAIR = 5
LAPSE_PCT_GOOD = 5.0
LAPSE_PCT_FAIR = 15.0
FALSE_STARTS_GOOD = 0
FALSE_STARTS_FAIR = 2
MISSES_GOOD = 0
MISSES_FAIR = 1
RECIPROCAL_GOOD = 3.5
RECIPROCAL_FAIR = 2.5


def _lower_is_better(value: float, good_below: float, fair_up_to: float) -> PerformanceLevel:
    if value < good_below:
        return PerformanceLevel.GOOD
    if value <= fair_up_to:
        return PerformanceLevel.FAIR
    return PerformanceLevel.POOR


def _count_band(count: int, good_up_to: int, fair_up_to: int) -> PerformanceLevel:
    if count <= good_up_to:
        return PerformanceLevel.GOOD
    if count <= fair_up_to:
        return PerformanceLevel.FAIR
    return PerformanceLevel.POOR


def evaluate_mean_rt(mean_rt_ms: float) -> PerformanceLevel:
    return _lower_is_better(mean_rt_ms, RT_GOOD_MS, RT_FAIR_MS)


def evaluate_median_rt(median_rt_ms: float) -> PerformanceLevel:
    return _lower_is_better(median_rt_ms, RT_GOOD_MS, RT_FAIR_MS)


def evaluate_standard_deviation(sd_ms: float) -> PerformanceLevel:
    return _lower_is_better(sd_ms, SD_GOOD_MS, SD_FAIR_MS)


def evaluate_lapses(lapses: int) -> PerformanceLevel:
    return _count_band(lapses, LAPSES_GOOD, LAPSES_FAIR)


def evaluate_lapse_percentage(lapse_pct: float) -> PerformanceLevel:
    return _lower_is_better(lapse_pct, LAPSE_PCT_GOOD, LAPSE_PCT_FAIR)


def evaluate_false_starts(false_starts: int) -> PerformanceLevel:
    return _count_band(false_starts, FALSE_STARTS_GOOD, FALSE_STARTS_FAIR)


def evaluate_misses(misses: int) -> PerformanceLevel:
    return _count_band(misses, MISSES_GOOD, MISSES_FAIR)


def evaluate_reciprocal_mean(reciprocal: float) -> PerformanceLevel:
    # Higher is better: responses per second.
    if reciprocal > RECIPROCAL_GOOD:
        return PerformanceLevel.GOOD
    if reciprocal >= RECIPROCAL_FAIR:
        return PerformanceLevel.FAIR
    return PerformanceLevel.POOR


def evaluate_result(result: PvtResult) -> dict[str, PerformanceLevel]:
    return {
        "mean_reaction_time": evaluate_mean_rt(result.mean_reaction_time),
        "median_reaction_time": evaluate_median_rt(result.median_reaction_time),
        "standard_deviation": evaluate_standard_deviation(result.standard_deviation),
        "lapses": evaluate_lapses(result.lapses),
        "lapse_percentage": evaluate_lapse_percentage(result.lapse_percentage),
        "false_starts": evaluate_false_starts(result.false_starts),
        "misses": evaluate_misses(result.misses),
        "reciprocal_mean_rt": evaluate_reciprocal_mean(result.reciprocal_mean_rt),
    }
