"""Summary statistics for a finished PVT session."""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from datetime import datetime, timedelta

from .results import PvtResult
from .trial import TrialRecord


def onset_offset_ms(trial: TrialRecord, session_start: datetime) -> int:
    """Whole milliseconds from session start to stimulus onset."""
    return (trial.stimulus_onset - session_start) // timedelta(milliseconds=1)


def build_onset_map(
    trials: Sequence[TrialRecord],
    session_start: datetime,
) -> dict[str, tuple[int, ...]]:
    """Map onset offset (ms, as a string key) to the reaction times seen there.

    Trials are visited in order. A repeated key appends its reaction time; a
    miss resets the entry to an empty tuple.
    """

    out: dict[str, tuple[int, ...]] = {}
    for trial in trials:
        key = str(onset_offset_ms(trial, session_start))
        if trial.reaction_time_ms is None:
            out[key] = ()
        else:
            out[key] = out.get(key, ()) + (int(trial.reaction_time_ms),)
    return out


def median_ms(values: Sequence[int]) -> float:
    if not values:
        return 0.0
    return float(statistics.median(values))


def sample_sd_ms(values: Sequence[int]) -> float:
    # Sample SD (n - 1); undefined below two values, reported as 0.
    if len(values) < 2:
        return 0.0
    return float(statistics.stdev(values))


def reciprocal_mean(values: Sequence[int]) -> float:
    """Mean response speed, 1000/RT averaged over trials."""
    if not values:
        return 0.0
    return statistics.fmean(1000.0 / rt for rt in values)


def calculate_results(
    trials: Sequence[TrialRecord],
    session_start: datetime,
    session_end: datetime,
) -> PvtResult:
    """Aggregate a frozen trial list into a ``PvtResult``.

    Counts cover every trial; reaction-time statistics cover valid trials only.
    """

    frozen = tuple(trials)
    if not frozen:
        return PvtResult(
            trials=(),
            session_start=session_start,
            session_end=session_end,
            total_trials=0,
            valid_trials=0,
            false_starts=0,
            lapses=0,
            misses=0,
            mean_reaction_time=0.0,
            median_reaction_time=0.0,
            standard_deviation=0.0,
            fastest_reaction_time=None,
            slowest_reaction_time=None,
            lapse_percentage=0.0,
            reciprocal_mean_rt=0.0,
            onset_map={},
        )

    false_starts = sum(1 for t in frozen if t.is_false_start)
    lapses = sum(1 for t in frozen if t.is_lapse)
    misses = sum(1 for t in frozen if t.is_miss)

    valid_rts = [int(t.reaction_time_ms) for t in frozen if t.is_valid and t.reaction_time_ms is not None]

    mean_rt = 0.0
    fastest: int | None = None
    slowest: int | None = None
    if valid_rts:
        mean_rt = statistics.fmean(valid_rts)
        fastest = min(valid_rts)
        slowest = max(valid_rts)

    total = len(frozen)
    lapse_pct = (lapses / total) * 100.0

    return PvtResult(
        trials=frozen,
        session_start=session_start,
        session_end=session_end,
        total_trials=total,
        valid_trials=len(valid_rts),
        false_starts=false_starts,
        lapses=lapses,
        misses=misses,
        mean_reaction_time=float(mean_rt),
        median_reaction_time=median_ms(valid_rts),
        standard_deviation=sample_sd_ms(valid_rts),
        fastest_reaction_time=fastest,
        slowest_reaction_time=slowest,
        lapse_percentage=lapse_pct,
        reciprocal_mean_rt=reciprocal_mean(valid_rts),
        onset_map=build_onset_map(frozen, session_start),
    )
