from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .trial import TrialRecord


@dataclass(frozen=True, slots=True)
class PvtResult:
    """Persistable summary + trial log for a completed PVT session.

    Reaction-time statistics cover valid trials only (lapses included).
    ``onset_map`` keys are stimulus onset offsets from ``session_start`` in
    whole milliseconds; an empty tuple marks a miss.
    Results compare by value but are not hashable (``onset_map`` is a dict).
    """

    trials: tuple[TrialRecord, ...]
    session_start: datetime
    session_end: datetime

    total_trials: int
    valid_trials: int
    false_starts: int
    lapses: int
    misses: int

    mean_reaction_time: float
    median_reaction_time: float
    standard_deviation: float
    fastest_reaction_time: int | None
    slowest_reaction_time: int | None
    lapse_percentage: float
    reciprocal_mean_rt: float

    onset_map: Mapping[str, tuple[int, ...]] = field(default_factory=dict)

    __hash__ = None  # type: ignore[assignment]

    @property
    def duration_s(self) -> float:
        return (self.session_end - self.session_start).total_seconds()

    @classmethod
    def empty(cls, *, at: datetime | None = None) -> PvtResult:
        now = datetime.now(timezone.utc) if at is None else at
        return cls(
            trials=(),
            session_start=now,
            session_end=now,
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

    def summary_text(self) -> str:
        fastest = "n/a" if self.fastest_reaction_time is None else f"{self.fastest_reaction_time}ms"
        slowest = "n/a" if self.slowest_reaction_time is None else f"{self.slowest_reaction_time}ms"
        return (
            f"Results\nTrials: {self.total_trials} (valid {self.valid_trials})\n"
            f"Mean RT: {self.mean_reaction_time:.1f}ms\nMedian RT: {self.median_reaction_time:.1f}ms\n"
            f"SD: {self.standard_deviation:.1f}ms\nFastest: {fastest}  Slowest: {slowest}\n"
            f"Lapses: {self.lapses} ({self.lapse_percentage:.1f}%)\n"
            f"False starts: {self.false_starts}  Misses: {self.misses}\n"
            f"Reciprocal mean: {self.reciprocal_mean_rt:.2f}"
        )

    def __str__(self) -> str:
        return (
            f"PvtResult(trials: {self.total_trials}, valid: {self.valid_trials}, "
            f"meanRT: {self.mean_reaction_time:.1f}ms, medianRT: {self.median_reaction_time:.1f}ms, "
            f"lapses: {self.lapses} ({self.lapse_percentage:.1f}%), falseStarts: {self.false_starts})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trials": [t.to_dict() for t in self.trials],
            "testStartTime": self.session_start.isoformat(),
            "testEndTime": self.session_end.isoformat(),
            "testDurationMs": int(round(self.duration_s * 1000.0)),
            "totalTrials": self.total_trials,
            "validTrials": self.valid_trials,
            "falseStarts": self.false_starts,
            "lapses": self.lapses,
            "misses": self.misses,
            "meanReactionTime": self.mean_reaction_time,
            "medianReactionTime": self.median_reaction_time,
            "standardDeviation": self.standard_deviation,
            "fastestReactionTime": self.fastest_reaction_time,
            "slowestReactionTime": self.slowest_reaction_time,
            "lapsePercentage": self.lapse_percentage,
            "reciprocalMeanRT": self.reciprocal_mean_rt,
            "trialsJson": {key: {"clickedAfter": list(rts)} for key, rts in self.onset_map.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PvtResult:
        raw_map = data.get("trialsJson") or {}
        onset_map = {
            str(key): tuple(int(rt) for rt in entry["clickedAfter"]) for key, entry in raw_map.items()
        }
        fastest = data.get("fastestReactionTime")
        slowest = data.get("slowestReactionTime")
        return cls(
            trials=tuple(TrialRecord.from_dict(t) for t in data["trials"]),
            session_start=datetime.fromisoformat(str(data["testStartTime"])),
            session_end=datetime.fromisoformat(str(data["testEndTime"])),
            total_trials=int(data["totalTrials"]),
            valid_trials=int(data["validTrials"]),
            false_starts=int(data["falseStarts"]),
            lapses=int(data["lapses"]),
            misses=int(data["misses"]),
            mean_reaction_time=float(data["meanReactionTime"]),
            median_reaction_time=float(data["medianReactionTime"]),
            standard_deviation=float(data["standardDeviation"]),
            fastest_reaction_time=None if fastest is None else int(fastest),
            slowest_reaction_time=None if slowest is None else int(slowest),
            lapse_percentage=float(data["lapsePercentage"]),
            reciprocal_mean_rt=float(data["reciprocalMeanRT"]),
            onset_map=onset_map,
        )

    def to_json(self, *, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> PvtResult:
        return cls.from_dict(json.loads(text))
