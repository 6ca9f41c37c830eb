from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .config import FALSE_START_THRESHOLD_MS, LAPSE_THRESHOLD_MS


class TrialOutcome(str, Enum):
    MISS = "miss"
    FALSE_START = "false_start"
    LAPSE = "lapse"
    VALID = "valid"


def is_false_start_ms(reaction_time_ms: int | None) -> bool:
    return reaction_time_ms is not None and reaction_time_ms < FALSE_START_THRESHOLD_MS


def is_lapse_ms(reaction_time_ms: int | None) -> bool:
    return reaction_time_ms is not None and reaction_time_ms >= LAPSE_THRESHOLD_MS


@dataclass(frozen=True, slots=True)
class TrialRecord:
    """One stimulus presentation and the response to it, if any.

    A record with no ``response_time`` is a miss. Classification is derived on
    read and never stored.
    """

    trial_number: int
    stimulus_onset: datetime
    response_time: datetime | None = None
    reaction_time_ms: int | None = None

    @property
    def is_miss(self) -> bool:
        return self.response_time is None

    @property
    def is_false_start(self) -> bool:
        return is_false_start_ms(self.reaction_time_ms)

    @property
    def is_lapse(self) -> bool:
        return is_lapse_ms(self.reaction_time_ms)

    @property
    def is_valid(self) -> bool:
        # Lapses are slow but genuine responses, so they stay valid.
        return not self.is_false_start and not self.is_miss and self.reaction_time_ms is not None

    def complete(self, *, response_time: datetime, reaction_time_ms: int) -> TrialRecord:
        return TrialRecord(
            trial_number=self.trial_number,
            stimulus_onset=self.stimulus_onset,
            response_time=response_time,
            reaction_time_ms=int(reaction_time_ms),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trialNumber": self.trial_number,
            "stimulusOnsetTime": self.stimulus_onset.isoformat(),
            "responseTime": None if self.response_time is None else self.response_time.isoformat(),
            "reactionTimeMs": self.reaction_time_ms,
            "isFalseStart": self.is_false_start,
            "isLapse": self.is_lapse,
            "isMiss": self.is_miss,
            "isValid": self.is_valid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrialRecord:
        # The boolean flags in ``data`` are ignored; they are recomputed.
        response_raw = data.get("responseTime")
        rt_raw = data.get("reactionTimeMs")
        return cls(
            trial_number=int(data["trialNumber"]),
            stimulus_onset=datetime.fromisoformat(str(data["stimulusOnsetTime"])),
            response_time=None if response_raw is None else datetime.fromisoformat(str(response_raw)),
            reaction_time_ms=None if rt_raw is None else int(rt_raw),
        )


def classify(trial: TrialRecord) -> TrialOutcome:
    """Return the single headline outcome of a trial.

    Lapses are reported as ``LAPSE`` here even though ``is_valid`` is also
    true for them.
    """

    if trial.is_miss or trial.reaction_time_ms is None:
        return TrialOutcome.MISS
    if trial.is_false_start:
        return TrialOutcome.FALSE_START
    if trial.is_lapse:
        return TrialOutcome.LAPSE
    return TrialOutcome.VALID
