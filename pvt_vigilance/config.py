"""Session configuration and fixed PVT constants.

All time values are in seconds unless the name includes a unit suffix.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Responses faster than this are anticipations, not reactions.
FALSE_START_THRESHOLD_MS = 100

# Responses at or above this count as attention lapses (still valid).
LAPSE_THRESHOLD_MS = 500

PRACTICE_DURATION_S = 30.0


class StimulusType(str, Enum):
    CIRCLE = "circle"
    SQUARE = "square"
    CROSS = "cross"
    STAR = "star"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def default_color(self) -> tuple[int, int, int]:
        return _STIMULUS_COLORS[self]


_STIMULUS_COLORS: dict[StimulusType, tuple[int, int, int]] = {
    StimulusType.CIRCLE: (244, 67, 54),
    StimulusType.SQUARE: (33, 150, 243),
    StimulusType.CROSS: (76, 175, 80),
    StimulusType.STAR: (255, 235, 59),
}


class ResponseMode(str, Enum):
    TAP_ANYWHERE = "tap_anywhere"
    TAP_BUTTON = "tap_button"


@dataclass(frozen=True, slots=True)
class PvtConfig:
    """Finished, validated configuration for one PVT session.

    ``stimulus_type`` and ``response_mode`` are carried through for the
    renderer; the session logic never branches on them.
    """

    duration_s: float = 300.0
    min_interval_s: float = 2.0
    max_interval_s: float = 10.0
    countdown_s: float = 3.0
    stimulus_type: StimulusType = StimulusType.CIRCLE
    response_mode: ResponseMode = ResponseMode.TAP_ANYWHERE
    enable_sound: bool = True
    enable_haptic: bool = True
    enable_practice: bool = False

    def __post_init__(self) -> None:
        if self.duration_s <= 0.0:
            raise ValueError("duration_s must be > 0")
        if self.min_interval_s < 0.0 or self.max_interval_s < 0.0:
            raise ValueError("intervals must be >= 0")
        if self.min_interval_s > self.max_interval_s:
            raise ValueError("min_interval_s must be <= max_interval_s")
        if self.countdown_s < 0.0:
            raise ValueError("countdown_s must be >= 0")
        if not isinstance(self.stimulus_type, StimulusType):
            object.__setattr__(self, "stimulus_type", StimulusType(self.stimulus_type))
        if not isinstance(self.response_mode, ResponseMode):
            object.__setattr__(self, "response_mode", ResponseMode(self.response_mode))

    @property
    def countdown_seconds(self) -> int:
        """Countdown length truncated to whole seconds (0 disables it)."""
        return int(self.countdown_s)
