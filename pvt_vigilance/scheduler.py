"""Single timer queue for every deferred transition in a PVT session.

Countdown ticks, stimulus onsets, feedback expiry, the session deadline and the
display tick are all ``ScheduledEvent`` entries ordered by
``(due_s, kind, sequence)``. ``run_due`` fires them one at a time against the
injected ``Clock``, so a ``FakeClock`` replays a session exactly.
"""

from __future__ import annotations

import heapq
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum

from .clock import Clock


class TimerKind(IntEnum):
    """Timer sources, in tie-break order for events due at the same instant."""

    SESSION_DEADLINE = 0
    FEEDBACK_EXPIRY = 1
    STIMULUS_ONSET = 2
    COUNTDOWN_TICK = 3
    DISPLAY_TICK = 4


@dataclass(order=True, slots=True)
class ScheduledEvent:
    due_s: float
    kind: TimerKind
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._queue: list[ScheduledEvent] = []
        self._sequence = 0

    def __len__(self) -> int:
        return sum(1 for e in self._queue if not e.cancelled)

    def schedule_at(self, due_s: float, kind: TimerKind, callback: Callable[[], None]) -> ScheduledEvent:
        self._sequence += 1
        event = ScheduledEvent(due_s=float(due_s), kind=kind, sequence=self._sequence, callback=callback)
        heapq.heappush(self._queue, event)
        return event

    def schedule(self, delay_s: float, kind: TimerKind, callback: Callable[[], None]) -> ScheduledEvent:
        return self.schedule_at(self._clock.now() + max(0.0, float(delay_s)), kind, callback)

    def next_due_s(self) -> float | None:
        self._drop_cancelled()
        return self._queue[0].due_s if self._queue else None

    def pending(self, kind: TimerKind) -> bool:
        return any(e.kind is kind and not e.cancelled for e in self._queue)

    def cancel_all(self) -> None:
        for event in self._queue:
            event.cancelled = True
        self._queue.clear()

    def run_due(self) -> int:
        """Fire every event due at or before now. Returns the number fired.

        Events scheduled by a callback are considered in the same pass if they
        are already due.
        """

        fired = 0
        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0].due_s > self._clock.now():
                return fired
            event = heapq.heappop(self._queue)
            event.callback()
            fired += 1

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
