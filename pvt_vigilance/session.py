"""Deterministic PVT session state machine.

The session never reads real time directly: monotonic time comes from an
injected ``Clock`` (reaction times) and timestamps from a ``WallClock``
(reporting only). Every deferred transition goes through one ``Scheduler``,
which the owner pumps by calling ``update()`` once per frame; tests drive the
same code with a ``FakeClock``.

Flow: idle -> [instructions] -> [countdown] -> waiting_for_stimulus <->
stimulus_shown <-> [showing_feedback] -> ... -> [practice_complete ->] complete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .clock import Clock, RealClock, WallClock
from .config import PRACTICE_DURATION_S, PvtConfig, ResponseMode, StimulusType
from .feedback import FeedbackDispatcher
from .intervals import RandomIntervalGenerator
from .metrics import calculate_results
from .results import PvtResult
from .scheduler import ScheduledEvent, Scheduler, TimerKind
from .trial import TrialRecord

logger = logging.getLogger(__name__)


class PvtState(str, Enum):
    IDLE = "idle"
    INSTRUCTIONS = "instructions"
    COUNTDOWN = "countdown"
    WAITING_FOR_STIMULUS = "waiting_for_stimulus"
    STIMULUS_SHOWN = "stimulus_shown"
    SHOWING_FEEDBACK = "showing_feedback"
    PRACTICE_COMPLETE = "practice_complete"
    COMPLETE = "complete"


_RUNNING_STATES = (
    PvtState.WAITING_FOR_STIMULUS,
    PvtState.STIMULUS_SHOWN,
    PvtState.SHOWING_FEEDBACK,
)


@dataclass(frozen=True, slots=True)
class PvtSnapshot:
    """View model for the UI (pure data)."""

    state: PvtState
    is_practice: bool
    countdown_value: int
    trial_number: int
    trial_elapsed_ms: int
    elapsed_s: float
    remaining_s: float
    last_reaction_time_ms: int | None
    stimulus_type: StimulusType
    response_mode: ResponseMode

    @property
    def stimulus_visible(self) -> bool:
        return self.state is PvtState.STIMULUS_SHOWN


Listener = Callable[[PvtSnapshot], None]


class PvtSession:
    """One PVT run: optional instructions and practice, then the scored session.

    - Invalid-state calls are no-ops; check ``state`` before acting.
    - Practice trials live in their own list and never reach ``get_results``.
    - A session deadline that is due wins over a response delivered at the
      same instant: ``record_response`` pumps due timers first.
    """

    def __init__(
        self,
        *,
        config: PvtConfig,
        clock: Clock,
        wall_clock: WallClock | None = None,
        seed: int | None = None,
        feedback: FeedbackDispatcher | None = None,
        on_complete: Callable[[], None] | None = None,
        feedback_duration_s: float | None = None,
        show_instructions: bool = False,
        interval_generator: RandomIntervalGenerator | None = None,
    ) -> None:
        if feedback_duration_s is not None and feedback_duration_s < 0.0:
            raise ValueError("feedback_duration_s must be >= 0")

        self._config = config
        self._clock = clock
        self._wall_clock: WallClock = RealClock() if wall_clock is None else wall_clock
        self._feedback = feedback
        self._on_complete = on_complete
        self._feedback_duration_s = None if feedback_duration_s is None else float(feedback_duration_s)
        self._show_instructions = bool(show_instructions)

        if interval_generator is None:
            interval_generator = RandomIntervalGenerator(
                min_interval_s=config.min_interval_s,
                max_interval_s=config.max_interval_s,
                seed=seed,
            )
        self._intervals = interval_generator
        self._scheduler = Scheduler(clock)
        self._listeners: list[Listener] = []

        self._state = PvtState.IDLE
        self._countdown_value = 0
        self._trial_number = 0
        self._trials: list[TrialRecord] = []
        self._practice_trials: list[TrialRecord] = []
        self._pending: TrialRecord | None = None

        self._is_practice = False
        self._practice_skipped = False
        self._abandoned = False
        self._completion_notified = False
        self._disposed = False

        self._session_started_at_s: float | None = None
        self._session_ended_at_s: float | None = None
        self._session_start: datetime | None = None
        self._session_end: datetime | None = None
        self._onset_at_s: float | None = None
        self._last_rt_ms: int | None = None

        self._countdown_due_s = 0.0
        self._display_due_s = 0.0

    # ------------------------------------------------------------------
    # Read-only view

    @property
    def config(self) -> PvtConfig:
        return self._config

    @property
    def state(self) -> PvtState:
        return self._state

    @property
    def countdown_value(self) -> int:
        return self._countdown_value

    @property
    def current_trial_number(self) -> int:
        return self._trial_number

    @property
    def is_stimulus_visible(self) -> bool:
        return self._state is PvtState.STIMULUS_SHOWN

    @property
    def is_practice_mode(self) -> bool:
        return self._is_practice

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def last_reaction_time_ms(self) -> int | None:
        return self._last_rt_ms

    @property
    def current_trial_elapsed_ms(self) -> int:
        if self._state is not PvtState.STIMULUS_SHOWN or self._onset_at_s is None:
            return 0
        return max(0, int((self._clock.now() - self._onset_at_s) * 1000.0))

    @property
    def session_duration_s(self) -> float:
        return PRACTICE_DURATION_S if self._is_practice else self._config.duration_s

    @property
    def elapsed_s(self) -> float:
        if self._session_started_at_s is None:
            return 0.0
        end = self._clock.now() if self._session_ended_at_s is None else self._session_ended_at_s
        return max(0.0, end - self._session_started_at_s)

    @property
    def remaining_s(self) -> float:
        return max(0.0, self.session_duration_s - self.elapsed_s)

    @property
    def feedback_duration_s(self) -> float | None:
        return self._feedback_duration_s

    @feedback_duration_s.setter
    def feedback_duration_s(self, value: float | None) -> None:
        if value is not None and value < 0.0:
            raise ValueError("feedback_duration_s must be >= 0")
        self._feedback_duration_s = None if value is None else float(value)

    @property
    def show_instructions(self) -> bool:
        return self._show_instructions

    @show_instructions.setter
    def show_instructions(self, value: bool) -> None:
        self._show_instructions = bool(value)

    def can_exit(self) -> bool:
        # A scored session must be stopped explicitly; everything else can be left.
        return self._is_practice or self._state not in (PvtState.COUNTDOWN, *_RUNNING_STATES)

    def snapshot(self) -> PvtSnapshot:
        return PvtSnapshot(
            state=self._state,
            is_practice=self._is_practice,
            countdown_value=self._countdown_value,
            trial_number=self._trial_number,
            trial_elapsed_ms=self.current_trial_elapsed_ms,
            elapsed_s=self.elapsed_s,
            remaining_s=self.remaining_s,
            last_reaction_time_ms=self._last_rt_ms,
            stimulus_type=self._config.stimulus_type,
            response_mode=self._config.response_mode,
        )

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Caller-driven transitions

    def start(self) -> None:
        if self._state is not PvtState.IDLE or self._disposed:
            return

        if self._feedback is not None:
            self._feedback.initialize()

        logger.info(
            "PVT start: duration=%.1fs isi=[%.3f, %.3f]s practice=%s",
            self._config.duration_s,
            self._config.min_interval_s,
            self._config.max_interval_s,
            self._config.enable_practice,
        )

        if self._show_instructions:
            self._transition(PvtState.INSTRUCTIONS)
            return
        self._begin_after_instructions()

    def proceed_from_instructions(self) -> None:
        if self._state is not PvtState.INSTRUCTIONS:
            return
        self._begin_after_instructions()

    def skip_practice(self) -> None:
        if self._state is not PvtState.INSTRUCTIONS:
            return
        self._practice_skipped = True
        self._begin_after_instructions()

    def proceed_from_practice_complete(self) -> None:
        if self._state is not PvtState.PRACTICE_COMPLETE:
            return

        self._is_practice = False
        self._trial_number = 0
        self._pending = None
        self._onset_at_s = None
        self._last_rt_ms = None
        self._session_started_at_s = None
        self._session_ended_at_s = None
        self._session_start = None
        self._session_end = None

        self._begin_countdown_or_session()

    def record_response(self) -> int | None:
        """Record a response. Returns the reaction time in ms, or None if ignored.

        Responses with no stimulus on screen (including early taps while
        waiting) are discarded without creating a trial.
        """

        if self._state in (PvtState.IDLE, PvtState.COMPLETE) or self._disposed:
            return None

        # Due timers first: a deadline at this instant beats the response.
        # A tap only counts against a stimulus that was already on screen.
        state_before = self._state
        self.update()

        if state_before is not PvtState.STIMULUS_SHOWN or self._state is not PvtState.STIMULUS_SHOWN:
            logger.debug("Response ignored in state %s", self._state.value)
            return None

        assert self._pending is not None
        assert self._onset_at_s is not None

        rt_ms = max(0, int(round((self._clock.now() - self._onset_at_s) * 1000.0)))
        trial = self._pending.complete(response_time=self._wall_clock.wall_now(), reaction_time_ms=rt_ms)
        self._store(trial)
        self._pending = None
        self._onset_at_s = None
        self._last_rt_ms = rt_ms
        logger.debug("Trial %d: rt=%dms practice=%s", trial.trial_number, rt_ms, self._is_practice)

        if self._feedback is not None:
            self._feedback.play_feedback(
                enable_sound=self._config.enable_sound,
                enable_haptic=self._config.enable_haptic,
            )

        if self.elapsed_s >= self.session_duration_s:
            self._end_session()
            return rt_ms

        if self._feedback_duration_s is not None:
            self._scheduler.schedule(self._feedback_duration_s, TimerKind.FEEDBACK_EXPIRY, self._on_feedback_expired)
            self._transition(PvtState.SHOWING_FEEDBACK)
        else:
            self._transition(PvtState.WAITING_FOR_STIMULUS)
            self._schedule_next_stimulus()
        return rt_ms

    def update(self) -> None:
        """Fire every timer that is due. Call once per frame."""
        if self._disposed:
            return
        self._scheduler.run_due()

    def stop(self) -> None:
        """End the run now.

        A scored session ends exactly as on deadline expiry. Stopping during
        practice abandons the run: no completion callback and no results.
        """

        if self._state in (PvtState.IDLE, PvtState.COMPLETE):
            return
        self._end_session(abandon=self._is_practice)

    def reset(self) -> None:
        self._scheduler.cancel_all()

        self._state = PvtState.IDLE
        self._countdown_value = 0
        self._trial_number = 0
        self._trials = []
        self._practice_trials = []
        self._pending = None
        self._is_practice = False
        self._practice_skipped = False
        self._abandoned = False
        self._completion_notified = False
        self._session_started_at_s = None
        self._session_ended_at_s = None
        self._session_start = None
        self._session_end = None
        self._onset_at_s = None
        self._last_rt_ms = None

        logger.debug("PVT session reset")
        self._notify()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._scheduler.cancel_all()
        if self._feedback is not None:
            self._feedback.dispose()
        self._listeners.clear()
        self._disposed = True

    def __enter__(self) -> PvtSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def get_results(self) -> PvtResult | None:
        """Return the scored-session result.

        None unless ``complete``, and None when the session clock never
        started (stopped during instructions or countdown).
        """

        if self._state is not PvtState.COMPLETE or self._abandoned:
            return None
        if self._session_start is None or self._session_end is None:
            return None
        return calculate_results(tuple(self._trials), self._session_start, self._session_end)

    # ------------------------------------------------------------------
    # Internal sequencing

    def _begin_after_instructions(self) -> None:
        if self._config.enable_practice and not self._practice_skipped:
            self._is_practice = True
            self._practice_trials = []
        self._begin_countdown_or_session()

    def _begin_countdown_or_session(self) -> None:
        if self._config.countdown_seconds > 0:
            self._start_countdown()
        else:
            self._start_session()

    def _start_countdown(self) -> None:
        self._countdown_value = self._config.countdown_seconds
        self._countdown_due_s = self._clock.now() + 1.0
        self._scheduler.schedule_at(self._countdown_due_s, TimerKind.COUNTDOWN_TICK, self._on_countdown_tick)
        self._transition(PvtState.COUNTDOWN)

    def _on_countdown_tick(self) -> None:
        if self._state is not PvtState.COUNTDOWN:
            return
        self._countdown_value -= 1
        if self._countdown_value <= 0:
            self._countdown_value = 0
            self._start_session()
            return
        self._countdown_due_s += 1.0
        self._scheduler.schedule_at(self._countdown_due_s, TimerKind.COUNTDOWN_TICK, self._on_countdown_tick)
        self._notify()

    def _start_session(self) -> None:
        now = self._clock.now()
        self._session_started_at_s = now
        self._session_ended_at_s = None
        self._session_start = self._wall_clock.wall_now()
        self._session_end = None

        self._scheduler.schedule_at(now + self.session_duration_s, TimerKind.SESSION_DEADLINE, self._on_deadline)
        self._display_due_s = now + 1.0
        self._scheduler.schedule_at(self._display_due_s, TimerKind.DISPLAY_TICK, self._on_display_tick)

        logger.info("%s session running for %.1fs", "Practice" if self._is_practice else "Scored", self.session_duration_s)
        self._transition(PvtState.WAITING_FOR_STIMULUS)
        self._schedule_next_stimulus()

    def _schedule_next_stimulus(self) -> ScheduledEvent | None:
        if self._state in (PvtState.COMPLETE, PvtState.PRACTICE_COMPLETE):
            return None
        interval_s = self._intervals.next()
        return self._scheduler.schedule(interval_s, TimerKind.STIMULUS_ONSET, self._on_stimulus_onset)

    def _on_stimulus_onset(self) -> None:
        if self._state is not PvtState.WAITING_FOR_STIMULUS:
            return
        self._trial_number += 1
        self._onset_at_s = self._clock.now()
        self._pending = TrialRecord(trial_number=self._trial_number, stimulus_onset=self._wall_clock.wall_now())
        self._transition(PvtState.STIMULUS_SHOWN)

    def _on_feedback_expired(self) -> None:
        if self._state is not PvtState.SHOWING_FEEDBACK:
            return
        if self.elapsed_s >= self.session_duration_s:
            self._end_session()
            return
        self._transition(PvtState.WAITING_FOR_STIMULUS)
        self._schedule_next_stimulus()

    def _on_display_tick(self) -> None:
        if self._state not in _RUNNING_STATES:
            return
        self._display_due_s += 1.0
        self._scheduler.schedule_at(self._display_due_s, TimerKind.DISPLAY_TICK, self._on_display_tick)
        self._notify()

    def _on_deadline(self) -> None:
        if self._state not in _RUNNING_STATES:
            return
        self._end_session()

    def _end_session(self, *, abandon: bool = False) -> None:
        self._scheduler.cancel_all()
        self._session_ended_at_s = self._clock.now()
        self._session_end = self._wall_clock.wall_now()

        # An unanswered stimulus at the end is a miss.
        if self._state is PvtState.STIMULUS_SHOWN and self._pending is not None:
            self._store(self._pending)
        self._pending = None
        self._onset_at_s = None

        if abandon:
            self._abandoned = True
            logger.info("Practice abandoned after %d trials", len(self._practice_trials))
            self._transition(PvtState.COMPLETE)
            return

        if self._is_practice:
            logger.info("Practice complete: %d trials (discarded)", len(self._practice_trials))
            self._transition(PvtState.PRACTICE_COMPLETE)
            return

        logger.info("PVT complete: %d trials", len(self._trials))
        self._transition(PvtState.COMPLETE)
        if self._on_complete is not None and not self._completion_notified:
            self._completion_notified = True
            self._on_complete()

    def _store(self, trial: TrialRecord) -> None:
        if self._is_practice:
            self._practice_trials.append(trial)
        else:
            self._trials.append(trial)

    def _transition(self, state: PvtState) -> None:
        if state is not self._state:
            logger.debug("PVT state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)


def build_pvt_session(
    *,
    clock: Clock,
    seed: int | None = None,
    config: PvtConfig | None = None,
    wall_clock: WallClock | None = None,
    feedback: FeedbackDispatcher | None = None,
    on_complete: Callable[[], None] | None = None,
    feedback_duration_s: float | None = None,
    show_instructions: bool = False,
) -> PvtSession:
    cfg = config or PvtConfig()
    return PvtSession(
        config=cfg,
        clock=clock,
        wall_clock=wall_clock,
        seed=seed,
        feedback=feedback,
        on_complete=on_complete,
        feedback_duration_s=feedback_duration_s,
        show_instructions=show_instructions,
    )
