from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from pvt_vigilance.config import PvtConfig
from pvt_vigilance.feedback import FeedbackDispatcher
from pvt_vigilance.session import PvtSession, PvtSnapshot, PvtState, build_pvt_session

EPOCH = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def wall_now(self) -> datetime:
        return EPOCH + timedelta(seconds=self.t)

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class FakeHaptics:
    vibrations: list[int] = field(default_factory=list)

    def has_vibrator(self) -> bool:
        return True

    def vibrate(self, *, duration_ms: int, strength: float) -> None:
        self.vibrations.append(duration_ms)


def _config(**overrides: object) -> PvtConfig:
    base: dict[str, object] = dict(
        duration_s=10.0,
        min_interval_s=2.0,
        max_interval_s=2.0,
        countdown_s=0.0,
        enable_sound=False,
        enable_haptic=False,
    )
    base.update(overrides)
    return PvtConfig(**base)  # type: ignore[arg-type]


def _session(clock: FakeClock, **kwargs: object) -> PvtSession:
    config = kwargs.pop("config", None) or _config()
    return build_pvt_session(clock=clock, wall_clock=clock, seed=1, config=config, **kwargs)  # type: ignore[arg-type]


def test_early_tap_is_discarded_without_a_trial() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()
    assert s.state is PvtState.WAITING_FOR_STIMULUS

    clock.advance(1.0)
    assert s.record_response() is None
    assert s.state is PvtState.WAITING_FOR_STIMULUS
    assert s.current_trial_number == 0

    clock.advance(1.0)
    s.update()
    assert s.state is PvtState.STIMULUS_SHOWN
    assert s.current_trial_number == 1


def test_response_before_start_and_after_complete_is_ignored() -> None:
    clock = FakeClock()
    s = _session(clock)
    assert s.record_response() is None

    s.start()
    s.stop()
    assert s.state is PvtState.COMPLETE
    assert s.record_response() is None


def test_feedback_state_then_next_stimulus() -> None:
    clock = FakeClock()
    s = _session(clock, feedback_duration_s=0.5)
    s.start()

    clock.advance(2.0)
    s.update()
    clock.advance(0.25)
    assert s.record_response() == 250
    assert s.state is PvtState.SHOWING_FEEDBACK
    assert s.last_reaction_time_ms == 250

    # Taps while feedback is on screen do nothing.
    assert s.record_response() is None

    clock.advance(0.5)
    s.update()
    assert s.state is PvtState.WAITING_FOR_STIMULUS

    clock.advance(2.0)
    s.update()
    assert s.state is PvtState.STIMULUS_SHOWN
    assert s.current_trial_number == 2


def test_countdown_ticks_once_per_second() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(countdown_s=3.0))
    seen: list[int] = []
    s.add_listener(lambda snap: seen.append(snap.countdown_value) if snap.state is PvtState.COUNTDOWN else None)

    s.start()
    assert s.state is PvtState.COUNTDOWN
    assert s.countdown_value == 3

    for _ in range(2):
        clock.advance(1.0)
        s.update()
    assert s.countdown_value == 1
    assert s.can_exit() is False

    clock.advance(1.0)
    s.update()
    assert s.state is PvtState.WAITING_FOR_STIMULUS
    assert s.countdown_value == 0
    assert s.elapsed_s == 0.0
    assert seen == [3, 2, 1]


def test_fractional_countdown_below_one_second_is_skipped() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(countdown_s=0.5))
    s.start()
    assert s.state is PvtState.WAITING_FOR_STIMULUS


def test_instructions_then_skip_practice() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(enable_practice=True), show_instructions=True)
    s.start()
    assert s.state is PvtState.INSTRUCTIONS

    s.skip_practice()
    assert s.state is PvtState.WAITING_FOR_STIMULUS
    assert s.is_practice_mode is False
    assert s.session_duration_s == 10.0


def test_instructions_then_practice() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(enable_practice=True), show_instructions=True)
    s.start()
    s.proceed_from_instructions()

    assert s.is_practice_mode is True
    assert s.session_duration_s == 30.0
    assert s.can_exit() is True


def test_start_is_a_no_op_once_running() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()
    clock.advance(2.0)
    s.update()

    s.start()
    assert s.state is PvtState.STIMULUS_SHOWN
    assert s.current_trial_number == 1


def test_results_only_after_complete() -> None:
    clock = FakeClock()
    s = _session(clock)
    assert s.get_results() is None
    s.start()
    assert s.get_results() is None

    clock.advance(10.0)
    s.update()
    assert s.state is PvtState.COMPLETE
    result = s.get_results()
    assert result is not None
    assert result.session_start == EPOCH
    assert result.session_end == EPOCH + timedelta(seconds=10)


def test_reset_cancels_pending_timers() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()
    s.reset()

    clock.advance(5.0)
    s.update()
    assert s.state is PvtState.IDLE
    assert s.current_trial_number == 0

    s.start()
    assert s.state is PvtState.WAITING_FOR_STIMULUS


def test_dispose_stops_everything() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()
    s.dispose()

    clock.advance(20.0)
    s.update()
    assert s.state is PvtState.WAITING_FOR_STIMULUS
    assert s.record_response() is None


def test_deadline_beats_response_at_same_instant() -> None:
    clock = FakeClock()
    completions: list[int] = []
    s = _session(clock, config=_config(duration_s=4.0), on_complete=lambda: completions.append(1))
    s.start()
    clock.advance(2.0)
    s.update()
    assert s.state is PvtState.STIMULUS_SHOWN

    clock.advance(2.0)
    assert s.record_response() is None
    assert s.state is PvtState.COMPLETE
    assert completions == [1]

    result = s.get_results()
    assert result is not None
    assert (result.total_trials, result.misses) == (1, 1)


def test_deadline_beats_stimulus_onset_at_same_instant() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(duration_s=2.0))
    s.start()

    clock.advance(2.0)
    s.update()
    assert s.state is PvtState.COMPLETE
    result = s.get_results()
    assert result is not None
    assert result.total_trials == 0


def test_stop_ends_scored_session_with_pending_miss() -> None:
    clock = FakeClock()
    completions: list[int] = []
    s = _session(clock, on_complete=lambda: completions.append(1))
    s.start()
    clock.advance(2.0)
    s.update()
    clock.advance(0.5)

    s.stop()
    s.stop()
    assert s.state is PvtState.COMPLETE
    assert s.is_abandoned is False
    assert completions == [1]

    result = s.get_results()
    assert result is not None
    assert result.misses == 1
    assert result.duration_s == 2.5


def test_stop_before_session_clock_gives_no_result() -> None:
    clock = FakeClock()
    completions: list[int] = []
    s = _session(clock, config=_config(countdown_s=3.0), on_complete=lambda: completions.append(1))
    s.start()
    clock.advance(1.0)
    s.stop()

    assert s.state is PvtState.COMPLETE
    assert completions == [1]
    assert s.get_results() is None


def test_stop_from_instructions_gives_no_result() -> None:
    clock = FakeClock()
    s = _session(clock, show_instructions=True)
    s.start()
    assert s.state is PvtState.INSTRUCTIONS

    s.stop()
    assert s.state is PvtState.COMPLETE
    assert s.get_results() is None


def test_tap_when_onset_is_due_but_not_yet_pumped_is_discarded() -> None:
    clock = FakeClock()
    s = _session(clock, config=_config(duration_s=4.0))
    s.start()

    # Onset due at 2.0 s; no update() has run since.
    clock.t = 2.004
    assert s.record_response() is None
    assert s.state is PvtState.STIMULUS_SHOWN
    assert s.current_trial_number == 1

    # The stimulus stays open and the next tap is scored against it.
    clock.advance(0.25)
    assert s.record_response() == 250

    clock.t = 4.0
    s.update()
    result = s.get_results()
    assert result is not None
    assert result.total_trials == 1
    assert result.false_starts == 0
    assert result.valid_trials == 1


def test_tap_at_same_tick_as_onset_is_discarded() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()

    clock.advance(2.0)
    assert s.record_response() is None
    assert s.state is PvtState.STIMULUS_SHOWN
    assert s.last_reaction_time_ms is None


def test_stop_during_practice_abandons_run() -> None:
    clock = FakeClock()
    completions: list[int] = []
    s = _session(clock, config=_config(enable_practice=True), on_complete=lambda: completions.append(1))
    s.start()
    assert s.is_practice_mode is True

    clock.advance(3.0)
    s.update()
    s.stop()
    assert s.state is PvtState.COMPLETE
    assert s.is_abandoned is True
    assert s.get_results() is None
    assert completions == []


def test_listeners_receive_snapshots_until_removed() -> None:
    clock = FakeClock()
    s = _session(clock)
    states: list[PvtState] = []

    def listener(snap: PvtSnapshot) -> None:
        states.append(snap.state)

    s.add_listener(listener)
    s.start()
    clock.advance(2.0)
    s.update()
    assert PvtState.WAITING_FOR_STIMULUS in states
    assert states[-1] is PvtState.STIMULUS_SHOWN

    s.remove_listener(listener)
    count = len(states)
    clock.advance(0.25)
    s.record_response()
    assert len(states) == count


def test_trial_elapsed_counter_and_snapshot() -> None:
    clock = FakeClock()
    s = _session(clock)
    s.start()
    assert s.current_trial_elapsed_ms == 0

    clock.advance(2.0)
    s.update()
    clock.advance(0.125)
    snap = s.snapshot()

    assert s.current_trial_elapsed_ms == 125
    assert snap.stimulus_visible is True
    assert snap.trial_elapsed_ms == 125
    assert snap.remaining_s == pytest.approx(7.875)


def test_feedback_dispatcher_plays_on_response() -> None:
    clock = FakeClock()
    sounds: list[int] = []
    haptics = FakeHaptics()
    feedback = FeedbackDispatcher(sound_callback=lambda: sounds.append(1), haptics=haptics, max_wait_s=5.0)
    config = _config(enable_sound=True, enable_haptic=True)

    with _session(clock, config=config, feedback=feedback) as s:
        s.start()
        assert feedback.initialized is True
        clock.advance(2.0)
        s.update()
        clock.advance(0.25)
        s.record_response()

        assert sounds == [1]
        assert haptics.vibrations == [50]

    assert feedback.initialized is False


def test_failing_sound_does_not_block_response() -> None:
    clock = FakeClock()

    def boom() -> None:
        raise RuntimeError("no audio device")

    feedback = FeedbackDispatcher(sound_callback=boom, haptics=FakeHaptics(), max_wait_s=5.0)
    with _session(clock, config=_config(enable_sound=True), feedback=feedback) as s:
        s.start()
        clock.advance(2.0)
        s.update()
        clock.advance(0.25)
        assert s.record_response() == 250
        assert s.state is PvtState.WAITING_FOR_STIMULUS


def test_negative_feedback_duration_rejected() -> None:
    with pytest.raises(ValueError):
        _session(FakeClock(), feedback_duration_s=-1.0)
