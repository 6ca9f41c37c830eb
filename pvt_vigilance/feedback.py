"""Best-effort sound and haptic feedback after each valid response.

Nothing here may block or alter the session: every failure degrades to a
disabled feature and is only logged at debug level.
"""

from __future__ import annotations

import logging
import math
from array import array
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Protocol

import pygame

logger = logging.getLogger(__name__)

SoundCallback = Callable[[], None]


class HapticDevice(Protocol):
    def has_vibrator(self) -> bool: ...
    def vibrate(self, *, duration_ms: int, strength: float) -> None: ...


class NoHaptics:
    def has_vibrator(self) -> bool:
        return False

    def vibrate(self, *, duration_ms: int, strength: float) -> None:
        return None


class JoystickRumble:
    """Haptics via pygame controller rumble, the only vibration source on desktop."""

    def __init__(self) -> None:
        self._joysticks: list[pygame.joystick.JoystickType] = []

    def has_vibrator(self) -> bool:
        pygame.joystick.init()
        self._joysticks = []
        for i in range(pygame.joystick.get_count()):
            try:
                js = pygame.joystick.Joystick(i)
                js.init()
            except pygame.error:
                continue
            self._joysticks.append(js)
        return bool(self._joysticks)

    def vibrate(self, *, duration_ms: int, strength: float) -> None:
        level = max(0.0, min(1.0, float(strength)))
        for js in self._joysticks:
            js.rumble(level, level, int(duration_ms))


class _BeepPlayer:
    """Default response beep, synthesised in memory and played on pygame.mixer."""

    _sample_rate = 22050
    _amp = 32767

    def __init__(self, *, frequency_hz: float = 880.0, duration_s: float = 0.08, gain: float = 0.4) -> None:
        if pygame.mixer.get_init() is None:
            pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
        pcm = self._render_tone_pcm(frequency_hz, duration_s, gain=gain)
        self._sound = pygame.mixer.Sound(buffer=pcm.tobytes())

    def play(self) -> None:
        self._sound.stop()
        self._sound.play()

    def close(self) -> None:
        self._sound.stop()

    def _render_tone_pcm(self, frequency_hz: float, duration_s: float, *, gain: float) -> array[int]:
        sample_count = max(1, int(self._sample_rate * duration_s))
        fade_n = max(1, int(self._sample_rate * 0.005))
        out = array("h")
        for idx in range(sample_count):
            envelope = 1.0
            if idx < fade_n:
                envelope = idx / float(fade_n)
            tail = sample_count - idx - 1
            if tail < fade_n:
                envelope = min(envelope, tail / float(fade_n))
            phase = (2.0 * math.pi * float(frequency_hz) * idx) / float(self._sample_rate)
            sample = math.sin(phase) * gain * max(0.0, envelope)
            out.append(int(max(-1.0, min(1.0, sample)) * self._amp))
        return out


class FeedbackDispatcher:
    """Owned by a single session; ``initialize`` and ``dispose`` bracket its use.

    A caller-supplied ``sound_callback`` replaces the built-in beep.
    ``play_feedback`` runs haptic and sound side by side and waits at most
    ``max_wait_s`` for them.
    """

    def __init__(
        self,
        *,
        sound_callback: SoundCallback | None = None,
        haptics: HapticDevice | None = None,
        max_wait_s: float = 0.25,
        haptic_duration_ms: int = 50,
        haptic_strength: float = 0.5,
    ) -> None:
        if max_wait_s < 0.0:
            raise ValueError("max_wait_s must be >= 0")
        self._sound_callback = sound_callback
        self._haptics: HapticDevice = JoystickRumble() if haptics is None else haptics
        self._max_wait_s = float(max_wait_s)
        self._haptic_duration_ms = int(haptic_duration_ms)
        self._haptic_strength = float(haptic_strength)

        self._initialized = False
        self._has_vibrator = False
        self._beep: _BeepPlayer | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def has_vibrator(self) -> bool:
        return self._has_vibrator

    @property
    def has_default_sound(self) -> bool:
        return self._beep is not None

    def initialize(self) -> None:
        if self._initialized:
            return

        try:
            self._has_vibrator = bool(self._haptics.has_vibrator())
        except Exception:
            logger.debug("Vibration probe failed; haptics disabled", exc_info=True)
            self._has_vibrator = False

        if self._sound_callback is None:
            self._beep = self._load_default_beep()

        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="pvt-feedback")
        self._initialized = True

    def set_sound_callback(self, callback: SoundCallback | None) -> None:
        self._sound_callback = callback
        if callback is not None and self._beep is not None:
            self._beep.close()
            self._beep = None
        elif callback is None and self._initialized and self._beep is None:
            self._beep = self._load_default_beep()

    def play_haptic(self) -> None:
        if not self._has_vibrator:
            return
        try:
            self._haptics.vibrate(duration_ms=self._haptic_duration_ms, strength=self._haptic_strength)
        except Exception:
            logger.debug("Haptic feedback failed", exc_info=True)

    def play_sound(self) -> None:
        callback = self._sound_callback
        try:
            if callback is not None:
                callback()
            elif self._beep is not None:
                self._beep.play()
        except Exception:
            logger.debug("Sound feedback failed", exc_info=True)

    def play_feedback(self, *, enable_sound: bool = True, enable_haptic: bool = True) -> None:
        if not self._initialized or self._executor is None:
            return

        futures: list[Future[None]] = []
        try:
            if enable_haptic:
                futures.append(self._executor.submit(self.play_haptic))
            if enable_sound:
                futures.append(self._executor.submit(self.play_sound))
        except RuntimeError:
            # Executor already shut down by a concurrent dispose().
            logger.debug("Feedback requested after dispose", exc_info=True)
            return

        if futures:
            _, not_done = wait(futures, timeout=self._max_wait_s)
            if not_done:
                logger.debug("Feedback still running after %.3fs; not waiting", self._max_wait_s)

    def dispose(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        if self._beep is not None:
            try:
                self._beep.close()
            except Exception:
                logger.debug("Closing default beep failed", exc_info=True)
            self._beep = None
        self._has_vibrator = False
        self._initialized = False

    @staticmethod
    def _load_default_beep() -> _BeepPlayer | None:
        try:
            return _BeepPlayer()
        except Exception:
            logger.debug("Default beep unavailable; sound disabled", exc_info=True)
            return None
