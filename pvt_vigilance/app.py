"""Pygame shell for the PVT.

The screen only renders ``PvtSession.snapshot()`` and forwards input.
Deterministic timing/scoring/RNG/state lives in pvt_vigilance/session.py.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import pygame

from . import __version__
from .clock import RealClock
from .config import PvtConfig, ResponseMode, StimulusType
from .feedback import FeedbackDispatcher
from .performance import evaluate_result
from .persistence import record_pvt_attempt
from .results import PvtResult
from .session import PvtSession, PvtSnapshot, PvtState, build_pvt_session

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 120
FEEDBACK_DISPLAY_S = 1.0

_BG = (10, 10, 14)
_TEXT = (235, 235, 245)
_HINT = (160, 160, 175)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self) -> None:
        if self._screens:
            self._screens[-1].update()

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class PvtScreen:
    def __init__(
        self,
        app: App,
        *,
        session_factory: Callable[[Callable[[], None]], PvtSession],
        db_path: Path | None = None,
        seed: int | None = None,
    ) -> None:
        self._app = app
        self._session = session_factory(self._on_complete)
        self._db_path = db_path
        self._seed = seed
        self._result: PvtResult | None = None

        self._big_font = pygame.font.Font(None, 96)
        self._small_font = pygame.font.Font(None, 26)

    @property
    def session(self) -> PvtSession:
        return self._session

    @property
    def result(self) -> PvtResult | None:
        return self._result

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                self._escape()
            elif event.key == pygame.K_s and self._session.state is PvtState.INSTRUCTIONS:
                self._session.skip_practice()
            elif event.key in (pygame.K_SPACE, pygame.K_RETURN, pygame.K_KP_ENTER):
                self._press()
            return

        if event.type == pygame.MOUSEBUTTONDOWN:
            if self._session.config.response_mode is ResponseMode.TAP_BUTTON:
                if not self._button_rect(self._app_surface_size()).collidepoint(event.pos):
                    return
            self._press()
            return

        if event.type == pygame.JOYBUTTONDOWN:
            self._press()

    def update(self) -> None:
        self._session.update()

    def render(self, surface: pygame.Surface) -> None:
        surface.fill(_BG)
        snap = self._session.snapshot()
        w, h = surface.get_size()

        if snap.state is PvtState.IDLE:
            self._draw_lines(surface, ["Psychomotor Vigilance Test", "", "Press Space to begin."])
        elif snap.state is PvtState.INSTRUCTIONS:
            lines = [
                "Respond as fast as you can when the stimulus appears.",
                "Do not respond before it appears.",
                "",
                "Space: start" + ("   S: skip practice" if self._session.config.enable_practice else ""),
            ]
            self._draw_lines(surface, lines)
        elif snap.state is PvtState.COUNTDOWN:
            label = self._big_font.render(str(snap.countdown_value), True, _TEXT)
            surface.blit(label, label.get_rect(center=(w // 2, h // 2)))
        elif snap.state is PvtState.PRACTICE_COMPLETE:
            self._draw_lines(surface, ["Practice complete.", "", "Press Space to start the real test."])
        elif snap.state is PvtState.COMPLETE:
            self._render_results(surface)
        else:
            self._render_running(surface, snap)

        if self._session.config.response_mode is ResponseMode.TAP_BUTTON and snap.state in (
            PvtState.WAITING_FOR_STIMULUS,
            PvtState.STIMULUS_SHOWN,
            PvtState.SHOWING_FEEDBACK,
        ):
            rect = self._button_rect((w, h))
            pygame.draw.rect(surface, (60, 60, 80), rect, border_radius=12)
            label = self._small_font.render("TAP", True, _TEXT)
            surface.blit(label, label.get_rect(center=rect.center))

    def _render_running(self, surface: pygame.Surface, snap: PvtSnapshot) -> None:
        w, h = surface.get_size()
        header = f"{'PRACTICE  ' if snap.is_practice else ''}Trial {snap.trial_number}   {int(math.ceil(snap.remaining_s))}s left"
        surface.blit(self._small_font.render(header, True, _HINT), (20, 16))

        center = (w // 2, h // 2 - 30)
        if snap.stimulus_visible:
            _draw_stimulus(surface, snap.stimulus_type, center, 60)
            counter = self._small_font.render(f"{snap.trial_elapsed_ms}", True, _HINT)
            surface.blit(counter, counter.get_rect(center=(center[0], center[1] + 90)))
        elif snap.state is PvtState.SHOWING_FEEDBACK and snap.last_reaction_time_ms is not None:
            label = self._big_font.render(f"{snap.last_reaction_time_ms} ms", True, _TEXT)
            surface.blit(label, label.get_rect(center=center))

    def _render_results(self, surface: pygame.Surface) -> None:
        if self._result is None:
            self._draw_lines(surface, ["Test stopped.", "", "Press Esc to quit."])
            return
        lines = self._result.summary_text().splitlines()
        levels = evaluate_result(self._result)
        lines.append("")
        lines.append(f"Mean RT rating: {levels['mean_reaction_time'].display_name}")
        lines.append("Press Esc to quit.")
        self._draw_lines(surface, lines)

    def _draw_lines(self, surface: pygame.Surface, lines: list[str]) -> None:
        y = 60
        for line in lines:
            surface.blit(self._small_font.render(line, True, _TEXT), (60, y))
            y += 30

    def _press(self) -> None:
        state = self._session.state
        if state is PvtState.IDLE:
            self._session.start()
        elif state is PvtState.INSTRUCTIONS:
            self._session.proceed_from_instructions()
        elif state is PvtState.PRACTICE_COMPLETE:
            self._session.proceed_from_practice_complete()
        else:
            self._session.record_response()

    def _escape(self) -> None:
        if self._session.state in (PvtState.IDLE, PvtState.COMPLETE) or self._session.can_exit():
            self._session.stop()
            self._app.quit()
            return
        self._session.stop()

    def _on_complete(self) -> None:
        self._result = self._session.get_results()
        if self._result is None or self._db_path is None:
            return
        attempt_id = record_pvt_attempt(
            db_path=self._db_path,
            result=self._result,
            config=self._session.config,
            app_version=__version__,
            seed=self._seed,
        )
        logger.info("Saved attempt %d to %s", attempt_id, self._db_path)

    def _button_rect(self, size: tuple[int, int]) -> pygame.Rect:
        w, h = size
        return pygame.Rect(w // 2 - 90, h - 110, 180, 70)

    @staticmethod
    def _app_surface_size() -> tuple[int, int]:
        surface = pygame.display.get_surface()
        return WINDOW_SIZE if surface is None else surface.get_size()


def _draw_stimulus(surface: pygame.Surface, kind: StimulusType, center: tuple[int, int], r: int) -> None:
    color = kind.default_color
    cx, cy = center
    if kind is StimulusType.CIRCLE:
        pygame.draw.circle(surface, color, center, r)
    elif kind is StimulusType.SQUARE:
        pygame.draw.rect(surface, color, pygame.Rect(cx - r, cy - r, 2 * r, 2 * r))
    elif kind is StimulusType.CROSS:
        bar = max(6, r // 3)
        pygame.draw.rect(surface, color, pygame.Rect(cx - r, cy - bar // 2, 2 * r, bar))
        pygame.draw.rect(surface, color, pygame.Rect(cx - bar // 2, cy - r, bar, 2 * r))
    else:
        points = []
        for i in range(10):
            rad = r if i % 2 == 0 else r * 0.45
            ang = -math.pi / 2 + i * math.pi / 5
            points.append((cx + rad * math.cos(ang), cy + rad * math.sin(ang)))
        pygame.draw.polygon(surface, color, points)


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: PvtConfig | None = None,
    seed: int | None = None,
    db_path: Path | None = None,
) -> int:
    pygame.init()

    pygame.display.set_caption("Psychomotor Vigilance Test")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    cfg = config or PvtConfig()
    run_seed = _new_seed() if seed is None else int(seed)
    real_clock = RealClock()

    def make_session(on_complete: Callable[[], None]) -> PvtSession:
        return build_pvt_session(
            clock=real_clock,
            wall_clock=real_clock,
            seed=run_seed,
            config=cfg,
            feedback=FeedbackDispatcher(),
            on_complete=on_complete,
            feedback_duration_s=FEEDBACK_DISPLAY_S,
            show_instructions=True,
        )

    screen = PvtScreen(app, session_factory=make_session, db_path=db_path, seed=run_seed)
    app.push(screen)

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        screen.session.dispose()
        pygame.quit()

    return 0
