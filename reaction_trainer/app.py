"""Pygame UI shell for the Reaction Trainer.

The window hosts a start menu and the timed reaction session. Deterministic
timing, trial scheduling, stats and difficulty live in reaction_trainer/*
(core modules); this module only draws, hit-tests clicks and plays the cue.
"""

from __future__ import annotations

import logging
import math
import random
from array import array
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .classifier import build_predictor
from .clock import RealClock
from .config import AppConfig, TrialTimingConfig
from .difficulty import Predictor
from .presentation import StimulusParams
from .session import SessionController, SessionPhase
from .stats import LiveScore, SessionSummary, StimulusKind

log = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
STICK_COLOR = (245, 222, 179)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


def _hex_to_rgb(value: str) -> tuple[int, int, int]:
    raw = value.lstrip("#")
    return (int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16))


class _CueAudio:
    """Synthesised "ding" for sound trials.

    Audio is best-effort: if the mixer cannot start (no device, dummy driver
    quirks) the adapter goes silent and playback becomes a no-op.
    """

    _sample_rate = 22050
    _amp = 32767

    def __init__(self) -> None:
        self._available = False
        self._ding: pygame.mixer.Sound | None = None
        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
            self._ding = pygame.mixer.Sound(buffer=self._render_ding_pcm().tobytes())
            self._available = True
        except Exception:
            self._available = False

    @property
    def available(self) -> bool:
        return self._available

    def play(self) -> None:
        if not self._available or self._ding is None:
            return
        try:
            self._ding.stop()
            self._ding.play()
        except Exception:
            self._available = False

    def _render_ding_pcm(self) -> array[int]:
        duration_s = 0.35
        sample_count = max(1, int(self._sample_rate * duration_s))
        out = array("h")
        for idx in range(sample_count):
            t = idx / float(self._sample_rate)
            # Bell-like: fundamental plus a softer overtone, exponential decay.
            decay = math.exp(-9.0 * t)
            attack = min(1.0, idx / max(1.0, self._sample_rate * 0.004))
            sample = (
                math.sin(2.0 * math.pi * 1320.0 * t) * 0.55
                + math.sin(2.0 * math.pi * 2640.0 * t) * 0.18
            ) * decay * attack * 0.6
            out.append(int(max(-1.0, min(1.0, sample)) * self._amp))
        return out


class PygamePresentation:
    """Presentation surface backed by pygame drawing.

    Holds whatever the session last asked it to show and draws it each
    frame. Clicks are hit-tested here so the core only sees qualifying input.
    """

    def __init__(self, *, timing: TrialTimingConfig, audio: _CueAudio | None = None) -> None:
        self._timing = timing
        self._audio = audio
        self._prompt = ""
        self._kind: StimulusKind | None = None
        self._params: StimulusParams | None = None
        self._handler: Callable[[], bool] | None = None
        self._seconds = 0
        self._score: LiveScore | None = None
        self._summary: SessionSummary | None = None
        self._play_rect = pygame.Rect(0, 0, timing.play_area_width_px, timing.play_area_height_px)

        self._font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 24)
        self._big_font = pygame.font.Font(None, 56)

    @property
    def play_rect(self) -> pygame.Rect:
        return self._play_rect

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    def reset(self, prompt: str) -> None:
        self._prompt = prompt
        self._kind = None
        self._params = None
        self._handler = None
        self._summary = None

    def show_stimulus(self, kind: StimulusKind, params: StimulusParams) -> None:
        self._kind = kind
        self._params = params
        self._prompt = params.prompt

    def clear_stimulus(self) -> None:
        self._kind = None
        self._params = None

    def on_input(self, handler: Callable[[], bool]) -> None:
        self._handler = handler

    def remove_input(self) -> None:
        self._handler = None

    def play_cue(self) -> None:
        if self._audio is not None:
            self._audio.play()

    def update_clock(self, seconds: int) -> None:
        self._seconds = int(seconds)

    def update_live_score(self, score: LiveScore) -> None:
        self._score = score

    def show_final_summary(self, summary: SessionSummary) -> None:
        self._summary = summary
        self._kind = None
        self._params = None
        self._handler = None

    def handle_click(self, pos: tuple[int, int]) -> bool:
        handler = self._handler
        if handler is None or not self._play_rect.collidepoint(pos):
            return False
        if self._kind is StimulusKind.CATCH:
            stick = self._stick_rect()
            if stick is None or not stick.collidepoint(pos):
                return False
        return handler()

    def handle_press(self) -> bool:
        handler = self._handler
        if handler is None or self._kind is StimulusKind.CATCH:
            return False
        return handler()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        self._play_rect.size = (self._timing.play_area_width_px, self._timing.play_area_height_px)
        self._play_rect.center = (w // 2, h // 2 + 30)

        self._render_header(surface, w)
        if self._summary is not None:
            self._render_summary(surface, self._summary)
            return
        self._render_play_area(surface)

    def _render_header(self, surface: pygame.Surface, width: int) -> None:
        score = self._score
        attempts = 0 if score is None else score.attempts
        best = 0 if score is None else score.best
        average = 0 if score is None else score.average
        stats = f"Attempts: {attempts}   Best: {best} ms   Average: {average} ms"
        surface.blit(self._font.render(stats, True, TEXT_MAIN), (24, 18))

        clock_text = self._font.render(f"Time: {self._seconds}s", True, TEXT_MAIN)
        surface.blit(clock_text, clock_text.get_rect(topright=(width - 24, 18)))

        recent = () if score is None else score.recent
        strip = "  ".join(f"{v:>4}" for v in recent)
        surface.blit(self._small_font.render(f"Recent: {strip}", True, TEXT_MUTED), (24, 52))

        prompt = self._font.render(self._prompt, True, TEXT_MAIN)
        surface.blit(prompt, prompt.get_rect(midbottom=(width // 2, self._play_rect.top - 10)))

    def _render_play_area(self, surface: pygame.Surface) -> None:
        params = self._params
        fill = PANEL_BG
        if params is not None and params.color is not None:
            fill = _hex_to_rgb(params.color)
        pygame.draw.rect(surface, fill, self._play_rect)
        pygame.draw.rect(surface, BORDER, self._play_rect, 2)

        if self._kind is StimulusKind.SOUND and params is not None:
            alpha_color = TEXT_MAIN if params.revealed else TEXT_MUTED
            icon = self._big_font.render("((o))" if params.revealed else "( o )", True, alpha_color)
            surface.blit(icon, icon.get_rect(center=self._play_rect.center))

        stick = self._stick_rect()
        if stick is not None:
            prev_clip = surface.get_clip()
            surface.set_clip(self._play_rect)
            pygame.draw.rect(surface, STICK_COLOR, stick)
            surface.set_clip(prev_clip)

    def _render_summary(self, surface: pygame.Surface, summary: SessionSummary) -> None:
        pygame.draw.rect(surface, PANEL_BG, self._play_rect)
        pygame.draw.rect(surface, BORDER, self._play_rect, 2)
        lines = [
            "Session Over!",
            "",
            f"Color Avg: {summary.per_type_avg_ms[StimulusKind.COLOR]} ms",
            f"Sound Avg: {summary.per_type_avg_ms[StimulusKind.SOUND]} ms",
            f"Catch Avg: {summary.per_type_avg_ms[StimulusKind.CATCH]} ms",
            f"Missed catches: {summary.missed}",
            "",
            "Enter/click: restart   Esc: menu",
        ]
        y = self._play_rect.top + 20
        for line in lines:
            text = self._font.render(line, True, TEXT_MAIN)
            surface.blit(text, text.get_rect(midtop=(self._play_rect.centerx, y)))
            y += text.get_height() + 6

    def _stick_rect(self) -> pygame.Rect | None:
        params = self._params
        if self._kind is not StimulusKind.CATCH or params is None or not params.revealed:
            return None
        if params.object_x is None or params.object_y is None:
            return None
        return pygame.Rect(
            self._play_rect.x + int(params.object_x),
            self._play_rect.y + int(params.object_y),
            int(params.object_width or 0),
            int(params.object_height or 0),
        )


class App:
    """Screen stack drawn onto the window surface; the top screen gets events."""

    def __init__(self, surface: pygame.Surface) -> None:
        self._surface = surface
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 48)
        self._item_font = pygame.font.Font(None, 34)
        self._hint_font = pygame.font.Font(None, 22)
        self._item_rects: list[pygame.Rect] = []

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_UP, pygame.K_w):
                self._move(-1)
            elif event.key in (pygame.K_DOWN, pygame.K_s):
                self._move(1)
            elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._activate()
            elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._back()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            pos = getattr(event, "pos", None)
            if pos is None:
                return
            for idx, rect in enumerate(self._item_rects):
                if rect.collidepoint(pos):
                    self._selected = idx
                    self._activate()
                    return

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(center=(w // 2, h // 4)))

        self._item_rects = []
        row_h = 48
        y = h // 2 - (row_h * len(self._items)) // 2
        for idx, item in enumerate(self._items):
            row = pygame.Rect(w // 2 - 140, y, 280, row_h - 8)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else PANEL_BG, row)
            pygame.draw.rect(surface, BORDER, row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, text.get_rect(center=row.center))
            self._item_rects.append(row)
            y += row_h

        footer = "Enter/Space/click: Select  |  Esc: Quit"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(w // 2, h - 16)))


class ReactionSessionScreen:
    """Hosts one SessionController; restartable from the final summary."""

    def __init__(
        self,
        app: App,
        *,
        config: AppConfig,
        predictor: Predictor | None,
        audio: _CueAudio | None,
        seed: int,
    ) -> None:
        self._app = app
        self._presentation = PygamePresentation(timing=config.timing, audio=audio)
        self._controller = SessionController(
            clock=RealClock(),
            presentation=self._presentation,
            seed=seed,
            predictor=predictor,
            config=config.session,
            timing=config.timing,
        )
        self._controller.start()

    @property
    def controller(self) -> SessionController:
        return self._controller

    def handle_event(self, event: pygame.event.Event) -> None:
        ended = self._controller.phase is SessionPhase.ENDED

        if event.type == pygame.KEYDOWN:
            if event.key == pygame.K_ESCAPE:
                self._controller.end()
                self._app.pop()
                return
            if ended and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                self._controller.start()
                return
            if not ended and event.key == pygame.K_SPACE:
                self._presentation.handle_press()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 0) == 1:
            pos = getattr(event, "pos", None)
            if pos is None:
                return
            if ended:
                if self._presentation.play_rect.collidepoint(pos):
                    self._controller.start()
                return
            self._presentation.handle_click(pos)

    def render(self, surface: pygame.Surface) -> None:
        self._controller.update()
        self._presentation.render(surface)


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    config = AppConfig.from_env()
    predictor = build_predictor(config.classifier)
    if predictor is None:
        log.info("running with fixed difficulty")

    pygame.init()
    pygame.display.set_caption("Reaction Trainer")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    clock = pygame.time.Clock()
    audio = _CueAudio()

    app = App(surface=surface)

    def open_session() -> None:
        seed = config.seed if config.seed is not None else _new_seed()
        app.push(
            ReactionSessionScreen(
                app,
                config=config,
                predictor=predictor,
                audio=audio,
                seed=seed,
            )
        )

    main_items = [
        MenuItem("Start", open_session),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Reaction Trainer", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
