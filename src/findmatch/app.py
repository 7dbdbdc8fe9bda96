from __future__ import annotations

import logging
import os
from typing import Any, Optional

from .config import RoundConfig, load_round_config
from .controller import RoundController
from .display import Display, RecordingDisplay
from .events import EVT_ROUND_COMPLETED, EVT_ROUND_STARTED, EventBus
from .exceptions import ConfigurationError
from .narration import CueLibrary, CueNarrator, Narrator
from .rng import RandomSource, SeededRandom
from .scheduler import ManualScheduler, Scheduler
from .slots import create_slots

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2


def _arcade_available() -> bool:
    try:
        import arcade  # noqa: F401
        return True
    except Exception:
        return False


def build_controller(
    config: RoundConfig,
    *,
    display: Display,
    narrator: Narrator,
    scheduler: Scheduler,
    rng: RandomSource,
    bus: Optional[EventBus] = None,
) -> RoundController:
    """Wire a RoundController from configuration and collaborators."""
    return RoundController(
        config.catalog(),
        create_slots(config.slot_count),
        config.max_target_count,
        display=display,
        narrator=narrator,
        scheduler=scheduler,
        rng=rng,
        bus=bus,
    )


def run_headless(config: RoundConfig, seed: Optional[Any] = None, rounds: int = 3, max_clicks: int = 1000) -> int:
    """Play ``rounds`` rounds in the console with a random-clicking auto player.

    Uses a virtual clock, so it finishes instantly regardless of cue lengths.
    """
    print("Find the Match (headless)")

    rng = SeededRandom(seed)
    player_rng = SeededRandom(None if rng.seed is None else f"player:{rng.seed}")
    scheduler = ManualScheduler()
    bus = EventBus()
    bus.subscribe(
        EVT_ROUND_STARTED,
        lambda round_number, target, required_count: print(
            f"Round {round_number}: find {required_count} x {target.name}"
        ),
    )
    bus.subscribe(
        EVT_ROUND_COMPLETED,
        lambda round_number, mistakes: print(f"Round {round_number} complete (mistakes={mistakes})"),
    )
    narrator = CueNarrator(CueLibrary(enabled=False), text_sink=lambda text: print(f"  narrator: {text}"))

    try:
        controller = build_controller(
            config,
            display=RecordingDisplay(),
            narrator=narrator,
            scheduler=scheduler,
            rng=rng,
            bus=bus,
        )
        controller.start_round()
    except ConfigurationError as exc:
        logger.error("Cannot start game: %s", exc)
        return EXIT_CONFIG

    clicks = 0
    while controller.stats.rounds_completed < rounds and clicks < max_clicks:
        accepting = [slot for slot in controller.slots if slot.active and slot.interactable]
        if accepting:
            controller.handle_selection(player_rng.uniform_choice(accepting))
            clicks += 1
            continue
        if not scheduler.step():
            logger.error("Game stalled in phase %s", controller.phase.value)
            return EXIT_CONFIG
    controller.stop()

    stats = controller.stats
    print(
        f"Rounds complete: {stats.rounds_completed} "
        f"(correct={stats.correct_selections}, incorrect={stats.incorrect_selections})"
    )
    return EXIT_OK


def run_gui(config: RoundConfig, seed: Optional[Any] = None) -> int:
    """Run the game in an Arcade window, or fall back to headless without Arcade."""
    if not _arcade_available():
        logger.warning("Arcade not available; falling back to headless mode")
        return run_headless(config, seed=seed)

    import arcade

    from .backends.arcade_backend import ArcadeDisplay, ArcadeScheduler

    class GameWindow(arcade.Window):
        def __init__(self) -> None:
            super().__init__(config.window.width, config.window.height, title=config.window.title)
            self.background_color = arcade.color.BLACK
            self.display = ArcadeDisplay(config.slot_count, self.width, self.height)
            self.narration = arcade.Text(
                "",
                self.width / 2,
                self.height - 40,
                arcade.color.ASH_GREY,
                font_size=22,
                anchor_x="center",
            )
            narrator = CueNarrator(CueLibrary(config.cues), text_sink=self._set_narration)
            self.controller = build_controller(
                config,
                display=self.display,
                narrator=narrator,
                scheduler=ArcadeScheduler(),
                rng=SeededRandom(seed),
            )

        def _set_narration(self, text: str) -> None:
            self.narration.text = text

        def on_draw(self):
            self.clear()
            self.display.draw()
            self.narration.draw()

        def on_mouse_press(self, x: float, y: float, button: int, modifiers: int):
            index = self.display.slot_at(x, y)
            if index is not None:
                self.controller.on_slot_clicked(index)

        def on_key_press(self, symbol: int, modifiers: int):
            if symbol == arcade.key.ESCAPE:
                self.controller.stop()
                self.close()

    try:
        window = GameWindow()
        window.controller.start_round()
    except ConfigurationError as exc:
        logger.error("Cannot start game: %s", exc)
        return EXIT_CONFIG

    try:
        logger.info("Launching Arcade window")
        arcade.run()
        logger.info("Arcade loop finished")
        return EXIT_OK
    except Exception:
        logger.exception("Unhandled exception in GUI loop; exiting with code 1")
        return EXIT_ERROR


def run_auto(config: Optional[RoundConfig] = None, seed: Optional[Any] = None, rounds: int = 3) -> int:
    """Run GUI if available and not overridden, else headless.

    ``FINDMATCH_HEADLESS=1`` forces headless mode.
    """
    if config is None:
        config = load_round_config()
    if os.getenv("FINDMATCH_HEADLESS") == "1":
        return run_headless(config, seed=seed, rounds=rounds)
    return run_gui(config, seed=seed)
