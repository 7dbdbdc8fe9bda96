from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from .display import Display
from .events import (
    EVT_INPUT_ENABLED,
    EVT_ROUND_ABORTED,
    EVT_ROUND_COMPLETED,
    EVT_ROUND_STARTED,
    EVT_SELECTION_CORRECT,
    EVT_SELECTION_INCORRECT,
    EventBus,
)
from .exceptions import ConfigurationError, StaleInputError
from .items import Catalog, Item
from .narration import NarrationCue, Narrator
from .pool import (
    MAX_TARGET_COUNT,
    MIN_TARGET_COUNT,
    build_decoy_pool,
    build_selection_pool,
    clamp_required_max,
    fisher_yates_shuffle,
)
from .rng import RandomSource
from .scheduler import ScheduledCall, Scheduler
from .slots import OptionSlot

logger = logging.getLogger(__name__)

# Extra seconds added after each cue before the next phase begins.
INTRO_PADDING = 0.5
SUCCESS_PADDING = 0.5
FEEDBACK_PADDING = 0.2

SUCCESS_TEXT = "You found them all! Excellent job!"
FAILURE_TEXT = "Oops, that's not the right one. Try again!"


def intro_text(required_count: int, target_name: str) -> str:
    return f"Find all {required_count} of the {target_name}!"


def partial_text(remaining: int) -> str:
    return f"Found one! Only {remaining} more to go!"


class RoundPhase(str, Enum):
    IDLE = "idle"
    INTRO = "intro"
    ACCEPTING = "accepting"
    CORRECT_PARTIAL = "correct_partial"
    CORRECT_FINAL = "correct_final"
    INCORRECT = "incorrect"
    ABORTED = "aborted"


@dataclass
class RoundState:
    """Per-round data, replaced wholesale when the next round starts.

    Invariant: 0 <= found_count <= required_count.
    """

    target: Item
    required_count: int
    round_number: int = 1
    found_count: int = 0
    mistakes: int = 0

    @property
    def remaining(self) -> int:
        return self.required_count - self.found_count

    @property
    def complete(self) -> bool:
        return self.found_count == self.required_count

    def record_find(self) -> None:
        if self.complete:
            raise ValueError("Round already complete; no targets left to find")
        self.found_count += 1


@dataclass
class RoundStats:
    """Running totals across rounds for the current session."""

    rounds_started: int = 0
    rounds_completed: int = 0
    correct_selections: int = 0
    incorrect_selections: int = 0


class RoundController:
    """Owns the lifecycle of a find-the-match round.

    Flow:
        start_round -> INTRO -> (delay) -> ACCEPTING
        ACCEPTING --click--> CORRECT_PARTIAL | CORRECT_FINAL | INCORRECT
        CORRECT_PARTIAL / INCORRECT -> (delay) -> ACCEPTING
        CORRECT_FINAL -> (delay) -> start_round

    All waiting is a scheduled callback. At most one transition is live; a
    new transition or a new accepted click cancels the previous one.

    Collaborators are injected; nothing is looked up at runtime:
        controller = RoundController(catalog, create_slots(6), 3,
                                     display=..., narrator=..., scheduler=..., rng=...)
        controller.start_round()
        # UI layer: controller.on_slot_clicked(index)
    """

    def __init__(
        self,
        catalog: Union[Catalog, Iterable[Item]],
        slots: Sequence[OptionSlot],
        max_target_count: int,
        *,
        display: Display,
        narrator: Narrator,
        scheduler: Scheduler,
        rng: RandomSource,
        bus: Optional[EventBus] = None,
    ) -> None:
        if not isinstance(catalog, Catalog):
            catalog = Catalog(catalog)
        if not slots:
            raise ConfigurationError("No option slots configured")
        if not MIN_TARGET_COUNT <= max_target_count <= MAX_TARGET_COUNT:
            raise ConfigurationError(
                f"max_target_count must be within [{MIN_TARGET_COUNT}, {MAX_TARGET_COUNT}] (got {max_target_count})"
            )
        self._catalog = catalog
        self._slots: Tuple[OptionSlot, ...] = tuple(slots)
        self._max_target_count = max_target_count
        self._display = display
        self._narrator = narrator
        self._scheduler = scheduler
        self._rng = rng
        self._bus = bus or EventBus()

        self._state: Optional[RoundState] = None
        self._phase = RoundPhase.IDLE
        self._pending: Optional[ScheduledCall] = None
        self._round_number = 0
        self.stats = RoundStats()

    # ----- Properties -----

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def slots(self) -> Tuple[OptionSlot, ...]:
        return self._slots

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    @property
    def max_target_count(self) -> int:
        return self._max_target_count

    @property
    def display(self) -> Display:
        return self._display

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def state(self) -> Optional[RoundState]:
        return self._state

    @property
    def phase(self) -> RoundPhase:
        return self._phase

    @property
    def pending_transition(self) -> Optional[ScheduledCall]:
        return self._pending

    # ----- Round setup -----

    def start_round(self) -> RoundState:
        """Set up a fresh round and schedule the end of its intro.

        Raises:
            ConfigurationError: the round needs decoys but none differ from the
                target. The controller is left ABORTED with input locked.
        """
        self._cancel_pending()
        self._round_number += 1
        self._state = None
        self._lock_input()
        self._display.hide_option_grid()

        target = self._rng.uniform_choice(self._catalog.items)
        upper = clamp_required_max(self._max_target_count, self.slot_count)
        required_count = self._rng.uniform_int(MIN_TARGET_COUNT, upper)

        decoys = build_decoy_pool(self._catalog, target)
        try:
            pool = build_selection_pool(target, required_count, self.slot_count, decoys, self._rng)
        except ConfigurationError as exc:
            self._phase = RoundPhase.ABORTED
            logger.error("Round %d aborted: %s", self._round_number, exc)
            self._bus.emit(EVT_ROUND_ABORTED, round_number=self._round_number, error=exc)
            raise
        fisher_yates_shuffle(pool, self._rng)

        for slot, item in zip(self._slots, pool):
            slot.set_content(item)
            self._display.render_slot(slot, item)

        state = RoundState(target=target, required_count=required_count, round_number=self._round_number)
        self._state = state
        self._phase = RoundPhase.INTRO
        self.stats.rounds_started += 1
        self._display.show_reference(target)
        logger.info(
            "Round %d started: target=%s required=%d slots=%d",
            state.round_number,
            target.name,
            required_count,
            self.slot_count,
        )
        self._bus.emit(
            EVT_ROUND_STARTED,
            round_number=state.round_number,
            target=target,
            required_count=required_count,
        )

        duration = self._narrate(intro_text(required_count, target.name), NarrationCue.INTRO)
        self._schedule_transition(duration + INTRO_PADDING, self._reveal_options, "reveal_options")
        return state

    # ----- Selection handling -----

    def on_slot_clicked(self, slot_index: int) -> None:
        """Entry point for the input layer."""
        if not 0 <= slot_index < self.slot_count:
            raise IndexError(f"No option slot with index {slot_index}")
        self.handle_selection(self._slots[slot_index])

    def handle_selection(self, slot: OptionSlot) -> None:
        try:
            slot.ensure_accepting()
        except StaleInputError as exc:
            logger.debug("Ignoring click: %s", exc)
            return
        state = self._state
        if state is None:
            logger.debug("Ignoring click on slot %d: no round in progress", slot.index)
            return

        # A definitive outcome supersedes whatever transition was waiting.
        self._cancel_pending()
        if slot.matches(state.target.name):
            self._on_correct(slot, state)
        else:
            self._on_incorrect(slot, state)

    def _on_correct(self, slot: OptionSlot, state: RoundState) -> None:
        state.record_find()
        slot.remove_from_play()
        self._display.hide_slot(slot)
        self._lock_input()
        self.stats.correct_selections += 1
        logger.info(
            "Correct selection on slot %d (%d/%d)", slot.index, state.found_count, state.required_count
        )
        self._bus.emit(
            EVT_SELECTION_CORRECT,
            slot_index=slot.index,
            found_count=state.found_count,
            required_count=state.required_count,
        )

        if state.complete:
            self._phase = RoundPhase.CORRECT_FINAL
            self._display.hide_reference()
            self.stats.rounds_completed += 1
            logger.info("Round %d complete (mistakes=%d)", state.round_number, state.mistakes)
            self._bus.emit(EVT_ROUND_COMPLETED, round_number=state.round_number, mistakes=state.mistakes)
            duration = self._narrate(SUCCESS_TEXT, NarrationCue.SUCCESS)
            self._schedule_transition(duration + SUCCESS_PADDING, self._advance_round, "next_round")
        else:
            self._phase = RoundPhase.CORRECT_PARTIAL
            duration = self._narrate(partial_text(state.remaining), NarrationCue.PARTIAL_SUCCESS)
            self._schedule_transition(duration + FEEDBACK_PADDING, self._enable_input, "enable_input")

    def _on_incorrect(self, slot: OptionSlot, state: RoundState) -> None:
        state.mistakes += 1
        self._lock_input()
        self._phase = RoundPhase.INCORRECT
        self.stats.incorrect_selections += 1
        logger.info("Incorrect selection on slot %d (%s)", slot.index, slot.item_name)
        self._bus.emit(EVT_SELECTION_INCORRECT, slot_index=slot.index, item_name=slot.item_name)
        duration = self._narrate(FAILURE_TEXT, NarrationCue.FAILURE)
        self._schedule_transition(duration + FEEDBACK_PADDING, self._enable_input, "enable_input")

    # ----- Lifecycle -----

    def stop(self) -> None:
        """Cancel any pending transition and lock the grid."""
        self._cancel_pending()
        self._lock_input()
        self._phase = RoundPhase.IDLE
        logger.info("Round controller stopped after %d round(s)", self._round_number)

    # ----- Transitions -----

    def _reveal_options(self) -> None:
        self._display.hide_reference()
        self._display.show_option_grid()
        self._enable_input()
        if self._state is not None:
            self._bus.emit(EVT_INPUT_ENABLED, round_number=self._state.round_number)

    def _enable_input(self) -> None:
        for slot in self._slots:
            if slot.active:
                slot.interactable = True
        self._phase = RoundPhase.ACCEPTING
        logger.debug("Input enabled on %d active slot(s)", sum(1 for s in self._slots if s.active))

    def _advance_round(self) -> None:
        try:
            self.start_round()
        except ConfigurationError:
            logger.exception("Could not start the next round")

    def _lock_input(self) -> None:
        for slot in self._slots:
            slot.interactable = False

    def _schedule_transition(self, delay: float, action: Callable[[], None], label: str) -> None:
        self._cancel_pending()
        token: Optional[ScheduledCall] = None

        def fire() -> None:
            # The scheduler may not honour cancel(); only the live token acts.
            if self._pending is not token:
                logger.debug("Dropping stale transition '%s'", label)
                return
            self._pending = None
            action()

        token = self._scheduler.schedule_after(delay, fire, label)
        self._pending = token

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._scheduler.cancel(self._pending)
            self._pending = None

    def _narrate(self, text: str, cue: NarrationCue) -> float:
        """Narrate and return the cue length; anything unusable counts as 0.0."""
        try:
            duration = self._narrator.narrate(text, cue)
        except Exception:  # noqa: BLE001
            logger.exception("Narrator failed for cue '%s'", cue)
            return 0.0
        if duration is None:
            return 0.0
        try:
            value = float(duration)
        except (TypeError, ValueError):
            logger.warning("Narrator returned a non-numeric duration for cue '%s': %r", cue, duration)
            return 0.0
        if not math.isfinite(value) or value < 0:
            return 0.0
        return value
