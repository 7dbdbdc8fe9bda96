from __future__ import annotations

import logging
import math
from typing import List, Optional

import pytest

from fakes import FakeNarrator, NonCancellingScheduler, ScriptedRandom
from findmatch.controller import (
    FAILURE_TEXT,
    SUCCESS_TEXT,
    RoundController,
    RoundPhase,
)
from findmatch.display import RecordingDisplay
from findmatch.events import (
    EVT_INPUT_ENABLED,
    EVT_ROUND_ABORTED,
    EVT_ROUND_COMPLETED,
    EVT_ROUND_STARTED,
    EVT_SELECTION_CORRECT,
    EVT_SELECTION_INCORRECT,
    EventBus,
)
from findmatch.exceptions import ConfigurationError
from findmatch.items import Catalog, Item
from findmatch.narration import NarrationCue
from findmatch.rng import RandomSource, SeededRandom
from findmatch.scheduler import ManualScheduler
from findmatch.slots import create_slots

FRUIT = ["Apple", "Banana", "Cherry"]


def make_controller(
    names: List[str] = FRUIT,
    slot_count: int = 4,
    max_target_count: int = 3,
    rng: Optional[RandomSource] = None,
    narrator: Optional[FakeNarrator] = None,
    scheduler: Optional[ManualScheduler] = None,
    bus: Optional[EventBus] = None,
) -> RoundController:
    return RoundController(
        Catalog(Item(name, sprite=f"{name.lower()}.png") for name in names),
        create_slots(slot_count),
        max_target_count,
        display=RecordingDisplay(),
        narrator=narrator or FakeNarrator(),
        scheduler=scheduler or ManualScheduler(),
        rng=rng or SeededRandom(42),
        bus=bus,
    )


def target_slots(controller: RoundController):
    return [s for s in controller.slots if s.matches(controller.state.target.name)]


def decoy_slots(controller: RoundController):
    return [s for s in controller.slots if not s.matches(controller.state.target.name)]


def finish_intro(controller: RoundController, scheduler: ManualScheduler) -> None:
    scheduler.advance(2.5)
    assert controller.phase is RoundPhase.ACCEPTING


# ----- Construction -----


def test_empty_catalog_is_configuration_error():
    with pytest.raises(ConfigurationError):
        RoundController(
            [],
            create_slots(4),
            3,
            display=RecordingDisplay(),
            narrator=FakeNarrator(),
            scheduler=ManualScheduler(),
            rng=SeededRandom(1),
        )


def test_no_slots_is_configuration_error():
    with pytest.raises(ConfigurationError):
        RoundController(
            [Item("Apple")],
            [],
            3,
            display=RecordingDisplay(),
            narrator=FakeNarrator(),
            scheduler=ManualScheduler(),
            rng=SeededRandom(1),
        )


@pytest.mark.parametrize("max_target_count", [0, 6])
def test_max_target_count_out_of_bounds(max_target_count):
    with pytest.raises(ConfigurationError):
        make_controller(max_target_count=max_target_count)


# ----- Round setup -----


def test_scenario_apple_two_required():
    controller = make_controller(FRUIT, slot_count=4, max_target_count=3, rng=ScriptedRandom(required=[2], picks=["Apple"]))

    state = controller.start_round()

    assert state.target.name == "Apple"
    assert state.required_count == 2
    names = [s.item_name for s in controller.slots]
    assert names.count("Apple") == 2
    others = [n for n in names if n != "Apple"]
    assert len(others) == 2
    assert set(others) <= {"Banana", "Cherry"}


@pytest.mark.parametrize("seed", range(50))
def test_pool_composition_holds_for_any_seed(seed):
    controller = make_controller(["A", "B", "C", "D", "E"], slot_count=6, max_target_count=3, rng=SeededRandom(seed))

    state = controller.start_round()

    assert 1 <= state.required_count <= 3
    assert len(target_slots(controller)) == state.required_count
    assert all(s.item_name != state.target.name for s in decoy_slots(controller))
    assert len(decoy_slots(controller)) == 6 - state.required_count
    assert state.found_count == 0


def test_required_count_clamped_to_slot_count():
    controller = make_controller(FRUIT, slot_count=2, max_target_count=5, rng=SeededRandom(3))
    seen = set()
    for _ in range(60):
        state = controller.start_round()
        seen.add(state.required_count)
        assert 1 <= state.required_count <= 2
    assert seen == {1, 2}


def test_single_item_catalog_reports_configuration_error():
    bus = EventBus()
    aborted = []
    bus.subscribe(EVT_ROUND_ABORTED, lambda round_number, error: aborted.append((round_number, error)))
    controller = make_controller(["Apple"], slot_count=4, max_target_count=1, bus=bus)

    with pytest.raises(ConfigurationError):
        controller.start_round()

    assert controller.phase is RoundPhase.ABORTED
    assert controller.state is None
    assert controller.pending_transition is None
    assert all(not s.interactable for s in controller.slots)
    assert len(aborted) == 1 and aborted[0][0] == 1


def test_single_item_catalog_is_fine_when_every_slot_is_a_target():
    controller = make_controller(["Apple"], slot_count=2, max_target_count=2, rng=ScriptedRandom(required=[2]))

    state = controller.start_round()

    assert state.required_count == 2
    assert [s.item_name for s in controller.slots] == ["Apple", "Apple"]


def test_intro_locks_input_and_schedules_reveal():
    narrator = FakeNarrator()
    scheduler = ManualScheduler()
    controller = make_controller(narrator=narrator, scheduler=scheduler, rng=ScriptedRandom(required=[2], picks=["Cherry"]))
    display = controller.display

    controller.start_round()

    assert controller.phase is RoundPhase.INTRO
    assert all(s.active for s in controller.slots)
    assert all(not s.interactable for s in controller.slots)
    assert display.reference == "Cherry"
    assert display.grid_visible is False
    assert len(display.slots) == 4
    assert narrator.calls == [("Find all 2 of the Cherry!", NarrationCue.INTRO)]
    assert math.isclose(controller.pending_transition.due, 2.5)

    scheduler.advance(2.49)
    assert all(not s.interactable for s in controller.slots)

    scheduler.advance(0.1)
    assert controller.phase is RoundPhase.ACCEPTING
    assert all(s.interactable for s in controller.slots)
    assert display.reference is None
    assert display.grid_visible is True
    assert controller.pending_transition is None


def test_round_started_and_input_enabled_events():
    bus = EventBus()
    events = []
    bus.subscribe(EVT_ROUND_STARTED, lambda **kw: events.append(("started", kw["target"].name, kw["required_count"])))
    bus.subscribe(EVT_INPUT_ENABLED, lambda round_number: events.append(("enabled", round_number)))
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler, bus=bus, rng=ScriptedRandom(required=[1], picks=["Banana"]))

    controller.start_round()
    scheduler.advance(3.0)

    assert events == [("started", "Banana", 1), ("enabled", 1)]


# ----- Selection handling -----


def test_click_while_locked_is_ignored():
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler)
    controller.start_round()
    pending = controller.pending_transition
    slot = target_slots(controller)[0]

    controller.handle_selection(slot)

    assert controller.state.found_count == 0
    assert controller.pending_transition is pending
    assert pending.live
    assert len(scheduler.pending) == 1


def test_click_before_any_round_is_ignored():
    controller = make_controller()
    controller.on_slot_clicked(0)
    assert controller.state is None
    assert controller.phase is RoundPhase.IDLE


def test_unknown_slot_index_raises():
    controller = make_controller(slot_count=4)
    with pytest.raises(IndexError):
        controller.on_slot_clicked(4)


def test_partial_success_then_reenable():
    narrator = FakeNarrator()
    scheduler = ManualScheduler()
    controller = make_controller(narrator=narrator, scheduler=scheduler, rng=ScriptedRandom(required=[2], picks=["Apple"]))
    controller.start_round()
    finish_intro(controller, scheduler)
    first, second = target_slots(controller)

    controller.on_slot_clicked(first.index)

    assert controller.state.found_count == 1
    assert controller.phase is RoundPhase.CORRECT_PARTIAL
    assert first.active is False
    assert all(not s.interactable for s in controller.slots)
    assert first.index in controller.display.hidden_slots
    assert narrator.calls[-1] == ("Found one! Only 1 more to go!", NarrationCue.PARTIAL_SUCCESS)
    assert math.isclose(controller.pending_transition.due - scheduler.now, 1.2)

    scheduler.advance(1.2)

    assert controller.phase is RoundPhase.ACCEPTING
    assert first.interactable is False
    assert all(s.interactable for s in controller.slots if s.active)

    # Clicking the removed slot again changes nothing.
    controller.handle_selection(first)
    assert controller.state.found_count == 1


def test_single_required_click_completes_round_and_schedules_next():
    narrator = FakeNarrator()
    scheduler = ManualScheduler()
    bus = EventBus()
    completed = []
    bus.subscribe(EVT_ROUND_COMPLETED, lambda round_number, mistakes: completed.append((round_number, mistakes)))
    controller = make_controller(
        narrator=narrator, scheduler=scheduler, bus=bus, rng=ScriptedRandom(required=[1], picks=["Banana"])
    )
    controller.start_round()
    finish_intro(controller, scheduler)

    controller.on_slot_clicked(target_slots(controller)[0].index)

    assert controller.phase is RoundPhase.CORRECT_FINAL
    assert controller.state.complete
    assert narrator.texts(NarrationCue.SUCCESS) == [SUCCESS_TEXT]
    assert controller.display.reference is None
    assert completed == [(1, 0)]
    assert controller.stats.rounds_completed == 1
    assert math.isclose(controller.pending_transition.due - scheduler.now, 2.0)

    scheduler.advance(1.99)
    assert controller.state.round_number == 1

    scheduler.advance(0.1)
    assert controller.phase is RoundPhase.INTRO
    assert controller.state.round_number == 2
    assert controller.state.found_count == 0
    assert narrator.texts(NarrationCue.SUCCESS) == [SUCCESS_TEXT]
    assert all(s.active and not s.interactable for s in controller.slots)


def test_incorrect_selection_then_reenable():
    narrator = FakeNarrator()
    scheduler = ManualScheduler()
    bus = EventBus()
    missed = []
    bus.subscribe(EVT_SELECTION_INCORRECT, lambda slot_index, item_name: missed.append((slot_index, item_name)))
    controller = make_controller(
        narrator=narrator, scheduler=scheduler, bus=bus, rng=ScriptedRandom(required=[1], picks=["Apple"])
    )
    controller.start_round()
    finish_intro(controller, scheduler)
    decoy = decoy_slots(controller)[0]

    controller.handle_selection(decoy)

    assert controller.phase is RoundPhase.INCORRECT
    assert controller.state.found_count == 0
    assert controller.state.mistakes == 1
    assert decoy.active is True
    assert all(not s.interactable for s in controller.slots)
    assert narrator.calls[-1] == (FAILURE_TEXT, NarrationCue.FAILURE)
    assert missed == [(decoy.index, decoy.item_name)]
    assert math.isclose(controller.pending_transition.due - scheduler.now, 1.0)

    scheduler.advance(1.0)
    assert controller.phase is RoundPhase.ACCEPTING
    assert all(s.interactable for s in controller.slots)


def test_found_count_only_increases_until_complete():
    scheduler = ManualScheduler()
    bus = EventBus()
    progress = []
    bus.subscribe(EVT_SELECTION_CORRECT, lambda **kw: progress.append((kw["found_count"], kw["required_count"])))
    controller = make_controller(
        ["A", "B", "C", "D"], slot_count=6, max_target_count=3, scheduler=scheduler, bus=bus,
        rng=ScriptedRandom(required=[3], picks=["C"]),
    )
    controller.start_round()
    finish_intro(controller, scheduler)

    for slot in target_slots(controller):
        assert not controller.state.complete
        controller.handle_selection(decoy_slots(controller)[0])
        scheduler.advance(1.0)
        controller.handle_selection(slot)
        assert controller.state.found_count <= controller.state.required_count
        if not controller.state.complete:
            scheduler.advance(1.2)

    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert controller.phase is RoundPhase.CORRECT_FINAL
    assert controller.state.mistakes == 3
    assert controller.stats.correct_selections == 3
    assert controller.stats.incorrect_selections == 3


# ----- Cancellation contract -----


def test_new_click_cancels_pending_transition():
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler, rng=ScriptedRandom(required=[1], picks=["Apple"]))
    controller.start_round()
    finish_intro(controller, scheduler)

    controller.handle_selection(decoy_slots(controller)[0])
    first = controller.pending_transition
    target = target_slots(controller)[0]
    target.interactable = True  # the UI let a second click through before feedback finished
    controller.handle_selection(target)

    assert first.cancelled
    assert controller.pending_transition is not first
    assert scheduler.pending == [controller.pending_transition]

    # The failure re-enable (due at +1.0) must not fire.
    scheduler.advance(1.0)
    assert controller.phase is RoundPhase.CORRECT_FINAL
    assert all(not s.interactable for s in controller.slots)

    scheduler.advance(1.0)
    assert controller.state.round_number == 2


def test_stale_transition_dropped_even_if_scheduler_cannot_cancel():
    scheduler = NonCancellingScheduler()
    controller = make_controller(scheduler=scheduler, rng=ScriptedRandom(required=[1], picks=["Apple"]))
    controller.start_round()
    finish_intro(controller, scheduler)

    controller.handle_selection(decoy_slots(controller)[0])
    target = target_slots(controller)[0]
    target.interactable = True
    controller.handle_selection(target)

    scheduler.advance(1.0)
    assert controller.phase is RoundPhase.CORRECT_FINAL
    assert all(not s.interactable for s in controller.slots)


def test_click_during_intro_cancels_reveal():
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler, rng=ScriptedRandom(required=[2], picks=["Apple"]))
    controller.start_round()
    reveal = controller.pending_transition
    slot = target_slots(controller)[0]
    slot.interactable = True

    controller.handle_selection(slot)

    assert reveal.cancelled
    assert controller.phase is RoundPhase.CORRECT_PARTIAL


def test_start_round_cancels_pending_transition():
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler)
    controller.start_round()
    first = controller.pending_transition

    controller.start_round()

    assert first.cancelled
    assert len(scheduler.pending) == 1


def test_stop_cancels_and_locks():
    scheduler = ManualScheduler()
    controller = make_controller(scheduler=scheduler)
    controller.start_round()
    finish_intro(controller, scheduler)

    controller.stop()

    assert scheduler.pending == []
    assert all(not s.interactable for s in controller.slots)
    assert controller.phase is RoundPhase.IDLE


# ----- Missing cues -----


@pytest.mark.parametrize("duration", [None, -1.0, float("nan"), float("inf"), "long"])
def test_unusable_cue_duration_counts_as_zero(duration):
    narrator = FakeNarrator({NarrationCue.INTRO: duration})
    controller = make_controller(narrator=narrator)

    controller.start_round()

    assert math.isclose(controller.pending_transition.due, 0.5)


def test_narrator_failure_does_not_crash_round(caplog):
    class BrokenNarrator(FakeNarrator):
        def narrate(self, text, cue):
            raise RuntimeError("audio device gone")

    scheduler = ManualScheduler()
    controller = make_controller(narrator=BrokenNarrator(), scheduler=scheduler)

    with caplog.at_level(logging.ERROR, logger="findmatch.controller"):
        controller.start_round()

    assert "Narrator failed" in caplog.text
    assert math.isclose(controller.pending_transition.due, 0.5)
    scheduler.advance(0.5)
    assert controller.phase is RoundPhase.ACCEPTING


# ----- Deferred failures -----


def test_deferred_next_round_configuration_error_leaves_controller_aborted():
    scheduler = ManualScheduler()
    bus = EventBus()
    aborted = []
    bus.subscribe(EVT_ROUND_ABORTED, lambda round_number, error: aborted.append(round_number))
    controller = make_controller(
        ["Apple"], slot_count=2, max_target_count=2, scheduler=scheduler, bus=bus,
        rng=ScriptedRandom(required=[2, 1]),
    )
    controller.start_round()
    finish_intro(controller, scheduler)
    for slot in list(controller.slots):
        controller.handle_selection(slot)
        scheduler.advance(1.2)

    assert controller.stats.rounds_completed == 1
    scheduler.run_until_idle()

    assert controller.phase is RoundPhase.ABORTED
    assert aborted == [2]
    assert scheduler.pending == []
