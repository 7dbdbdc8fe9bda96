from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set, Tuple

from .items import Item
from .slots import OptionSlot

logger = logging.getLogger(__name__)


class Display(ABC):
    """Display collaborator to decouple round logic from a rendering library (e.g., Arcade)."""

    @abstractmethod
    def show_reference(self, item: Item) -> None:
        """Show the item the player must find."""
        raise NotImplementedError

    @abstractmethod
    def hide_reference(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def show_option_grid(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def hide_option_grid(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def render_slot(self, slot: OptionSlot, item: Item) -> None:
        """Draw ``item`` in ``slot`` and make the slot visible."""
        raise NotImplementedError

    @abstractmethod
    def hide_slot(self, slot: OptionSlot) -> None:
        """Remove a found slot from view."""
        raise NotImplementedError


class RecordingDisplay(Display):
    """Headless display that records what would be on screen.

    Used by the headless runner and by tests to assert on visible state.
    """

    def __init__(self) -> None:
        self.reference: Optional[str] = None
        self.grid_visible: bool = False
        self.slots: Dict[int, str] = {}
        self.hidden_slots: Set[int] = set()
        self.calls: List[Tuple[str, Optional[str]]] = []

    def show_reference(self, item: Item) -> None:
        self.reference = item.name
        self._record("show_reference", item.name)

    def hide_reference(self) -> None:
        self.reference = None
        self._record("hide_reference")

    def show_option_grid(self) -> None:
        self.grid_visible = True
        self._record("show_option_grid")

    def hide_option_grid(self) -> None:
        self.grid_visible = False
        self._record("hide_option_grid")

    def render_slot(self, slot: OptionSlot, item: Item) -> None:
        self.slots[slot.index] = item.name
        self.hidden_slots.discard(slot.index)
        self._record("render_slot", f"{slot.index}:{item.name}")

    def hide_slot(self, slot: OptionSlot) -> None:
        self.hidden_slots.add(slot.index)
        self._record("hide_slot", str(slot.index))

    def visible_slots(self) -> Dict[int, str]:
        return {i: name for i, name in self.slots.items() if i not in self.hidden_slots}

    def _record(self, name: str, arg: Optional[str] = None) -> None:
        self.calls.append((name, arg))
        logger.debug("Display %s(%s)", name, arg if arg is not None else "")
