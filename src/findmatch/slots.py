from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .exceptions import ConfigurationError, StaleInputError
from .items import Item


@dataclass
class OptionSlot:
    """One fixed position in the selection grid.

    The slot only holds state. Drawing its item is the display's job and is
    triggered by whoever changes the slot.
    """

    index: int
    assigned_item: Optional[Item] = None
    active: bool = False
    interactable: bool = False

    def set_content(self, item: Item) -> None:
        self.assigned_item = item
        self.active = True

    def matches(self, candidate_name: str) -> bool:
        if self.assigned_item is None:
            return False
        return self.assigned_item.name == candidate_name

    def remove_from_play(self) -> None:
        """Mark the slot as found; it takes no further input this round."""
        self.active = False
        self.interactable = False

    def ensure_accepting(self) -> None:
        if not (self.active and self.interactable):
            raise StaleInputError(self.index)

    @property
    def item_name(self) -> Optional[str]:
        return self.assigned_item.name if self.assigned_item is not None else None


def create_slots(count: int) -> List[OptionSlot]:
    """Create ``count`` empty slots indexed 0..count-1."""
    if count < 1:
        raise ConfigurationError(f"At least one option slot is required (got {count})")
    return [OptionSlot(index=i) for i in range(count)]
