class FindMatchError(Exception):
    """Base exception for the find-the-match game."""


class ConfigurationError(FindMatchError):
    """Raised when the catalog, slots or round settings cannot produce a valid round.

    Examples: empty catalog, no option slots, or a round that needs decoys
    while every catalog item shares the target's name.
    """


class StaleInputError(FindMatchError):
    """Raised when a click reaches a slot that is not accepting input.

    This is expected traffic (locked grid, removed slot) and is never
    surfaced to the player.
    """

    def __init__(self, slot_index: int):
        self.slot_index = slot_index
        super().__init__(f"Slot {slot_index} is not accepting input")
