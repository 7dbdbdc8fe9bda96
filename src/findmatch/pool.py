"""Pool construction for a round: decoys, targets and the shuffle."""
from __future__ import annotations

import logging
from typing import List, MutableSequence, Sequence, TypeVar

from .exceptions import ConfigurationError
from .items import Catalog, Item
from .rng import RandomSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Designer-facing bound on how many copies of the target a round may hide.
MIN_TARGET_COUNT = 1
MAX_TARGET_COUNT = 5


def clamp_required_max(max_target_count: int, slot_count: int) -> int:
    return min(max_target_count, slot_count)


def build_decoy_pool(catalog: Catalog, target: Item) -> List[Item]:
    """Return every catalog item whose name differs from the target's."""
    return catalog.decoys_for(target)


def build_selection_pool(
    target: Item,
    required_count: int,
    slot_count: int,
    decoys: Sequence[Item],
    rng: RandomSource,
) -> List[Item]:
    """Build the unshuffled pool: targets first, then decoys.

    Decoys are drawn independently and with replacement, so a small decoy
    pool may show the same decoy more than once.

    Raises:
        ConfigurationError: decoys are needed but none differ from the target.
    """
    if not 1 <= required_count <= slot_count:
        raise ConfigurationError(
            f"required_count must be within [1, {slot_count}] (got {required_count})"
        )
    decoy_slots = slot_count - required_count
    if decoy_slots > 0 and not decoys:
        raise ConfigurationError(
            f"No decoys differ from target {target.name!r} but {decoy_slots} decoy slot(s) need filling"
        )
    pool: List[Item] = [target] * required_count
    for _ in range(decoy_slots):
        pool.append(rng.uniform_choice(decoys))
    logger.debug(
        "Selection pool built: target=%s x%d, decoys=%s",
        target.name,
        required_count,
        [item.name for item in pool[required_count:]],
    )
    return pool


def fisher_yates_shuffle(items: MutableSequence[T], rng: RandomSource) -> MutableSequence[T]:
    """Shuffle ``items`` in place so that every permutation is equally likely."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.uniform_int(0, i)
        items[i], items[j] = items[j], items[i]
    return items
