from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Item:
    """A displayable thing the player can be asked to find.

    Attributes:
        name: Unique key; two items with the same name are the same item.
        sprite: Opaque reference to the visual asset (path or engine handle).
            The round logic never looks inside it.
    """

    name: str
    sprite: Any = None


class Catalog:
    """Immutable, ordered set of every item available to a round."""

    def __init__(self, items: Iterable[Item]) -> None:
        items = tuple(items)
        if not items:
            raise ConfigurationError("Catalog must contain at least one item")
        seen: Dict[str, Item] = {}
        for item in items:
            if item.name in seen:
                raise ConfigurationError(f"Duplicate item name in catalog: {item.name!r}")
            seen[item.name] = item
        self._items: Tuple[Item, ...] = items
        self._by_name = seen
        logger.debug("Catalog created with %d items: %s", len(items), self.names)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "Catalog":
        """Build a catalog from ``{"name": ..., "sprite": ...}`` mappings."""
        items: List[Item] = []
        for rec in records:
            name = rec.get("name")
            if not name:
                raise ConfigurationError(f"Catalog record without a name: {dict(rec)!r}")
            items.append(Item(name=str(name), sprite=rec.get("sprite")))
        return cls(items)

    @property
    def items(self) -> Tuple[Item, ...]:
        return self._items

    @property
    def names(self) -> List[str]:
        return [item.name for item in self._items]

    def get(self, name: str) -> Optional[Item]:
        return self._by_name.get(name)

    def decoys_for(self, target: Item) -> List[Item]:
        """Return every item that cannot be mistaken for ``target``."""
        return [item for item in self._items if item.name != target.name]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Item:
        return self._items[index]

    def __repr__(self) -> str:
        return f"Catalog({self.names!r})"
