from __future__ import annotations

import hashlib
import logging
import random as _random
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RandomSource(ABC):
    """Randomness collaborator used by the round controller.

    Injected so tests can substitute a seeded or scripted source.
    """

    @abstractmethod
    def uniform_int(self, lo: int, hi_inclusive: int) -> int:
        """Return an integer drawn uniformly from [lo, hi_inclusive]."""
        raise NotImplementedError

    @abstractmethod
    def uniform_choice(self, collection: Sequence[T]) -> T:
        """Return one element drawn uniformly from a non-empty sequence."""
        raise NotImplementedError


class SeededRandom(RandomSource):
    """Deterministic random source over a private ``random.Random``.

    - Never touches the global ``random`` state.
    - Accepts an int, or any other value which is hashed to a 32-bit seed.
    - With no seed, draws from system entropy and reports ``seed`` as None.
    """

    def __init__(self, seed: Optional[Any] = None) -> None:
        self._rng = _random.Random()
        self._seed: Optional[int] = None
        if seed is not None:
            self.set_seed(seed)
        else:
            self._rng.seed()

    @staticmethod
    def derive_seed(source: str) -> int:
        """Derive a 32-bit integer seed from an arbitrary string using SHA256."""
        digest = hashlib.sha256(source.encode("utf-8")).digest()
        val = int.from_bytes(digest[:8], "big", signed=False)
        return val & 0xFFFFFFFF

    def set_seed(self, seed_or_str: Any) -> int:
        if isinstance(seed_or_str, int):
            seed = seed_or_str & 0xFFFFFFFF
        else:
            seed = self.derive_seed(str(seed_or_str))
        self._rng.seed(seed)
        self._seed = seed
        logger.debug("Random source seeded with %d", seed)
        return seed

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def uniform_int(self, lo: int, hi_inclusive: int) -> int:
        if lo > hi_inclusive:
            raise ValueError(f"Empty range [{lo}, {hi_inclusive}]")
        return self._rng.randint(lo, hi_inclusive)

    def uniform_choice(self, collection: Sequence[T]) -> T:
        if not collection:
            raise ValueError("Cannot choose from an empty collection")
        return collection[self._rng.randrange(len(collection))]
