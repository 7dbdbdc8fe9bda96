"""
Find the Match: a "find every copy of the reference item" mini-game.

The round logic (``controller``, ``pool``, ``slots``) is engine-agnostic;
Arcade specifics live in ``findmatch.backends`` and ``findmatch.app``.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
