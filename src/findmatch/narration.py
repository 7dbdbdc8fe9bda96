from __future__ import annotations

import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class NarrationCue(str, Enum):
    """Audio cues the round controller can ask for."""

    INTRO = "intro"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"

    def __str__(self) -> str:
        return self.value


class Narrator(ABC):
    """Audio/narration collaborator.

    ``narrate`` shows the text, starts the cue and returns the cue's length
    in seconds so the caller can time the next phase. None means the length
    is unknown.
    """

    @abstractmethod
    def narrate(self, text: str, cue: NarrationCue) -> Optional[float]:
        raise NotImplementedError


@dataclass
class _Cue:
    """A loaded cue: backend sound object plus its length in seconds."""

    sound: Any
    duration: float

    def play(self, volume: float) -> None:
        play = getattr(self.sound, "play", None)
        if callable(play):
            play(volume=volume)


class CueLibrary:
    """Loads and plays narration cues through an audio backend (arcade by default).

    Key guarantees:
    - Missing backend, missing files or backend errors never escape; the cue
      simply has no sound and a duration of 0.0.
    - Tests inject a backend object exposing ``load_sound(path)``.
    """

    def __init__(
        self,
        paths: Optional[Mapping[Union[NarrationCue, str], str]] = None,
        *,
        backend: Optional[Any] = None,
        volume: float = 1.0,
        enabled: bool = True,
    ) -> None:
        self._backend = backend
        self._volume = self._clamp_volume(volume)
        self._enabled = bool(enabled)
        self._cues: Dict[str, _Cue] = {}
        for cue, path in (paths or {}).items():
            self.register_path(cue, path)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = self._clamp_volume(value)

    def register_sound(self, cue: Union[NarrationCue, str], sound: Any, duration: Optional[float] = None) -> None:
        """Register an already-loaded backend sound for a cue."""
        if duration is None:
            duration = self._measure(sound)
        self._cues[str(cue)] = _Cue(sound=sound, duration=duration)
        logger.debug("Narration: registered cue '%s' (%.3fs)", cue, duration)

    def register_path(self, cue: Union[NarrationCue, str], path: str) -> bool:
        """Load a sound file for a cue. Returns False when it could not be loaded."""
        key = str(cue)
        if not path or not os.path.exists(path):
            logger.info("Narration: asset for cue '%s' not found at %s", key, path)
            return False
        backend = self._ensure_backend()
        if backend is None:
            logger.info("Narration: no audio backend available; cue '%s' will be silent", key)
            return False
        try:
            sound = backend.load_sound(path)
        except Exception:  # noqa: BLE001
            logger.exception("Narration: backend failed to load %s", path)
            return False
        if sound is None:
            logger.info("Narration: backend returned no sound for %s", path)
            return False
        self.register_sound(key, sound)
        return True

    def has(self, cue: Union[NarrationCue, str]) -> bool:
        return str(cue) in self._cues

    def duration(self, cue: Union[NarrationCue, str]) -> float:
        entry = self._cues.get(str(cue))
        return entry.duration if entry is not None else 0.0

    def play(self, cue: Union[NarrationCue, str]) -> bool:
        """Play a cue. Returns True on success; never raises."""
        key = str(cue)
        if not self._enabled:
            logger.debug("Narration: playback disabled (cue=%s)", key)
            return False
        entry = self._cues.get(key)
        if entry is None:
            logger.debug("Narration: no sound registered for cue '%s'", key)
            return False
        try:
            entry.play(self._volume)
            return True
        except Exception:  # noqa: BLE001
            logger.exception("Narration: unexpected error while playing '%s'", key)
            return False

    @staticmethod
    def _measure(sound: Any) -> float:
        get_length = getattr(sound, "get_length", None)
        if not callable(get_length):
            return 0.0
        try:
            length = float(get_length())
        except Exception:  # noqa: BLE001
            logger.exception("Narration: could not read sound length")
            return 0.0
        if math.isnan(length) or math.isinf(length) or length < 0:
            return 0.0
        return length

    def _ensure_backend(self) -> Optional[Any]:
        if self._backend is not None:
            return self._backend
        try:
            import importlib

            self._backend = importlib.import_module("arcade")
        except Exception:  # noqa: BLE001
            self._backend = None
            logger.debug("Narration: arcade backend not available; running silent")
        return self._backend

    @staticmethod
    def _clamp_volume(v: float) -> float:
        try:
            fv = float(v)
        except Exception:  # noqa: BLE001
            return 1.0
        return max(0.0, min(1.0, fv))


class CueNarrator(Narrator):
    """Narrator backed by a CueLibrary and an optional text sink (a label, print, a log)."""

    def __init__(self, library: CueLibrary, text_sink: Optional[Callable[[str], None]] = None) -> None:
        self.library = library
        self.text_sink = text_sink
        self.text: str = ""

    def narrate(self, text: str, cue: NarrationCue) -> float:
        self.text = text
        logger.info("Narrator [%s]: %s", cue, text)
        if self.text_sink is not None:
            self.text_sink(text)
        self.library.play(cue)
        return self.library.duration(cue)
