from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

try:
    import arcade
except Exception:  # pragma: no cover - Import errors handled at runtime where used
    arcade = None  # type: ignore

from ..display import Display
from ..items import Item
from ..scheduler import Callback, ScheduledCall, Scheduler
from ..slots import OptionSlot

logger = logging.getLogger(__name__)

SLOT_SIZE = 128
SLOT_GAP = 24
REFERENCE_SIZE = 220
LABEL_COLOR = (230, 230, 235)
PLACEHOLDER_COLOR = (70, 90, 120)


def _require_arcade() -> None:
    if arcade is None:  # pragma: no cover - runtime guard
        raise RuntimeError("arcade is not available. Install 'arcade' to use the GUI backend.")


class ArcadeScheduler(Scheduler):
    """Scheduler backed by arcade's clock (``schedule_once`` / ``unschedule``).

    arcade unschedules by function identity, so every call gets its own
    wrapper function.
    """

    def __init__(self) -> None:
        _require_arcade()
        self._wrappers: Dict[int, Any] = {}

    def schedule_after(self, delay: float, callback: Callback, label: str = "") -> ScheduledCall:
        delay = max(0.0, float(delay))
        call = ScheduledCall(callback=callback, delay=delay, label=label)

        def _fire(_delta_time: float) -> None:
            self._wrappers.pop(call.id, None)
            if not call.live:
                return
            call.fired = True
            callback()

        self._wrappers[call.id] = _fire
        arcade.schedule_once(_fire, delay)
        logger.debug("Arcade scheduled %s#%d in %.3fs", label or "call", call.id, delay)
        return call

    def cancel(self, token: Optional[ScheduledCall]) -> None:
        if token is None or not token.live:
            return
        token.cancel()
        wrapper = self._wrappers.pop(token.id, None)
        if wrapper is not None:
            arcade.unschedule(wrapper)
        logger.debug("Arcade cancelled %s#%d", token.label or "call", token.id)


@dataclass
class _SlotView:
    center: Tuple[float, float]
    sprite: Any = None
    label: Any = None
    visible: bool = False


class ArcadeDisplay(Display):
    """Draws the reference image and the option grid with arcade sprites.

    Items whose sprite file is missing are drawn as a coloured tile with the
    item name, so a catalog without art is still playable.
    """

    def __init__(self, slot_count: int, width: int, height: int) -> None:
        _require_arcade()
        self.width = width
        self.height = height
        self.grid_visible = False
        self._reference: Optional[Item] = None
        self._reference_sprites = arcade.SpriteList()
        self._reference_label: Any = None
        self._slot_sprites = arcade.SpriteList()
        self._views: List[_SlotView] = [_SlotView(center=c) for c in self._grid_layout(slot_count)]

    # ----- Display interface -----

    def show_reference(self, item: Item) -> None:
        self._reference = item
        self._reference_sprites.clear()
        sprite = self._make_sprite(item, REFERENCE_SIZE)
        sprite.center_x = self.width / 2
        sprite.center_y = self.height / 2 + 20
        self._reference_sprites.append(sprite)
        self._reference_label = arcade.Text(
            item.name,
            self.width / 2,
            self.height / 2 - REFERENCE_SIZE / 2 - 10,
            LABEL_COLOR,
            font_size=20,
            anchor_x="center",
        )

    def hide_reference(self) -> None:
        self._reference = None
        self._reference_sprites.clear()
        self._reference_label = None

    def show_option_grid(self) -> None:
        self.grid_visible = True

    def hide_option_grid(self) -> None:
        self.grid_visible = False

    def render_slot(self, slot: OptionSlot, item: Item) -> None:
        view = self._views[slot.index]
        if view.sprite is not None:
            view.sprite.remove_from_sprite_lists()
        sprite = self._make_sprite(item, SLOT_SIZE)
        sprite.center_x, sprite.center_y = view.center
        self._slot_sprites.append(sprite)
        view.sprite = sprite
        view.label = arcade.Text(
            item.name,
            view.center[0],
            view.center[1] - SLOT_SIZE / 2 - 18,
            LABEL_COLOR,
            font_size=12,
            anchor_x="center",
        )
        view.visible = True

    def hide_slot(self, slot: OptionSlot) -> None:
        view = self._views[slot.index]
        view.visible = False
        if view.sprite is not None:
            view.sprite.visible = False

    # ----- Input / drawing helpers used by the window -----

    def slot_at(self, x: float, y: float) -> Optional[int]:
        """Return the index of the visible slot under the point, if any."""
        if not self.grid_visible:
            return None
        half = SLOT_SIZE / 2
        for index, view in enumerate(self._views):
            cx, cy = view.center
            if view.visible and abs(x - cx) <= half and abs(y - cy) <= half:
                return index
        return None

    def draw(self) -> None:  # pragma: no cover - requires a GL context
        if self._reference is not None:
            self._reference_sprites.draw()
            if self._reference_label is not None:
                self._reference_label.draw()
        if self.grid_visible:
            self._slot_sprites.draw()
            for view in self._views:
                if view.visible and view.label is not None:
                    view.label.draw()

    # ----- Internals -----

    def _grid_layout(self, slot_count: int) -> List[Tuple[float, float]]:
        cols = max(1, math.ceil(math.sqrt(slot_count)))
        rows = math.ceil(slot_count / cols)
        cell = SLOT_SIZE + SLOT_GAP
        left = (self.width - cols * cell) / 2 + cell / 2
        top = (self.height + rows * cell) / 2 - cell / 2
        return [(left + (i % cols) * cell, top - (i // cols) * cell) for i in range(slot_count)]

    @staticmethod
    def _make_sprite(item: Item, size: int) -> Any:
        path = item.sprite if isinstance(item.sprite, str) else None
        if path and os.path.exists(path):
            try:
                sprite = arcade.Sprite(path)
                sprite.width = size
                sprite.height = size
                return sprite
            except Exception:  # noqa: BLE001
                logger.exception("Failed to load sprite for %s from %s", item.name, path)
        else:
            logger.debug("No sprite file for %s; using placeholder tile", item.name)
        return arcade.SpriteSolidColor(size, size, color=PLACEHOLDER_COLOR)
