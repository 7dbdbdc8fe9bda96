from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from importlib.resources import files as resource_files

import yaml
from jsonschema import Draft202012Validator

from ..exceptions import ConfigurationError
from ..items import Catalog, Item
from ..narration import NarrationCue
from ..pool import MAX_TARGET_COUNT, MIN_TARGET_COUNT

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FINDMATCH_CONFIG"

ROUND_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["slot_count", "items"],
    "properties": {
        "slot_count": {"type": "integer", "minimum": 1},
        "max_target_count": {
            "type": "integer",
            "minimum": MIN_TARGET_COUNT,
            "maximum": MAX_TARGET_COUNT,
        },
        "items": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "sprite": {"type": ["string", "null"]},
                },
                "additionalProperties": False,
            },
        },
        "cues": {
            "type": "object",
            "propertyNames": {"enum": [cue.value for cue in NarrationCue]},
            "additionalProperties": {"type": ["string", "null"]},
        },
        "window": {
            "type": "object",
            "properties": {
                "width": {"type": "integer", "minimum": 200},
                "height": {"type": "integer", "minimum": 200},
                "title": {"type": "string"},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class WindowConfig:
    width: int = 960
    height: int = 640
    title: str = "Find the Match"


@dataclass(frozen=True)
class RoundConfig:
    """Immutable game configuration, loaded once at startup.

    Asset paths in ``items`` and ``cues`` are already resolved against the
    directory of the file they came from.
    """

    slot_count: int
    items: Tuple[Item, ...]
    max_target_count: int = 3
    cues: Dict[str, str] = field(default_factory=dict)
    window: WindowConfig = field(default_factory=WindowConfig)
    source: Optional[str] = None

    def catalog(self) -> Catalog:
        return Catalog(self.items)


def validate_config_dict(data: Mapping[str, Any]) -> None:
    """Validate raw config data against the schema.

    Raises:
        ConfigurationError: listing every schema violation found.
    """
    validator = Draft202012Validator(ROUND_CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        for err in errors:
            logger.error("Config validation error at %s: %s", list(err.path), err.message)
        details = "; ".join(f"{'/'.join(str(p) for p in err.path) or '<root>'}: {err.message}" for err in errors)
        raise ConfigurationError(f"Invalid round configuration: {details}")


def _resolve(path: Optional[str], base_dir: Optional[Path]) -> Optional[str]:
    if not path:
        return None
    p = Path(path)
    if not p.is_absolute() and base_dir is not None:
        p = base_dir / p
    return str(p)


def parse_round_config(data: Mapping[str, Any], base_dir: Optional[Path] = None, source: Optional[str] = None) -> RoundConfig:
    """Build a RoundConfig from already-parsed YAML data."""
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Round configuration must be a mapping, got {type(data).__name__}")
    validate_config_dict(data)

    items = tuple(
        Item(name=str(rec["name"]), sprite=_resolve(rec.get("sprite"), base_dir)) for rec in data["items"]
    )
    # Validates name uniqueness.
    Catalog(items)

    cues = {}
    for cue, path in (data.get("cues") or {}).items():
        resolved = _resolve(path, base_dir)
        if resolved:
            cues[cue] = resolved

    window_raw = data.get("window") or {}
    window = WindowConfig(**window_raw)

    config = RoundConfig(
        slot_count=int(data["slot_count"]),
        items=items,
        max_target_count=int(data.get("max_target_count", 3)),
        cues=cues,
        window=window,
        source=source,
    )
    logger.info(
        "Round config: %d items, slot_count=%d, max_target_count=%d, cues=%s",
        len(config.items),
        config.slot_count,
        config.max_target_count,
        sorted(config.cues),
    )
    return config


def load_round_config(path: Optional[str] = None) -> RoundConfig:
    """Load the round configuration from YAML.

    If path is None, ``$FINDMATCH_CONFIG`` is used when set, otherwise the
    embedded default resource at findmatch/config/round.yaml.
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR) or None

    if path is None:
        resource = resource_files("findmatch.config").joinpath("round.yaml")
        text = resource.read_text(encoding="utf-8")
        base_dir = Path(str(resource)).parent
        source = "findmatch.config/round.yaml"
        logger.debug("Loaded embedded round config resource")
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read round config {path}: {exc}") from exc
        base_dir = Path(path).resolve().parent
        source = str(path)
        logger.debug("Loaded round config from path: %s", path)

    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Round config {source} is not valid YAML: {exc}") from exc
    return parse_round_config(raw, base_dir=base_dir, source=source)
