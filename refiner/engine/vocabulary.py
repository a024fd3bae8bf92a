"""Enrichment vocabulary -- word lists, synonym table and descriptor templates.

The built-in catalog lives in ``data/vocabulary.json``. A deployment can point
``REFINER_VOCABULARY_PATH`` at another JSON file with the same keys; its
entries are merged over the defaults (word lists are extended, template maps
are updated, extra synonym entries take priority over the built-in ones).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).parent / "data" / "vocabulary.json"


@dataclass(frozen=True)
class BackgroundSynonym:
    keys: tuple[str, ...]
    description: str


@dataclass(frozen=True)
class Vocabulary:
    action_verbs: tuple[str, ...]
    objects: tuple[str, ...]  # Ordered: earlier entries win head-noun lookup
    edit_targets: tuple[str, ...]
    colors: tuple[str, ...]
    textures: tuple[str, ...]
    texture_targets: tuple[str, ...]
    very_high: tuple[str, ...]
    high: tuple[str, ...]
    background_stopwords: frozenset[str]
    accessories: tuple[str, ...]
    background_synonyms: tuple[BackgroundSynonym, ...]
    object_templates: dict[str, dict[str, str]] = field(default_factory=dict)
    texture_templates: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Vocabulary:
        levels = raw.get("specificity", {})
        return cls(
            action_verbs=tuple(raw["action_verbs"]),
            objects=tuple(raw["objects"]),
            edit_targets=tuple(raw["edit_targets"]),
            colors=tuple(raw["colors"]),
            textures=tuple(raw["textures"]),
            texture_targets=tuple(raw["texture_targets"]),
            very_high=tuple(levels.get("very_high", [])),
            high=tuple(levels.get("high", [])),
            background_stopwords=frozenset(raw["background_stopwords"]),
            accessories=tuple(raw["accessories"]),
            background_synonyms=tuple(
                BackgroundSynonym(keys=tuple(s["keys"]), description=s["description"])
                for s in raw["background_synonyms"]
            ),
            object_templates=dict(raw.get("object_templates", {})),
            texture_templates=dict(raw.get("texture_templates", {})),
        )


def _extend(base: list[str], extra: list[str]) -> list[str]:
    out = list(base)
    for word in extra:
        if word not in out:
            out.append(word)
    return out


def merge_vocabulary(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge an override document over the built-in one."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if key == "background_synonyms":
            merged[key] = list(value) + list(current or [])
        elif isinstance(current, list) and isinstance(value, list):
            merged[key] = _extend(list(current), value)
        elif isinstance(current, dict) and isinstance(value, dict):
            if key == "specificity":
                merged[key] = {
                    level: _extend(list(current.get(level, [])), value.get(level, []))
                    for level in set(current) | set(value)
                }
            else:
                merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def _read(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


@lru_cache(maxsize=8)
def load_vocabulary(override_path: str | None = None) -> Vocabulary:
    raw = _read(_DEFAULT_PATH)
    if override_path:
        path = Path(override_path)
        if path.exists():
            raw = merge_vocabulary(raw, _read(path))
            logger.info("Loaded vocabulary overrides from %s", path)
        else:
            logger.warning("Vocabulary override %s not found, using built-in catalog", path)
    return Vocabulary.from_dict(raw)


def get_vocabulary() -> Vocabulary:
    from refiner.config import settings

    return load_vocabulary(settings.refiner_vocabulary_path)
