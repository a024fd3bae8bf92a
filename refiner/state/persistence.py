"""JSON file persistence for refinement chains.

One document holds every chain (keyed by canonical image key) plus the alias
table, so a restarted or second process sees the same chain for every key an
image has been referred to by. Background states and history entries are
stored with all their fields and round-trip losslessly.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from refiner.models.background import RefinementChain
from refiner.state.registry import ChainRegistry

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class ChainStore:
    """Saves and restores a ``ChainRegistry`` to a JSON file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def dump(self, registry: ChainRegistry) -> dict[str, Any]:
        chains, aliases = registry.snapshot()
        return {
            "version": FORMAT_VERSION,
            "chains": {key: chain.model_dump(mode="json") for key, chain in chains.items()},
            "aliases": aliases,
        }

    def save(self, registry: ChainRegistry) -> None:
        data = self.dump(registry)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp.replace(self.path)
        logger.info("Saved %d chain(s) to %s", len(data["chains"]), self.path)

    def load_into(self, registry: ChainRegistry) -> int:
        """Populate *registry* from the file. Returns the number of chains loaded."""
        if not self.path.exists():
            return 0
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported chain store version: {version!r}")

        for key, raw in data.get("chains", {}).items():
            registry.put(key, RefinementChain.model_validate(raw))
        for alias, canonical in data.get("aliases", {}).items():
            registry.register_alias(canonical, alias)

        count = len(data.get("chains", {}))
        logger.info("Loaded %d chain(s) from %s", count, self.path)
        return count
