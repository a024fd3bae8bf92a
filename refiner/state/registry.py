"""Refinement chain registry -- one chain per canonical image identity.

An image is referred to by several keys over its life (the original
generation URL, the provider-hosted URL of a refinement, a locally cached
copy). The registry owns an alias table mapping every such key to one
canonical key so that all of them share a single chain.

Thread safety: the maps are guarded by a registry lock; each canonical chain
additionally has its own re-entrant lock, taken through ``locked()``, which
serializes refinements of the same image while different images proceed in
parallel.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

from refiner.models.background import BackgroundState, RefinementChain
from refiner.state.eviction import EvictionPolicy, NoEviction

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChainRegistry:
    """In-process keyed store of refinement chains."""

    def __init__(
        self,
        eviction: EvictionPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._eviction = eviction or NoEviction()
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._chains: dict[str, RefinementChain] = {}
        self._aliases: dict[str, str] = {}  # alias -> canonical key
        self._chain_locks: dict[str, threading.RLock] = {}

    def now(self) -> datetime:
        return self._clock()

    # -- keys --------------------------------------------------------------

    def canonical(self, key: str) -> str:
        with self._lock:
            seen = {key}
            while key in self._aliases:
                key = self._aliases[key]
                if key in seen:
                    raise RuntimeError(f"Alias cycle involving {key!r}")
                seen.add(key)
            return key

    def register_alias(self, existing: str, alias: str) -> str:
        """Make *alias* resolve to the chain of *existing*. Returns the canonical key."""
        with self._lock:
            target = self.canonical(existing)
            if alias == target:
                return target
            if alias in self._chains:
                self._fold(alias, target)
            for other, canon in list(self._aliases.items()):
                if canon == alias:
                    self._aliases[other] = target
            self._aliases[alias] = target
            logger.debug("Alias %r -> %r", alias, target)
            return target

    def _fold(self, alias: str, target: str) -> None:
        """Move the chain owned by *alias* onto *target*. When both own one, the most recently modified wins."""
        folded = self._chains.pop(alias)
        self._chain_locks.pop(alias, None)
        current = self._chains.get(target)
        if current is None or folded.last_modified > current.last_modified:
            self._chains[target] = folded
            logger.warning("Key %r owned chain %s; moved it to %r", alias, folded.chain_id, target)
        else:
            logger.warning(
                "Key %r owned chain %s; keeping newer chain %s of %r",
                alias,
                folded.chain_id,
                current.chain_id,
                target,
            )

    def aliases_of(self, key: str) -> list[str]:
        with self._lock:
            target = self.canonical(key)
            return sorted(a for a in self._aliases if self.canonical(a) == target)

    # -- chains ------------------------------------------------------------

    def get(self, key: str) -> RefinementChain | None:
        with self._lock:
            canon = self.canonical(key)
            chain = self._chains.get(canon)
            if chain is not None and self._eviction.is_expired(chain, self._clock()):
                self._evict(canon)
                return None
            return chain

    def get_or_create(
        self,
        key: str,
        seed: BackgroundState | None = None,
    ) -> tuple[RefinementChain, bool]:
        """Return ``(chain, created)``. *seed* only applies to a new chain."""
        with self._lock:
            chain = self.get(key)
            if chain is not None:
                return chain, False
            canon = self.canonical(key)
            now = self._clock()
            chain = RefinementChain(
                background_state=seed or BackgroundState.default(),
                created_at=now,
                last_modified=now,
            )
            self._chains[canon] = chain
            logger.info("Created chain %s for %r (%s)", chain.chain_id, canon, chain.background_state.kind.value)
            return chain, True

    def put(self, key: str, chain: RefinementChain) -> None:
        with self._lock:
            self._chains[self.canonical(key)] = chain

    @contextmanager
    def locked(self, key: str) -> Iterator[str]:
        """Hold the per-chain lock for *key*; yields the canonical key."""
        with self._lock:
            canon = self.canonical(key)
            lock = self._chain_locks.setdefault(canon, threading.RLock())
        with lock:
            yield canon

    def evict_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, c in self._chains.items() if self._eviction.is_expired(c, now)]
            for canon in expired:
                self._evict(canon)
            return len(expired)

    def _evict(self, canon: str) -> None:
        self._chains.pop(canon, None)
        self._chain_locks.pop(canon, None)
        for alias in [a for a, c in self._aliases.items() if c == canon]:
            del self._aliases[alias]
        logger.info("Evicted chain for %r", canon)

    def snapshot(self) -> tuple[dict[str, RefinementChain], dict[str, str]]:
        with self._lock:
            return dict(self._chains), dict(self._aliases)

    def __len__(self) -> int:
        with self._lock:
            return len(self._chains)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get(key) is not None
