"""Retention policies for refinement chains."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from refiner.models.background import RefinementChain


class EvictionPolicy(Protocol):
    def is_expired(self, chain: RefinementChain, now: datetime) -> bool: ...


class NoEviction:
    """Chains live for the life of the process."""

    def is_expired(self, chain: RefinementChain, now: datetime) -> bool:
        return False


class TTLEviction:
    """Expire chains that have not been touched for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds

    def is_expired(self, chain: RefinementChain, now: datetime) -> bool:
        return (now - chain.last_modified).total_seconds() >= self.ttl_seconds


def policy_for_ttl(ttl_seconds: float) -> EvictionPolicy:
    return TTLEviction(ttl_seconds) if ttl_seconds > 0 else NoEviction()
