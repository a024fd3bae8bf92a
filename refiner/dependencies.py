"""FastAPI dependency injection."""

from __future__ import annotations

from refiner.config import Settings, settings
from refiner.engine.vocabulary import load_vocabulary
from refiner.orchestrator import Orchestrator
from refiner.state.eviction import policy_for_ttl
from refiner.state.persistence import ChainStore
from refiner.state.registry import ChainRegistry


def get_settings():
    return settings


def build_orchestrator(cfg: Settings) -> Orchestrator:
    registry = ChainRegistry(eviction=policy_for_ttl(cfg.chain_ttl_seconds))
    store = None
    if cfg.refiner_chain_store_path:
        store = ChainStore(cfg.refiner_chain_store_path)
        store.load_into(registry)
    return Orchestrator(
        registry=registry,
        vocab=load_vocabulary(cfg.refiner_vocabulary_path),
        max_instruction_length=cfg.max_instruction_length,
        store=store,
    )


# Singleton
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Get or create the process-wide Orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(settings)
    return _orchestrator
