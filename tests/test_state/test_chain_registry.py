"""Tests for the chain registry: identity, aliases and retention."""

from __future__ import annotations

import pytest

from refiner.models.background import BackgroundState
from refiner.state.eviction import NoEviction, TTLEviction, policy_for_ttl
from refiner.state.registry import ChainRegistry


# ---------------------------------------------------------------------------
# 1. Chains and aliases
# ---------------------------------------------------------------------------

class TestIdentity:
    def test_get_or_create(self, registry):
        chain, created = registry.get_or_create("img")
        again, created_again = registry.get_or_create("img")

        assert created is True
        assert created_again is False
        assert again is chain
        assert chain.chain_id.startswith("chain_")
        assert len(registry) == 1

    def test_seed_only_applies_to_new_chain(self, registry):
        registry.get_or_create("img", seed=BackgroundState.explicit("a red background"))
        chain, _ = registry.get_or_create("img", seed=BackgroundState.removed())
        assert chain.background_state.description == "a red background"

    def test_alias_shares_chain(self, registry):
        chain, _ = registry.get_or_create("https://gen.example/1.png")
        registry.register_alias("https://gen.example/1.png", "https://cdn.example/abc.png")
        registry.register_alias("https://cdn.example/abc.png", "/tmp/cache/abc.png")

        assert registry.get("/tmp/cache/abc.png") is chain
        assert registry.canonical("/tmp/cache/abc.png") == "https://gen.example/1.png"
        assert registry.aliases_of("https://gen.example/1.png") == [
            "/tmp/cache/abc.png",
            "https://cdn.example/abc.png",
        ]

    def test_alias_to_itself_is_noop(self, registry):
        registry.get_or_create("img")
        assert registry.register_alias("img", "img") == "img"
        assert registry.aliases_of("img") == []

    def test_alias_chain_moves_to_bare_target(self, registry):
        chain, _ = registry.get_or_create("cached", seed=BackgroundState.explicit("a red background"))

        registry.register_alias("original", "cached")

        assert registry.canonical("cached") == "original"
        assert registry.get("original") is chain
        assert registry.get("cached").background_state.description == "a red background"
        assert len(registry) == 1

    def test_newer_alias_chain_wins(self, clock):
        registry = ChainRegistry(clock=clock)
        registry.get_or_create("a")
        clock.advance(10)
        newer, _ = registry.get_or_create("b")
        registry.register_alias("b", "c")

        registry.register_alias("a", "b")

        assert len(registry) == 1
        assert registry.get("a") is newer
        assert registry.canonical("c") == "a"

    def test_older_alias_chain_is_dropped(self, clock):
        registry = ChainRegistry(clock=clock)
        registry.get_or_create("b")
        clock.advance(10)
        newer, _ = registry.get_or_create("a")

        registry.register_alias("a", "b")

        assert len(registry) == 1
        assert registry.get("b") is newer

    def test_contains(self, registry):
        registry.get_or_create("img")
        registry.register_alias("img", "other")
        assert "other" in registry
        assert "missing" not in registry
        assert 42 not in registry

    def test_locked_yields_canonical(self, registry):
        registry.get_or_create("img")
        registry.register_alias("img", "alias")
        with registry.locked("alias") as key:
            assert key == "img"
            with registry.locked("img") as inner:
                assert inner == "img"

    def test_snapshot_is_a_copy(self, registry):
        registry.get_or_create("img")
        chains, aliases = registry.snapshot()
        chains.clear()
        assert len(registry) == 1


# ---------------------------------------------------------------------------
# 2. Retention
# ---------------------------------------------------------------------------

class TestEviction:
    def test_ttl_expiry(self, clock):
        registry = ChainRegistry(eviction=TTLEviction(60), clock=clock)
        registry.get_or_create("img")
        with registry.locked("img"):
            pass
        registry.register_alias("img", "alias")

        clock.advance(59)
        assert registry.get("alias") is not None

        clock.advance(1)
        assert registry.get("img") is None
        assert registry._chain_locks == {}
        assert len(registry) == 0
        assert registry.canonical("alias") == "alias"

    def test_evict_expired_sweep(self, clock):
        registry = ChainRegistry(eviction=TTLEviction(10), clock=clock)
        registry.get_or_create("old")
        clock.advance(5)
        registry.get_or_create("new")
        clock.advance(5)

        assert registry.evict_expired() == 1
        assert "new" in registry
        assert "old" not in registry

    def test_no_eviction_by_default(self, clock):
        registry = ChainRegistry(clock=clock)
        registry.get_or_create("img")
        clock.advance(10 ** 7)
        assert registry.get("img") is not None

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLEviction(0)

    def test_policy_for_ttl(self):
        assert isinstance(policy_for_ttl(0), NoEviction)
        policy = policy_for_ttl(30)
        assert isinstance(policy, TTLEviction)
        assert policy.ttl_seconds == 30
