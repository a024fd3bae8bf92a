"""Tests for the refinement orchestrator."""

from __future__ import annotations

import logging

import pytest

from refiner.errors import EmptyInstructionError
from refiner.models.background import TRANSPARENT, BackgroundKind
from refiner.models.operations import Strategy
from refiner.orchestrator import Orchestrator
from refiner.state.persistence import ChainStore
from refiner.state.registry import ChainRegistry

FOREST = "a natural forest background with tall trees and greenery"
WINTER = "a winter scene with gentle snowfall in the background"


# ---------------------------------------------------------------------------
# 1. Image identity across keys
# ---------------------------------------------------------------------------

class TestImageIdentity:
    def test_aliases_share_background(self, orchestrator, forest_scene, skull_scene):
        orchestrator.register_image(
            "https://gen.example/1.png",
            aliases=["https://cdn.example/1.png", "/tmp/cache/1.png"],
            prior=forest_scene,
        )

        outcome = orchestrator.plan_refinement("add a hat", skull_scene, "https://cdn.example/1.png")

        assert outcome.chain_key == "https://gen.example/1.png"
        assert outcome.background_state.kind == BackgroundKind.EXPLICIT
        assert outcome.patched_prompt.background == FOREST
        assert outcome.background_modified is False

        follow_up = orchestrator.plan_refinement("remove background", None, "/tmp/cache/1.png", "cartoon skull")

        assert follow_up.used_fallback is True
        assert follow_up.background_state.kind == BackgroundKind.REMOVED
        assert follow_up.plan.strategy == Strategy.BACKGROUND_REMOVAL
        assert follow_up.text_prompt == (
            "cartoon skull, remove background, transparent background, "
            "high quality design suitable for t-shirt printing"
        )
        assert len(orchestrator.get_history("https://gen.example/1.png")) == 2

    def test_uses_the_given_empty_registry(self, vocab):
        registry = ChainRegistry()
        orchestrator = Orchestrator(registry=registry, vocab=vocab)

        assert orchestrator.registry is registry
        assert orchestrator.background.registry is registry

        orchestrator.register_image("gen", aliases=["cached"])
        orchestrator.plan_refinement("change the background to forest", None, "gen")

        assert orchestrator.get_background_state("cached").description == FOREST
        assert len(registry) == 1

    def test_register_alias_later(self, orchestrator):
        orchestrator.register_image("gen")
        assert orchestrator.register_alias("gen", "hosted") == "gen"
        assert orchestrator.get_background_state("hosted").kind == BackgroundKind.DEFAULT

    def test_malformed_prior_on_register_is_ignored(self, orchestrator, caplog):
        with caplog.at_level(logging.WARNING):
            chain = orchestrator.register_image("gen", prior="{not json")
        assert chain.background_state.kind == BackgroundKind.DEFAULT
        assert "malformed" in caplog.text.lower()


# ---------------------------------------------------------------------------
# 2. Refinement flow
# ---------------------------------------------------------------------------

class TestPlanRefinement:
    def test_first_refinement_seeds_from_prior(self, orchestrator, forest_scene):
        outcome = orchestrator.plan_refinement("add a hat", forest_scene, "fresh")
        assert outcome.background_state.description == FOREST
        assert outcome.patched_prompt.short_description.endswith(f"Background: {FOREST}.")

    def test_background_change_on_unregistered_image(self, orchestrator, skull_scene):
        outcome = orchestrator.plan_refinement("make the background blue", skull_scene, "new")

        assert outcome.background_state.kind == BackgroundKind.EXPLICIT
        assert outcome.patched_prompt.background == "a blue background"
        assert outcome.background_modified is True
        assert outcome.applied[0].outcome == "background_set"

    def test_empty_instruction_touches_nothing(self, orchestrator, skull_scene):
        with pytest.raises(EmptyInstructionError):
            orchestrator.plan_refinement("   ", skull_scene, "img")
        assert len(orchestrator.registry) == 0

    def test_malformed_prior_falls_back_to_text(self, orchestrator, caplog):
        with caplog.at_level(logging.WARNING):
            outcome = orchestrator.plan_refinement("add a hat", "{not json", "img")

        assert outcome.used_fallback is True
        assert outcome.patched_prompt is None
        assert outcome.text_prompt.startswith("add a hat, transparent background")
        assert "text fallback" in caplog.text

    def test_repeated_instruction_is_stable(self, orchestrator, skull_scene):
        first = orchestrator.plan_refinement("make the background snowfall", skull_scene, "img")
        second = orchestrator.plan_refinement("make the background snowfall", skull_scene, "img")

        assert first.background_state.description == second.background_state.description == WINTER
        assert first.patched_prompt.model_dump() == second.patched_prompt.model_dump()

    def test_background_survives_unrelated_edits(self, orchestrator, skull_scene):
        orchestrator.plan_refinement("make the background snowfall", skull_scene, "img")
        for instruction in ("add a hat", "make the shirt red", "add sunglasses and a cigar"):
            outcome = orchestrator.plan_refinement(instruction, skull_scene, "img")
            assert outcome.patched_prompt.background == WINTER

    def test_queries(self, orchestrator):
        assert orchestrator.get_background_state("unknown").description == TRANSPARENT
        assert orchestrator.get_history("unknown") == []
        assert orchestrator.parse_instruction("add a hat").operations[0].item == "hat"


# ---------------------------------------------------------------------------
# 3. Persistence
# ---------------------------------------------------------------------------

class TestPersistence:
    def test_state_survives_restart(self, tmp_path, vocab, skull_scene):
        store = ChainStore(tmp_path / "chains.json")
        first = Orchestrator(registry=ChainRegistry(), vocab=vocab, store=store)
        first.register_image("gen", aliases=["hosted"])
        first.plan_refinement("make the background snowfall", skull_scene, "hosted")

        registry = ChainRegistry()
        store.load_into(registry)
        second = Orchestrator(registry=registry, vocab=vocab, store=store)

        assert second.get_background_state("hosted").description == WINTER
        outcome = second.plan_refinement("add a hat", skull_scene, "gen")
        assert outcome.patched_prompt.background == WINTER
