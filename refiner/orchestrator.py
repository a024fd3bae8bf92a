"""Refinement orchestrator -- the composed entry point for one refinement.

    instruction -> InstructionInterpreter -> RefinementPlan
                -> BackgroundContextManager (chain transition, under the chain lock)
                -> apply_plan (structured prompt) | compose_text_prompt (fallback)

Once the caller has submitted the patched prompt, ``await_result`` polls the
provider and binds the hosted image URL to the same chain.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from refiner.engine.interpreter import InstructionInterpreter
from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.errors import MalformedScenePromptError
from refiner.models.background import BackgroundState, RefinementChain, RefinementHistoryEntry
from refiner.models.operations import RefinementPlan
from refiner.models.scene import StructuredScenePrompt
from refiner.provider import ImageSynthesisProvider, ProviderResult, poll_until_complete
from refiner.scene.applier import AppliedOperation, apply_plan, compose_text_prompt, parse_scene_prompt
from refiner.state.background import BackgroundContextManager
from refiner.state.persistence import ChainStore
from refiner.state.registry import ChainRegistry

logger = logging.getLogger(__name__)

ScenePromptInput = str | Mapping[str, Any] | StructuredScenePrompt


class RefinementOutcome(BaseModel):
    """Everything the caller needs to run the provider step for one refinement."""

    chain_key: str
    plan: RefinementPlan
    background_state: BackgroundState
    patched_prompt: StructuredScenePrompt | None = None
    text_prompt: str | None = None
    used_fallback: bool = False
    background_modified: bool = False
    applied: list[AppliedOperation] = Field(default_factory=list)


class Orchestrator:
    def __init__(
        self,
        registry: ChainRegistry | None = None,
        vocab: Vocabulary | None = None,
        max_instruction_length: int = 1000,
        store: ChainStore | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ChainRegistry()
        self.vocab = vocab or get_vocabulary()
        self.interpreter = InstructionInterpreter(self.vocab, max_instruction_length)
        self.background = BackgroundContextManager(self.registry, self.vocab)
        self.store = store

    # -- image identity ----------------------------------------------------

    def register_image(
        self,
        image_key: str,
        aliases: Iterable[str] = (),
        prior: ScenePromptInput | None = None,
    ) -> RefinementChain:
        """Create the chain for a freshly generated image and bind its other keys."""
        seed = None
        if prior is not None:
            try:
                seed = prior if isinstance(prior, Mapping) else parse_scene_prompt(prior)
            except MalformedScenePromptError as e:
                logger.warning("Ignoring malformed scene prompt for %r: %s", image_key, e)
        chain = self.background.initialize(image_key, seed)
        for alias in aliases:
            self.registry.register_alias(image_key, alias)
        self._persist()
        return chain

    def register_alias(self, existing: str, alias: str) -> str:
        canonical = self.registry.register_alias(existing, alias)
        self._persist()
        return canonical

    # -- queries -----------------------------------------------------------

    def parse_instruction(self, text: str) -> RefinementPlan:
        return self.interpreter.parse(text)

    def get_background_state(self, image_key: str) -> BackgroundState:
        return self.background.current_state(image_key)

    def get_history(self, image_key: str) -> list[RefinementHistoryEntry]:
        return self.background.history(image_key)

    # -- refinement --------------------------------------------------------

    def plan_refinement(
        self,
        text: str,
        prior_structured_prompt: ScenePromptInput | None,
        image_key: str,
        base_prompt: str | None = None,
    ) -> RefinementOutcome:
        """Plan one refinement of *image_key* and patch its scene prompt.

        Raises EmptyInstructionError before any chain state is touched. A
        missing or malformed structured prompt falls back to a text prompt.
        """
        plan = self.interpreter.parse(text)

        prior: StructuredScenePrompt | None = None
        if prior_structured_prompt is not None:
            try:
                prior = parse_scene_prompt(prior_structured_prompt)
            except MalformedScenePromptError as e:
                logger.warning("Malformed structured prompt for %r, using text fallback: %s", image_key, e)

        with self.registry.locked(image_key) as canonical:
            if self.registry.get(canonical) is None:
                self.background.initialize(canonical, prior)
            state = self.background.apply_plan(canonical, plan)

            if prior is not None:
                result = apply_plan(prior, plan, state, self.vocab)
                outcome = RefinementOutcome(
                    chain_key=canonical,
                    plan=plan,
                    background_state=state,
                    patched_prompt=result.prompt,
                    background_modified=result.background_modified,
                    applied=result.applied,
                )
            else:
                outcome = RefinementOutcome(
                    chain_key=canonical,
                    plan=plan,
                    background_state=state,
                    text_prompt=compose_text_prompt(base_prompt, plan, state),
                    used_fallback=True,
                    background_modified=plan.modifies_background,
                )
            self._persist()

        logger.info(
            "Refinement on %r: strategy=%s background=%s fallback=%s",
            canonical,
            plan.strategy.value,
            state.kind.value,
            outcome.used_fallback,
        )
        return outcome

    async def await_result(
        self,
        chain_key: str,
        provider: ImageSynthesisProvider,
        request_id: str,
        **poll_options: Any,
    ) -> ProviderResult:
        """Poll *request_id* to completion and alias the returned image to *chain_key*.

        Provider errors and timeouts propagate and leave the chain untouched.
        """
        result = await poll_until_complete(provider, request_id, **poll_options)
        self.register_alias(chain_key, result.image_url)
        logger.info("Bound %s to chain of %r", result.image_url, chain_key)
        return result

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self.registry)
