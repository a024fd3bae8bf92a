"""Background context manager -- per-image background state machine.

    DEFAULT --set--> EXPLICIT --remove--> REMOVED --set--> EXPLICIT
    INFERRED (seeded from generation data) behaves like EXPLICIT on transitions

Only a background change or an explicit background removal moves the state.
Every other refinement is recorded as "preserved" and leaves the state
exactly as it was, so a background set in refinement N still holds in
refinement N+10.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from refiner.engine.background_text import (
    extract_background_description,
    is_background_operation,
    is_background_removal,
)
from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.models.background import (
    TRANSPARENT,
    BackgroundKind,
    BackgroundState,
    RefinementChain,
    RefinementHistoryEntry,
)
from refiner.models.operations import BackgroundChange, BackgroundRemoval, RefinementPlan
from refiner.models.scene import StructuredScenePrompt
from refiner.state.registry import ChainRegistry

logger = logging.getLogger(__name__)


def seed_from_prior(prior: StructuredScenePrompt | Mapping[str, Any] | None) -> BackgroundState:
    """Initial state for a new chain, derived from the generation's scene data."""
    if prior is None:
        return BackgroundState.default()
    data = prior.model_dump() if isinstance(prior, StructuredScenePrompt) else dict(prior)

    context = data.get("background_context")
    context = context if isinstance(context, Mapping) else {}
    explicit = bool(context.get("is_explicitly_set") or data.get("background_explicit"))
    description = context.get("description") or data.get("background") or TRANSPARENT

    if explicit:
        return BackgroundState.explicit(description)
    if context:
        return BackgroundState.inferred(
            description, preserve=bool(context.get("preserve_across_refinements", True))
        )
    return BackgroundState.default()


class BackgroundContextManager:
    """Queries and transitions background state on chains held by a ``ChainRegistry``."""

    def __init__(
        self,
        registry: ChainRegistry | None = None,
        vocab: Vocabulary | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ChainRegistry()
        self._vocab = vocab

    @property
    def vocab(self) -> Vocabulary:
        return self._vocab or get_vocabulary()

    def initialize(
        self,
        image_key: str,
        prior: StructuredScenePrompt | Mapping[str, Any] | None = None,
    ) -> RefinementChain:
        """Create the chain for *image_key* if absent. An existing chain is left alone."""
        with self.registry.locked(image_key):
            chain, created = self.registry.get_or_create(image_key, seed=seed_from_prior(prior))
            if not created:
                logger.debug("Chain for %r already exists, keeping its state", image_key)
            return chain

    def current_state(self, image_key: str) -> BackgroundState:
        """State of the image's chain, or the default transparent state. Never raises."""
        chain = self.registry.get(image_key)
        if chain is None:
            return BackgroundState.default()
        return chain.background_state

    def history(self, image_key: str) -> list[RefinementHistoryEntry]:
        chain = self.registry.get(image_key)
        return list(chain.history) if chain is not None else []

    def should_preserve(self, image_key: str, instruction: str) -> bool:
        if is_background_operation(instruction):
            return False
        return self.current_state(image_key).preserve_across_refinements

    def update(
        self,
        image_key: str,
        instruction: str,
        is_background_op: bool,
        description: str | None = None,
        removal: bool | None = None,
    ) -> BackgroundState:
        """Record one refinement and transition the background if it is a background op.

        *description* is the already-extracted background description; when
        omitted it is extracted from *instruction*. *removal* overrides the
        removal-phrasing check on *instruction*.
        """
        with self.registry.locked(image_key):
            chain, _ = self.registry.get_or_create(image_key)
            previous = chain.background_state

            if not is_background_op:
                chain.record(
                    RefinementHistoryEntry(
                        instruction=instruction,
                        timestamp=self.registry.now(),
                        is_background_operation=False,
                        previous_background_state=previous,
                        background_preserved=True,
                    )
                )
                logger.debug("Preserved %s background for %r", previous.kind.value, image_key)
                return previous

            if removal is None:
                removal = is_background_removal(instruction)
            if removal:
                new_state = BackgroundState.removed()
            else:
                new_state = BackgroundState.explicit(
                    description or extract_background_description(instruction, self.vocab),
                    replaced_previous=previous.kind == BackgroundKind.EXPLICIT,
                )

            chain.background_state = new_state
            chain.record(
                RefinementHistoryEntry(
                    instruction=instruction,
                    timestamp=self.registry.now(),
                    is_background_operation=True,
                    previous_background_state=previous,
                    new_background_state=new_state,
                    background_preserved=False,
                )
            )
            logger.info(
                "Background for %r: %s -> %s (%r)",
                image_key,
                previous.kind.value,
                new_state.kind.value,
                new_state.description,
            )
            return new_state

    def apply_plan(self, image_key: str, plan: RefinementPlan) -> BackgroundState:
        """Transition using the plan's resolved background operation, if any."""
        op = plan.background_operation
        if isinstance(op, BackgroundRemoval):
            return self.update(image_key, plan.instruction, True, removal=True)
        if isinstance(op, BackgroundChange):
            return self.update(image_key, plan.instruction, True, description=op.description, removal=False)
        return self.update(image_key, plan.instruction, False)
