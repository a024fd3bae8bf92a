"""Instruction interpreter -- split, classify, recover, resolve, pick a strategy."""

from __future__ import annotations

import logging

from refiner.config import settings
from refiner.engine.classifier import classify_phrase, classify_phrase_loose, invalid_reason
from refiner.engine.resolver import resolve_conflicts
from refiner.engine.splitter import split_phrases
from refiner.engine.strategy import select_strategy
from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.errors import EmptyInstructionError
from refiner.models.operations import (
    DroppedPhrase,
    GeneralEdit,
    Operation,
    PlanDiagnostics,
    RefinementPlan,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 1000


def validate_instruction(text: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Boundary check. Returns the stripped instruction."""
    if text is None or not text.strip():
        raise EmptyInstructionError("Instruction is empty")
    stripped = text.strip()
    if len(stripped) > max_length:
        raise EmptyInstructionError(
            f"Instruction is {len(stripped)} characters, limit is {max_length}"
        )
    return stripped


class InstructionInterpreter:
    """Turns one free-text instruction into a ``RefinementPlan``.

    Pure: no state is kept between calls, so the same instruction always
    yields the same plan.
    """

    def __init__(
        self,
        vocab: Vocabulary | None = None,
        max_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        self.vocab = vocab or get_vocabulary()
        self.max_length = max_length

    def parse(self, text: str) -> RefinementPlan:
        instruction = validate_instruction(text, self.max_length)
        phrases = split_phrases(instruction, self.vocab)

        diagnostics = PlanDiagnostics(phrases=[p.text for p in phrases])
        ops: list[Operation] = []

        for phrase in phrases:
            op = classify_phrase(phrase.text, self.vocab)
            reason = invalid_reason(phrase.text, op, self.vocab)

            if reason is not None:
                logger.warning("Dropped phrase %r (%s), attempting recovery", phrase.text, reason)
                recovered = classify_phrase_loose(phrase.text, self.vocab)
                if recovered is None:
                    diagnostics.operations_dropped.append(
                        DroppedPhrase(phrase=phrase.text, reason=f"unparseable_instruction:{reason}")
                    )
                    continue
                diagnostics.recovered.append(phrase.text)
                ops.append(recovered)
                continue

            if isinstance(op, GeneralEdit):
                recovered = classify_phrase_loose(phrase.text, self.vocab)
                if recovered is not None:
                    logger.debug("General edit %r recovered as %s", phrase.text, recovered.kind)
                    diagnostics.recovered.append(phrase.text)
                    op = recovered
            ops.append(op)

        diagnostics.operations_detected = len(ops)
        resolved, conflicts = resolve_conflicts(ops)
        strategy = select_strategy(resolved)

        logger.info(
            "Parsed %r: %d phrase(s), %d operation(s), %d dropped, strategy=%s",
            instruction,
            len(phrases),
            len(resolved),
            len(diagnostics.operations_dropped),
            strategy.value,
        )
        return RefinementPlan(
            instruction=instruction,
            strategy=strategy,
            operations=resolved,
            conflicts_resolved=conflicts,
            diagnostics=diagnostics,
        )


def parse_instruction(text: str, vocab: Vocabulary | None = None) -> RefinementPlan:
    return InstructionInterpreter(vocab, settings.max_instruction_length).parse(text)
