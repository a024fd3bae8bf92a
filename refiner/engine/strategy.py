"""Strategy selector -- one execution strategy for the whole instruction."""

from __future__ import annotations

from refiner.models.operations import BackgroundRemoval, Operation, Specificity, Strategy


def select_strategy(ops: list[Operation]) -> Strategy:
    """Pick how the resolved operations should be executed.

    Rules, in order:
      1. any explicit background removal -> BACKGROUND_REMOVAL
      2. more than one operation         -> MULTI_STEP (one combined prompt patch)
      3. a single very-high specificity  -> MASK_BASED
      4. otherwise                       -> STRUCTURED_PROMPT
    """
    if any(isinstance(op, BackgroundRemoval) for op in ops):
        return Strategy.BACKGROUND_REMOVAL
    if len(ops) > 1:
        return Strategy.MULTI_STEP
    if len(ops) == 1 and ops[0].specificity == Specificity.VERY_HIGH:
        return Strategy.MASK_BASED
    return Strategy.STRUCTURED_PROMPT
