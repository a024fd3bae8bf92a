"""Conflict resolver -- at most one operation per target, last one wins."""

from __future__ import annotations

import logging

from refiner.models.operations import Operation

logger = logging.getLogger(__name__)

UNKNOWN_TARGET = "unknown"


def resolve_conflicts(ops: list[Operation]) -> tuple[list[Operation], bool]:
    """Collapse operations that share a target.

    Within a group the last operation in instruction order wins and is marked
    ``conflict_resolved`` with the overridden phrases kept for audit. Groups
    are emitted in the order their target first appeared. Operations whose
    target is "unknown" never conflict.
    """
    groups: dict[str, list[Operation]] = {}
    order: list[tuple[str, int]] = []  # (key, index) for unknown-target ops
    for idx, op in enumerate(ops):
        key = op.target_key
        if key == UNKNOWN_TARGET:
            order.append((key, idx))
            continue
        if key not in groups:
            groups[key] = []
            order.append((key, idx))
        groups[key].append(op)

    resolved: list[Operation] = []
    any_conflict = False
    for key, idx in order:
        if key == UNKNOWN_TARGET:
            resolved.append(ops[idx])
            continue
        group = groups[key]
        if len(group) == 1:
            resolved.append(group[0])
            continue
        winner = group[-1].model_copy(
            update={
                "conflict_resolved": True,
                "overridden": [op.phrase for op in group[:-1]],
            }
        )
        logger.info(
            "Resolved %d operations on %r; keeping %r", len(group), key, winner.phrase
        )
        resolved.append(winner)
        any_conflict = True

    return resolved, any_conflict
