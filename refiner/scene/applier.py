"""Prompt patch applier -- applies a refinement plan to a structured scene prompt.

The prior prompt is never mutated; a deep copy is patched through the scene
model's closed mutation set. After the operations run, the background is
pinned to the chain's background state unless the plan itself changed it.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.errors import MalformedScenePromptError
from refiner.models.background import TRANSPARENT, BackgroundState
from refiner.models.operations import (
    Addition,
    BackgroundChange,
    BackgroundRemoval,
    ColorChange,
    GeneralEdit,
    Operation,
    RefinementPlan,
    Removal,
    TextureAddition,
)
from refiner.models.scene import ObjectDescriptor, StructuredScenePrompt
from refiner.scene.templates import (
    color_descriptor,
    general_descriptor,
    object_descriptor,
    texture_descriptor,
)

logger = logging.getLogger(__name__)

_MAINTAINS_RE = re.compile(r"\s*Maintains transparent background[^.]*\.", re.IGNORECASE)
_BACKGROUND_SENTENCE_RE = re.compile(r"\s*Background: [^.]*\.")
_INLINE_TRANSPARENT_RE = re.compile(
    r"\s*,?\s*(?:against|on|with|over)\s+(?:a\s+)?transparent background", re.IGNORECASE
)
_ARTICLES = r"(?:a|an|the|his|her|its|their)"


class AppliedOperation(BaseModel):
    """Audit record of what one operation did to the scene."""

    kind: str
    phrase: str = ""
    outcome: str  # appended | rewritten | synthesized | removed | not_found | background_set | general_edit
    detail: str = ""


class PatchResult(BaseModel):
    prompt: StructuredScenePrompt
    background_modified: bool = False
    applied: list[AppliedOperation] = Field(default_factory=list)


def parse_scene_prompt(raw: str | Mapping[str, Any] | StructuredScenePrompt) -> StructuredScenePrompt:
    """Parse the provider's structured prompt. Raises MalformedScenePromptError."""
    if isinstance(raw, StructuredScenePrompt):
        return raw.model_copy(deep=True)
    data: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedScenePromptError(f"Structured prompt is not valid JSON: {e}") from e
    if not isinstance(data, Mapping):
        raise MalformedScenePromptError(
            f"Structured prompt must be a JSON object, got {type(data).__name__}"
        )
    try:
        return StructuredScenePrompt.model_validate(dict(data))
    except ValidationError as e:
        raise MalformedScenePromptError(f"Structured prompt has the wrong shape: {e}") from e


def _mentions(target: str):
    pattern = re.compile(rf"\b{re.escape(target)}", re.IGNORECASE)
    return lambda obj: bool(pattern.search(obj.description))


def _recolor(obj: ObjectDescriptor, target: str, color: str) -> ObjectDescriptor:
    updated = obj.model_copy(deep=True)

    shape, n = re.subn(r"\b\w+(?=\s+(?:color|colored|hue)\b)", color, obj.shape_and_color, flags=re.IGNORECASE)
    if n == 0:
        shape = f"{color} colored, {obj.shape_and_color}" if obj.shape_and_color else f"{color} colored"
    updated.shape_and_color = shape

    t = re.escape(target)
    description, n = re.subn(
        rf"\b(?!{_ARTICLES}\b)\w+\s+({t})", rf"{color} \1", obj.description, count=1, flags=re.IGNORECASE
    )
    if n == 0:
        description = re.sub(rf"\b({t})", rf"{color} \1", obj.description, count=1, flags=re.IGNORECASE)
    updated.description = description

    note = f"Modified to {color} color."
    updated.appearance_details = f"{obj.appearance_details} {note}".strip()
    return updated


class _PatchContext:
    def __init__(self, prompt: StructuredScenePrompt, vocab: Vocabulary) -> None:
        self.prompt = prompt
        self.vocab = vocab
        self.background_modified = False
        self.applied: list[AppliedOperation] = []

    def record(self, op: Operation, outcome: str, detail: str = "") -> None:
        self.applied.append(AppliedOperation(kind=op.kind, phrase=op.phrase, outcome=outcome, detail=detail))


def _apply_addition(ctx: _PatchContext, op: Addition) -> None:
    ctx.prompt.append_object(object_descriptor(op.item, op.location, ctx.vocab))
    ctx.record(op, "appended", op.item)


def _apply_color_change(ctx: _PatchContext, op: ColorChange) -> None:
    changed = ctx.prompt.rewrite_objects(
        _mentions(op.target),
        lambda obj: _recolor(obj, op.target, op.new_color),
        limit=1,
    )
    if changed:
        ctx.record(op, "rewritten", f"{op.target} -> {op.new_color}")
        return
    ctx.prompt.append_object(color_descriptor(op.target, op.new_color))
    ctx.record(op, "synthesized", f"{op.target} -> {op.new_color}")


def _apply_background_change(ctx: _PatchContext, op: BackgroundChange) -> None:
    ctx.prompt.set_background(op.description)
    ctx.background_modified = True
    ctx.record(op, "background_set", op.description)


def _apply_background_removal(ctx: _PatchContext, op: BackgroundRemoval) -> None:
    ctx.prompt.set_background(TRANSPARENT)
    ctx.background_modified = True
    ctx.record(op, "background_set", TRANSPARENT)


def _apply_removal(ctx: _PatchContext, op: Removal) -> None:
    removed = ctx.prompt.remove_objects(_mentions(op.target))
    if removed == 0:
        logger.warning("Removal of %r matched no objects in the scene", op.target)
        ctx.record(op, "not_found", op.target)
        return
    ctx.record(op, "removed", f"{op.target} x{removed}")


def _apply_texture(ctx: _PatchContext, op: TextureAddition) -> None:
    ctx.prompt.append_object(texture_descriptor(op.texture, op.target, ctx.vocab))
    ctx.record(op, "appended", f"{op.texture} on {op.target}" if op.target else op.texture)


def _apply_general(ctx: _PatchContext, op: Operation) -> None:
    text = op.raw_text if isinstance(op, GeneralEdit) else op.phrase
    logger.info("Operation %r applied as general edit", text)
    ctx.prompt.append_object(general_descriptor(text))
    ctx.record(op, "general_edit", text)


_HANDLERS = {
    Addition: _apply_addition,
    ColorChange: _apply_color_change,
    BackgroundChange: _apply_background_change,
    BackgroundRemoval: _apply_background_removal,
    Removal: _apply_removal,
    TextureAddition: _apply_texture,
    GeneralEdit: _apply_general,
}


def _change_summary(plan: RefinementPlan) -> list[str]:
    added = [op.item for op in plan.operations if isinstance(op, Addition)]
    recolored = [f"{op.target} ({op.new_color})" for op in plan.operations if isinstance(op, ColorChange)]
    removed = [op.target for op in plan.operations if isinstance(op, Removal)]
    effects = [
        f"{op.texture} on {op.target}" if op.target else op.texture
        for op in plan.operations
        if isinstance(op, TextureAddition)
    ]
    adjusted = [op.raw_text for op in plan.operations if isinstance(op, GeneralEdit)]

    sentences = []
    for label, items in (
        ("Added", added),
        ("Recolored", recolored),
        ("Removed", removed),
        ("Effects", effects),
        ("Adjusted", adjusted),
    ):
        if items:
            sentences.append(f"{label}: {', '.join(items)}.")
    return sentences


def reconcile_short_description(text: str, plan: RefinementPlan, background: str) -> str:
    """Append the change summary and exactly one consistent background sentence."""
    text = _MAINTAINS_RE.sub("", text)
    text = _BACKGROUND_SENTENCE_RE.sub("", text)
    transparent = background == TRANSPARENT
    if not transparent:
        text = _INLINE_TRANSPARENT_RE.sub("", text)

    parts = [text.strip()] if text.strip() else []
    parts.extend(_change_summary(plan))
    if transparent:
        if "transparent background" not in text.lower():
            parts.append("Maintains transparent background for t-shirt printing.")
    else:
        parts.append(f"Background: {background}.")
    return " ".join(parts)


def apply_plan(
    prior: str | Mapping[str, Any] | StructuredScenePrompt,
    plan: RefinementPlan,
    background_state: BackgroundState,
    vocab: Vocabulary | None = None,
) -> PatchResult:
    """Apply *plan* to a copy of *prior*. Raises MalformedScenePromptError on a bad prior."""
    ctx = _PatchContext(parse_scene_prompt(prior), vocab or get_vocabulary())

    for op in plan.operations:
        handler = _HANDLERS.get(type(op), _apply_general)
        handler(ctx, op)

    if not ctx.background_modified:
        ctx.prompt.set_background(background_state.description)
        logger.debug("Background pinned to chain state %r", background_state.description)

    ctx.prompt.short_description = reconcile_short_description(
        ctx.prompt.short_description, plan, ctx.prompt.background
    )
    return PatchResult(
        prompt=ctx.prompt,
        background_modified=ctx.background_modified,
        applied=ctx.applied,
    )


def compose_text_prompt(
    base_prompt: str | None,
    plan: RefinementPlan,
    background_state: BackgroundState,
) -> str:
    """Plain-text fallback when there is no usable structured prompt."""
    if background_state.is_transparent:
        background = "transparent background"
    else:
        background = background_state.description
    parts = [p for p in ((base_prompt or "").strip(), plan.instruction.strip()) if p]
    parts.append(background)
    parts.append("high quality design suitable for t-shirt printing")
    return ", ".join(parts)
