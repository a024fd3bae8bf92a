"""Edit operation models -- the structured form of one instruction."""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class Specificity(str, enum.Enum):
    """How tightly an edit must be localized. Only used to pick a strategy."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Strategy(str, enum.Enum):
    BACKGROUND_REMOVAL = "background_removal"
    MASK_BASED = "mask_based"
    MULTI_STEP = "multi_step"
    STRUCTURED_PROMPT = "structured_prompt"


class _OperationBase(BaseModel):
    phrase: str = ""  # Source phrase after splitting/inheritance
    conflict_resolved: bool = False
    overridden: list[str] = Field(default_factory=list)  # Phrases this op won over

    @property
    def target_key(self) -> str:
        return "unknown"


class Addition(_OperationBase):
    kind: Literal["addition"] = "addition"
    item: str  # Resolved head noun, e.g. "sunglasses"
    location: str | None = None
    specificity: Specificity = Specificity.LOW

    @property
    def target_key(self) -> str:
        return self.item


class ColorChange(_OperationBase):
    kind: Literal["color_change"] = "color_change"
    target: str
    new_color: str
    specificity: Specificity = Specificity.HIGH

    @property
    def target_key(self) -> str:
        return self.target


class BackgroundChange(_OperationBase):
    kind: Literal["background_change"] = "background_change"
    description: str
    specificity: Specificity = Specificity.MEDIUM

    @property
    def target_key(self) -> str:
        return "background"


class BackgroundRemoval(_OperationBase):
    kind: Literal["background_removal"] = "background_removal"
    specificity: Specificity = Specificity.MEDIUM

    @property
    def target_key(self) -> str:
        return "background"


class Removal(_OperationBase):
    kind: Literal["removal"] = "removal"
    target: str
    specificity: Specificity = Specificity.HIGH

    @property
    def target_key(self) -> str:
        return self.target


class TextureAddition(_OperationBase):
    kind: Literal["texture_addition"] = "texture_addition"
    texture: str
    target: str | None = None
    specificity: Specificity = Specificity.VERY_HIGH


class GeneralEdit(_OperationBase):
    kind: Literal["general_edit"] = "general_edit"
    raw_text: str
    specificity: Specificity = Specificity.LOW


Operation = Annotated[
    Union[
        Addition,
        ColorChange,
        BackgroundChange,
        BackgroundRemoval,
        Removal,
        TextureAddition,
        GeneralEdit,
    ],
    Field(discriminator="kind"),
]

BACKGROUND_OPERATIONS = (BackgroundChange, BackgroundRemoval)


class DroppedPhrase(BaseModel):
    phrase: str
    reason: str


class PlanDiagnostics(BaseModel):
    """What happened to each phrase on the way to the plan."""

    phrases: list[str] = Field(default_factory=list)
    operations_detected: int = 0  # Classified operations before conflict resolution
    operations_dropped: list[DroppedPhrase] = Field(default_factory=list)
    recovered: list[str] = Field(default_factory=list)


class RefinementPlan(BaseModel):
    """Ordered operations plus the execution strategy for one instruction."""

    instruction: str = ""
    strategy: Strategy
    operations: list[Operation] = Field(default_factory=list)
    conflicts_resolved: bool = False
    diagnostics: PlanDiagnostics = Field(default_factory=PlanDiagnostics)

    @property
    def background_operation(self) -> BackgroundChange | BackgroundRemoval | None:
        """The background op that survived conflict resolution, if any."""
        for op in self.operations:
            if isinstance(op, BACKGROUND_OPERATIONS):
                return op
        return None

    @property
    def modifies_background(self) -> bool:
        return self.background_operation is not None

    @property
    def mask_target(self) -> str | None:
        """Object the provider mask should cover when the plan is mask based."""
        if self.strategy != Strategy.MASK_BASED or not self.operations:
            return None
        op = self.operations[0]
        if isinstance(op, Addition):
            return op.location or op.item
        if isinstance(op, TextureAddition):
            return op.target
        target = op.target_key
        return None if target == "unknown" else target

    def summary(self) -> dict[str, Any]:
        """Caller-facing summary; dropped intent is always visible here."""
        return {
            "strategy": self.strategy.value,
            "operationsDetected": self.diagnostics.operations_detected,
            "operationsApplied": len(self.operations),
            "operationsDropped": [d.model_dump() for d in self.diagnostics.operations_dropped],
            "operationsRecovered": list(self.diagnostics.recovered),
            "conflictsResolved": self.conflicts_resolved,
        }
