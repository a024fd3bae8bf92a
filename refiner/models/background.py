"""Background state and refinement chain models."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

TRANSPARENT = "transparent"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackgroundKind(str, enum.Enum):
    DEFAULT = "default"  # Fresh image, transparent, never set by the user
    EXPLICIT = "explicit"  # User asked for a concrete background
    INFERRED = "inferred"  # Carried over from generation data without an explicit flag
    REMOVED = "removed"  # User explicitly asked for no background


class BackgroundState(BaseModel):
    """Canonical background intent for one image. Immutable; transitions build a new one."""

    model_config = ConfigDict(frozen=True)

    kind: BackgroundKind = BackgroundKind.DEFAULT
    description: str = TRANSPARENT
    is_explicitly_set: bool = False
    preserve_across_refinements: bool = True
    set_at: datetime = Field(default_factory=_utcnow)
    explicitly_removed: bool = False
    replaced_previous: bool = False

    @classmethod
    def default(cls) -> BackgroundState:
        return cls()

    @classmethod
    def explicit(cls, description: str, replaced_previous: bool = False) -> BackgroundState:
        return cls(
            kind=BackgroundKind.EXPLICIT,
            description=description,
            is_explicitly_set=True,
            preserve_across_refinements=True,
            replaced_previous=replaced_previous,
        )

    @classmethod
    def inferred(cls, description: str, preserve: bool = True) -> BackgroundState:
        return cls(
            kind=BackgroundKind.INFERRED,
            description=description,
            is_explicitly_set=False,
            preserve_across_refinements=preserve,
        )

    @classmethod
    def removed(cls) -> BackgroundState:
        return cls(
            kind=BackgroundKind.REMOVED,
            description=TRANSPARENT,
            is_explicitly_set=True,
            preserve_across_refinements=True,
            explicitly_removed=True,
        )

    @property
    def is_transparent(self) -> bool:
        return self.kind in (BackgroundKind.DEFAULT, BackgroundKind.REMOVED)

    def same_as(self, other: BackgroundState) -> bool:
        """Equality ignoring the timestamp."""
        return self.model_dump(exclude={"set_at"}) == other.model_dump(exclude={"set_at"})


class RefinementHistoryEntry(BaseModel):
    """One refinement applied to a chain. Never mutated after insertion."""

    model_config = ConfigDict(frozen=True)

    instruction: str
    timestamp: datetime = Field(default_factory=_utcnow)
    is_background_operation: bool = False
    previous_background_state: BackgroundState
    new_background_state: BackgroundState | None = None
    background_preserved: bool = False


class RefinementChain(BaseModel):
    """Persistent per-image state across a sequence of refinements."""

    chain_id: str = Field(default_factory=lambda: f"chain_{uuid.uuid4().hex[:12]}")
    background_state: BackgroundState = Field(default_factory=BackgroundState.default)
    history: list[RefinementHistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)

    def record(self, entry: RefinementHistoryEntry) -> None:
        self.history.append(entry)
        self.last_modified = entry.timestamp
