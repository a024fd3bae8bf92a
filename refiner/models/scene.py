"""Structured scene prompt -- the provider's machine-readable image description."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


class ObjectDescriptor(BaseModel):
    """One object in the scene. Unknown provider fields survive round-trips."""

    model_config = ConfigDict(extra="allow")

    description: str = ""
    location: str = ""
    relationship: str = ""
    relative_size: str = ""
    shape_and_color: str = ""
    texture: str = ""
    appearance_details: str = ""
    number_of_objects: int = 1
    orientation: str = ""


class StructuredScenePrompt(BaseModel):
    """Provider-returned scene document.

    Only the closed set of mutations below is used to change it; there is
    no general deep-merge.
    """

    model_config = ConfigDict(extra="allow")

    background: str = ""
    objects: list[ObjectDescriptor] = Field(default_factory=list)
    short_description: str = ""

    def append_object(self, descriptor: ObjectDescriptor) -> None:
        self.objects.append(descriptor)

    def rewrite_objects(
        self,
        predicate: Callable[[ObjectDescriptor], bool],
        rewrite: Callable[[ObjectDescriptor], ObjectDescriptor],
        limit: int | None = None,
    ) -> int:
        """Replace matching objects with ``rewrite(obj)``. Returns how many changed."""
        changed = 0
        for i, obj in enumerate(self.objects):
            if limit is not None and changed >= limit:
                break
            if predicate(obj):
                self.objects[i] = rewrite(obj)
                changed += 1
        return changed

    def set_background(self, description: str) -> None:
        self.background = description

    def remove_objects(self, predicate: Callable[[ObjectDescriptor], bool]) -> int:
        before = len(self.objects)
        self.objects = [obj for obj in self.objects if not predicate(obj)]
        return before - len(self.objects)

    def to_provider_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
