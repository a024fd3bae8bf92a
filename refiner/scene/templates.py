"""Object descriptor templates for synthesized scene objects."""

from __future__ import annotations

from refiner.engine.vocabulary import Vocabulary, get_vocabulary
from refiner.models.scene import ObjectDescriptor

_DEFAULT_SUBJECT = "the character"


def object_descriptor(item: str, location: str | None = None, vocab: Vocabulary | None = None) -> ObjectDescriptor:
    """Catalog descriptor for *item*, or a generic one when the catalog has none."""
    vocab = vocab or get_vocabulary()
    template = vocab.object_templates.get(item)
    if template is not None:
        fields = dict(template)
        if location:
            fields["location"] = location
        return ObjectDescriptor(**fields)
    return ObjectDescriptor(
        description=f"A {item} positioned naturally within the scene",
        location=location or "appropriate position relative to main character",
        relationship="Associated with or worn by the main character",
        relative_size="proportional and realistic for the item type",
        shape_and_color=f"Appropriate {item} appearance with suitable colors",
        texture="Material texture suitable for the item type",
        appearance_details="Natural integration maintaining scene coherence",
        orientation="Natural positioning for the item type",
    )


def texture_descriptor(texture: str, target: str | None = None, vocab: Vocabulary | None = None) -> ObjectDescriptor:
    vocab = vocab or get_vocabulary()
    subject = target or _DEFAULT_SUBJECT
    location = f"on {target}" if target else "appropriate location"
    template = vocab.texture_templates.get(texture)
    if template is not None:
        fields = {k: v.format(target=subject) for k, v in template.items()}
        fields.setdefault("location", location)
        return ObjectDescriptor(**fields)
    return ObjectDescriptor(
        description=f"{texture} effect applied to {subject} with realistic appearance",
        location=location,
        relationship=f"Surface effect on {subject}",
        relative_size="realistic scale for the effect type",
        shape_and_color=f"Natural {texture} coloring and patterns",
        texture=f"Realistic {texture} surface texture",
        appearance_details="Natural application following surface contours",
        orientation="Following natural patterns",
    )


def color_descriptor(target: str, color: str) -> ObjectDescriptor:
    """New object carrying a colour change when nothing in the scene matched."""
    return ObjectDescriptor(
        description=f"A {color} {target} on the main character",
        location=f"where the {target} naturally appears",
        relationship="Part of the main character",
        relative_size=f"proportional {target} size",
        shape_and_color=f"{color} colored {target}",
        texture="Consistent with the rest of the character",
        appearance_details=f"Modified to {color} color",
        orientation="Natural orientation",
    )


def general_descriptor(raw_text: str) -> ObjectDescriptor:
    return ObjectDescriptor(
        description=f"Modification: {raw_text}",
        location="as described",
        relationship="Applied to the main character",
        relative_size="appropriate to the modification",
        shape_and_color="Consistent with the requested change",
        texture="Consistent with the surrounding scene",
        appearance_details=f"Requested edit: {raw_text}",
        orientation="Natural orientation",
    )
