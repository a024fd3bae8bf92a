"""API request models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ParseRequest(BaseModel):
    instruction: str = Field(..., description="Edit instruction in natural language")


class RefineRequest(BaseModel):
    instruction: str = Field(..., description="Edit instruction in natural language")
    image_key: str = Field(..., description="Any key the image is known by (original, hosted or cached URL)")
    structured_prompt: dict[str, Any] | str | None = Field(
        default=None,
        description="Provider scene prompt of the image being refined (object or JSON string)",
    )
    base_prompt: str | None = Field(
        default=None,
        description="Original text prompt, used when no structured prompt is available",
    )


class RegisterImageRequest(BaseModel):
    image_key: str = Field(..., description="Primary key of the generated image")
    aliases: list[str] = Field(default_factory=list, description="Other keys for the same image")
    structured_prompt: dict[str, Any] | str | None = Field(
        default=None,
        description="Scene prompt returned by the provider for the generation",
    )


class AliasRequest(BaseModel):
    image_key: str = Field(..., description="Key the image is already registered under")
    alias: str = Field(..., description="New key, e.g. the hosted URL of a refinement")
