"""API response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from refiner.models.background import BackgroundState
from refiner.models.operations import RefinementPlan
from refiner.models.scene import StructuredScenePrompt


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    chains_tracked: int = 0


class ParseResponse(BaseModel):
    plan: RefinementPlan
    summary: dict[str, Any] = Field(default_factory=dict)


class RefineResponse(BaseModel):
    chain_key: str
    plan: RefinementPlan
    summary: dict[str, Any] = Field(default_factory=dict)
    background_state: BackgroundState
    patched_prompt: StructuredScenePrompt | None = None
    text_prompt: str | None = None
    used_fallback: bool = False
    background_modified: bool = False
    applied: list[dict[str, Any]] = Field(default_factory=list)


class RegisterImageResponse(BaseModel):
    chain_id: str
    chain_key: str
    aliases: list[str] = Field(default_factory=list)
    background_state: BackgroundState


class BackgroundResponse(BaseModel):
    image_key: str
    background_state: BackgroundState
    history_length: int = 0
