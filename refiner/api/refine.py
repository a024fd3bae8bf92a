"""Instruction parsing and refinement planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from refiner.dependencies import get_orchestrator
from refiner.models.requests import ParseRequest, RefineRequest
from refiner.models.responses import BackgroundResponse, ParseResponse, RefineResponse
from refiner.orchestrator import Orchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/parse", response_model=ParseResponse)
def parse(
    request: ParseRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ParseResponse:
    """Parse an instruction into a plan without touching any image state."""
    plan = orchestrator.parse_instruction(request.instruction)
    return ParseResponse(plan=plan, summary=plan.summary())


@router.post("/refine/plan", response_model=RefineResponse)
def plan_refinement(
    request: RefineRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RefineResponse:
    outcome = orchestrator.plan_refinement(
        request.instruction,
        request.structured_prompt,
        request.image_key,
        base_prompt=request.base_prompt,
    )
    return RefineResponse(
        chain_key=outcome.chain_key,
        plan=outcome.plan,
        summary=outcome.plan.summary(),
        background_state=outcome.background_state,
        patched_prompt=outcome.patched_prompt,
        text_prompt=outcome.text_prompt,
        used_fallback=outcome.used_fallback,
        background_modified=outcome.background_modified,
        applied=[a.model_dump() for a in outcome.applied],
    )


@router.get("/background", response_model=BackgroundResponse)
def background(
    image_key: str = Query(..., description="Any key the image is known by"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> BackgroundResponse:
    return BackgroundResponse(
        image_key=image_key,
        background_state=orchestrator.get_background_state(image_key),
        history_length=len(orchestrator.get_history(image_key)),
    )
