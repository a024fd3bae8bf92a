"""Image registration endpoints -- chain creation and key aliasing."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from refiner.dependencies import get_orchestrator
from refiner.models.requests import AliasRequest, RegisterImageRequest
from refiner.models.responses import RegisterImageResponse
from refiner.orchestrator import Orchestrator

router = APIRouter()


@router.post("/images", response_model=RegisterImageResponse)
def register_image(
    request: RegisterImageRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RegisterImageResponse:
    chain = orchestrator.register_image(request.image_key, request.aliases, request.structured_prompt)
    return RegisterImageResponse(
        chain_id=chain.chain_id,
        chain_key=orchestrator.registry.canonical(request.image_key),
        aliases=orchestrator.registry.aliases_of(request.image_key),
        background_state=chain.background_state,
    )


@router.post("/images/alias", response_model=RegisterImageResponse)
def register_alias(
    request: AliasRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> RegisterImageResponse:
    canonical = orchestrator.register_alias(request.image_key, request.alias)
    chain = orchestrator.registry.get(canonical)
    if chain is None:
        chain = orchestrator.register_image(canonical)
    return RegisterImageResponse(
        chain_id=chain.chain_id,
        chain_key=canonical,
        aliases=orchestrator.registry.aliases_of(canonical),
        background_state=chain.background_state,
    )
