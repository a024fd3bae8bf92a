"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from refiner.dependencies import get_orchestrator
from refiner.models.responses import HealthResponse
from refiner.orchestrator import Orchestrator

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(orchestrator: Orchestrator = Depends(get_orchestrator)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        chains_tracked=len(orchestrator.registry),
    )
