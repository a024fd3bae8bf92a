"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from refiner.config import settings
from refiner.errors import EmptyInstructionError

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.refiner_log_level.upper(), logging.DEBUG),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)


async def _empty_instruction_handler(request: Request, exc: EmptyInstructionError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": "empty_instruction"})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Refiner",
        description="Edit instruction interpreter and refinement orchestrator for iterative image editing",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EmptyInstructionError, _empty_instruction_handler)

    from refiner.api.router import api_router

    app.include_router(api_router)

    return app


app = create_app()
