"""Image synthesis provider interface and the status polling loop.

The provider itself is an external service. This module only fixes the
shape of what the refinement core consumes from it: request ids, a status
call polled until terminal, and typed results.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel

from refiner.errors import ProviderError, ProviderTimeoutError
from refiner.models.scene import StructuredScenePrompt

logger = logging.getLogger(__name__)


class ProviderState(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


class ProviderResult(BaseModel):
    image_url: str
    structured_prompt: StructuredScenePrompt | None = None
    seed: int | None = None


class ProviderStatus(BaseModel):
    state: ProviderState
    result: ProviderResult | None = None
    error: str | None = None


class BackgroundEditMode(str, enum.Enum):
    REMOVE = "remove"
    REPLACE = "replace"


class ImageSynthesisProvider(Protocol):
    """Asynchronous image provider. Every call returns a request id to poll."""

    async def generate(self, prompt: StructuredScenePrompt | str, seed: int | None = None) -> str:
        ...

    async def status(self, request_id: str) -> ProviderStatus:
        ...

    async def edit_background(
        self, image_url: str, mode: BackgroundEditMode, description: str | None = None
    ) -> str:
        ...

    async def mask_fill(self, image_url: str, mask: Any, prompt: str) -> str:
        ...

    async def generate_mask(self, image_url: str, target: str) -> Any:
        ...


async def poll_until_complete(
    provider: ImageSynthesisProvider,
    request_id: str,
    max_attempts: int | None = None,
    interval: float | None = None,
    backoff: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> ProviderResult:
    """Poll ``provider.status`` until the request completes.

    Raises ProviderError on an error status or a completed status without a
    result, ProviderTimeoutError after *max_attempts* in-progress polls.
    """
    if max_attempts is None or interval is None:
        from refiner.config import settings

        max_attempts = max_attempts if max_attempts is not None else settings.provider_poll_attempts
        interval = interval if interval is not None else settings.provider_poll_interval

    delay = interval
    for attempt in range(1, max_attempts + 1):
        status = await provider.status(request_id)
        if status.state == ProviderState.COMPLETED:
            if status.result is None:
                raise ProviderError("Provider reported completion without a result", request_id)
            logger.info("Request %s completed after %d poll(s)", request_id, attempt)
            return status.result
        if status.state == ProviderState.ERROR:
            raise ProviderError(status.error or "Provider reported an error", request_id)

        logger.debug("Request %s in progress (attempt %d/%d)", request_id, attempt, max_attempts)
        if attempt < max_attempts:
            await sleep(delay)
            delay *= backoff

    raise ProviderTimeoutError(
        f"Request {request_id} did not complete after {max_attempts} attempts", request_id
    )
