"""Exception types surfaced by the refinement core."""

from __future__ import annotations


class RefinerError(Exception):
    """Base class for every error raised by the refinement core."""


class EmptyInstructionError(RefinerError, ValueError):
    """Instruction was empty, whitespace-only or over the length limit.

    Rejected at the boundary before the instruction enters the pipeline.
    """


class MalformedScenePromptError(RefinerError):
    """The prior structured scene prompt is not valid JSON or has the wrong shape.

    The caller must fall back to plain-text prompt composition.
    """


class ProviderError(RefinerError):
    """The image synthesis provider reported a failed request."""

    def __init__(self, message: str, request_id: str | None = None) -> None:
        super().__init__(message)
        self.request_id = request_id


class ProviderTimeoutError(ProviderError):
    """Polling gave up before the provider reached a terminal state."""
