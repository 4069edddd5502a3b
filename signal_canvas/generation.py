"""GenerationTask - one request/response or request/stream against the model."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .api_client import GenerationFailure, Prompt

if TYPE_CHECKING:
    from .api_client import MultiProviderClient

logger = logging.getLogger(__name__)


@dataclass
class GenerationRequest:
    """What to ask the model for."""

    model: str
    prompt: Prompt
    temperature: float | None = None  # None = provider default
    max_tokens: int = 8192
    system: str | None = None


class GenerationTask:
    """
    Wrap a single request to the remote model.

    Either `await task.run()` for a single-shot value, or iterate
    `task.stream()` for delta fragments whose concatenation is the final
    text. A stream can be consumed once. Any failure, before the first
    increment or mid-stream, is raised as GenerationFailure; natural end of
    the stream sets `done`.
    """

    def __init__(self, client: "MultiProviderClient", request: GenerationRequest):
        self.client = client
        self.request = request
        self.text = ""
        self.done = False
        self._started = False

    def _call_kwargs(self) -> dict:
        kwargs = {
            "prompt": self.request.prompt,
            "model": self.request.model,
            "system": self.request.system,
            "max_tokens": self.request.max_tokens,
        }
        if self.request.temperature is not None:
            kwargs["temperature"] = self.request.temperature
        return kwargs

    def _claim(self) -> None:
        if self._started:
            raise RuntimeError("GenerationTask can only be consumed once")
        self._started = True

    async def run(self) -> str:
        """Single-shot request. Returns the full response text."""
        self._claim()
        try:
            response = await self.client.complete(**self._call_kwargs())
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"Generation failed: {e}", cause=e) from e

        self.text = response.content or ""
        self.done = True
        return self.text

    async def stream(self) -> AsyncGenerator[str, None]:
        """Yield text deltas until the remote source closes."""
        self._claim()
        try:
            async for chunk in self.client.complete_streaming(**self._call_kwargs()):
                if chunk.is_final or not chunk.text:
                    continue
                self.text += chunk.text
                yield chunk.text
        except GenerationFailure:
            raise
        except Exception as e:
            raise GenerationFailure(f"Generation stream failed: {e}", cause=e) from e

        self.done = True
        logger.debug(f"Stream from {self.request.model} closed after {len(self.text)} chars")


__all__ = ["GenerationFailure", "GenerationRequest", "GenerationTask"]
