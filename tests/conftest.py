"""
Shared test configuration.

Provides an in-memory stand-in for MultiProviderClient so orchestration
tests run without network access. Streams yield control to the event
loop between chunks, so concurrent tasks genuinely interleave.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from signal_canvas.api_client import APIResponse, GenerationFailure, Provider, StreamChunk


class FakeClient:
    """Scripted client: single-shot text and per-prompt stream scripts."""

    def __init__(
        self,
        complete: str | BaseException | Callable[[str], str] = "[]",
        stream: Callable[[str], list[Any]] | list[Any] | None = None,
    ):
        self._complete = complete
        self._stream = stream if stream is not None else []
        self.complete_calls: list[dict[str, Any]] = []
        self.stream_calls: list[dict[str, Any]] = []

    async def complete(self, prompt, model, system=None, max_tokens=4096, temperature=1.0) -> APIResponse:
        self.complete_calls.append({"prompt": prompt, "model": model, "temperature": temperature})
        await asyncio.sleep(0)
        if isinstance(self._complete, BaseException):
            raise self._complete
        text = self._complete(prompt) if callable(self._complete) else self._complete
        return APIResponse(content=text, model=model, provider=Provider.ANTHROPIC)

    async def complete_streaming(self, prompt, model, system=None, max_tokens=4096, temperature=1.0):
        self.stream_calls.append({"prompt": prompt, "model": model, "temperature": temperature})
        script = self._stream(prompt) if callable(self._stream) else self._stream
        for item in script:
            await asyncio.sleep(0)
            if isinstance(item, BaseException):
                raise item
            yield StreamChunk(text=item)
        yield StreamChunk(text="", is_final=True)


def style_of(prompt: str) -> str:
    """Extract the STYLE line from an artifact prompt."""
    for line in prompt.splitlines():
        if line.startswith("STYLE: "):
            return line[len("STYLE: "):].split(" (")[0]
    return ""


@pytest.fixture
def fake_client_cls():
    """The FakeClient class, for tests that script their own responses."""
    return FakeClient


@pytest.fixture
def style_of_prompt():
    return style_of


@pytest.fixture
def failure():
    """Factory for GenerationFailure instances."""
    return lambda message="boom": GenerationFailure(message, cause=RuntimeError(message))
