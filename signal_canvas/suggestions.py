"""Rotating example prompts, topped up with model-generated ones."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .api_client import GenerationFailure
from .generation import GenerationRequest, GenerationTask
from .json_stream import extract_json_array
from .prompts import build_suggestion_prompt

if TYPE_CHECKING:
    from .api_client import MultiProviderClient

logger = logging.getLogger(__name__)

INITIAL_SUGGESTIONS: tuple[str, ...] = (
    "Orbital trajectory graph",
    "Crystalline thermal map",
    "Neural sync relay",
    "Quantum signal spectrum analyzer",
    "Deep core reactor telemetry",
    "Atmospheric entry heat shield monitor",
)

REQUESTED_SUGGESTIONS = 20
KEPT_SUGGESTIONS = 10


class PromptSuggestions:
    """Cyclic list of example prompts shown while the input is empty."""

    def __init__(self, initial: Sequence[str] = INITIAL_SUGGESTIONS, rng: random.Random | None = None):
        if not initial:
            raise ValueError("At least one initial suggestion is required")
        self._suggestions = list(initial)
        self._index = 0
        self._rng = rng or random.Random()

    @property
    def suggestions(self) -> tuple[str, ...]:
        return tuple(self._suggestions)

    @property
    def current(self) -> str:
        return self._suggestions[self._index]

    def advance(self) -> str:
        """Move to the next suggestion, wrapping around."""
        self._index = (self._index + 1) % len(self._suggestions)
        return self.current

    async def refresh(self, client: "MultiProviderClient", model: str = "haiku") -> int:
        """
        Ask the model for more suggestions and append a random subset.

        Failures are logged and otherwise ignored.

        Returns:
            Number of suggestions added
        """
        task = GenerationTask(
            client,
            GenerationRequest(model=model, prompt=build_suggestion_prompt(REQUESTED_SUGGESTIONS), max_tokens=2048),
        )
        try:
            text = await task.run()
        except GenerationFailure as e:
            logger.warning(f"Could not fetch prompt suggestions: {e}")
            return 0

        candidates = [s.strip() for s in extract_json_array(text) or [] if isinstance(s, str) and s.strip()]
        if not candidates:
            logger.warning("Suggestion response contained no usable prompts")
            return 0

        picked = self._rng.sample(candidates, min(KEPT_SUGGESTIONS, len(candidates)))
        self._suggestions.extend(picked)
        return len(picked)


__all__ = ["INITIAL_SUGGESTIONS", "PromptSuggestions"]
