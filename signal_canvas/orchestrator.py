"""
CanvasOrchestrator - fans a prompt out into concurrent generation tasks.

Flow per submission:
    create session (placeholders) -> fetch labels (single-shot, with
    fallback) -> N streaming tasks in parallel, each feeding exactly one
    (session_id, index) target -> settled

A secondary mutation flow streams alternate variants for one artifact and
parses them out of the token stream as each JSON object closes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .api_client import GenerationFailure
from .config import CanvasConfig, default_config
from .generation import GenerationRequest, GenerationTask
from .json_stream import IncrementalJSONExtractor, extract_json_array, strip_code_fences
from .models import SessionSnapshot, SubmissionPhase, Variant
from .prompts import build_artifact_prompt, build_label_prompt, build_mutation_prompt
from .session_store import SessionStore

if TYPE_CHECKING:
    from .api_client import MultiProviderClient

logger = logging.getLogger(__name__)


class LabelFetchFailure(GenerationFailure):
    """Style labels could not be obtained; fallback labels are used instead."""


class CanvasOrchestrator:
    """
    Coordinates submissions, mutations and the read contract for viewers.

    Entry points (`submit`, `generate_variations`, `apply_variant`) return
    immediately; progress is observed through `get_snapshot()`,
    `get_loading_flag()` and `get_variants()`. Only one submission or
    mutation may be initiated at a time, but earlier work is never
    cancelled: it keeps writing into its own session.
    """

    def __init__(
        self,
        client: "MultiProviderClient",
        store: SessionStore | None = None,
        config: CanvasConfig | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            client: Remote model client
            store: Session store (creates one if None)
            config: Canvas configuration (uses default if None)
        """
        self.client = client
        self.config = config or default_config
        self.store = store or SessionStore(placeholder_label=self.config.generation.placeholder_label)

        self.phase = SubmissionPhase.IDLE
        self._loading = False
        self._tasks: set[asyncio.Task] = set()

        # View state, read side only
        self.focused_index: int | None = None
        self._variants: list[Variant] = []
        self._mutation_target: tuple[str, int] | None = None

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._loading

    def get_loading_flag(self) -> bool:
        return self._loading

    def get_snapshot(self) -> tuple[SessionSnapshot, ...]:
        return self.store.snapshot()

    def get_variants(self) -> tuple[Variant, ...]:
        return tuple(self._variants)

    @property
    def mutation_target(self) -> tuple[str, int] | None:
        """(session_id, index) the open mutation view belongs to, if any."""
        return self._mutation_target

    def current_session(self) -> SessionSnapshot | None:
        session_id = self.store.current_session_id
        return self.store.get_session(session_id) if session_id else None

    def get_artifact_source(self, session_id: str, index: int) -> str | None:
        """Current content of one artifact, for the source view."""
        session = self.store.get_session(session_id)
        if session is None or not 0 <= index < len(session.artifacts):
            return None
        return session.artifacts[index].content

    # ------------------------------------------------------------------
    # View focus
    # ------------------------------------------------------------------

    def focus_artifact(self, index: int) -> None:
        session = self.current_session()
        if session is None or not 0 <= index < len(session.artifacts):
            raise IndexError(f"No artifact {index} in the current session")
        self.focused_index = index

    def clear_focus(self) -> None:
        """Back to the split view."""
        self.focused_index = None

    # ------------------------------------------------------------------
    # Submission flow
    # ------------------------------------------------------------------

    def submit(self, prompt: str) -> asyncio.Task | None:
        """
        Start a new submission.

        Must be called from within a running event loop. The session and
        its placeholders exist as soon as this returns.

        Returns:
            The scheduled task, or None if the prompt is blank or another
            flow is still loading
        """
        loop = asyncio.get_running_loop()
        text = prompt.strip()
        if not text or self._loading:
            return None

        self._loading = True
        count = self.config.generation.artifact_count
        session_id = self.store.create_session(text, count)
        self.focused_index = None
        self.phase = SubmissionPhase.LABELS_PENDING

        return self._spawn(loop, self._run_submission(session_id, text, count))

    async def _run_submission(self, session_id: str, prompt: str, count: int) -> None:
        try:
            labels = await self._resolve_labels(session_id, prompt, count)

            self.phase = SubmissionPhase.GENERATING
            results = await asyncio.gather(
                *(self._generate_artifact(session_id, i, prompt, labels[i]) for i in range(count)),
                return_exceptions=True,
            )
            for index, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        f"Unexpected error in artifact {index} of session {session_id}",
                        exc_info=result,
                    )
            logger.info(f"Session {session_id} settled")
        finally:
            self.phase = SubmissionPhase.SETTLED
            self._loading = False

    async def _resolve_labels(self, session_id: str, prompt: str, count: int) -> list[str]:
        """Fetch labels, falling back to the configured set on any failure."""
        fallback = list(self.config.generation.fallback_labels)
        try:
            labels = await self._fetch_labels(prompt, count)
        except LabelFetchFailure as e:
            logger.warning(f"Label fetch failed for session {session_id}, using fallback labels: {e}")
            labels = fallback

        self.store.set_artifact_labels(session_id, labels)

        # Prompts for artifacts the model gave no label for use the fallback set
        resolved = list(labels[:count])
        for i in range(len(resolved), count):
            resolved.append(fallback[i] if i < len(fallback) else self.store.placeholder_label)
        return resolved

    async def _fetch_labels(self, prompt: str, count: int) -> list[str]:
        task = GenerationTask(
            self.client,
            GenerationRequest(
                model=self.config.models.label_model,
                prompt=build_label_prompt(prompt, count),
                max_tokens=1024,
            ),
        )
        try:
            text = await task.run()
        except GenerationFailure as e:
            raise LabelFetchFailure(f"Label request failed: {e}", cause=e.cause or e) from e

        labels = extract_json_array(text)
        if not labels or not all(isinstance(label, str) for label in labels):
            raise LabelFetchFailure(f"Label response was not a JSON array of strings: {text[:200]!r}")
        return labels

    async def _generate_artifact(self, session_id: str, index: int, prompt: str, label: str) -> None:
        """Stream one artifact into the store. Failures leave it streaming."""
        task = GenerationTask(
            self.client,
            GenerationRequest(
                model=self.config.models.artifact_model,
                prompt=build_artifact_prompt(prompt, label),
                max_tokens=self.config.models.max_tokens,
            ),
        )
        try:
            async for delta in task.stream():
                self.store.append_artifact_content(session_id, index, delta)
        except GenerationFailure as e:
            logger.error(f"Generation failed for artifact {index} of session {session_id}: {e}")
            return

        self.store.finalize_artifact(session_id, index, strip_code_fences(task.text))

    # ------------------------------------------------------------------
    # Mutation flow
    # ------------------------------------------------------------------

    def generate_variations(self, session_id: str, artifact_index: int) -> asyncio.Task | None:
        """
        Stream alternate variants for one artifact.

        Returns:
            The scheduled task, or None if the target does not exist or
            another flow is still loading
        """
        loop = asyncio.get_running_loop()
        if self._loading:
            return None

        session = self.store.get_session(session_id)
        if session is None or not 0 <= artifact_index < len(session.artifacts):
            logger.debug(f"No mutation target {artifact_index} in session {session_id}")
            return None

        self._loading = True
        self._variants = []
        self._mutation_target = (session_id, artifact_index)

        return self._spawn(loop, self._run_mutation(session.prompt, (session_id, artifact_index)))

    async def _run_mutation(self, prompt: str, target: tuple[str, int]) -> None:
        task = GenerationTask(
            self.client,
            GenerationRequest(
                model=self.config.models.mutation_model,
                prompt=build_mutation_prompt(prompt, self.config.generation.mutation_personas),
                temperature=self.config.models.mutation_temperature,
                max_tokens=self.config.models.max_tokens,
            ),
        )
        extractor = IncrementalJSONExtractor()
        produced = 0

        try:
            async for delta in task.stream():
                for candidate in extractor.feed(delta):
                    variant = self._to_variant(candidate)
                    if variant is None:
                        continue
                    produced += 1
                    # Once the view is closed its variants are discarded
                    if self._mutation_target == target:
                        self._variants.append(variant)
        except GenerationFailure as e:
            logger.error(f"Mutation failed for artifact {target[1]} of session {target[0]}: {e}")
        finally:
            self._loading = False

        logger.info(f"Mutation produced {produced} variants")

    @staticmethod
    def _to_variant(candidate: Any) -> Variant | None:
        if not isinstance(candidate, dict):
            return None
        try:
            return Variant.model_validate(candidate)
        except ValidationError:
            return None

    def apply_variant(self, session_id: str, artifact_index: int, content: str) -> bool:
        """Replace an artifact with a chosen variant and close the mutation view."""
        applied = self.store.replace_artifact(session_id, artifact_index, content)
        self.close_variations()
        return applied

    def close_variations(self) -> None:
        """Close the mutation view, discarding its variants."""
        self._mutation_target = None
        self._variants = []

    # ------------------------------------------------------------------
    # Task bookkeeping
    # ------------------------------------------------------------------

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight submission and mutation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["CanvasOrchestrator", "LabelFetchFailure"]
