"""
SessionStore - authoritative in-memory state for sessions and artifacts.

Every operation runs synchronously and never awaits, so under a single
asyncio loop each one is atomic with respect to concurrent generation
tasks. Mutations are keyed by (session_id, index) rather than by whatever
session is currently displayed: a straggling task from an older
submission can only ever write into its own session.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence

from .models import (
    Artifact,
    ArtifactStatus,
    Session,
    SessionSnapshot,
    artifact_id,
)

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_LABEL = "Accessing Archives..."

StoreListener = Callable[[str], None]


class SessionStore:
    """
    Ordered collection of sessions, each with a fixed list of artifacts.

    Callers never receive a mutable reference into the store; reads go
    through `snapshot()` / `get_session()`, writes through the update
    operations below. Update operations return True when applied and
    False when silently dropped.
    """

    def __init__(self, placeholder_label: str = DEFAULT_PLACEHOLDER_LABEL):
        self.placeholder_label = placeholder_label
        self._sessions: list[Session] = []
        self._by_id: dict[str, Session] = {}
        self._current_session_id: str | None = None
        self._listeners: list[StoreListener] = []

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def current_session_id(self) -> str | None:
        """The most recently created session."""
        return self._current_session_id

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def create_session(self, prompt: str, artifact_count: int) -> str:
        """
        Append a session with `artifact_count` placeholder artifacts.

        Args:
            prompt: The submitted text, stored verbatim
            artifact_count: Number of artifacts, fixed for the session's lifetime

        Returns:
            The new session id, which also becomes the current session
        """
        if artifact_count < 1:
            raise ValueError(f"artifact_count must be positive, got {artifact_count}")

        session_id = uuid.uuid4().hex[:12]
        session = Session(
            id=session_id,
            prompt=prompt,
            artifacts=[
                Artifact(id=artifact_id(session_id, i), label=self.placeholder_label)
                for i in range(artifact_count)
            ],
        )
        self._sessions.append(session)
        self._by_id[session_id] = session
        self._current_session_id = session_id

        logger.info(f"Created session {session_id} with {artifact_count} artifacts")
        self._notify(session_id)
        return session_id

    def set_artifact_labels(self, session_id: str, labels: Sequence[str]) -> bool:
        """
        Set labels by position.

        Extra labels are ignored; artifacts past the end of `labels` keep
        their current label.
        """
        session = self._by_id.get(session_id)
        if session is None:
            logger.debug(f"Dropped labels for unknown session {session_id}")
            return False

        for artifact, label in zip(session.artifacts, labels):
            artifact.label = label

        self._notify(session_id)
        return True

    def append_artifact_content(self, session_id: str, index: int, delta: str) -> bool:
        """Append a delta fragment to a streaming artifact."""
        artifact = self._get_artifact(session_id, index)
        if artifact is None:
            return False
        if artifact.status is not ArtifactStatus.STREAMING:
            logger.debug(f"Dropped delta for completed artifact {artifact.id}")
            return False

        artifact.content += delta
        self._notify(session_id)
        return True

    def finalize_artifact(self, session_id: str, index: int, final_content: str) -> bool:
        """Commit final content and mark complete. No-op if already complete."""
        artifact = self._get_artifact(session_id, index)
        if artifact is None or artifact.status is ArtifactStatus.COMPLETE:
            return False

        artifact.content = final_content
        artifact.status = ArtifactStatus.COMPLETE

        logger.info(f"Finalized artifact {artifact.id} ({len(final_content)} chars)")
        self._notify(session_id)
        return True

    def replace_artifact(
        self,
        session_id: str,
        index: int,
        content: str,
        status: ArtifactStatus = ArtifactStatus.COMPLETE,
    ) -> bool:
        """Overwrite an artifact wholesale, whatever its current status."""
        artifact = self._get_artifact(session_id, index)
        if artifact is None:
            return False

        artifact.content = content
        artifact.status = status
        self._notify(session_id)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[SessionSnapshot, ...]:
        """Read-only copy of every session, in creation order."""
        return tuple(s.snapshot() for s in self._sessions)

    def get_session(self, session_id: str) -> SessionSnapshot | None:
        """Read-only copy of one session, or None."""
        session = self._by_id.get(session_id)
        return session.snapshot() if session is not None else None

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Call `listener(session_id)` after every applied update.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, session_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(session_id)
            except Exception:
                logger.exception(f"Store listener failed for session {session_id}")

    def _get_artifact(self, session_id: str, index: int) -> Artifact | None:
        session = self._by_id.get(session_id)
        if session is None:
            logger.debug(f"Dropped update for unknown session {session_id}")
            return None
        if not 0 <= index < len(session.artifacts):
            logger.debug(f"Dropped update for out-of-range artifact {index} in session {session_id}")
            return None
        return session.artifacts[index]


__all__ = ["DEFAULT_PLACEHOLDER_LABEL", "SessionStore", "StoreListener"]
