"""Data model for sessions, artifacts and mutation variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ArtifactStatus(Enum):
    """Lifecycle states for an Artifact."""

    STREAMING = "streaming"  # Content is still arriving (or stalled)
    COMPLETE = "complete"    # Final content committed, frozen


class SubmissionPhase(Enum):
    """Where the orchestrator is in handling the latest submission."""

    IDLE = "idle"
    LABELS_PENDING = "labels_pending"
    GENERATING = "generating"
    SETTLED = "settled"


def artifact_id(session_id: str, index: int) -> str:
    """Artifact ids are derived from their session and position."""
    return f"{session_id}_{index}"


@dataclass
class Artifact:
    """
    One generated result. Owned exclusively by the SessionStore.

    Content only grows while STREAMING; the single wholesale rewrite
    happens together with the flip to COMPLETE.
    """

    id: str
    label: str
    content: str = ""
    status: ArtifactStatus = ArtifactStatus.STREAMING

    def snapshot(self) -> "ArtifactSnapshot":
        return ArtifactSnapshot(
            id=self.id,
            label=self.label,
            content=self.content,
            status=self.status,
        )


@dataclass
class Session:
    """One user submission. The artifact count is fixed at creation."""

    id: str
    prompt: str
    artifacts: list[Artifact]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            id=self.id,
            prompt=self.prompt,
            created_at=self.created_at,
            artifacts=tuple(a.snapshot() for a in self.artifacts),
        )


@dataclass(frozen=True)
class ArtifactSnapshot:
    """Read-only copy of an Artifact handed to viewers."""

    id: str
    label: str
    content: str
    status: ArtifactStatus

    @property
    def is_complete(self) -> bool:
        return self.status is ArtifactStatus.COMPLETE


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of a Session handed to viewers."""

    id: str
    prompt: str
    created_at: datetime
    artifacts: tuple[ArtifactSnapshot, ...]

    @property
    def is_settled(self) -> bool:
        """True once every artifact is complete."""
        return all(a.is_complete for a in self.artifacts)


class Variant(BaseModel):
    """
    One alternate candidate from the mutation flow.

    The model emits `{"name": ..., "html": ...}`; `label` / `content` are
    accepted as well. Both fields are required strings and are never
    coerced from other types.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    label: StrictStr = Field(alias="name", min_length=1)
    content: StrictStr = Field(alias="html", min_length=1)


__all__ = [
    "Artifact",
    "ArtifactSnapshot",
    "ArtifactStatus",
    "Session",
    "SessionSnapshot",
    "SubmissionPhase",
    "Variant",
    "artifact_id",
]
