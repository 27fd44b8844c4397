from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from fastapi import HTTPException

from deliverables.artifacts import DeliverableArtifact
from deliverables.pipeline import DeliverablePipeline

logger = logging.getLogger("deliverables.api")

PipelineGetter = Callable[[], DeliverablePipeline]


class ArtifactRegistry:
    """In-process index of artifact records; persistence lives with the caller."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._artifacts: dict[str, DeliverableArtifact] = {}

    def put(self, artifact: DeliverableArtifact) -> DeliverableArtifact:
        with self._lock:
            self._artifacts[artifact.artifact_id] = artifact
        return artifact

    def get(self, artifact_id: str) -> DeliverableArtifact | None:
        with self._lock:
            return self._artifacts.get(artifact_id)

    def clear(self) -> None:
        with self._lock:
            self._artifacts.clear()


def require_artifact(registry: ArtifactRegistry, artifact_id: str) -> DeliverableArtifact:
    artifact = registry.get(artifact_id)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return artifact


def failure_payload(code: str, error: str) -> dict[str, object]:
    return {"message": "could not generate deliverable", "code": code, "error": error}
