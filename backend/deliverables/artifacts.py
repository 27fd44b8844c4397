from __future__ import annotations

from datetime import datetime, timezone
import hashlib
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from deliverables.parsers import DOCX_MIME, PDF_MIME

ArtifactStatus = Literal["pending", "valid", "failed"]

ALLOWED_MIME = frozenset({PDF_MIME, DOCX_MIME})
MIME_BY_TYPE = {"docx": DOCX_MIME, "pdf": PDF_MIME}


class DeliverableArtifact(BaseModel):
    artifact_id: str = Field(default_factory=lambda: str(uuid4()))
    type: Literal["docx", "pdf"]
    status: ArtifactStatus = "pending"
    mime: str
    bytes: int = Field(..., ge=0)
    sha256: str
    storage_key: str
    page_count: int | None = None
    paragraph_count: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    validated_at: datetime | None = None
    signed_url: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class GateResult(BaseModel):
    can_download: bool
    reason: str | None = None


def compute_sha256(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def detect_mime_by_magic(content: bytes) -> str | None:
    if content[:4] == b"PK\x03\x04":
        return DOCX_MIME
    if content[:4] == b"%PDF":
        return PDF_MIME
    return None


def create_pending_artifact(
    artifact_type: Literal["docx", "pdf"],
    content: bytes,
    storage_key: str,
    *,
    paragraph_count: int | None = None,
) -> DeliverableArtifact:
    return DeliverableArtifact(
        type=artifact_type,
        mime=MIME_BY_TYPE[artifact_type],
        bytes=len(content),
        sha256=compute_sha256(content),
        storage_key=storage_key,
        paragraph_count=paragraph_count,
    )


def can_download(artifact: DeliverableArtifact | None) -> GateResult:
    """Decide whether an artifact may be offered for download. Pure; re-run on every metadata change."""
    if artifact is None:
        return GateResult(can_download=False, reason="missing_artifact")
    if artifact.status != "valid":
        return GateResult(can_download=False, reason=artifact.status)
    if artifact.validated_at is None:
        return GateResult(can_download=False, reason="missing_validated_at")
    if not artifact.signed_url:
        return GateResult(can_download=False, reason="missing_signed_url")
    if artifact.mime and artifact.mime not in ALLOWED_MIME:
        return GateResult(can_download=False, reason="mime_not_allowed")
    return GateResult(can_download=True, reason=None)
