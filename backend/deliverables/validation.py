from __future__ import annotations

from datetime import datetime, timezone
import logging

from deliverables.artifacts import DeliverableArtifact, detect_mime_by_magic
from deliverables.lint import find_banned_token
from deliverables.parsers import ParserRegistry, ParseResult
from deliverables.storage import ArtifactStorage, StorageError

logger = logging.getLogger("deliverables.validation")

DOCX_MIN_HEADINGS = 1
PDF_MIN_PAGES = 1


class ArtifactValidator:
    """Out-of-band check that stamps an artifact valid (with a signed URL) or failed."""

    def __init__(self, storage: ArtifactStorage, registry: ParserRegistry | None = None) -> None:
        self._storage = storage
        self._registry = registry or ParserRegistry()

    def validate(self, artifact: DeliverableArtifact) -> DeliverableArtifact:
        try:
            content = self._storage.get_object(artifact.storage_key)
        except StorageError as exc:
            return self._fail(artifact, "STORAGE_READ_FAILED", str(exc))

        detected = detect_mime_by_magic(content)
        if detected is None:
            return self._fail(artifact, "MIME_MISMATCH", "Unable to detect MIME")
        if detected != artifact.mime:
            return self._fail(artifact, "MIME_MISMATCH", f"Expected {artifact.mime} but detected {detected}")

        parsed = self._registry.parse(
            content=content,
            file_name=f"artifact.{artifact.type}",
            content_type=artifact.mime,
        )
        if parsed.error:
            return self._fail(artifact, "LOW_CONTENT", parsed.error)

        failure = self._check_docx(parsed) if artifact.type == "docx" else self._check_pdf(parsed)
        if failure is not None:
            return self._fail(artifact, *failure)

        token = find_banned_token(parsed.text)
        if token is not None:
            return self._fail(artifact, "BANNED_TOKEN", f"Banned token detected: {token}")

        signed_url = self._storage.create_signed_url(artifact.storage_key)
        validated = artifact.model_copy(
            update={
                "status": "valid",
                "validated_at": datetime.now(timezone.utc),
                "signed_url": signed_url,
                "page_count": parsed.page_count if artifact.type == "pdf" else artifact.page_count,
                "paragraph_count": parsed.paragraph_count,
                "error_code": None,
                "error_message": None,
            }
        )
        logger.info(
            "artifact_validated",
            extra={"event": "artifact_validated", "artifact_id": artifact.artifact_id, "type": artifact.type},
        )
        return validated

    @staticmethod
    def _check_docx(parsed: ParseResult) -> tuple[str, str] | None:
        if not parsed.title:
            return "DOCX_MISSING_TITLE", "DOCX missing title paragraph"
        if len(parsed.headings) < DOCX_MIN_HEADINGS:
            return "DOCX_HEADING_SHORT", f"DOCX requires at least {DOCX_MIN_HEADINGS} heading"
        if not parsed.text:
            return "LOW_CONTENT", "DOCX contains no text"
        return None

    @staticmethod
    def _check_pdf(parsed: ParseResult) -> tuple[str, str] | None:
        if parsed.page_count < PDF_MIN_PAGES:
            return "PDF_PAGE_SHORT", "PDF must contain at least one page"
        if not parsed.text:
            return "PDF_TEXT_SHORT", "PDF text content is empty"
        return None

    @staticmethod
    def _fail(artifact: DeliverableArtifact, code: str, message: str) -> DeliverableArtifact:
        logger.warning(
            "artifact_validation_failed",
            extra={
                "event": "artifact_validation_failed",
                "artifact_id": artifact.artifact_id,
                "error_code": code,
                "error": message,
            },
        )
        return artifact.model_copy(
            update={
                "status": "failed",
                "error_code": code,
                "error_message": message,
                "validated_at": datetime.now(timezone.utc),
                "signed_url": None,
            }
        )
