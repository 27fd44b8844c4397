from __future__ import annotations

import asyncio
import logging
import time
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from deliverables.artifacts import DeliverableArtifact, create_pending_artifact
from deliverables.classify import AssignmentType, classify_assignment
from deliverables.composer import CompositionFailure, build_submission_document, compose_deliverable
from deliverables.config import Settings
from deliverables.formatting import infer_formatting
from deliverables.lint import BannedTokenError, lint_deliverable, lint_submission_document
from deliverables.models import (
    AttachmentLink,
    ContextDocument,
    Deliverable,
    SubmissionDocument,
    SubmissionFormatting,
)
from deliverables.producers import (
    BedrockTextProducer,
    SectionProducer,
    TemplateSectionProducer,
    TextProducer,
    build_text_producer,
)
from deliverables.render import PdfSurface, RenderedDocument, RenderingFailure, assert_render_clean, render_docx, render_pdf
from deliverables.sanitize import html_to_text, sanitize_assignment, sanitize_lines
from deliverables.storage import ArtifactStorage, StorageError
from deliverables.validation import ArtifactValidator

logger = logging.getLogger("deliverables.pipeline")

ERROR_CODES: tuple[tuple[type[Exception], str], ...] = (
    (CompositionFailure, "COMPOSITION_FAILED"),
    (BannedTokenError, "BANNED_TOKEN"),
    (RenderingFailure, "RENDER_FAILED"),
    (StorageError, "STORAGE_FAILED"),
)


def error_code_for(exc: BaseException) -> str:
    for error_type, code in ERROR_CODES:
        if isinstance(exc, error_type):
            return code
    return "UNKNOWN"


class PipelineRequest(BaseModel):
    assignment: str = Field(..., min_length=1)
    title: str | None = Field(default=None, max_length=300)
    course: str | None = Field(default=None, max_length=300)
    due_text: str | None = Field(default=None, max_length=120)
    assignment_url: str | None = None
    contexts: list[ContextDocument] = Field(default_factory=list)
    attachments: list[AttachmentLink] = Field(default_factory=list)
    mode: Literal["document", "sections"] = "document"
    formats: list[Literal["docx", "pdf"]] = Field(default_factory=lambda: ["docx", "pdf"], min_length=1)


class PipelineResult(BaseModel):
    job_id: str
    assignment_type: AssignmentType
    document: SubmissionDocument | None = None
    deliverable: Deliverable | None = None
    artifacts: list[DeliverableArtifact] = Field(default_factory=list)


def build_section_producer(text_producer: TextProducer | None = None) -> SectionProducer:
    if isinstance(text_producer, BedrockTextProducer):
        return text_producer.generate_sections
    return TemplateSectionProducer()


class DeliverablePipeline:
    def __init__(
        self,
        settings: Settings,
        *,
        producer: TextProducer | None = None,
        section_producer: SectionProducer | None = None,
        storage: ArtifactStorage | None = None,
        surface: PdfSurface | None = None,
        validator: ArtifactValidator | None = None,
    ) -> None:
        self._settings = settings
        self._producer = producer or build_text_producer(settings)
        self._section_producer = section_producer or build_section_producer(self._producer)
        self._storage = storage or ArtifactStorage(settings)
        self._surface = surface
        self._validator = validator or ArtifactValidator(self._storage)

    @property
    def storage(self) -> ArtifactStorage:
        return self._storage

    @property
    def validator(self) -> ArtifactValidator:
        return self._validator

    async def run(self, request: PipelineRequest, *, job_id: str | None = None) -> PipelineResult:
        job_id = job_id or f"deliverables-{uuid4()}"
        started = time.perf_counter()
        stage = "sanitize"
        try:
            stage_started = time.perf_counter()
            clean = sanitize_assignment(request.assignment, title=request.title, course=request.course)
            assignment_type = classify_assignment(clean)
            self._log_stage(job_id, stage, stage_started, prompt_count=len(clean.prompts), assignment_type=assignment_type)

            stage = "compose"
            stage_started = time.perf_counter()
            assignment_text = sanitize_lines(html_to_text(request.assignment))
            document: SubmissionDocument | None = None
            deliverable: Deliverable | None = None
            if request.mode == "sections":
                deliverable = await compose_deliverable(clean, self._section_producer)
            else:
                contexts = [
                    ContextDocument(file_name="assignment", content=assignment_text),
                    *request.contexts,
                ]
                document = await build_submission_document(
                    contexts=contexts,
                    producer=self._producer,
                    assignment_name=request.title,
                    course_name=request.course,
                    due_text=request.due_text,
                    assignment_url=request.assignment_url,
                    attachments=request.attachments,
                    concurrency=self._settings.composition_concurrency,
                )
            self._log_stage(job_id, stage, stage_started)

            stage = "lint"
            stage_started = time.perf_counter()
            if document is not None:
                document = lint_submission_document(document)
            if deliverable is not None:
                deliverable = lint_deliverable(deliverable)
            self._log_stage(job_id, stage, stage_started)

            stage = "render"
            stage_started = time.perf_counter()
            if document is not None:
                target, formatting = document, document.formatting
            else:
                target, formatting = deliverable, infer_formatting(assignment_text)
            rendered: list[RenderedDocument] = []
            for artifact_type in dict.fromkeys(request.formats):
                output = await asyncio.to_thread(self._render, artifact_type, target, formatting)
                rendered.append(output)
            self._log_stage(job_id, stage, stage_started, artifact_count=len(rendered))

            stage = "store"
            stage_started = time.perf_counter()
            artifacts = [await asyncio.to_thread(self._store, output) for output in rendered]
            self._log_stage(job_id, stage, stage_started)

            if self._settings.validate_artifacts_inline:
                stage = "validate"
                stage_started = time.perf_counter()
                artifacts = [await asyncio.to_thread(self._validator.validate, artifact) for artifact in artifacts]
                self._log_stage(
                    job_id,
                    stage,
                    stage_started,
                    statuses=[artifact.status for artifact in artifacts],
                )
        except asyncio.CancelledError:
            logger.warning("pipeline_cancelled", extra={"event": "pipeline_cancelled", "job_id": job_id, "stage": stage})
            raise
        except Exception as exc:
            logger.warning(
                "pipeline_failed",
                extra={
                    "event": "pipeline_failed",
                    "job_id": job_id,
                    "stage": stage,
                    "error_code": error_code_for(exc),
                    "error": str(exc),
                },
            )
            raise

        logger.info(
            "pipeline_completed",
            extra={
                "event": "pipeline_completed",
                "job_id": job_id,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                "artifact_ids": [artifact.artifact_id for artifact in artifacts],
            },
        )
        return PipelineResult(
            job_id=job_id,
            assignment_type=assignment_type,
            document=document,
            deliverable=deliverable,
            artifacts=artifacts,
        )

    def _render(
        self,
        artifact_type: str,
        target: Deliverable | SubmissionDocument,
        formatting: SubmissionFormatting,
    ) -> RenderedDocument:
        if artifact_type == "docx":
            output = render_docx(target, formatting)
        else:
            output = render_pdf(target, formatting, surface=self._surface)
        assert_render_clean(output)
        return output

    def _store(self, output: RenderedDocument) -> DeliverableArtifact:
        key = self._storage.put_object(output.content, output.type)
        return create_pending_artifact(output.type, output.content, key, paragraph_count=output.paragraph_count)

    @staticmethod
    def _log_stage(job_id: str, stage: str, stage_started: float, **fields: object) -> None:
        logger.info(
            "pipeline_stage_completed",
            extra={
                "event": "pipeline_stage_completed",
                "job_id": job_id,
                "stage": stage,
                "latency_ms": round((time.perf_counter() - stage_started) * 1000, 2),
                **fields,
            },
        )
