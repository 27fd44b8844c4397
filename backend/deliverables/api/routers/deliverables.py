from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response

from deliverables.api.contracts import (
    AssignmentTextRequest,
    DeliverableResponse,
    LintRequest,
    SanitizeResponse,
    StructureResponse,
)
from deliverables.api.services.runtime import ArtifactRegistry, PipelineGetter, require_artifact
from deliverables.artifacts import DeliverableArtifact, GateResult, can_download
from deliverables.classify import classify_assignment
from deliverables.composer import deliverable_text
from deliverables.config import settings
from deliverables.formatting import detect_citation_style, infer_formatting
from deliverables.lint import BANNED_TOKENS_VERSION, get_banned_tokens, lint_deliverable_text
from deliverables.models import ContextDocument
from deliverables.parsers import ParserRegistry
from deliverables.pipeline import PipelineRequest
from deliverables.sanitize import html_to_text, sanitize_assignment, sanitize_lines
from deliverables.storage import LOCAL_SIGNED_PREFIX
from deliverables.structure import extract_prompt_structure, iter_prompt_labels


def build_deliverables_router(*, get_pipeline: PipelineGetter, registry: ArtifactRegistry) -> APIRouter:
    router = APIRouter()
    parsers = ParserRegistry()

    @router.post("/assignments/sanitize")
    def sanitize_endpoint(payload: AssignmentTextRequest) -> SanitizeResponse:
        clean = sanitize_assignment(payload.assignment, title=payload.title, course=payload.course)
        return SanitizeResponse(
            title=clean.title,
            course=clean.course,
            prompts=list(clean.prompts),
            constraints=list(clean.constraints),
            rubric=list(clean.rubric),
            assignment_type=classify_assignment(clean),
        )

    @router.post("/assignments/structure")
    def structure_endpoint(payload: AssignmentTextRequest) -> StructureResponse:
        text = sanitize_lines(html_to_text(payload.assignment))
        items = extract_prompt_structure(text)
        return StructureResponse(
            items=items,
            labels=iter_prompt_labels(items),
            formatting=infer_formatting(text),
            citation_style=detect_citation_style(text),
        )

    @router.post("/contexts/parse")
    async def parse_context(file: UploadFile = File(...)) -> ContextDocument:
        safe_name = Path(file.filename or "context.txt").name or "context.txt"
        content = await file.read(settings.max_context_file_bytes + 1)
        if len(content) > settings.max_context_file_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File '{safe_name}' exceeds max size of {settings.max_context_file_bytes} bytes.",
            )
        return parsers.to_context_document(
            content=content,
            file_name=safe_name,
            content_type=file.content_type or "application/octet-stream",
        )

    @router.post("/deliverables")
    async def create_deliverable(payload: PipelineRequest) -> DeliverableResponse:
        if len(payload.contexts) > settings.max_context_files:
            raise HTTPException(
                status_code=413,
                detail=f"Too many context documents (max {settings.max_context_files}).",
            )
        result = await get_pipeline().run(payload)
        for artifact in result.artifacts:
            registry.put(artifact)

        if result.document is not None:
            document = result.document
            return DeliverableResponse(
                job_id=result.job_id,
                assignment_type=result.assignment_type,
                title=document.title,
                content=document.content,
                citation_style=document.citation_style,
                references=document.references,
                references_require_sources=document.references_require_sources,
                artifacts=result.artifacts,
            )
        deliverable = result.deliverable
        return DeliverableResponse(
            job_id=result.job_id,
            assignment_type=result.assignment_type,
            title=deliverable.title,
            content=deliverable_text(deliverable),
            references=deliverable.references,
            artifacts=result.artifacts,
        )

    @router.post("/deliverables/lint")
    def lint_endpoint(payload: LintRequest) -> dict[str, str]:
        return {"text": lint_deliverable_text(payload.text)}

    @router.get("/lint/banned-tokens")
    def banned_tokens() -> dict[str, object]:
        return {"version": BANNED_TOKENS_VERSION, "tokens": get_banned_tokens()}

    @router.get("/artifacts/{artifact_id}")
    def get_artifact(artifact_id: str) -> DeliverableArtifact:
        return require_artifact(registry, artifact_id)

    @router.post("/artifacts/{artifact_id}/validate")
    def validate_artifact(artifact_id: str) -> DeliverableArtifact:
        artifact = require_artifact(registry, artifact_id)
        return registry.put(get_pipeline().validator.validate(artifact))

    @router.get("/artifacts/{artifact_id}/gate")
    def artifact_gate(artifact_id: str) -> GateResult:
        return can_download(registry.get(artifact_id))

    @router.get("/artifacts/{artifact_id}/download", response_model=None)
    def download_artifact(artifact_id: str) -> Response:
        artifact = registry.get(artifact_id)
        gate = can_download(artifact)
        if not gate.can_download:
            return JSONResponse(status_code=409, content=gate.model_dump())

        signed_url = artifact.signed_url or ""
        if not signed_url.startswith(LOCAL_SIGNED_PREFIX):
            return RedirectResponse(signed_url, status_code=307)

        content = get_pipeline().storage.resolve_signed_url(signed_url)
        if content is None:
            return JSONResponse(
                status_code=409,
                content=GateResult(can_download=False, reason="signed_url_expired").model_dump(),
            )
        return Response(
            content=content,
            media_type=artifact.mime,
            headers={"Content-Disposition": f'attachment; filename="deliverable-{artifact.artifact_id}.{artifact.type}"'},
        )

    return router
