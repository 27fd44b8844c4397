from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
import threading

from docx import Document
import pytest

from deliverables.artifacts import DeliverableArtifact
from deliverables.composer import CompositionFailure
from deliverables.config import Settings
from deliverables.lint import BannedTokenError
from deliverables.models import ContextDocument, SubmissionFormatting
from deliverables.pipeline import DeliverablePipeline, PipelineRequest, error_code_for
from deliverables.render import RenderingFailure, ReportLabSurface
from deliverables.storage import ArtifactStorage, StorageError
from deliverables.validation import ArtifactValidator


def test_document_mode_produces_valid_artifacts(
    local_settings: Settings, source_context: ContextDocument, assignment_html: str
) -> None:
    pipeline = DeliverablePipeline(local_settings)
    request = PipelineRequest(assignment=assignment_html, title="Week 3 Essay", course="ECON 200", contexts=[source_context])

    result = asyncio.run(pipeline.run(request))

    assert result.assignment_type == "deliverable_needed"
    assert result.deliverable is None
    document = result.document
    assert document is not None
    assert document.references_require_sources is False
    assert "1a. " in document.content
    assert "1b. " in document.content
    assert [artifact.type for artifact in result.artifacts] == ["docx", "pdf"]
    for artifact in result.artifacts:
        assert artifact.status == "valid", artifact.error_message
        assert artifact.signed_url is not None
        assert pipeline.storage.get_object(artifact.storage_key)


def test_sections_mode_uses_section_producer(local_settings: Settings, assignment_html: str) -> None:
    def section_producer(clean):
        return {"title": "Crisis Essay", "sections": [{"heading": "Causes", "body": "Leverage rose.."}]}

    pipeline = DeliverablePipeline(local_settings, section_producer=section_producer)
    request = PipelineRequest(assignment=assignment_html, mode="sections", formats=["docx"])

    result = asyncio.run(pipeline.run(request))

    assert result.document is None
    assert result.deliverable is not None
    assert result.deliverable.sections[0].body == "Leverage rose."
    assert [artifact.type for artifact in result.artifacts] == ["docx"]


def test_missing_sources_fail_at_lint(local_settings: Settings, assignment_html: str, caplog) -> None:
    pipeline = DeliverablePipeline(local_settings)
    request = PipelineRequest(assignment=assignment_html)

    with caplog.at_level(logging.INFO, logger="deliverables.pipeline"):
        with pytest.raises(BannedTokenError) as exc_info:
            asyncio.run(pipeline.run(request))

    assert exc_info.value.token == "[SOURCE NEEDED]"
    failed = [record for record in caplog.records if getattr(record, "event", None) == "pipeline_failed"]
    assert failed
    assert failed[-1].stage == "lint"
    assert failed[-1].error_code == "BANNED_TOKEN"
    stages = [record.stage for record in caplog.records if getattr(record, "event", None) == "pipeline_stage_completed"]
    assert stages == ["sanitize", "compose"]


def test_pending_artifacts_when_inline_validation_disabled(
    local_settings: Settings, source_context: ContextDocument, assignment_html: str
) -> None:
    settings = local_settings.model_copy(update={"validate_artifacts_inline": False})
    result = asyncio.run(
        DeliverablePipeline(settings).run(
            PipelineRequest(assignment=assignment_html, contexts=[source_context], formats=["pdf", "pdf"])
        )
    )
    assert [artifact.type for artifact in result.artifacts] == ["pdf"]
    assert result.artifacts[0].status == "pending"
    assert result.artifacts[0].signed_url is None


def test_producer_failure_surfaces_as_composition_failure(
    local_settings: Settings, source_context: ContextDocument, assignment_html: str
) -> None:
    def broken(prompt: str, index: int) -> str:
        raise RuntimeError("throttled")

    pipeline = DeliverablePipeline(local_settings, producer=broken)
    with pytest.raises(CompositionFailure):
        asyncio.run(pipeline.run(PipelineRequest(assignment=assignment_html, contexts=[source_context])))


def test_error_codes() -> None:
    assert error_code_for(CompositionFailure("x")) == "COMPOSITION_FAILED"
    assert error_code_for(BannedTokenError("plagiarism")) == "BANNED_TOKEN"
    assert error_code_for(RenderingFailure("x")) == "RENDER_FAILED"
    assert error_code_for(StorageError("x")) == "STORAGE_FAILED"
    assert error_code_for(ValueError("x")) == "UNKNOWN"


def test_document_mode_drops_boilerplate_between_items(
    local_settings: Settings, source_context: ContextDocument
) -> None:
    assignment = (
        "<p>1. Explain the causes of inflation</p>"
        "<p>Important Reminders: Late homework is not accepted.</p>"
        "<p>2. Discuss one policy response</p>"
    )
    pipeline = DeliverablePipeline(local_settings)

    result = asyncio.run(pipeline.run(PipelineRequest(assignment=assignment, contexts=[source_context])))

    content = result.document.content
    assert "late homework" not in content.lower()
    assert "\n\n1. " in content
    assert "\n\n2. " in content
    assert all(artifact.status == "valid" for artifact in result.artifacts)


def test_sections_mode_renders_with_assignment_formatting(local_settings: Settings) -> None:
    seen: list[SubmissionFormatting] = []

    class RecordingSurface(ReportLabSurface):
        def render(self, html: str, formatting: SubmissionFormatting, *, title: str) -> bytes:
            seen.append(formatting)
            return super().render(html, formatting, title=title)

    def section_producer(clean):
        return {"title": "Policy Memo", "sections": [{"heading": "Response", "body": "Rates rose."}]}

    pipeline = DeliverablePipeline(local_settings, section_producer=section_producer, surface=RecordingSurface())
    request = PipelineRequest(
        assignment="<p>Write a memo on monetary policy.</p><p>Use Arial 11pt, single-spaced.</p>",
        mode="sections",
    )

    result = asyncio.run(pipeline.run(request))

    docx_artifact = next(artifact for artifact in result.artifacts if artifact.type == "docx")
    normal = Document(io.BytesIO(pipeline.storage.get_object(docx_artifact.storage_key))).styles["Normal"]
    assert normal.font.name == "Arial"
    assert normal.font.size.pt == 11
    assert normal.paragraph_format.line_spacing == 1.0
    assert [(entry.font_family, entry.font_size, entry.line_spacing) for entry in seen] == [("Arial", 11, 1.0)]


def test_cancelled_run_stores_nothing_and_logs(
    local_settings: Settings, source_context: ContextDocument, assignment_html: str, caplog
) -> None:
    async def scenario() -> None:
        started = asyncio.Event()

        async def slow(prompt: str, index: int) -> str:
            started.set()
            await asyncio.sleep(30)
            return "late"

        pipeline = DeliverablePipeline(local_settings, producer=slow)
        task = asyncio.create_task(
            pipeline.run(PipelineRequest(assignment=assignment_html, contexts=[source_context]), job_id="job-cancel")
        )
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    with caplog.at_level(logging.INFO, logger="deliverables.pipeline"):
        asyncio.run(scenario())

    assert not any(Path(local_settings.storage_root).rglob("*"))
    cancelled = [record for record in caplog.records if getattr(record, "event", None) == "pipeline_cancelled"]
    assert len(cancelled) == 1
    assert cancelled[0].job_id == "job-cancel"
    assert cancelled[0].stage == "compose"


def test_store_and_validate_run_off_the_event_loop(
    local_settings: Settings, source_context: ContextDocument, assignment_html: str
) -> None:
    loop_thread = threading.get_ident()
    calls: list[tuple[str, int]] = []

    class RecordingStorage(ArtifactStorage):
        def put_object(self, content: bytes, extension: str) -> str:
            calls.append(("store", threading.get_ident()))
            return super().put_object(content, extension)

    class RecordingValidator(ArtifactValidator):
        def validate(self, artifact: DeliverableArtifact) -> DeliverableArtifact:
            calls.append(("validate", threading.get_ident()))
            return super().validate(artifact)

    storage = RecordingStorage(local_settings)
    pipeline = DeliverablePipeline(local_settings, storage=storage, validator=RecordingValidator(storage))

    result = asyncio.run(pipeline.run(PipelineRequest(assignment=assignment_html, contexts=[source_context])))

    assert all(artifact.status == "valid" for artifact in result.artifacts)
    assert [name for name, _ in calls] == ["store", "store", "validate", "validate"]
    assert all(thread_id != loop_thread for _, thread_id in calls)
