from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal

from deliverables.artifacts import MIME_BY_TYPE
from deliverables.composer import REFERENCES_HEADING
from deliverables.lint import lint_deliverable_text
from deliverables.models import Deliverable, SubmissionDocument
from deliverables.parsers import ParserRegistry

ArtifactType = Literal["docx", "pdf"]
BlockKind = Literal["title", "heading", "body"]


class RenderingFailure(RuntimeError):
    """Raised when a document could not be serialized to bytes."""


@dataclass(frozen=True)
class RenderedDocument:
    type: ArtifactType
    content: bytes
    paragraph_count: int
    path: Path | None = None

    @property
    def mime(self) -> str:
        return MIME_BY_TYPE[self.type]

    @property
    def size(self) -> int:
        return len(self.content)


def iter_blocks(document: Deliverable | SubmissionDocument) -> Iterator[tuple[BlockKind, str]]:
    """Yield linted (kind, text) blocks in reading order.

    Renderers only ever write what this yields, plus nothing else.
    """
    if isinstance(document, SubmissionDocument):
        title_emitted = False
        for block in document.content.split("\n\n"):
            text = block.strip()
            if not text:
                continue
            if not title_emitted and text == document.title:
                title_emitted = True
                yield "title", lint_deliverable_text(text)
            elif text == REFERENCES_HEADING:
                yield "heading", text
            else:
                yield "body", lint_deliverable_text(text)
        return

    yield "title", lint_deliverable_text(document.title)
    for section in document.sections:
        yield "heading", lint_deliverable_text(section.heading)
        for block in section.body.split("\n\n"):
            if block.strip():
                yield "body", lint_deliverable_text(block.strip())
    if document.references:
        yield "heading", REFERENCES_HEADING
        for reference in document.references:
            yield "body", lint_deliverable_text(reference)


def document_title(document: Deliverable | SubmissionDocument) -> str:
    return lint_deliverable_text(document.title)


def extract_rendered_text(rendered: RenderedDocument, registry: ParserRegistry | None = None) -> str:
    result = (registry or ParserRegistry()).parse(
        content=rendered.content,
        file_name=f"deliverable.{rendered.type}",
        content_type=rendered.mime,
    )
    if result.error:
        raise RenderingFailure(f"Rendered {rendered.type} could not be read back: {result.error}")
    return result.text


def assert_render_clean(rendered: RenderedDocument, registry: ParserRegistry | None = None) -> str:
    """Re-lint the text extracted from rendered bytes; raises BannedTokenError on a hit."""
    return lint_deliverable_text(extract_rendered_text(rendered, registry))
