from __future__ import annotations

import io
import logging
import tempfile
from pathlib import Path

from docx import Document
from docx.oxml.ns import qn
from docx.shared import Inches, Pt

from deliverables.lint import BannedTokenError
from deliverables.models import DEFAULT_FORMATTING, Deliverable, SubmissionDocument, SubmissionFormatting
from deliverables.render.base import RenderedDocument, RenderingFailure, document_title, iter_blocks

logger = logging.getLogger("deliverables.render")


def _apply_formatting(document, formatting: SubmissionFormatting) -> None:
    for section in document.sections:
        margin = Inches(formatting.margin_inches)
        section.top_margin = margin
        section.bottom_margin = margin
        section.left_margin = margin
        section.right_margin = margin

    normal = document.styles["Normal"]
    normal.font.name = formatting.font_family
    normal.font.size = Pt(formatting.font_size)
    normal.paragraph_format.line_spacing = formatting.line_spacing
    r_pr = normal.element.get_or_add_rPr()
    r_pr.get_or_add_rFonts().set(qn("w:eastAsia"), formatting.font_family)

    for style_name in ("Title", "Heading 1"):
        style = document.styles[style_name]
        style.font.name = formatting.font_family


def _add_body(document, text: str) -> None:
    paragraph = document.add_paragraph()
    lines = text.split("\n")
    for index, line in enumerate(lines):
        run = paragraph.add_run(line)
        if index < len(lines) - 1:
            run.add_break()


def render_docx(
    document: Deliverable | SubmissionDocument,
    formatting: SubmissionFormatting | None = None,
    *,
    out_path: str | Path | None = None,
    write_temp: bool = False,
) -> RenderedDocument:
    if formatting is None:
        formatting = document.formatting if isinstance(document, SubmissionDocument) else DEFAULT_FORMATTING

    try:
        package = Document()
        _apply_formatting(package, formatting)
        package.core_properties.title = document_title(document)

        for kind, text in iter_blocks(document):
            if kind == "title":
                package.add_paragraph(text, style="Title")
            elif kind == "heading":
                package.add_heading(text, level=1)
            else:
                _add_body(package, text)

        buffer = io.BytesIO()
        package.save(buffer)
        content = buffer.getvalue()
        paragraph_count = len(package.paragraphs)
    except BannedTokenError:
        raise
    except Exception as exc:
        raise RenderingFailure(f"docx render failed: {exc}") from exc

    target: Path | None = None
    if out_path is not None or write_temp:
        target = Path(out_path) if out_path is not None else Path(tempfile.mkdtemp(prefix="deliverable-docx-")) / "deliverable.docx"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise RenderingFailure(f"docx write failed at '{target}': {exc}") from exc

    logger.info(
        "docx_rendered",
        extra={"event": "docx_rendered", "bytes": len(content), "paragraph_count": paragraph_count},
    )
    return RenderedDocument(type="docx", content=content, paragraph_count=paragraph_count, path=target)
