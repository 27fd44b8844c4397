from __future__ import annotations

from html import escape
import io
import logging
import re
from typing import Protocol

from deliverables.lint import BannedTokenError
from deliverables.models import DEFAULT_FORMATTING, Deliverable, SubmissionDocument, SubmissionFormatting
from deliverables.render.base import RenderedDocument, RenderingFailure, document_title, iter_blocks

logger = logging.getLogger("deliverables.render")

_TAG_BY_KIND = {"title": "h1", "heading": "h2", "body": "p"}
_PRINT_BLOCK_PATTERN = re.compile(r"<(h1|h2|p)>(.*?)</\1>", flags=re.DOTALL)

# Base-14 faces only, so rendering needs no font files on the host.
_SERIF_FACES = ("Times-Roman", "Times-Bold")
_SANS_FACES = ("Helvetica", "Helvetica-Bold")
_PDF_FACES = {
    "Times New Roman": _SERIF_FACES,
    "Georgia": _SERIF_FACES,
    "Cambria": _SERIF_FACES,
    "Arial": _SANS_FACES,
    "Calibri": _SANS_FACES,
}


class PdfSurface(Protocol):
    """Host capability that turns print HTML into PDF bytes."""

    def render(self, html: str, formatting: SubmissionFormatting, *, title: str) -> bytes:
        ...


def build_print_html(document: Deliverable | SubmissionDocument, formatting: SubmissionFormatting) -> tuple[str, int]:
    blocks: list[str] = []
    for kind, text in iter_blocks(document):
        tag = _TAG_BY_KIND[kind]
        inner = "<br/>".join(escape(line, quote=False) for line in text.split("\n"))
        blocks.append(f"<{tag}>{inner}</{tag}>")

    head = (
        "<head><meta charset=\"utf-8\"/>"
        f"<title>{escape(document_title(document), quote=False)}</title>"
        "<style>"
        f"body {{ font-family: '{formatting.font_family}'; font-size: {formatting.font_size}pt; "
        f"line-height: {formatting.line_spacing}; margin: {formatting.margin_inches}in; }}"
        "</style></head>"
    )
    return f"<!DOCTYPE html><html>{head}<body>{''.join(blocks)}</body></html>", len(blocks)


class ReportLabSurface:
    """Off-screen surface backed by ReportLab platypus; understands the print HTML subset above."""

    def render(self, html: str, formatting: SubmissionFormatting, *, title: str) -> bytes:
        try:
            from reportlab.lib.enums import TA_CENTER
            from reportlab.lib.pagesizes import LETTER
            from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
            from reportlab.lib.units import inch
            from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer
        except ImportError as exc:
            raise RenderingFailure("reportlab is required for PDF rendering.") from exc

        regular, bold = _PDF_FACES.get(formatting.font_family, _SERIF_FACES)
        size = formatting.font_size
        styles = getSampleStyleSheet()
        body = ParagraphStyle(
            "DeliverableBody",
            parent=styles["BodyText"],
            fontName=regular,
            fontSize=size,
            leading=size * 1.2 * formatting.line_spacing,
        )
        heading = ParagraphStyle(
            "DeliverableHeading",
            parent=styles["Heading2"],
            fontName=bold,
            fontSize=size + 2,
            leading=(size + 2) * 1.2,
            spaceBefore=size,
        )
        title_style = ParagraphStyle(
            "DeliverableTitle",
            parent=styles["Title"],
            fontName=bold,
            fontSize=size + 8,
            leading=(size + 8) * 1.2,
            alignment=TA_CENTER,
        )
        style_by_tag = {"h1": title_style, "h2": heading, "p": body}

        buffer = io.BytesIO()
        margin = formatting.margin_inches * inch
        template = SimpleDocTemplate(
            buffer,
            pagesize=LETTER,
            leftMargin=margin,
            rightMargin=margin,
            topMargin=margin,
            bottomMargin=margin,
            title=title,
        )
        story = []
        for match in _PRINT_BLOCK_PATTERN.finditer(html):
            story.append(Paragraph(match.group(2), style_by_tag[match.group(1)]))
            story.append(Spacer(1, size * 0.5))
        if not story:
            raise RenderingFailure("print HTML contained no renderable blocks.")
        template.build(story)
        return buffer.getvalue()


def render_pdf(
    document: Deliverable | SubmissionDocument,
    formatting: SubmissionFormatting | None = None,
    *,
    surface: PdfSurface | None = None,
) -> RenderedDocument:
    if formatting is None:
        formatting = document.formatting if isinstance(document, SubmissionDocument) else DEFAULT_FORMATTING

    html, block_count = build_print_html(document, formatting)
    surface = surface or ReportLabSurface()
    try:
        content = surface.render(html, formatting, title=document_title(document))
    except (BannedTokenError, RenderingFailure):
        raise
    except Exception as exc:
        raise RenderingFailure(f"pdf render failed: {exc}") from exc

    if not content:
        raise RenderingFailure("pdf surface returned no bytes.")

    logger.info(
        "pdf_rendered",
        extra={"event": "pdf_rendered", "bytes": len(content), "paragraph_count": block_count},
    )
    return RenderedDocument(type="pdf", content=content, paragraph_count=block_count)
