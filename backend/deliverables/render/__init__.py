from deliverables.render.base import (
    RenderedDocument,
    RenderingFailure,
    assert_render_clean,
    extract_rendered_text,
)
from deliverables.render.docx_renderer import render_docx
from deliverables.render.pdf_renderer import PdfSurface, ReportLabSurface, build_print_html, render_pdf

__all__ = [
    "PdfSurface",
    "RenderedDocument",
    "RenderingFailure",
    "ReportLabSurface",
    "assert_render_clean",
    "build_print_html",
    "extract_rendered_text",
    "render_docx",
    "render_pdf",
]
