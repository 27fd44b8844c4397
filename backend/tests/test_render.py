from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest

from deliverables.lint import BannedTokenError, get_banned_tokens
from deliverables.models import Deliverable, DeliverableSection, SubmissionDocument, SubmissionFormatting
from deliverables.parsers import DOCX_MIME, PDF_MIME, ParserRegistry
from deliverables.render import (
    RenderingFailure,
    assert_render_clean,
    build_print_html,
    extract_rendered_text,
    render_docx,
    render_pdf,
)


def _submission(content_body: str = "The market cleared.. at last.") -> SubmissionDocument:
    return SubmissionDocument(
        content="\n\n".join(
            [
                "Essay Title",
                "ECON 200",
                f"1. {content_body}\nFinal Answer: shown above.",
                "References",
                "https://a.example/x. Retrieved March 5, 2024.",
            ]
        ),
        formatting=SubmissionFormatting(font_family="Arial", font_size=11, line_spacing=1.5, margin_inches=1.5),
        title="Essay Title",
        citation_style="apa7",
        references=["https://a.example/x. Retrieved March 5, 2024."],
    )


def test_docx_round_trip_keeps_structure_and_lints_text() -> None:
    rendered = render_docx(_submission())
    assert rendered.mime == DOCX_MIME
    assert rendered.content[:4] == b"PK\x03\x04"

    parsed = ParserRegistry().parse(content=rendered.content, file_name="out.docx", content_type=DOCX_MIME)
    assert parsed.error is None
    assert parsed.title == "Essay Title"
    assert parsed.headings == ["References"]
    assert "The market cleared. at last." in parsed.text
    assert ".." not in parsed.text
    assert rendered.paragraph_count == parsed.paragraph_count

    assert assert_render_clean(rendered) == extract_rendered_text(rendered)
    extracted = extract_rendered_text(rendered).lower()
    assert not [token for token in get_banned_tokens() if token.lower() in extracted]


def test_docx_applies_submission_formatting() -> None:
    from docx import Document
    from docx.shared import Inches, Pt

    rendered = render_docx(_submission())
    package = Document(BytesIO(rendered.content))
    normal = package.styles["Normal"]

    assert normal.font.name == "Arial"
    assert normal.font.size == Pt(11)
    assert normal.paragraph_format.line_spacing == 1.5
    assert package.sections[0].left_margin == Inches(1.5)
    assert package.core_properties.title == "Essay Title"


def test_docx_renders_sectioned_deliverable(tmp_path: Path) -> None:
    deliverable = Deliverable(
        title="Lab Report",
        sections=[
            DeliverableSection(heading="Method", body="We measured twice.\n\nThen we compared."),
            DeliverableSection(heading="Result", body="The values agreed."),
        ],
        references=["Course notes, week 2."],
    )
    out_path = tmp_path / "nested" / "report.docx"
    rendered = render_docx(deliverable, out_path=out_path)

    assert rendered.path == out_path
    assert out_path.read_bytes() == rendered.content
    parsed = ParserRegistry().parse(content=rendered.content, file_name="report.docx", content_type=DOCX_MIME)
    assert parsed.title == "Lab Report"
    assert parsed.headings == ["Method", "Result", "References"]


def test_renderers_refuse_banned_content() -> None:
    document = _submission("See canvas.gmu.edu for the rubric")
    with pytest.raises(BannedTokenError):
        render_docx(document)
    with pytest.raises(BannedTokenError):
        render_pdf(document)


def test_print_html_escapes_markup() -> None:
    html, block_count = build_print_html(_submission("compare a < b & c"), SubmissionFormatting())
    assert "compare a &lt; b &amp; c" in html
    assert "<h1>Essay Title</h1>" in html
    assert "<h2>References</h2>" in html
    assert block_count == 5


def test_pdf_render_with_reportlab_is_readable() -> None:
    rendered = render_pdf(_submission())
    assert rendered.mime == PDF_MIME
    assert rendered.content.startswith(b"%PDF")

    parsed = ParserRegistry().parse(content=rendered.content, file_name="out.pdf", content_type=PDF_MIME)
    assert parsed.error is None
    assert parsed.page_count >= 1
    assert parsed.title == "Essay Title"
    assert "Essay Title" in parsed.text
    assert "References" in parsed.text
    assert ".." not in assert_render_clean(rendered)


def test_pdf_surface_failures_become_rendering_failures() -> None:
    class BrokenSurface:
        def render(self, html: str, formatting: SubmissionFormatting, *, title: str) -> bytes:
            raise ValueError("surface crashed")

    class EmptySurface:
        def render(self, html: str, formatting: SubmissionFormatting, *, title: str) -> bytes:
            return b""

    with pytest.raises(RenderingFailure):
        render_pdf(_submission(), surface=BrokenSurface())
    with pytest.raises(RenderingFailure):
        render_pdf(_submission(), surface=EmptySurface())
