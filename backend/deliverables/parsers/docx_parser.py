from __future__ import annotations

import io
from pathlib import Path

from deliverables.parsers.base import ParseResult, ParsedPage

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class DocxDocumentParser:
    """Reads context uploads and rendered artifacts alike; keeps Title/Heading paragraphs apart."""

    parser_id = "docx"
    _CONTENT_TYPES = {DOCX_MIME, "application/msword"}

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if content_type.lower() in self._CONTENT_TYPES:
            return True
        return Path(file_name).suffix.lower() == ".docx"

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        try:
            from docx import Document
        except ImportError:
            return ParseResult(
                parser_id=self.parser_id,
                pages=[],
                text_extractable=True,
                error="python-docx is not installed",
            )

        try:
            document = Document(io.BytesIO(content))
            lines: list[str] = []
            title: str | None = None
            headings: list[str] = []

            for paragraph in document.paragraphs:
                text = "\n".join(" ".join(part.split()) for part in paragraph.text.splitlines()).strip()
                style_name = paragraph.style.name if paragraph.style is not None else ""
                if style_name == "Title" and title is None:
                    title = text
                elif style_name.startswith("Heading"):
                    headings.append(text)
                if text:
                    lines.append(text)

            for table in document.tables:
                for row in table.rows:
                    cell_values = [" ".join(cell.text.split()).strip() for cell in row.cells]
                    row_text = " | ".join([value for value in cell_values if value])
                    if row_text:
                        lines.append(row_text)

            joined = "\n".join(lines).strip()
            return ParseResult(
                parser_id=self.parser_id,
                pages=[ParsedPage(page=1, text=joined)] if joined else [],
                text_extractable=True,
                title=title,
                headings=headings,
                paragraph_count=len(document.paragraphs),
            )
        except Exception as exc:
            return ParseResult(
                parser_id=self.parser_id,
                pages=[],
                text_extractable=True,
                error=f"docx parse failed: {exc}",
            )
