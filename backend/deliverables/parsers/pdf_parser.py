from __future__ import annotations

import io
from pathlib import Path

from deliverables.parsers.base import ParseResult, ParsedPage

PDF_MIME = "application/pdf"


class PdfDocumentParser:
    parser_id = "pdf"
    _CONTENT_TYPES = {PDF_MIME}

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if content_type.lower() in self._CONTENT_TYPES:
            return True
        return Path(file_name).suffix.lower() == ".pdf"

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        try:
            from pypdf import PdfReader
        except ImportError:
            return ParseResult(
                parser_id=self.parser_id,
                pages=[],
                text_extractable=True,
                error="pypdf is not installed",
            )

        try:
            reader = PdfReader(io.BytesIO(content), strict=False)
            # Blank pages are kept so page_count matches the document.
            pages = [
                ParsedPage(page=index, text="\n".join(line.strip() for line in (page.extract_text() or "").splitlines() if line.strip()))
                for index, page in enumerate(reader.pages, start=1)
            ]
            title = None
            if reader.metadata is not None and reader.metadata.title:
                title = str(reader.metadata.title)
            return ParseResult(
                parser_id=self.parser_id,
                pages=pages,
                text_extractable=any(page.text for page in pages),
                title=title,
                paragraph_count=sum(len(page.text.splitlines()) for page in pages),
            )
        except Exception as exc:
            return ParseResult(
                parser_id=self.parser_id,
                pages=[],
                text_extractable=True,
                error=f"pdf parse failed: {exc}",
            )
