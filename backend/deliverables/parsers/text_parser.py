from __future__ import annotations

from pathlib import Path

from deliverables.parsers.base import ParseResult, ParsedPage, decode_text
from deliverables.sanitize import html_to_text


TEXT_FILE_EXTENSIONS = {".txt", ".md", ".csv", ".json", ".yaml", ".yml"}
HTML_FILE_EXTENSIONS = {".html", ".htm"}


class HtmlDocumentParser:
    """Assignment pages exported from the course site; markup is dropped, line breaks kept."""

    parser_id = "html"

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if content_type.lower().startswith("text/html"):
            return True
        return Path(file_name).suffix.lower() in HTML_FILE_EXTENSIONS

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        decoded = decode_text(content)
        if decoded is None:
            return ParseResult(parser_id=self.parser_id, pages=[], text_extractable=True, error="html decode failed")
        text = html_to_text(decoded)
        return ParseResult(
            parser_id=self.parser_id,
            pages=[ParsedPage(page=1, text=text)] if text else [],
            text_extractable=True,
        )


class TextDocumentParser:
    parser_id = "text"

    def supports(self, *, file_name: str, content_type: str) -> bool:
        if content_type.startswith("text/"):
            return True
        return Path(file_name).suffix.lower() in TEXT_FILE_EXTENSIONS

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        del file_name, content_type
        text = decode_text(content)
        if text is None:
            return ParseResult(
                parser_id=self.parser_id,
                pages=[],
                text_extractable=True,
                error="text decode failed using utf-8 and latin-1",
            )

        result_pages: list[ParsedPage] = []
        for idx, page_text in enumerate(text.replace("\r\n", "\n").split("\f"), start=1):
            cleaned = page_text.strip()
            if cleaned:
                result_pages.append(ParsedPage(page=idx, text=cleaned))

        return ParseResult(
            parser_id=self.parser_id,
            pages=result_pages,
            text_extractable=True,
        )
