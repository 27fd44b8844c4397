from __future__ import annotations

from deliverables.models import ContextDocument
from deliverables.parsers.base import DocumentParser, ParseResult
from deliverables.parsers.docx_parser import DocxDocumentParser
from deliverables.parsers.pdf_parser import PdfDocumentParser
from deliverables.parsers.rtf_parser import RtfDocumentParser
from deliverables.parsers.text_parser import HtmlDocumentParser, TextDocumentParser


class ContextParseError(ValueError):
    """Raised when an uploaded context file yields no readable text."""


class ParserRegistry:
    def __init__(self, parsers: list[DocumentParser] | None = None) -> None:
        self._parsers = parsers or [
            PdfDocumentParser(),
            DocxDocumentParser(),
            RtfDocumentParser(),
            HtmlDocumentParser(),
            TextDocumentParser(),
        ]

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        for parser in self._parsers:
            if not parser.supports(file_name=file_name, content_type=content_type):
                continue
            return parser.parse(content=content, file_name=file_name, content_type=content_type)
        return ParseResult(
            parser_id="none",
            pages=[],
            text_extractable=False,
            error="No parser registered for this file type.",
        )

    def to_context_document(self, *, content: bytes, file_name: str, content_type: str) -> ContextDocument:
        result = self.parse(content=content, file_name=file_name, content_type=content_type)
        if result.error:
            raise ContextParseError(f"{file_name}: {result.error}")
        return ContextDocument(file_name=file_name, content=result.text)
