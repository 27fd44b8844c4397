from deliverables.parsers.base import ParseResult, ParsedPage
from deliverables.parsers.docx_parser import DOCX_MIME
from deliverables.parsers.pdf_parser import PDF_MIME
from deliverables.parsers.registry import ContextParseError, ParserRegistry
from deliverables.parsers.text_parser import TEXT_FILE_EXTENSIONS

__all__ = [
    "ContextParseError",
    "DOCX_MIME",
    "PDF_MIME",
    "ParseResult",
    "ParsedPage",
    "ParserRegistry",
    "TEXT_FILE_EXTENSIONS",
]
