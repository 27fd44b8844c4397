from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class ParsedPage:
    page: int
    text: str


@dataclass(frozen=True)
class ParseResult:
    parser_id: str
    pages: list[ParsedPage]
    text_extractable: bool
    error: str | None = None
    title: str | None = None
    headings: list[str] = field(default_factory=list)
    paragraph_count: int = 0

    @property
    def text(self) -> str:
        return "\n".join(page.text for page in self.pages).strip()

    @property
    def page_count(self) -> int:
        return len(self.pages)


class DocumentParser(Protocol):
    parser_id: str

    def supports(self, *, file_name: str, content_type: str) -> bool:
        ...

    def parse(self, *, content: bytes, file_name: str, content_type: str) -> ParseResult:
        ...


def decode_text(content: bytes) -> str | None:
    for encoding in ("utf-8", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return None
