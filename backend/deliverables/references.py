from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import re
from typing import Iterable

from deliverables.models import CitationStyle, ContextDocument

# Deliberately also a banned lint token: a sourceless deliverable can never pass lint.
SOURCE_NEEDED = "[SOURCE NEEDED]"

URL_PATTERN = re.compile(r"https?://[^\s)<>\"']+", flags=re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,;:!?]"

ACCESS_CLAUSES: dict[str, str] = {
    "mla9": "Accessed {date}.",
    "chicago": "Accessed on {date}.",
    "apa7": "Retrieved {date}.",
}


@dataclass(frozen=True)
class ReferenceSet:
    references: list[str] = field(default_factory=list)
    require_sources: bool = False


def format_access_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def extract_urls(contexts: Iterable[ContextDocument | dict[str, object]]) -> list[str]:
    seen: dict[str, None] = {}
    for entry in contexts:
        content = entry.get("content", "") if isinstance(entry, dict) else entry.content
        for match in URL_PATTERN.finditer(str(content or "")):
            url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
            if url and url not in seen:
                seen[url] = None
    return list(seen)


def format_reference(url: str, citation_style: CitationStyle, accessed: date) -> str:
    clause = ACCESS_CLAUSES.get(citation_style, ACCESS_CLAUSES["apa7"])
    return f"{url}. {clause.format(date=format_access_date(accessed))}"


def derive_references(
    contexts: Iterable[ContextDocument | dict[str, object]],
    citation_style: CitationStyle,
    *,
    accessed: date | None = None,
) -> ReferenceSet:
    urls = extract_urls(contexts)
    if not urls:
        return ReferenceSet(references=[SOURCE_NEEDED], require_sources=True)

    accessed_on = accessed or date.today()
    return ReferenceSet(
        references=[format_reference(url, citation_style, accessed_on) for url in urls],
        require_sources=False,
    )
