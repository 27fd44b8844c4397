from datetime import date

from deliverables.models import ContextDocument
from deliverables.references import SOURCE_NEEDED, derive_references, extract_urls, format_access_date

ACCESSED = date(2024, 3, 5)


def test_no_urls_yields_sentinel() -> None:
    result = derive_references([], "apa7")
    assert result.references == [SOURCE_NEEDED]
    assert result.require_sources is True


def test_apa_reference_starts_with_url_and_ends_with_retrieved_clause() -> None:
    result = derive_references([{"content": "see https://x.edu/a"}], "apa7", accessed=ACCESSED)
    assert result.require_sources is False
    assert len(result.references) == 1
    reference = result.references[0]
    assert reference.startswith("https://x.edu/a")
    assert reference.endswith("Retrieved March 5, 2024.")


def test_access_clause_follows_citation_style() -> None:
    contexts = [ContextDocument(content="Reading: https://example.org/paper.")]
    assert derive_references(contexts, "mla9", accessed=ACCESSED).references == [
        "https://example.org/paper. Accessed March 5, 2024."
    ]
    assert derive_references(contexts, "chicago", accessed=ACCESSED).references == [
        "https://example.org/paper. Accessed on March 5, 2024."
    ]


def test_extract_urls_dedupes_across_contexts() -> None:
    contexts = [
        ContextDocument(content="(https://a.example/one), https://b.example/two;"),
        {"content": "again https://a.example/one"},
    ]
    assert extract_urls(contexts) == ["https://a.example/one", "https://b.example/two"]


def test_format_access_date_has_no_zero_padding() -> None:
    assert format_access_date(date(2025, 1, 9)) == "January 9, 2025"
