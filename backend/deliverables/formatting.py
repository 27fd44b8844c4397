from __future__ import annotations

import re

from deliverables.models import DEFAULT_FORMATTING, CitationStyle, SubmissionFormatting

FONT_PATTERN = re.compile(r"(Times New Roman|Calibri|Arial|Cambria|Georgia)", flags=re.IGNORECASE)
FONT_CANONICAL_NAMES = {
    "times new roman": "Times New Roman",
    "calibri": "Calibri",
    "arial": "Arial",
    "cambria": "Cambria",
    "georgia": "Georgia",
}

FONT_SIZE_PATTERN = re.compile(r"(\d{2})\s?(?:pt|point)", flags=re.IGNORECASE)
FONT_SIZE_RANGE = (8, 18)

# First matching row wins.
LINE_SPACING_RULES: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"double[-\s]?spaced", flags=re.IGNORECASE), 2.0),
    (re.compile(r"1\.?5\s?spacing", flags=re.IGNORECASE), 1.5),
    (re.compile(r"single[-\s]?spaced", flags=re.IGNORECASE), 1.0),
)

HEADER_BLOCK_PATTERN = re.compile(r"(Name|Course|Instructor|Date):", flags=re.IGNORECASE)

CITATION_STYLE_RULES: tuple[tuple[re.Pattern[str], CitationStyle], ...] = (
    (re.compile(r"MLA", flags=re.IGNORECASE), "mla9"),
    (re.compile(r"Chicago", flags=re.IGNORECASE), "chicago"),
)
DEFAULT_CITATION_STYLE: CitationStyle = "apa7"


def detect_font(text: str) -> str:
    match = FONT_PATTERN.search(text)
    if match:
        return FONT_CANONICAL_NAMES[match.group(1).lower()]
    return DEFAULT_FORMATTING.font_family


def detect_font_size(text: str) -> int:
    match = FONT_SIZE_PATTERN.search(text)
    if match:
        size = int(match.group(1))
        low, high = FONT_SIZE_RANGE
        if low <= size <= high:
            return size
    return DEFAULT_FORMATTING.font_size


def detect_line_spacing(text: str) -> float:
    for pattern, spacing in LINE_SPACING_RULES:
        if pattern.search(text):
            return spacing
    return DEFAULT_FORMATTING.line_spacing


def detect_header_block(text: str) -> bool:
    return HEADER_BLOCK_PATTERN.search(text) is not None


def detect_citation_style(text: str) -> CitationStyle:
    for pattern, style in CITATION_STYLE_RULES:
        if pattern.search(text):
            return style
    return DEFAULT_CITATION_STYLE


def infer_formatting(text: str) -> SubmissionFormatting:
    return SubmissionFormatting(
        font_family=detect_font(text),
        font_size=detect_font_size(text),
        line_spacing=detect_line_spacing(text),
        margin_inches=DEFAULT_FORMATTING.margin_inches,
        include_header_block=detect_header_block(text),
    )
