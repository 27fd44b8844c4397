from __future__ import annotations

import html
import re

from deliverables.models import CleanInput

DROP_HEADINGS = (
    "Important Reminders",
    "Late homework",
    "Plagiarism",
    "Submission format",
    "Please submit this as a PDF",
    "Department Chair",
)

MAX_LINE_CHARS = 1200

_SCRIPT_PATTERN = re.compile(r"<script[\s\S]*?</script>", flags=re.IGNORECASE)
_STYLE_PATTERN = re.compile(r"<style[\s\S]*?</style>", flags=re.IGNORECASE)
_TAG_PATTERN = re.compile(r"<[^>]+>")
_LINE_SPLIT_PATTERN = re.compile(r"\n|\. ?\n?")
_BLOCK_BREAK_PATTERN = re.compile(r"<\s*(?:br|/p|/li|/div|/h[1-6]|/tr)\b[^>]*>", flags=re.IGNORECASE)

RUBRIC_PATTERNS = (
    re.compile(r"^rubric:?", flags=re.IGNORECASE),
    re.compile(r"meets? the expectation", flags=re.IGNORECASE),
)

CONSTRAINT_PATTERNS = (
    re.compile(r"\b\d+\s*(?:-\s*)?(?:words?|pages?)\b", flags=re.IGNORECASE),
    re.compile(r"\b(?:double|single)[-\s]?spaced\b", flags=re.IGNORECASE),
    re.compile(r"\bfont\b", flags=re.IGNORECASE),
    re.compile(r"\b(?:APA|MLA|Chicago)\b"),
)


def normalize_text(value: str) -> str:
    return " ".join(value.split()).strip()


def strip_html(raw: str) -> str:
    text = _SCRIPT_PATTERN.sub("", raw or "")
    text = _STYLE_PATTERN.sub("", text)
    text = _TAG_PATTERN.sub(" ", text)
    return normalize_text(text)


def html_to_text(raw: str) -> str:
    """Like strip_html, but block-level breaks survive as newlines so outlines keep their lines."""
    text = _SCRIPT_PATTERN.sub("", raw or "")
    text = _STYLE_PATTERN.sub("", text)
    text = _BLOCK_BREAK_PATTERN.sub("\n", text)
    text = _TAG_PATTERN.sub(" ", text)
    text = html.unescape(text)
    lines = [normalize_text(line) for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _is_boilerplate(line: str) -> bool:
    lowered = line.lower()
    return any(heading.lower() in lowered for heading in DROP_HEADINGS)


def sanitize_lines(text: str) -> str:
    """Drop boilerplate and overlong lines while keeping the remaining lines in order."""
    kept = [
        line
        for line in (normalize_text(raw) for raw in text.splitlines())
        if line and len(line) < MAX_LINE_CHARS and not _is_boilerplate(line)
    ]
    return "\n".join(kept)


def _is_rubric(line: str) -> bool:
    return any(pattern.search(line) for pattern in RUBRIC_PATTERNS)


def _is_constraint(line: str) -> bool:
    return any(pattern.search(line) for pattern in CONSTRAINT_PATTERNS)


def sanitize_assignment(raw: str, *, title: str | None = None, course: str | None = None) -> CleanInput:
    text = strip_html(raw)
    lines = [segment.strip() for segment in _LINE_SPLIT_PATTERN.split(text)]

    keep = [
        line
        for line in lines
        if line and len(line) < MAX_LINE_CHARS and not _is_boilerplate(line)
    ]

    prompts: list[str] = []
    rubric: list[str] = []
    for line in keep:
        if _is_rubric(line):
            rubric.append(line)
        else:
            prompts.append(line)

    return CleanInput(
        title=normalize_text(title) or None if title else None,
        prompts=tuple(prompts),
        rubric=tuple(rubric),
        constraints=tuple(line for line in prompts if _is_constraint(line)),
        course=normalize_text(course) or None if course else None,
    )
