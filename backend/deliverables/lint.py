from __future__ import annotations

import re

from deliverables.models import Deliverable, DeliverableSection, SubmissionDocument
from deliverables.references import SOURCE_NEEDED

BANNED_TOKENS_VERSION = "2024.1"

# Loaded once at import and never mutated; read it through get_banned_tokens().
BANNED_TOKENS: tuple[str, ...] = (
    "Important Reminders",
    "submit this as a PDF",
    "plagiarism",
    "Department Chair",
    SOURCE_NEEDED,
    "<div",
    "style=",
    "canvas.gmu.edu",
)
_BANNED_TOKENS_LOWER = tuple((token, token.lower()) for token in BANNED_TOKENS)

_REPEATED_PERIODS = re.compile(r"\.{2,}")


class BannedTokenError(ValueError):
    """Raised when generated or rendered text contains a banned token."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Banned token detected: {token}")


def get_banned_tokens() -> list[str]:
    return list(BANNED_TOKENS)


def find_banned_token(text: str) -> str | None:
    lowered = (text or "").lower()
    for token, token_lower in _BANNED_TOKENS_LOWER:
        if token_lower in lowered:
            return token
    return None


def lint_deliverable_text(text: str) -> str:
    token = find_banned_token(text)
    if token is not None:
        raise BannedTokenError(token)
    return _REPEATED_PERIODS.sub(".", text)


def lint_deliverable(deliverable: Deliverable) -> Deliverable:
    return Deliverable(
        title=lint_deliverable_text(deliverable.title),
        sections=[
            DeliverableSection(
                heading=lint_deliverable_text(section.heading),
                body=lint_deliverable_text(section.body),
            )
            for section in deliverable.sections
        ],
        references=[lint_deliverable_text(reference) for reference in deliverable.references],
    )


def lint_submission_document(document: SubmissionDocument) -> SubmissionDocument:
    return document.model_copy(
        update={
            "content": lint_deliverable_text(document.content),
            "title": lint_deliverable_text(document.title),
            "references": [lint_deliverable_text(reference) for reference in document.references],
        }
    )
