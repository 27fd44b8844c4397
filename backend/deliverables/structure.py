from __future__ import annotations

import re

from deliverables.models import PromptItem
from deliverables.sanitize import normalize_text

NUMBERED_LINE_PATTERN = re.compile(r"^(\d{1,2}(?:\.\d+)*)[.)]\s+(.*)$")
LETTERED_LINE_PATTERN = re.compile(r"^([a-zA-Z])[.)]\s+(.*)$")


def _append(item: PromptItem, text: str) -> None:
    item.prompt = normalize_text(f"{item.prompt} {text}")


def extract_prompt_structure(text: str) -> list[PromptItem]:
    """Parse "1." / "a)" style outlines into at most two levels of prompt items.

    Labels come straight from the source numbering. A lettered line seen before any
    numbered line has no parent and is kept as plain text only.
    """
    items: list[PromptItem] = []
    current: PromptItem | None = None

    for raw_line in re.split(r"\r?\n", text or ""):
        line = raw_line.strip()
        if not line:
            continue

        numbered = NUMBERED_LINE_PATTERN.match(line)
        if numbered:
            current = PromptItem(label=numbered.group(1), prompt=normalize_text(numbered.group(2)))
            items.append(current)
            continue

        lettered = LETTERED_LINE_PATTERN.match(line)
        if lettered and current is not None:
            current.subparts.append(
                PromptItem(
                    label=f"{current.label}{lettered.group(1).lower()}",
                    prompt=normalize_text(lettered.group(2)),
                )
            )
            continue

        if current is None:
            continue
        if current.subparts:
            _append(current.subparts[-1], line)
        else:
            _append(current, line)

    if not items:
        fallback = normalize_text(text or "")
        if fallback:
            return [PromptItem(label="1", prompt=fallback)]

    return items


def iter_prompt_labels(items: list[PromptItem]) -> list[str]:
    labels: list[str] = []
    for item in items:
        labels.append(item.label)
        labels.extend(subpart.label for subpart in item.subparts)
    return labels
