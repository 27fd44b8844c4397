from __future__ import annotations

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from pydantic import ValidationError

from deliverables.formatting import detect_citation_style, infer_formatting
from deliverables.models import (
    AttachmentLink,
    CleanInput,
    ContextDocument,
    Deliverable,
    DeliverableSection,
    PromptItem,
    SubmissionDocument,
)
from deliverables.producers import SectionProducer, TextProducer, craft_student_response
from deliverables.references import derive_references
from deliverables.sanitize import normalize_text
from deliverables.structure import extract_prompt_structure

logger = logging.getLogger("deliverables.composer")

DEFAULT_TITLE = "Completed Assignment"
HEADER_BLOCK = "Name:\nCourse:\nInstructor:\nDate:"
REFERENCES_HEADING = "References"
FINAL_ANSWER_CUE = re.compile(r"(solve|calculate|compute|determine|equation|final answer)", flags=re.IGNORECASE)
FINAL_ANSWER_LINE = "Final Answer: The solution is presented clearly above with all supporting work shown."


class CompositionFailure(RuntimeError):
    """Raised when the text producer yields nothing usable for a deliverable."""


@dataclass(frozen=True)
class _Request:
    label: str
    prompt: str
    index: int


def final_answer_line(prompt: str) -> str | None:
    if FINAL_ANSWER_CUE.search(prompt):
        return FINAL_ANSWER_LINE
    return None


async def _produce(producer: TextProducer, request: _Request) -> str:
    try:
        result = producer(request.prompt, request.index)
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise CompositionFailure(f"Text producer failed for item {request.label}: {exc}") from exc
    return normalize_text(str(result or ""))


async def _produce_all(
    producer: TextProducer,
    requests: Sequence[_Request],
    *,
    concurrency: int,
) -> list[str]:
    if concurrency <= 1:
        return [await _produce(producer, request) for request in requests]

    semaphore = asyncio.Semaphore(concurrency)

    async def bounded(request: _Request) -> str:
        async with semaphore:
            return await _produce(producer, request)

    tasks = [asyncio.ensure_future(bounded(request)) for request in requests]
    try:
        # gather keeps input order regardless of completion order.
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _requests_for(items: Sequence[PromptItem]) -> list[_Request]:
    requests: list[_Request] = []
    for index, item in enumerate(items):
        requests.append(_Request(label=item.label, prompt=item.prompt, index=index))
        for sub_index, subpart in enumerate(item.subparts):
            requests.append(_Request(label=subpart.label, prompt=subpart.prompt, index=sub_index))
    return requests


def _item_blocks(items: Sequence[PromptItem], responses: Sequence[str]) -> list[str]:
    # responses line up with _requests_for(items)
    remaining = iter(responses)
    blocks: list[str] = []
    for item in items:
        lines = [f"{item.label}. {next(remaining)}"]
        sub_answered = False
        for subpart in item.subparts:
            lines.append(f"{subpart.label}. {next(remaining)}")
            answer = final_answer_line(subpart.prompt)
            if answer:
                lines.append(answer)
                sub_answered = True
        if not sub_answered:
            answer = final_answer_line(item.prompt)
            if answer:
                lines.append(answer)
        blocks.append("\n".join(lines))
    return blocks


def _attachments_block(attachments: Iterable[AttachmentLink]) -> str | None:
    lines = [f"• {attachment.name}: {attachment.url}" for attachment in attachments]
    if not lines:
        return None
    return "\n".join(["Attachments", *lines])


async def build_submission_document(
    *,
    contexts: Sequence[ContextDocument],
    producer: TextProducer,
    assignment_name: str | None = None,
    course_name: str | None = None,
    due_text: str | None = None,
    assignment_url: str | None = None,
    attachments: Sequence[AttachmentLink] = (),
    concurrency: int = 1,
    accessed: date | None = None,
) -> SubmissionDocument:
    combined_text = "\n\n".join(entry.content for entry in contexts)
    formatting = infer_formatting(combined_text)
    citation_style = detect_citation_style(combined_text)
    items = extract_prompt_structure(combined_text)
    if not items:
        raise CompositionFailure("No assignment prompt text to compose from.")

    requests = _requests_for(items)
    produced = await _produce_all(producer, requests, concurrency=concurrency)
    if not any(produced):
        raise CompositionFailure("Text producer returned no content for any assignment item.")

    responses = [
        response or craft_student_response(request.prompt, request.index)
        for request, response in zip(requests, produced)
    ]

    sections: list[str] = []
    if formatting.include_header_block:
        sections.append(HEADER_BLOCK)

    title = (assignment_name or "").strip() or DEFAULT_TITLE
    sections.append(title)
    if (course_name or "").strip():
        sections.append(course_name.strip())
    if (due_text or "").strip():
        sections.append(f"Due: {due_text.strip()}")

    sections.extend(_item_blocks(items, responses))

    reference_set = derive_references(contexts, citation_style, accessed=accessed)
    sections.append(REFERENCES_HEADING)
    sections.extend(reference_set.references)

    if assignment_url:
        sections.append(f"Original Assignment: {assignment_url}")
    attachments_block = _attachments_block(attachments)
    if attachments_block:
        sections.append(attachments_block)

    logger.info(
        "submission_document_composed",
        extra={
            "event": "submission_document_composed",
            "item_count": len(items),
            "request_count": len(requests),
            "citation_style": citation_style,
            "references_require_sources": reference_set.require_sources,
        },
    )
    return SubmissionDocument(
        content="\n\n".join(sections),
        formatting=formatting,
        title=title,
        citation_style=citation_style,
        references=reference_set.references,
        references_require_sources=reference_set.require_sources,
    )


def _coerce_sections(raw_sections: object) -> list[DeliverableSection]:
    if not isinstance(raw_sections, list):
        return []
    sections: list[DeliverableSection] = []
    for raw in raw_sections:
        if not isinstance(raw, dict):
            continue
        heading = str(raw.get("heading") or "").strip()
        body = str(raw.get("body") or raw.get("body_markdown") or "").strip()
        if heading and body:
            sections.append(DeliverableSection(heading=heading, body=body))
    return sections


async def compose_deliverable(clean: CleanInput, producer: SectionProducer) -> Deliverable:
    try:
        payload = producer(clean)
        if inspect.isawaitable(payload):
            payload = await payload
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise CompositionFailure(f"Section producer failed: {exc}") from exc

    if not isinstance(payload, dict):
        raise CompositionFailure("Section producer must return an object.")

    sections = _coerce_sections(payload.get("sections"))
    if not sections:
        raise CompositionFailure("Section producer returned no non-empty sections.")

    raw_references = payload.get("references")
    references = (
        [str(item).strip() for item in raw_references if str(item).strip()]
        if isinstance(raw_references, list)
        else []
    )
    title = str(payload.get("title") or "").strip() or (clean.title or "").strip() or DEFAULT_TITLE

    try:
        return Deliverable(title=title, sections=sections, references=references)
    except ValidationError as exc:
        raise CompositionFailure(f"Composed deliverable failed validation: {exc}") from exc


def deliverable_text(document: Deliverable | SubmissionDocument) -> str:
    """Every string a rendered artifact will carry, joined for lint checks."""
    if isinstance(document, SubmissionDocument):
        return "\n\n".join([document.title, document.content, *document.references])
    parts = [document.title]
    for section in document.sections:
        parts.extend([section.heading, section.body])
    if document.references:
        parts.append(REFERENCES_HEADING)
        parts.extend(document.references)
    return "\n\n".join(parts)
