#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
from pathlib import Path

from deliverables.composer import CompositionFailure
from deliverables.config import Settings
from deliverables.lint import BannedTokenError
from deliverables.models import ContextDocument
from deliverables.observability import configure_logging
from deliverables.parsers import ContextParseError, ParserRegistry
from deliverables.pipeline import DeliverablePipeline, PipelineRequest, error_code_for
from deliverables.render import RenderingFailure
from deliverables.storage import StorageError


def _load_contexts(paths: list[str]) -> list[ContextDocument]:
    registry = ParserRegistry()
    contexts: list[ContextDocument] = []
    for raw_path in paths:
        path = Path(raw_path)
        if not path.is_file():
            raise SystemExit(f"Context file not found: {path}")
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        contexts.append(
            registry.to_context_document(content=path.read_bytes(), file_name=path.name, content_type=content_type)
        )
    return contexts


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Render an assignment page into validated DOCX/PDF deliverables."
    )
    parser.add_argument("assignment", help="Assignment HTML or plain-text file.")
    parser.add_argument("--title", default=None, help="Assignment title shown on the document.")
    parser.add_argument("--course", default=None, help="Course name shown under the title.")
    parser.add_argument("--due", default=None, help="Due date text.")
    parser.add_argument(
        "--context",
        action="append",
        default=[],
        help="Extra context file (pdf, docx, rtf, html, txt). Repeatable.",
    )
    parser.add_argument(
        "--format",
        dest="formats",
        action="append",
        choices=["docx", "pdf"],
        default=None,
        help="Artifact format to render. Repeatable; defaults to both.",
    )
    parser.add_argument("--mode", choices=["document", "sections"], default="document")
    parser.add_argument("--producer", choices=["template", "bedrock"], default="template")
    parser.add_argument("--out", default="data/artifacts", help="Local artifact storage root.")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    configure_logging(args.log_level)
    assignment_path = Path(args.assignment)
    if not assignment_path.is_file():
        raise SystemExit(f"Assignment file not found: {assignment_path}")

    try:
        contexts = _load_contexts(args.context)
    except ContextParseError as exc:
        raise SystemExit(f"Could not read context file: {exc}") from exc

    settings = Settings(
        storage_backend="local",
        storage_root=args.out,
        text_producer=args.producer,
        validate_artifacts_inline=True,
    )
    request = PipelineRequest(
        assignment=assignment_path.read_text(encoding="utf-8", errors="replace"),
        title=args.title,
        course=args.course,
        due_text=args.due,
        contexts=contexts,
        mode=args.mode,
        formats=args.formats or ["docx", "pdf"],
    )

    try:
        result = asyncio.run(DeliverablePipeline(settings).run(request))
    except (CompositionFailure, BannedTokenError, RenderingFailure, StorageError) as exc:
        raise SystemExit(f"Could not generate deliverable [{error_code_for(exc)}]: {exc}") from exc

    summary = {
        "job_id": result.job_id,
        "assignment_type": result.assignment_type,
        "artifacts": [
            {
                "type": artifact.type,
                "status": artifact.status,
                "path": str(Path(args.out) / artifact.storage_key),
                "bytes": artifact.bytes,
                "sha256": artifact.sha256,
                "error_code": artifact.error_code,
            }
            for artifact in result.artifacts
        ],
    }
    print(json.dumps(summary, indent=2))
    return 0 if all(artifact.status == "valid" for artifact in result.artifacts) else 1


if __name__ == "__main__":
    raise SystemExit(main())
