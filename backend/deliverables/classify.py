from __future__ import annotations

import re
from typing import Literal

from deliverables.models import CleanInput

AssignmentType = Literal["instructions", "deliverable_needed"]

DIRECTIVE_PATTERN = re.compile(
    r"\b(write|analyz|design|creat|draft|respond|compute|explain|discuss|describe|compare|evaluate|assess|"
    r"reflect|answer|summarize|prepare|perform|develop|calculate|solve|research|argue|outline|present|compose|"
    r"critique|review|explore|investigate|build|engineer|examine|complete|address|provide|list|identify|propose|"
    r"construct|choose|select|support)\b"
)
ACADEMIC_NOUN_PATTERN = re.compile(
    r"\b(essay|paper|report|project|presentation|analysis|reflection|discussion|case study|lab|"
    r"assignment prompt|deliverable)\b"
)
RULE_PATTERN = re.compile(
    r"(submit|policy|syllabus|plagiarism|late|reminder|format|deadline|due|extension|penalt|grading|points|"
    r"instructor|contact|office hours|email|academic integrity|important information)"
)


def classify_assignment(clean: CleanInput) -> AssignmentType:
    """Tell a page of course rules apart from one that asks the student to produce work."""
    lines = [line.lower() for line in clean.prompts]
    if not lines:
        return "instructions"

    only_rules = all(RULE_PATTERN.search(line) or len(line) <= 3 for line in lines)
    if only_rules:
        return "instructions"

    asks_for_work = (
        any(DIRECTIVE_PATTERN.search(line) for line in lines)
        or any("?" in line for line in lines)
        or any(ACADEMIC_NOUN_PATTERN.search(line) for line in lines)
        or bool(clean.rubric)
    )
    return "deliverable_needed" if asks_for_work else "instructions"
