from pydantic import BaseModel, Field

from deliverables.artifacts import DeliverableArtifact
from deliverables.models import CitationStyle, PromptItem, SubmissionFormatting


class AssignmentTextRequest(BaseModel):
    assignment: str = Field(..., min_length=1)
    title: str | None = Field(default=None, max_length=300)
    course: str | None = Field(default=None, max_length=300)


class LintRequest(BaseModel):
    text: str


class SanitizeResponse(BaseModel):
    title: str | None
    course: str | None
    prompts: list[str]
    constraints: list[str]
    rubric: list[str]
    assignment_type: str


class StructureResponse(BaseModel):
    items: list[PromptItem]
    labels: list[str]
    formatting: SubmissionFormatting
    citation_style: CitationStyle


class DeliverableResponse(BaseModel):
    job_id: str
    assignment_type: str
    title: str
    content: str
    citation_style: CitationStyle | None = None
    references: list[str] = Field(default_factory=list)
    references_require_sources: bool = False
    artifacts: list[DeliverableArtifact] = Field(default_factory=list)
