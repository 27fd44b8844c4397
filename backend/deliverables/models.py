from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CitationStyle = Literal["apa7", "mla9", "chicago"]

PROMPT_ITEM_MAX_DEPTH = 2


class CleanInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    prompts: tuple[str, ...] = ()
    rubric: tuple[str, ...] = ()
    constraints: tuple[str, ...] = ()
    course: str | None = None


class PromptItem(BaseModel):
    """A numbered assignment item; lettered sub-items hang one level below it."""

    label: str = Field(..., min_length=1)
    prompt: str = ""
    subparts: list[PromptItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_depth(self) -> "PromptItem":
        for subpart in self.subparts:
            if subpart.subparts:
                raise ValueError(
                    f"prompt item '{subpart.label}' nests deeper than {PROMPT_ITEM_MAX_DEPTH} levels"
                )
        return self


class SubmissionFormatting(BaseModel):
    model_config = ConfigDict(frozen=True)

    font_family: str = "Times New Roman"
    font_size: int = Field(default=12, ge=8, le=18)
    line_spacing: float = Field(default=2.0, gt=0)
    margin_inches: float = Field(default=1.0, gt=0)
    include_header_block: bool = False


DEFAULT_FORMATTING = SubmissionFormatting()


class DeliverableSection(BaseModel):
    heading: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)

    @field_validator("heading", "body")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class Deliverable(BaseModel):
    title: str = Field(..., min_length=1)
    sections: list[DeliverableSection] = Field(..., min_length=1)
    references: list[str] = Field(default_factory=list)


class SubmissionDocument(BaseModel):
    content: str
    formatting: SubmissionFormatting
    title: str
    citation_style: CitationStyle
    references: list[str] = Field(default_factory=list)
    references_require_sources: bool = False


class ContextDocument(BaseModel):
    file_name: str = "context.txt"
    content: str = ""


class AttachmentLink(BaseModel):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
