from __future__ import annotations

from pathlib import Path

import pytest

from deliverables.config import Settings
from deliverables.models import ContextDocument

ASSIGNMENT_HTML = (
    "<h2>Week 3 Essay</h2>"
    "<p>1. Explain the causes of the 2008 financial crisis</p>"
    "<p>a) Describe the role of subprime lending</p>"
    "<p>b) Calculate the change in the housing index</p>"
    "<p>2. Discuss one policy response</p>"
)


@pytest.fixture
def assignment_html() -> str:
    return ASSIGNMENT_HTML


@pytest.fixture
def local_settings(tmp_path: Path) -> Settings:
    return Settings(
        storage_backend="local",
        storage_root=str(tmp_path / "artifacts"),
        text_producer="template",
        validate_artifacts_inline=True,
    )


@pytest.fixture
def source_context() -> ContextDocument:
    return ContextDocument(file_name="reading.txt", content="Reading: https://www.federalreserve.gov/crisis")
