import pytest
from pydantic import ValidationError

from deliverables.models import PromptItem
from deliverables.structure import extract_prompt_structure, iter_prompt_labels


def test_extracts_numbered_items_with_lettered_subparts() -> None:
    text = "1. Explain supply and demand\na) Define equilibrium\nb) Compare two markets\n2) Solve the equation"
    items = extract_prompt_structure(text)

    assert [item.label for item in items] == ["1", "2"]
    assert [subpart.label for subpart in items[0].subparts] == ["1a", "1b"]
    assert items[0].subparts[1].prompt == "Compare two markets"
    assert items[1].prompt == "Solve the equation"
    assert iter_prompt_labels(items) == ["1", "1a", "1b", "2"]


def test_continuation_lines_attach_to_last_open_item() -> None:
    items = extract_prompt_structure("1. First part\ncontinued here\n2. Second\na) sub\nmore sub text")
    assert items[0].prompt == "First part continued here"
    assert items[1].prompt == "Second"
    assert items[1].subparts[0].prompt == "sub more sub text"


def test_letter_before_any_number_has_no_parent() -> None:
    items = extract_prompt_structure("a) stray\n1. First")
    assert len(items) == 1
    assert items[0].label == "1"
    assert items[0].prompt == "First"
    assert items[0].subparts == []


def test_unnumbered_text_falls_back_to_single_item() -> None:
    items = extract_prompt_structure("Just   write about\nyour summer")
    assert items == [PromptItem(label="1", prompt="Just write about your summer")]
    assert extract_prompt_structure("") == []


def test_prompt_items_reject_third_level() -> None:
    with pytest.raises(ValidationError):
        PromptItem(
            label="1",
            subparts=[PromptItem(label="1a", subparts=[PromptItem(label="i")])],
        )
