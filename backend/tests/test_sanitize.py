from deliverables.sanitize import MAX_LINE_CHARS, html_to_text, sanitize_assignment, sanitize_lines, strip_html


def test_strip_html_drops_scripts_and_tags() -> None:
    assert strip_html("<p>Hello</p><script>x</script>") == "Hello"
    assert strip_html("<style>p { color: red; }</style><div>One <b>two</b></div>") == "One two"


def test_html_to_text_keeps_block_breaks_as_lines() -> None:
    text = html_to_text("<p>1. First question</p><p>a) part one<br/>b) part two</p><p>Q&amp;A</p>")
    assert text.splitlines() == ["1. First question", "a) part one", "b) part two", "Q&A"]


def test_sanitize_drops_boilerplate_only_input() -> None:
    clean = sanitize_assignment("<h2>Important Reminders</h2><p>Plagiarism policy applies</p>")
    assert clean.prompts == ()
    assert clean.rubric == ()


def test_sanitize_splits_rubric_and_constraints() -> None:
    raw = (
        "<p>Write an essay on climate policy. Rubric: thesis clarity 10 points. "
        "Use 12 pt font and 500 words</p>"
    )
    clean = sanitize_assignment(raw, title="  Essay   One ", course="ENV 101")

    assert clean.title == "Essay One"
    assert clean.course == "ENV 101"
    assert clean.prompts == ("Write an essay on climate policy", "Use 12 pt font and 500 words")
    assert clean.rubric == ("Rubric: thesis clarity 10 points",)
    assert clean.constraints == ("Use 12 pt font and 500 words",)


def test_sanitize_drops_overlong_lines() -> None:
    clean = sanitize_assignment(f"{'x' * (MAX_LINE_CHARS + 50)}. Describe the water cycle")
    assert clean.prompts == ("Describe the water cycle",)


def test_sanitize_blank_metadata_becomes_none() -> None:
    clean = sanitize_assignment("Explain photosynthesis", title="   ", course=None)
    assert clean.title is None
    assert clean.course is None


def test_sanitize_lines_keeps_outline_and_drops_boilerplate() -> None:
    text = "\n".join(
        [
            "1. Explain the causes of inflation",
            "Important Reminders: Late homework is not accepted.",
            "  a)   Use two   sources ",
            "x" * MAX_LINE_CHARS,
            "2. Discuss one policy response",
        ]
    )
    assert sanitize_lines(text).splitlines() == [
        "1. Explain the causes of inflation",
        "a) Use two sources",
        "2. Discuss one policy response",
    ]
