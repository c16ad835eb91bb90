"""Regroup sentence-split instructions into titled paragraphs."""

import re

MIN_STEPS_TO_MERGE = 5
MIN_PARAGRAPHS = 2

# "Grill the steak: ..." / "Make the sauce: ..."
_TITLE_PATTERN = re.compile(r"^(?P<title>[^\W\d_][^:.!?\n]{1,60}):\s+\S")
_MAX_TITLE_WORDS = 8


def is_paragraph_start(text: str) -> bool:
    """Check if a step opens a new paragraph with an imperative title."""
    stripped = text.strip()
    if not stripped or not stripped[0].isupper():
        return False
    match = _TITLE_PATTERN.match(stripped)
    if not match:
        return False
    return len(match.group("title").split()) <= _MAX_TITLE_WORDS


def merge_instructions_into_paragraphs(steps: list[dict]) -> list[dict]:
    """Merge per-sentence steps back into paragraphs.

    Only runs when there are more than five steps. A step starts a new
    paragraph if it looks like "Title: text"; any other step is appended to
    the paragraph before it. The merged list is returned only if it has at
    least two paragraphs, otherwise the input is returned unchanged.
    """
    if len(steps) <= MIN_STEPS_TO_MERGE:
        return steps

    paragraphs: list[str] = []
    for step in steps:
        text = (step.get("text") or "").strip()
        if not text:
            continue
        if not paragraphs or is_paragraph_start(text):
            paragraphs.append(text)
        else:
            paragraphs[-1] = f"{paragraphs[-1]} {text}"

    if len(paragraphs) < MIN_PARAGRAPHS:
        return steps

    return [{"step": index, "text": text} for index, text in enumerate(paragraphs, start=1)]
