"""Block splitting for runbook markdown.

Splits raw document text into ordered top-level blocks (title, summary,
prerequisites, steps, manual testing plan) using heading cues. Step blocks
carry their substep blocks as children.

Heading depth is not fixed: steps may be ``##`` or ``###`` and substeps
``###`` or ``####``. Headings the splitter cannot place are kept as
``unknown`` blocks so the validator can report them.
"""

import re
from typing import NamedTuple

from ..models import BlockKind, RawBlock

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_STEP_RE = re.compile(r"^step\s+\d+", re.IGNORECASE)
_SUBSTEP_NUMBER_RE = re.compile(r"^\s*\d+\.\d+(?![\d.]\d)")
_MARKER_RE = re.compile(r"\[\s*NO-CODE-CHANGE\s*\]", re.IGNORECASE)
_TITLE_RE = re.compile(r"^runbook\s*:", re.IGNORECASE)

_SECTION_HEADINGS: dict[str, BlockKind] = {
    "summary of changes": BlockKind.SUMMARY,
    "summary": BlockKind.SUMMARY,
    "prerequisites": BlockKind.PREREQUISITES,
    "prerequisite": BlockKind.PREREQUISITES,
    "manual testing plan": BlockKind.MANUAL_TESTING_PLAN,
    "manual test plan": BlockKind.MANUAL_TESTING_PLAN,
    "testing plan": BlockKind.MANUAL_TESTING_PLAN,
}
_EXECUTION_HEADINGS = frozenset({"execution steps", "steps"})

# Default step heading depth when an Execution Steps section has no Step heading yet
_DEFAULT_STEP_LEVEL = 3


class _Heading(NamedTuple):
    index: int  # 0-based line index
    kind: BlockKind | None  # None marks the Execution Steps section heading
    level: int
    text: str


def normalize_heading(text: str) -> str:
    """Lower-case a heading and drop punctuation for section matching."""
    words = re.sub(r"[^a-z0-9]+", " ", text.lower())
    return " ".join(words.split())


def is_substep_heading(text: str) -> bool:
    """Return True if a heading starts with an ``N.M`` number."""
    return bool(_SUBSTEP_NUMBER_RE.match(_MARKER_RE.sub("", text)))


def _classify_headings(lines: list[str]) -> list[_Heading]:
    headings: list[_Heading] = []
    fence: str | None = None
    title_seen = False
    in_execution = False
    step_level: int | None = None  # level of the open step heading
    doc_step_level: int | None = None  # level steps use in this document

    for index, line in enumerate(lines):
        fence_match = _FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0] * 3
            elif marker.startswith(fence):
                fence = None
            continue
        if fence is not None:
            continue

        match = _HEADING_RE.match(line)
        if not match:
            continue
        level = len(match.group(1))
        text = match.group(2).strip()
        normalized = normalize_heading(text)

        kind: BlockKind | None
        if level <= 2 and not title_seen and (level == 1 or _TITLE_RE.match(text)):
            kind = BlockKind.TITLE
            title_seen = True
        elif level == 1:
            kind = BlockKind.UNKNOWN
        elif level == 2 and normalized in _SECTION_HEADINGS:
            kind = _SECTION_HEADINGS[normalized]
        elif level == 2 and normalized in _EXECUTION_HEADINGS:
            headings.append(_Heading(index, None, level, text))
            in_execution = True
            step_level = None
            continue
        elif step_level is not None and level in (3, 4) and is_substep_heading(text):
            kind = BlockKind.SUBSTEP
        elif level in (2, 3) and _STEP_RE.match(text):
            kind = BlockKind.STEP
        elif (
            in_execution
            and level == (doc_step_level or _DEFAULT_STEP_LEVEL)
            and (step_level is None or level <= step_level)
        ):
            kind = BlockKind.STEP
        elif step_level is not None and level in (3, 4) and level > step_level:
            kind = BlockKind.SUBSTEP
        elif level <= 2:
            kind = BlockKind.UNKNOWN
        else:
            # Deeper heading inside another block's body
            continue

        if kind == BlockKind.STEP:
            step_level = level
            doc_step_level = level
        elif kind != BlockKind.SUBSTEP:
            in_execution = False
            step_level = None

        headings.append(_Heading(index, kind, level, text))

    return headings


def _make_block(heading: _Heading, lines: list[str], end: int, body_end: int) -> RawBlock:
    assert heading.kind is not None
    return RawBlock(
        kind=heading.kind,
        start_line=heading.index + 1,
        end_line=end + 1,
        heading=heading.text,
        level=heading.level,
        body=tuple(lines[heading.index + 1 : body_end]),
    )


def split(text: str) -> list[RawBlock]:
    """Split runbook markdown into ordered raw blocks.

    Args:
        text: Raw markdown document

    Returns:
        Blocks in document order. Step blocks hold their substeps as
        children. Content before the first heading and unplaceable
        top-level headings become ``unknown`` blocks.
    """
    lines = text.splitlines()
    headings = _classify_headings(lines)
    blocks: list[RawBlock] = []

    first = headings[0].index if headings else len(lines)
    if any(line.strip() for line in lines[:first]):
        blocks.append(
            RawBlock(
                kind=BlockKind.UNKNOWN,
                start_line=1,
                end_line=first + 1,
                body=tuple(lines[:first]),
            )
        )

    def next_index(pos: int) -> int:
        return headings[pos].index if pos < len(headings) else len(lines)

    i = 0
    while i < len(headings):
        heading = headings[i]
        if heading.kind is None:
            i += 1
            continue

        if heading.kind != BlockKind.STEP:
            end = next_index(i + 1)
            blocks.append(_make_block(heading, lines, end, end))
            i += 1
            continue

        # Step: collect the run of substep headings that follows
        j = i + 1
        children: list[RawBlock] = []
        while j < len(headings) and headings[j].kind == BlockKind.SUBSTEP:
            sub_end = next_index(j + 1)
            children.append(_make_block(headings[j], lines, sub_end, sub_end))
            j += 1
        step = _make_block(heading, lines, next_index(j), next_index(i + 1))
        blocks.append(step.model_copy(update={"children": tuple(children)}))
        i = j

    return blocks
