"""Runbook parsing for runbook markdown.

Builds the document model from raw blocks. Parsing is best-effort: a
malformed heading or an out-of-place section yields a warning and the
parser carries on, so callers always get a model plus every warning found.
Structural checks belong to the validator, not here.
"""

import hashlib
import logging
import re
from collections.abc import Iterable, Sequence

from ..models import (
    BlockKind,
    ParseWarning,
    RawBlock,
    Runbook,
    Step,
    Substep,
    SubstepAddress,
    UnrecognizedSection,
)
from .block_splitter import split

logger = logging.getLogger(__name__)

_TITLE_PREFIX_RE = re.compile(r"^runbook\s*:\s*", re.IGNORECASE)
_STEP_HEADING_RE = re.compile(r"^step\s+(\d+)\s*[:.\-–—]?\s*(.*)$", re.IGNORECASE)
_UNNUMBERED_STEP_RE = re.compile(r"^step\s*[:.\-–—]?\s*", re.IGNORECASE)
_SUBSTEP_HEADING_RE = re.compile(r"^(\d+)\.(\d+)\s*[:.\-–—]?\s*(.*)$")
_MARKER_RE = re.compile(r"\[\s*NO-CODE-CHANGE\s*\]", re.IGNORECASE)

_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*)$")
_CHECKBOX_RE = re.compile(r"^\[[ xX]\]\s+")
_HR_RE = re.compile(r"^\s{0,3}([-*_])(?:\s*\1){2,}\s*$")
_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__")
_PATH_CHARS_RE = re.compile(r"^[\w@~./*{}\-]+$")
_EXTENSION_RE = re.compile(r"\.[A-Za-z][A-Za-z0-9]{0,7}$")


def _strip_continuation(text: str) -> tuple[str, bool]:
    """Drop a trailing backslash continuation marker.

    Returns:
        Tuple of (text without marker, whether the next line continues it)
    """
    text = text.rstrip()
    if text.endswith("\\"):
        return text[:-1].rstrip(), True
    return text, False


def collect_items(lines: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split block lines into list items and prose.

    A bullet (``-``, ``*``, ``+``) or ordered-list line starts an item.
    Lines ending in a backslash continue the item onto the next line, as do
    indented lines directly under it. Fenced code is kept as prose.

    Args:
        lines: Body lines of a block

    Returns:
        Tuple of (items with continuations joined, prose lines)
    """
    items: list[list[str]] = []
    prose: list[str] = []
    current: list[str] | None = None
    continuing = False
    fence: str | None = None

    for line in lines:
        fence_match = _FENCE_RE.match(line)
        if fence is not None or fence_match:
            if fence_match:
                marker = fence_match.group(1)
                if fence is None:
                    fence = marker[0] * 3
                elif marker.startswith(fence):
                    fence = None
            prose.append(line.rstrip())
            current = None
            continuing = False
            continue

        stripped = line.strip()
        if continuing and current is not None:
            piece, continuing = _strip_continuation(stripped)
            current.append(piece)
            continue
        if not stripped or _HR_RE.match(line):
            current = None
            continue

        bullet = _BULLET_RE.match(line)
        if bullet:
            text = _CHECKBOX_RE.sub("", bullet.group(1))
            piece, continuing = _strip_continuation(text)
            current = [piece]
            items.append(current)
        elif current is not None and line[:1] in (" ", "\t"):
            piece, continuing = _strip_continuation(stripped)
            current.append(piece)
        else:
            current = None
            prose.append(stripped)

    joined = [" ".join(part for part in parts if part) for parts in items]
    return [item for item in joined if item], prose


def extract_paths(texts: Iterable[str]) -> frozenset[str]:
    """Extract file/directory paths from bold spans.

    Only spans that look like paths (no spaces, and either a ``/`` or a
    file extension) are kept. Best-effort: prose in bold is ignored.

    Args:
        texts: Strings to scan

    Returns:
        Set of path-like span contents
    """
    paths: set[str] = set()
    for text in texts:
        for match in _BOLD_RE.finditer(text):
            candidate = (match.group(1) or match.group(2)).strip().strip("`")
            if not _PATH_CHARS_RE.match(candidate):
                continue
            if "/" in candidate or _EXTENSION_RE.search(candidate):
                paths.add(candidate)
    return frozenset(paths)


def _prose_text(lines: Sequence[str]) -> str | None:
    text = "\n".join(line for line in lines if line.strip()).strip()
    return text or None


def _list_or_prose(block: RawBlock) -> list[str]:
    items, prose = collect_items(block.body)
    if items:
        return items
    return [line for line in prose if line.strip()]


def _parse_title(block: RawBlock) -> tuple[str, str | None]:
    title = _TITLE_PREFIX_RE.sub("", block.heading).strip()
    return title, _prose_text([line.strip() for line in block.body if not _HR_RE.match(line)])


def _parse_substep(
    block: RawBlock,
    step_index: int,
    previous: int,
    warnings: list[ParseWarning],
) -> Substep:
    """Parse a substep block.

    Args:
        block: Substep raw block
        step_index: Index of the owning step (used when the heading has no number)
        previous: Last substep number seen in this step
        warnings: Accumulator for parse warnings

    Returns:
        Parsed Substep
    """
    heading = block.heading
    is_documentation_only = bool(_MARKER_RE.search(heading))
    heading = " ".join(_MARKER_RE.sub(" ", heading).split())

    match = _SUBSTEP_HEADING_RE.match(heading)
    if match:
        address = SubstepAddress(step=int(match.group(1)), substep=int(match.group(2)))
        name = match.group(3).strip()
    else:
        address = SubstepAddress(step=step_index, substep=previous + 1)
        name = heading
        warnings.append(
            ParseWarning(
                message=f"Substep heading has no N.M number: {block.heading!r}; "
                f"assigned {address}",
                line=block.start_line,
            )
        )

    if not name:
        warnings.append(
            ParseWarning(message=f"Substep {address} has no name", line=block.start_line)
        )

    action_items, prose = collect_items(block.body)
    description = _prose_text(prose)

    return Substep(
        address=address,
        name=name,
        is_documentation_only=is_documentation_only,
        description=description,
        action_items=tuple(action_items),
        referenced_paths=extract_paths([name, description or "", *action_items]),
        line=block.start_line,
    )


def _parse_step(block: RawBlock, previous: int, warnings: list[ParseWarning]) -> Step:
    """Parse a step block and its substep children.

    Args:
        block: Step raw block
        previous: Last step index assigned
        warnings: Accumulator for parse warnings

    Returns:
        Parsed Step
    """
    match = _STEP_HEADING_RE.match(block.heading)
    if match:
        index = int(match.group(1))
        name = match.group(2).strip()
    else:
        index = previous + 1
        name = _UNNUMBERED_STEP_RE.sub("", block.heading).strip() or block.heading
        warnings.append(
            ParseWarning(
                message=f"Step heading has no number: {block.heading!r}; assigned {index}",
                line=block.start_line,
            )
        )

    if not name:
        warnings.append(ParseWarning(message=f"Step {index} has no name", line=block.start_line))

    context = _prose_text([line.strip() for line in block.body if not _HR_RE.match(line)])

    substeps: list[Substep] = []
    last_substep = 0
    for child in block.children:
        substep = _parse_substep(child, index, last_substep, warnings)
        substeps.append(substep)
        last_substep = substep.address.substep

    return Step(
        index=index,
        name=name,
        context=context,
        substeps=tuple(substeps),
        line=block.start_line,
    )


def parse(
    blocks: Sequence[RawBlock],
    *,
    content_hash: str | None = None,
) -> tuple[Runbook, list[ParseWarning]]:
    """Build a runbook from raw blocks.

    Never raises on malformed input; problems are reported as warnings.

    Args:
        blocks: Blocks from :func:`split`
        content_hash: Optional identity hash of the source text

    Returns:
        Tuple of (Runbook, list of parse warnings)
    """
    warnings: list[ParseWarning] = []
    title = ""
    description: str | None = None
    title_seen = False
    summary: list[str] = []
    prerequisites: list[str] = []
    testing_plan: list[str] = []
    steps: list[Step] = []
    unrecognized: list[UnrecognizedSection] = []
    seen_sections: set[BlockKind] = set()

    sections = {
        BlockKind.SUMMARY: summary,
        BlockKind.PREREQUISITES: prerequisites,
        BlockKind.MANUAL_TESTING_PLAN: testing_plan,
    }

    for block in blocks:
        if block.kind == BlockKind.TITLE:
            if title_seen:
                warnings.append(
                    ParseWarning(
                        message=f"Extra title ignored: {block.heading!r}", line=block.start_line
                    )
                )
                unrecognized.append(
                    UnrecognizedSection(heading=block.heading, line=block.start_line)
                )
                continue
            title, description = _parse_title(block)
            title_seen = True
        elif block.kind in sections:
            if block.kind in seen_sections:
                warnings.append(
                    ParseWarning(
                        message=f"Repeated section {block.heading!r}; items appended",
                        line=block.start_line,
                    )
                )
            seen_sections.add(block.kind)
            sections[block.kind].extend(_list_or_prose(block))
        elif block.kind == BlockKind.STEP:
            previous = steps[-1].index if steps else 0
            steps.append(_parse_step(block, previous, warnings))
        elif block.kind == BlockKind.SUBSTEP:
            # The splitter nests substeps under steps; a bare one has no owner
            warnings.append(
                ParseWarning(
                    message=f"Substep outside of any step ignored: {block.heading!r}",
                    line=block.start_line,
                )
            )
        else:
            heading = block.heading or "(content before first heading)"
            unrecognized.append(UnrecognizedSection(heading=heading, line=block.start_line))

    if not title_seen:
        warnings.append(ParseWarning(message="No title heading found"))
    if not steps:
        warnings.append(ParseWarning(message="No steps found"))

    for warning in warnings:
        logger.debug(f"Parse warning: {warning}")

    runbook = Runbook(
        title=title,
        description=description,
        summary=tuple(summary),
        prerequisites=tuple(prerequisites),
        steps=tuple(steps),
        manual_testing_plan=tuple(testing_plan),
        unrecognized_sections=tuple(unrecognized),
        content_hash=content_hash,
    )
    return runbook, warnings


def hash_text(text: str) -> str:
    """Compute SHA256 of runbook source text.

    Args:
        text: Source text

    Returns:
        Hex-encoded SHA256 hash
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def parse_runbook(text: str) -> tuple[Runbook, list[ParseWarning]]:
    """Split and parse runbook markdown.

    Args:
        text: Runbook content in markdown format

    Returns:
        Tuple of (Runbook stamped with its content hash, list of warnings)
    """
    return parse(split(text), content_hash=hash_text(text))
