"""Scores whether raw input looks like unstructured plain text."""

from __future__ import annotations

import re

from md_review.analysis.lexical import is_heading_like, split_lines
from md_review.types import StructureSignals

_MARKDOWN_PROBES = (
    re.compile(r"^\s{0,3}(#{1,6}\s|[-*+]\s|\d+[.)]\s|>\s|```|~~~)", re.MULTILINE),
    re.compile(r"\[[^\]]+\]\([^)]+\)"),
    re.compile(r"!\[[^\]]*\]\([^)]+\)"),
    re.compile(r"^\s*\|.+\|\s*$", re.MULTILINE),
)
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_CODE_CUE = re.compile(
    r"(```|~~~|=>|::|[{}\[\]();]|</?[a-z]+>|^\s*(npm|pnpm|yarn|bun|node)\b|`)",
    re.IGNORECASE,
)
_INLINE_LIST_CUE = re.compile(r"(?:^|\s)(?:\d+[.)]|[-*])\s+", re.MULTILINE)

# Cue thresholds. These gate the workflow route; change them only together
# with the router tests.
VERY_LONG_LINES_MAX_LINES = 2
VERY_LONG_LINES_MIN_CHARS = 160
NO_BREAKS_MIN_AVG_LINE = 100
NO_BREAKS_MIN_CHARS = 220
HEADING_LINES_MIN_CHARS = 180
HEADING_LINES_MIN_COUNT = 2
CODE_OR_LIST_MIN_CHARS = 180
CODE_OR_LIST_MIN_INLINE_LISTS = 2
ALL_CODE_MIN_LINES = 2
LONG_WITHOUT_MARKDOWN_MIN_CHARS = 260

_EMPTY_SIGNALS = StructureSignals(
    is_likely_unstructured_plain_text=False,
    has_markdown_signals=False,
    has_paragraph_break=False,
    non_empty_line_count=0,
    avg_line_length=0.0,
    heading_like_line_count=0,
    code_cue_count=0,
    inline_list_cue_count=0,
    cues=(),
)


def has_markdown_signals(text: str) -> bool:
    return any(probe.search(text) for probe in _MARKDOWN_PROBES)


def build_structure_signals(text: str) -> StructureSignals:
    """Compute `StructureSignals` for one input.

    Pure and total: empty or whitespace-only input yields an all-false result.
    Markdown detection always vetoes the unstructured verdict, so any explicit
    heading, list, fence, quote, link, image or table row keeps the text on the
    review branch.
    """
    trimmed = text.strip()
    if not trimmed:
        return _EMPTY_SIGNALS

    markdown = has_markdown_signals(trimmed)
    non_empty = [line for line in split_lines(trimmed) if line.strip()]
    has_break = bool(_PARAGRAPH_BREAK.search(trimmed))
    avg_line_length = sum(len(line.strip()) for line in non_empty) / max(1, len(non_empty))
    heading_like = sum(1 for line in non_empty if is_heading_like(line))
    code_cues = sum(1 for line in non_empty if _CODE_CUE.search(line))
    inline_lists = len(_INLINE_LIST_CUE.findall(trimmed))
    total = len(trimmed)

    cues: list[str] = []
    if len(non_empty) <= VERY_LONG_LINES_MAX_LINES and total >= VERY_LONG_LINES_MIN_CHARS:
        cues.append("very-long-lines")
    if not has_break and avg_line_length >= NO_BREAKS_MIN_AVG_LINE and total >= NO_BREAKS_MIN_CHARS:
        cues.append("no-paragraph-breaks")
    if not markdown and total >= HEADING_LINES_MIN_CHARS and heading_like >= HEADING_LINES_MIN_COUNT:
        cues.append("heading-like-lines")
    if not markdown and (
        (
            total >= CODE_OR_LIST_MIN_CHARS
            and (code_cues >= 1 or inline_lists >= CODE_OR_LIST_MIN_INLINE_LISTS)
        )
        # short snippets made only of code-like lines (e.g. pasted shell commands)
        or (len(non_empty) >= ALL_CODE_MIN_LINES and code_cues == len(non_empty))
    ):
        cues.append("code-or-list-cues")
    if not markdown and total >= LONG_WITHOUT_MARKDOWN_MIN_CHARS:
        cues.append("long-without-markdown")

    return StructureSignals(
        is_likely_unstructured_plain_text=not markdown and bool(cues),
        has_markdown_signals=markdown,
        has_paragraph_break=has_break,
        non_empty_line_count=len(non_empty),
        avg_line_length=avg_line_length,
        heading_like_line_count=heading_like,
        code_cue_count=code_cues,
        inline_list_cue_count=inline_lists,
        cues=tuple(cues),
    )
