"""Segments text into blank-line-delimited blocks and classifies each."""

from __future__ import annotations

import math

from md_review.analysis.code_recovery import line_code_score
from md_review.analysis.lexical import (
    HEADING_MAX_WORDS,
    count_words,
    is_heading_like,
    is_list_marker_line,
    split_lines,
    truncate_preview,
)
from md_review.types import RawBlock, RawBlockKind, RawBlocksResult

LIST_MIN_LINES = 2
LIST_LINE_RATIO = 0.6
CODE_MIN_AVG_SCORE = 0.5
CODE_MIN_LINES = 2

LIST_CONFIDENCE = 0.78
HEADING_CONFIDENCE = 0.72
PARAGRAPH_CONFIDENCE = 0.55
CODE_CONFIDENCE_BASE = 0.55
CODE_CONFIDENCE_WEIGHT = 0.45
CODE_CONFIDENCE_CAP = 0.92


def _classify(chunk: list[str]) -> tuple[RawBlockKind, float]:
    trimmed = [line.strip() for line in chunk if line.strip()]
    list_lines = sum(1 for line in trimmed if is_list_marker_line(line))
    heading_lines = sum(1 for line in trimmed if is_heading_like(line))
    avg_code_score = sum(line_code_score(line) for line in trimmed) / max(1, len(trimmed))

    if list_lines >= max(LIST_MIN_LINES, math.ceil(len(trimmed) * LIST_LINE_RATIO)):
        return "list_candidate", LIST_CONFIDENCE
    if (
        len(chunk) == 1
        and heading_lines == 1
        and count_words(trimmed[0] if trimmed else "") <= HEADING_MAX_WORDS
    ):
        return "heading_candidate", HEADING_CONFIDENCE
    if avg_code_score >= CODE_MIN_AVG_SCORE and len(chunk) >= CODE_MIN_LINES:
        return "code_candidate", min(
            CODE_CONFIDENCE_CAP, CODE_CONFIDENCE_BASE + avg_code_score * CODE_CONFIDENCE_WEIGHT
        )
    return "paragraph", PARAGRAPH_CONFIDENCE


def parse_raw_blocks(text: str, max_blocks: int = 80, *, preview_chars: int = 180) -> RawBlocksResult:
    """Split `text` on blank lines into at most `max_blocks` classified blocks.

    Blocks come back in source order with 1-based inclusive line ranges.
    Classification precedence is list, heading, code, then paragraph.
    """
    lines = split_lines(text)
    limit = max(1, max_blocks)
    blocks: list[RawBlock] = []
    cursor = 0

    while cursor < len(lines) and len(blocks) < limit:
        while cursor < len(lines) and not lines[cursor].strip():
            cursor += 1
        if cursor >= len(lines):
            break

        start = cursor
        while cursor < len(lines) and lines[cursor].strip():
            cursor += 1
        chunk = lines[start:cursor]
        kind, confidence = _classify(chunk)
        blocks.append(
            RawBlock(
                index=len(blocks),
                kind=kind,
                start_line=start + 1,
                end_line=cursor,
                line_count=len(chunk),
                confidence=confidence,
                preview=truncate_preview("\n".join(chunk), preview_chars),
            )
        )

    return RawBlocksResult(
        blocks=tuple(blocks),
        heading_candidate_count=sum(1 for b in blocks if b.kind == "heading_candidate"),
        list_candidate_count=sum(1 for b in blocks if b.kind == "list_candidate"),
        code_candidate_count=sum(1 for b in blocks if b.kind == "code_candidate"),
    )
