"""Line-level lexical helpers shared by the structure heuristics."""

from __future__ import annotations

import re

_LINE_SPLIT = re.compile(r"\r?\n")
_WHITESPACE = re.compile(r"\s+")
_CJK_CHAR = re.compile(
    r"[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\u3040-\u309f\u30a0-\u30ff\uac00-\ud7af]"
)
_TERMINAL_PUNCTUATION = re.compile(r"[.!?。！？:：;；]$")
_LIST_MARKER = re.compile(r"^([-*+]\s+|\d+[.)]\s+)")

HEADING_MIN_CHARS = 3
HEADING_MAX_CHARS = 90
HEADING_MAX_WORDS = 12


def split_lines(text: str) -> list[str]:
    return _LINE_SPLIT.split(text)


def truncate_preview(text: str, max_len: int = 180) -> str:
    """Collapse whitespace and cut to `max_len` characters with an ellipsis."""
    normalized = _WHITESPACE.sub(" ", text).strip()
    if len(normalized) <= max_len:
        return normalized
    return f"{normalized[: max_len - 3]}..."


def count_words(text: str) -> int:
    """Count words for both space-delimited scripts and CJK.

    Each CJK ideograph, kana or hangul syllable counts as one word; whatever
    remains is split on whitespace.
    """
    cjk_count = len(_CJK_CHAR.findall(text))
    latin_words = [token for token in _CJK_CHAR.sub(" ", text).split() if token]
    return cjk_count + len(latin_words)


def is_heading_like(line: str) -> bool:
    normalized = line.strip()
    if len(normalized) < HEADING_MIN_CHARS or len(normalized) > HEADING_MAX_CHARS:
        return False
    if count_words(normalized) > HEADING_MAX_WORDS:
        return False
    return not _TERMINAL_PUNCTUATION.search(normalized)


def is_list_marker_line(trimmed_line: str) -> bool:
    return bool(_LIST_MARKER.match(trimmed_line))
