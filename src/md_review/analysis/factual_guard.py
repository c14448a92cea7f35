"""Factual fidelity guard.

Extracts numbers, URLs and version strings from the original text once per
request, then compares any candidate rewrite against that baseline. The risk
decision table, in priority order:

- high: a URL or version disappeared, three or more numbers disappeared, or
  word similarity fell below 0.45.
- medium: any number disappeared, more than two numbers were added, word
  similarity fell below 0.62, or the normalized length moved by more than 70%.
- low: everything else.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from md_review.types import FactualBaseline, FactualGuardResult, RiskLevel

_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_NUMBER = re.compile(r"\b\d+(?:[.,]\d+)?%?\b", re.ASCII)
_URL = re.compile(r"https?://[^\s)]+")
_VERSION = re.compile(r"\bv?\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z.-]+)?\b", re.ASCII)

MAX_NUMBERS = 30
MAX_URLS = 20
MAX_VERSIONS = 20
MIN_TOKEN_LENGTH = 3

HIGH_RISK_SIMILARITY = 0.45
MEDIUM_RISK_SIMILARITY = 0.62
HIGH_RISK_MISSING_NUMBERS = 3
MEDIUM_RISK_ADDED_NUMBERS = 2
MEDIUM_RISK_LENGTH_DELTA = 0.7

URL_LOSS_WARNING = "Some source URLs disappeared after rewrite."
VERSION_LOSS_WARNING = "Some version identifiers changed or were removed."
NUMBER_LOSS_WARNING = "Multiple numeric facts were removed."
DIVERGENCE_WARNING = "Candidate wording diverges heavily from the source."

RECOMMENDATIONS: dict[RiskLevel, str] = {
    "high": "Re-edit conservatively and preserve original facts, numbers, versions, and links.",
    "medium": "Run a conservative pass to tighten factual consistency.",
    "low": "Factual consistency looks stable.",
}
NO_CHANGE_RECOMMENDATION = "No changes were made; factual fidelity is intact."


def normalize_for_compare(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def tokenize_for_similarity(text: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) >= MIN_TOKEN_LENGTH]


def jaccard_similarity(left: Iterable[str], right: Iterable[str]) -> float:
    left_set, right_set = set(left), set(right)
    if not left_set and not right_set:
        return 1.0
    union = left_set | right_set
    return len(left_set & right_set) / max(1, len(union))


def extract_unique_matches(text: str, pattern: re.Pattern[str], max_items: int = 24) -> list[str]:
    """Return matches in first-seen order, deduplicated case-insensitively."""
    seen: set[str] = set()
    unique: list[str] = []
    for raw in pattern.findall(text):
        item = raw.strip()
        if not item:
            continue
        key = item.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
        if len(unique) >= max_items:
            break
    return unique


def diff_items(source: Sequence[str], target: Sequence[str]) -> tuple[str, ...]:
    """Items of `source` absent from `target`, compared case-insensitively."""
    target_keys = {item.lower() for item in target}
    return tuple(item for item in source if item.lower() not in target_keys)


def _extract_facts(text: str) -> tuple[list[str], list[str], list[str]]:
    return (
        extract_unique_matches(text, _NUMBER, MAX_NUMBERS),
        extract_unique_matches(text, _URL, MAX_URLS),
        extract_unique_matches(text, _VERSION, MAX_VERSIONS),
    )


def build_factual_baseline(original: str) -> FactualBaseline:
    numbers, urls, versions = _extract_facts(original)
    return FactualBaseline(
        normalized_original=normalize_for_compare(original),
        original_token_set=frozenset(tokenize_for_similarity(original)),
        original_numbers=tuple(numbers),
        original_urls=tuple(urls),
        original_versions=tuple(versions),
    )


def _risk_level(
    *,
    missing_numbers: int,
    added_numbers: int,
    missing_urls: int,
    missing_versions: int,
    similarity: float,
    length_delta: float,
) -> RiskLevel:
    if (
        missing_urls > 0
        or missing_versions > 0
        or missing_numbers >= HIGH_RISK_MISSING_NUMBERS
        or similarity < HIGH_RISK_SIMILARITY
    ):
        return "high"
    if (
        missing_numbers > 0
        or added_numbers > MEDIUM_RISK_ADDED_NUMBERS
        or similarity < MEDIUM_RISK_SIMILARITY
        or length_delta > MEDIUM_RISK_LENGTH_DELTA
    ):
        return "medium"
    return "low"


def factual_guard_with_baseline(baseline: FactualBaseline, candidate: str) -> FactualGuardResult:
    """Compare `candidate` against the facts captured in `baseline`."""
    similarity = jaccard_similarity(baseline.original_token_set, tokenize_for_similarity(candidate))
    normalized_candidate = normalize_for_compare(candidate)
    length_delta = abs(len(normalized_candidate) - len(baseline.normalized_original)) / max(
        1, len(baseline.normalized_original)
    )

    numbers, urls, versions = _extract_facts(candidate)
    missing_numbers = diff_items(baseline.original_numbers, numbers)
    added_numbers = diff_items(numbers, baseline.original_numbers)
    missing_urls = diff_items(baseline.original_urls, urls)
    added_urls = diff_items(urls, baseline.original_urls)
    missing_versions = diff_items(baseline.original_versions, versions)
    added_versions = diff_items(versions, baseline.original_versions)

    warnings: list[str] = []
    if missing_urls:
        warnings.append(URL_LOSS_WARNING)
    if missing_versions:
        warnings.append(VERSION_LOSS_WARNING)
    if len(missing_numbers) >= HIGH_RISK_MISSING_NUMBERS:
        warnings.append(NUMBER_LOSS_WARNING)
    if similarity < HIGH_RISK_SIMILARITY:
        warnings.append(DIVERGENCE_WARNING)

    risk = _risk_level(
        missing_numbers=len(missing_numbers),
        added_numbers=len(added_numbers),
        missing_urls=len(missing_urls),
        missing_versions=len(missing_versions),
        similarity=similarity,
        length_delta=length_delta,
    )
    return FactualGuardResult(
        risk_level=risk,
        similarity=similarity,
        length_delta=length_delta,
        missing_numbers=missing_numbers,
        added_numbers=added_numbers,
        missing_urls=missing_urls,
        added_urls=added_urls,
        missing_versions=missing_versions,
        added_versions=added_versions,
        warnings=tuple(warnings),
        recommendation=RECOMMENDATIONS[risk],
    )


def unchanged_guard_result() -> FactualGuardResult:
    """Result reported when the candidate equals the original."""
    return FactualGuardResult(
        risk_level="low",
        similarity=1.0,
        length_delta=0.0,
        missing_numbers=(),
        added_numbers=(),
        missing_urls=(),
        added_urls=(),
        missing_versions=(),
        added_versions=(),
        warnings=(),
        recommendation=NO_CHANGE_RECOMMENDATION,
    )
