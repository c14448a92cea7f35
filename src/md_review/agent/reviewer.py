"""Reviewer output contract and its extraction chain.

Extraction tries the structured output first, then a manual JSON parse of
the raw text, and finally a conservative no-edit fallback.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from md_review.agent.llm import GenerationResult
from md_review.types import ReviewerResult

MAX_KEY_IMPROVEMENTS = 5
MAX_REWRITE_STEPS = 6

_JSON_FENCE = re.compile(r"^```(?:json)?\s*\n(?P<body>.*)\n```\s*$", re.DOTALL | re.IGNORECASE)


class ReviewerOutput(BaseModel):
    """Structured-output schema requested from the reviewer role."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    needs_edit: bool = Field(alias="needsEdit")
    review: str
    key_improvements: list[str] = Field(alias="keyImprovements", max_length=MAX_KEY_IMPROVEMENTS)
    rewrite_plan: list[str] = Field(alias="rewritePlan", max_length=MAX_REWRITE_STEPS)


ReviewerExtractor = Callable[[GenerationResult], ReviewerResult | None]


def _clean_items(items: list[Any], limit: int) -> tuple[str, ...]:
    kept = [item for item in items if isinstance(item, str) and item.strip()]
    return tuple(kept[:limit])


def to_reviewer_result(value: Any) -> ReviewerResult | None:
    """Accept a loosely-shaped dict, or return None when a field is missing or mistyped."""
    if not isinstance(value, dict):
        return None
    needs_edit = value.get("needsEdit")
    review = value.get("review")
    improvements = value.get("keyImprovements")
    plan = value.get("rewritePlan")
    if (
        not isinstance(needs_edit, bool)
        or not isinstance(review, str)
        or not isinstance(improvements, list)
        or not isinstance(plan, list)
    ):
        return None
    return ReviewerResult(
        needs_edit=needs_edit,
        review=review,
        key_improvements=_clean_items(improvements, MAX_KEY_IMPROVEMENTS),
        rewrite_plan=_clean_items(plan, MAX_REWRITE_STEPS),
    )


def from_structured_output(result: GenerationResult) -> ReviewerResult | None:
    return to_reviewer_result(result.output)


def from_raw_json(result: GenerationResult) -> ReviewerResult | None:
    text = result.text.strip()
    if not text:
        return None
    fenced = _JSON_FENCE.match(text)
    if fenced:
        text = fenced.group("body")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return to_reviewer_result(parsed)


REVIEWER_EXTRACTORS: tuple[ReviewerExtractor, ...] = (from_structured_output, from_raw_json)


def fallback_reviewer_result() -> ReviewerResult:
    return ReviewerResult(
        needs_edit=False,
        review=(
            "No high-impact editorial issues detected; keep the original text "
            "with minimal intervention."
        ),
        key_improvements=(
            "No high-impact clarity or structure issues were confirmed.",
            "Avoid unnecessary paraphrasing when meaning is already clear.",
            "Preserve the original wording unless an obvious error is present.",
        ),
        rewrite_plan=("Skip editing unless a clear, high-impact issue is identified.",),
    )


def extract_reviewer_result(
    result: GenerationResult,
    extractors: tuple[ReviewerExtractor, ...] = REVIEWER_EXTRACTORS,
) -> ReviewerResult:
    for extractor in extractors:
        parsed = extractor(result)
        if parsed is not None:
            return parsed
    return fallback_reviewer_result()
