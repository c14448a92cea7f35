"""Pure builders that turn analysis results into agent prompts.

Heuristic digests are capped to a fixed number of items; the user's own
document is always embedded in full.
"""

from __future__ import annotations

from collections.abc import Sequence

from md_review.config import PromptConfig
from md_review.types import (
    CodeRecoveryResult,
    FactualBaseline,
    RawBlocksResult,
    ReviewerResult,
    StructureSignals,
)

_DEFAULT_LIMITS = PromptConfig()


def _list_preview(items: Sequence[str], max_items: int) -> str:
    return ", ".join(items[:max_items])


def summarize_raw_block_hints(raw_blocks: RawBlocksResult, max_items: int) -> str:
    lines = [
        f"- [{block.kind}] L{block.start_line}-L{block.end_line} "
        f"(confidence {block.confidence:.2f}): {block.preview}"
        for block in raw_blocks.blocks[:max_items]
    ]
    return "\n".join(lines) if lines else "- none"


def summarize_code_recovery_hints(code_recovery: CodeRecoveryResult, max_items: int) -> str:
    lines = [
        f"- L{item.start_line}-L{item.end_line} `{item.language or 'plain'}` "
        f"(confidence {item.confidence:.2f}): {item.preview}"
        for item in code_recovery.suggestions[:max_items]
    ]
    return "\n".join(lines) if lines else "- none"


def build_factual_constraints(
    baseline: FactualBaseline, limits: PromptConfig = _DEFAULT_LIMITS
) -> str:
    entries: list[str] = []
    urls = _list_preview(baseline.original_urls, limits.url_constraint_limit)
    numbers = _list_preview(baseline.original_numbers, limits.number_constraint_limit)
    versions = _list_preview(baseline.original_versions, limits.version_constraint_limit)
    if urls:
        entries.append(f"- URLs: {urls}")
    if numbers:
        entries.append(f"- Numbers: {numbers}")
    if versions:
        entries.append(f"- Versions: {versions}")
    if not entries:
        return ""
    return "\n".join(
        ["<factual_constraints>", "DO NOT change the following values:", *entries, "</factual_constraints>"]
    )


def build_formatter_prompt(
    markdown: str,
    raw_blocks: RawBlocksResult,
    code_recovery: CodeRecoveryResult,
    limits: PromptConfig = _DEFAULT_LIMITS,
) -> str:
    return "\n".join(
        [
            "Input Context:",
            f"- Raw block counts: total={raw_blocks.block_count}, "
            f"headings={raw_blocks.heading_candidate_count}, "
            f"lists={raw_blocks.list_candidate_count}, "
            f"code={raw_blocks.code_candidate_count}",
            f"- Recovered code block candidates: {code_recovery.recovered_block_count}",
            "",
            "Raw Block Hints:",
            summarize_raw_block_hints(raw_blocks, limits.raw_block_preview_limit),
            "",
            "Code Recovery Hints:",
            summarize_code_recovery_hints(code_recovery, limits.code_suggestion_preview_limit),
            "",
            "Original Raw Text:",
            markdown,
        ]
    )


def build_reviewer_prompt(markdown: str, signals: StructureSignals) -> str:
    lines = [
        "Review the markdown below. Detect the content language and evaluate in that language.",
        "Output JSON only: { needsEdit, review, keyImprovements, rewritePlan }.",
        "",
    ]
    if signals.cues:
        lines.extend([f"Structural cues: {', '.join(signals.cues)}", ""])
    lines.extend(["<markdown>", markdown, "</markdown>"])
    return "\n".join(lines)


def build_editor_prompt(
    markdown: str,
    reviewer: ReviewerResult,
    baseline: FactualBaseline,
    limits: PromptConfig = _DEFAULT_LIMITS,
) -> str:
    """Editor instructions: the rewrite plan is authoritative, improvements are context."""
    lines = [
        "<rewrite_plan>",
        f"Summary: {reviewer.review}",
        "",
        "Steps (execute in order):",
        *(f"{i}. {step}" for i, step in enumerate(reviewer.rewrite_plan, start=1)),
        "</rewrite_plan>",
        "",
        "<context>",
        "Problems identified (for reference only; do NOT use as editing instructions):",
        *(f"{i}. {item}" for i, item in enumerate(reviewer.key_improvements, start=1)),
        "</context>",
        "",
    ]
    constraints = build_factual_constraints(baseline, limits)
    if constraints:
        lines.extend([constraints, ""])
    lines.extend(["<markdown>", markdown, "</markdown>"])
    return "\n".join(lines)
