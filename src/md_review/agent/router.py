"""Workflow routing and per-request pre-computation."""

from __future__ import annotations

from md_review.analysis.blocks import parse_raw_blocks
from md_review.analysis.code_recovery import recover_code_blocks
from md_review.analysis.factual_guard import build_factual_baseline
from md_review.analysis.signals import build_structure_signals
from md_review.config import AnalysisConfig
from md_review.types import StructureSignals, WorkflowContext, WorkflowRoute

CODE_CUE_ROUTE_THRESHOLD = 2


def select_route(signals: StructureSignals) -> WorkflowRoute:
    """Structure recovery for unstructured or code-heavy unmarked text, review otherwise."""
    if signals.is_likely_unstructured_plain_text or (
        signals.code_cue_count > CODE_CUE_ROUTE_THRESHOLD and not signals.has_markdown_signals
    ):
        return WorkflowRoute.BRANCH_A
    return WorkflowRoute.BRANCH_B


def resolve_workflow_context(
    markdown: str, config: AnalysisConfig | None = None
) -> WorkflowContext:
    """Run every heuristic once, then route from the materialized results."""
    config = config or AnalysisConfig()
    signals = build_structure_signals(markdown)
    raw_blocks = parse_raw_blocks(
        markdown, config.raw_block_limit, preview_chars=config.preview_chars
    )
    code_recovery = recover_code_blocks(
        markdown,
        include_recovered_markdown=False,
        max_suggestions=config.code_suggestion_limit,
        preview_chars=config.preview_chars,
    )
    return WorkflowContext(
        route=select_route(signals),
        structure_signals=signals,
        raw_blocks=raw_blocks,
        code_recovery=code_recovery,
        factual_baseline=build_factual_baseline(markdown),
    )
