from md_review.agent.prompt_builders import (
    build_editor_prompt,
    build_factual_constraints,
    build_formatter_prompt,
    build_reviewer_prompt,
    summarize_raw_block_hints,
)
from md_review.agent.router import resolve_workflow_context
from md_review.analysis.blocks import parse_raw_blocks
from md_review.analysis.factual_guard import build_factual_baseline
from md_review.analysis.signals import build_structure_signals
from md_review.config import PromptConfig
from md_review.types import ReviewerResult


def _reviewer() -> ReviewerResult:
    return ReviewerResult(
        needs_edit=True,
        review="Ambiguous pronoun.",
        key_improvements=("Clarify what 'it' refers to.",),
        rewrite_plan=("Replace 'it' with 'the tool'.", "Keep everything else."),
    )


def test_formatter_prompt_embeds_full_document_and_capped_hints() -> None:
    text = "\n\n".join(f"Paragraph {i} talks about something else entirely." for i in range(20))
    context = resolve_workflow_context(text)

    prompt = build_formatter_prompt(
        text,
        context.raw_blocks,
        context.code_recovery,
        PromptConfig(raw_block_preview_limit=2),
    )

    assert prompt.endswith(text)
    assert "Original Raw Text:" in prompt
    assert "- Raw block counts: total=20" in prompt
    assert prompt.count("[paragraph]") == 2
    assert "Code Recovery Hints:\n- none" in prompt


def test_raw_block_hint_format() -> None:
    blocks = parse_raw_blocks("# Title\n\nSome body text here.")

    hints = summarize_raw_block_hints(blocks, 12)

    assert hints.splitlines()[0] == "- [heading_candidate] L1-L1 (confidence 0.72): # Title"


def test_reviewer_prompt_lists_cues_only_when_present() -> None:
    plain = "# Title\n\nShort body."
    assert "Structural cues" not in build_reviewer_prompt(plain, build_structure_signals(plain))

    long_line = ("lorem ipsum dolor " * 20).strip()
    prompt = build_reviewer_prompt(long_line, build_structure_signals(long_line))
    assert "Structural cues: very-long-lines, no-paragraph-breaks, long-without-markdown" in prompt
    assert prompt.endswith(f"<markdown>\n{long_line}\n</markdown>")


def test_editor_prompt_orders_plan_before_context() -> None:
    markdown = "It handles requests."

    prompt = build_editor_prompt(markdown, _reviewer(), build_factual_baseline(markdown))

    assert "1. Replace 'it' with 'the tool'.\n2. Keep everything else." in prompt
    assert prompt.index("<rewrite_plan>") < prompt.index("<context>")
    assert "1. Clarify what 'it' refers to." in prompt
    assert "<factual_constraints>" not in prompt
    assert prompt.endswith("<markdown>\nIt handles requests.\n</markdown>")


def test_editor_prompt_includes_factual_constraints() -> None:
    markdown = "Install v2.1.0 from https://example.com/dl in 30 seconds."

    prompt = build_editor_prompt(markdown, _reviewer(), build_factual_baseline(markdown))

    assert "<factual_constraints>" in prompt
    assert "- URLs: https://example.com/dl" in prompt
    assert "- Versions: v2.1.0" in prompt
    assert "30" in prompt.split("- Numbers: ")[1].splitlines()[0]


def test_factual_constraints_respect_caps_and_empty_baseline() -> None:
    baseline = build_factual_baseline(" ".join(str(n) for n in range(10)))

    constraints = build_factual_constraints(baseline, PromptConfig(number_constraint_limit=3))

    assert "- Numbers: 0, 1, 2" in constraints
    assert "3" not in constraints.split("- Numbers: ")[1].splitlines()[0]
    assert build_factual_constraints(build_factual_baseline("no facts here")) == ""
