"""Dual-agent review orchestration.

One request moves through an explicit state progression::

    ROUTING -> FORMATTER ----------------------------> FINALIZE -> DONE
            -> REVIEWER -> GATE -> EDITOR -----------> FINALIZE
                                -> (skip) -----------> FINALIZE

ROUTING runs every deterministic heuristic once. The formatter branch makes a
single structure-recovery call. The review branch calls the reviewer, and the
gate only lets the editor run when the reviewer asked for edits. FINALIZE
applies the factual guard and assembles the payload.

Cancellation is checked before the first call and again after every await.
Reviewer and editor failures are recovered locally; cancellation never is.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from md_review.agent.cancellation import CancellationToken, ReviewCancelled
from md_review.agent.llm import (
    GenerationRequest,
    NoStructuredOutputError,
    TextGenerator,
    estimate_max_output_tokens,
)
from md_review.agent.prompt_builders import (
    build_editor_prompt,
    build_formatter_prompt,
    build_reviewer_prompt,
)
from md_review.agent.prompts import (
    EDITOR_SYSTEM_PROMPT,
    FORMATTER_SYSTEM_PROMPT,
    REVIEWER_SYSTEM_PROMPT,
)
from md_review.agent.reviewer import (
    ReviewerOutput,
    extract_reviewer_result,
    fallback_reviewer_result,
)
from md_review.agent.router import resolve_workflow_context
from md_review.analysis.factual_guard import (
    factual_guard_with_baseline,
    normalize_for_compare,
    unchanged_guard_result,
)
from md_review.config import ReviewConfig
from md_review.obs.usage import Timer, UsageAccumulator
from md_review.types import (
    AgentName,
    AiReviewPayload,
    ReviewerResult,
    StageEvent,
    StageStatus,
    ToolInsights,
    WorkflowContext,
    WorkflowRoute,
)

logger = logging.getLogger(__name__)

StageObserver = Callable[[StageEvent], None]

FORMATTER_REVIEW = (
    "Applied deterministic structure recovery. Content wording was preserved conservatively."
)
FORMATTER_IMPROVEMENTS = (
    "Detected unstructured/code-like input and routed to formatter mode.",
    "Recovered headings, lists, and code fences using precomputed structural hints.",
    "Skipped style rewriting to keep original meaning and factual details intact.",
)
DEFAULT_REVIEW = "AI review completed."
DEFAULT_IMPROVEMENTS = (
    "Output was generated with deterministic workflow controls.",
    "No additional improvement notes were returned by the model.",
    "Please inspect factual risk indicators before accepting changes.",
)


class ReviewState(str, Enum):
    ROUTING = "routing"
    FORMATTER = "formatter"
    REVIEWER = "reviewer"
    GATE = "gate"
    EDITOR = "editor"
    FINALIZE = "finalize"
    DONE = "done"


@dataclass(slots=True)
class ReviewRun:
    """Mutable state owned by exactly one request."""

    markdown: str
    context: WorkflowContext | None = None
    reviewer_usage: UsageAccumulator = field(default_factory=UsageAccumulator)
    editor_usage: UsageAccumulator = field(default_factory=UsageAccumulator)
    reviewer_result: ReviewerResult | None = None
    review: str = ""
    key_improvements: tuple[str, ...] = ()
    candidate: str = ""
    editor_skipped: bool = False
    payload: AiReviewPayload | None = None

    def __post_init__(self) -> None:
        self.candidate = self.markdown

    @property
    def workflow(self) -> WorkflowContext:
        if self.context is None:
            raise RuntimeError("Workflow context requested before routing.")
        return self.context


def _raise_if_cancelled(cancel: CancellationToken | None) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


class DualAgentOrchestrator:
    """Routes one document to the formatter or to reviewer + editor."""

    def __init__(self, *, generator: TextGenerator, config: ReviewConfig | None = None) -> None:
        self.generator = generator
        self.config = config or ReviewConfig()

    async def run(
        self,
        markdown: str,
        *,
        on_stage: StageObserver | None = None,
        cancel: CancellationToken | None = None,
    ) -> AiReviewPayload:
        """Review `markdown` and return the final payload.

        Stage events are delivered to `on_stage` in order: a role's "started"
        always precedes its "completed", and reviewer events precede editor
        events. Raises `ReviewCancelled` once `cancel` fires.
        """
        run = ReviewRun(markdown=markdown)
        state = ReviewState.ROUTING
        while state is not ReviewState.DONE:
            _raise_if_cancelled(cancel)
            state = await self._step(state, run, on_stage, cancel)
        if run.payload is None:
            raise RuntimeError("Review finished without a payload.")
        return run.payload

    async def _step(
        self,
        state: ReviewState,
        run: ReviewRun,
        on_stage: StageObserver | None,
        cancel: CancellationToken | None,
    ) -> ReviewState:
        emit = _Emitter(on_stage)
        if state is ReviewState.ROUTING:
            return self._route(run)
        if state is ReviewState.FORMATTER:
            return await self._format(run, emit, cancel)
        if state is ReviewState.REVIEWER:
            return await self._review(run, emit, cancel)
        if state is ReviewState.GATE:
            return self._gate(run, emit)
        if state is ReviewState.EDITOR:
            return await self._edit(run, emit, cancel)
        if state is ReviewState.FINALIZE:
            return self._finalize(run)
        raise ValueError(f"Unexpected review state: {state}")

    def _route(self, run: ReviewRun) -> ReviewState:
        run.context = resolve_workflow_context(run.markdown, self.config.analysis)
        signals = run.context.structure_signals
        logger.info(
            "Routed review to %s (cues=%s, code_cues=%d, markdown=%s)",
            run.context.route.value,
            ",".join(signals.cues) or "-",
            signals.code_cue_count,
            signals.has_markdown_signals,
        )
        if run.context.route is WorkflowRoute.BRANCH_A:
            return ReviewState.FORMATTER
        return ReviewState.REVIEWER

    async def _format(
        self, run: ReviewRun, emit: _Emitter, cancel: CancellationToken | None
    ) -> ReviewState:
        emit(
            "reviewer",
            "completed",
            "Structure recovery route selected. Reviewer step skipped.",
            run.reviewer_usage,
        )
        emit("editor", "started", "Formatter Agent is restoring markdown structure...")

        workflow = run.workflow
        request = GenerationRequest(
            role="formatter",
            system=FORMATTER_SYSTEM_PROMPT,
            prompt=build_formatter_prompt(
                run.markdown, workflow.raw_blocks, workflow.code_recovery, self.config.prompts
            ),
            max_output_tokens=estimate_max_output_tokens("formatter", len(run.markdown)),
        )
        with Timer() as timer:
            result = await self.generator.generate(request, cancel=cancel)
        run.editor_usage.record(result.usage)
        _raise_if_cancelled(cancel)
        logger.debug("Formatter call finished in %.1f ms", timer.elapsed_ms)

        run.candidate = result.text.strip() or run.markdown
        run.review = FORMATTER_REVIEW
        run.key_improvements = FORMATTER_IMPROVEMENTS
        emit("editor", "completed", "Formatter pass complete.", run.editor_usage)
        return ReviewState.FINALIZE

    async def _review(
        self, run: ReviewRun, emit: _Emitter, cancel: CancellationToken | None
    ) -> ReviewState:
        emit("reviewer", "started", "Reviewer Agent is analyzing clarity and flow...")
        request = GenerationRequest(
            role="reviewer",
            system=REVIEWER_SYSTEM_PROMPT,
            prompt=build_reviewer_prompt(run.markdown, run.workflow.structure_signals),
            max_output_tokens=estimate_max_output_tokens("reviewer", len(run.markdown)),
            output_schema=ReviewerOutput,
        )
        try:
            with Timer() as timer:
                result = await self.generator.generate(request, cancel=cancel)
            run.reviewer_usage.record(result.usage)
            _raise_if_cancelled(cancel)
            logger.debug("Reviewer call finished in %.1f ms", timer.elapsed_ms)
            reviewer = extract_reviewer_result(result)
            if reviewer == fallback_reviewer_result():
                logger.warning("Reviewer output could not be parsed; using conservative fallback.")
            message = "Review pass complete."
        except ReviewCancelled:
            raise
        except NoStructuredOutputError:
            _raise_if_cancelled(cancel)
            logger.warning("Reviewer returned no structured output, using conservative fallback.")
            reviewer = fallback_reviewer_result()
            message = (
                "Reviewer returned no structured output. "
                "Using conservative fallback (no edits needed)."
            )
        except Exception as exc:
            _raise_if_cancelled(cancel)
            logger.exception("Reviewer agent failed, using fallback")
            reviewer = fallback_reviewer_result()
            message = (
                f"Reviewer agent encountered an error: {str(exc) or 'unknown'}. "
                "Using conservative fallback."
            )

        run.reviewer_result = reviewer
        run.review = reviewer.review
        run.key_improvements = reviewer.key_improvements
        emit("reviewer", "completed", message, run.reviewer_usage)
        return ReviewState.GATE

    def _gate(self, run: ReviewRun, emit: _Emitter) -> ReviewState:
        if run.reviewer_result is not None and run.reviewer_result.needs_edit:
            return ReviewState.EDITOR
        run.editor_skipped = True
        run.candidate = run.markdown
        emit(
            "editor",
            "completed",
            "Reviewer determined no high-impact edits are needed. Editor step skipped.",
            run.editor_usage,
        )
        return ReviewState.FINALIZE

    async def _edit(
        self, run: ReviewRun, emit: _Emitter, cancel: CancellationToken | None
    ) -> ReviewState:
        if run.reviewer_result is None:
            raise RuntimeError("Editor requested before the reviewer produced a plan.")
        emit("editor", "started", "Editor Agent is polishing with factual constraints...")
        request = GenerationRequest(
            role="editor",
            system=EDITOR_SYSTEM_PROMPT,
            prompt=build_editor_prompt(
                run.markdown, run.reviewer_result, run.workflow.factual_baseline, self.config.prompts
            ),
            max_output_tokens=estimate_max_output_tokens("editor", len(run.markdown)),
        )
        try:
            with Timer() as timer:
                result = await self.generator.generate(request, cancel=cancel)
            run.editor_usage.record(result.usage)
            _raise_if_cancelled(cancel)
            logger.debug("Editor call finished in %.1f ms", timer.elapsed_ms)
        except ReviewCancelled:
            raise
        except Exception as exc:
            _raise_if_cancelled(cancel)
            logger.exception("Editor agent failed, keeping original")
            run.candidate = run.markdown
            emit(
                "editor",
                "completed",
                f"Editor agent encountered an error: {str(exc) or 'unknown'}. Original text preserved.",
                run.editor_usage,
            )
            return ReviewState.FINALIZE

        run.candidate = result.text.strip() or run.markdown
        emit("editor", "completed", "Polish pass complete.", run.editor_usage)
        return ReviewState.FINALIZE

    def _finalize(self, run: ReviewRun) -> ReviewState:
        workflow = run.workflow
        changed = normalize_for_compare(run.candidate) != normalize_for_compare(run.markdown)
        guard = (
            factual_guard_with_baseline(workflow.factual_baseline, run.candidate)
            if changed
            else unchanged_guard_result()
        )
        if guard.risk_level != "low":
            logger.warning(
                "Factual risk %s after rewrite: %s", guard.risk_level, "; ".join(guard.warnings) or "-"
            )

        raw_blocks = workflow.raw_blocks
        run.payload = AiReviewPayload(
            review=run.review or DEFAULT_REVIEW,
            key_improvements=run.key_improvements or DEFAULT_IMPROVEMENTS,
            polished_markdown=run.candidate,
            changed=changed,
            token_usage={
                "reviewer": run.reviewer_usage.snapshot(),
                "editor": run.editor_usage.snapshot(),
            },
            tool_insights=ToolInsights(
                workflow_route=workflow.route,
                structure_recovery_detected=workflow.route is WorkflowRoute.BRANCH_A,
                editor_skipped=run.editor_skipped,
                structure_cues=workflow.structure_signals.cues,
                raw_block_count=raw_blocks.block_count,
                heading_candidate_count=raw_blocks.heading_candidate_count,
                list_candidate_count=raw_blocks.list_candidate_count,
                code_candidate_count=raw_blocks.code_candidate_count,
                recovered_code_block_count=workflow.code_recovery.recovered_block_count,
                factual_risk_level=guard.risk_level,
                factual_warnings=guard.warnings,
                factual_recommendation=guard.recommendation,
            ),
            factual_guard=guard,
        )
        return ReviewState.DONE


class _Emitter:
    """Builds `StageEvent`s and hands them to the optional observer."""

    def __init__(self, observer: StageObserver | None) -> None:
        self._observer = observer

    def __call__(
        self,
        agent: AgentName,
        status: StageStatus,
        message: str,
        usage: UsageAccumulator | None = None,
    ) -> None:
        logger.debug("Stage %s %s: %s", agent, status, message)
        if self._observer is None:
            return
        self._observer(
            StageEvent(
                agent=agent,
                status=status,
                message=message,
                usage=usage.snapshot() if usage is not None else None,
            )
        )


async def run_dual_agent_review(
    markdown: str,
    *,
    generator: TextGenerator,
    config: ReviewConfig | None = None,
    on_stage: StageObserver | None = None,
    cancel: CancellationToken | None = None,
) -> AiReviewPayload:
    return await DualAgentOrchestrator(generator=generator, config=config).run(
        markdown, on_stage=on_stage, cancel=cancel
    )
