"""Shared domain models for the review pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

RawBlockKind = Literal["heading_candidate", "paragraph", "list_candidate", "code_candidate"]
RiskLevel = Literal["low", "medium", "high"]
AgentName = Literal["reviewer", "editor"]
StageStatus = Literal["started", "completed"]
AgentRole = Literal["formatter", "reviewer", "editor"]


class WorkflowRoute(str, Enum):
    """Branch chosen once per request before any agent call."""

    BRANCH_A = "BRANCH_A"  # structure recovery, single formatter pass
    BRANCH_B = "BRANCH_B"  # reviewer, then optional editor


@dataclass(frozen=True, slots=True)
class StructureSignals:
    """Lexical snapshot describing whether text already looks like markdown."""

    is_likely_unstructured_plain_text: bool
    has_markdown_signals: bool
    has_paragraph_break: bool
    non_empty_line_count: int
    avg_line_length: float
    heading_like_line_count: int
    code_cue_count: int
    inline_list_cue_count: int
    cues: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RawBlock:
    """One blank-line-delimited span of input. Line numbers are 1-based."""

    index: int
    kind: RawBlockKind
    start_line: int
    end_line: int
    line_count: int
    confidence: float
    preview: str


@dataclass(frozen=True, slots=True)
class RawBlocksResult:
    blocks: tuple[RawBlock, ...]
    heading_candidate_count: int
    list_candidate_count: int
    code_candidate_count: int

    @property
    def block_count(self) -> int:
        return len(self.blocks)


@dataclass(frozen=True, slots=True)
class CodeRecoverySuggestion:
    start_line: int
    end_line: int
    language: str
    confidence: float
    preview: str


@dataclass(frozen=True, slots=True)
class CodeRecoveryResult:
    changed: bool
    recovered_block_count: int
    candidate_line_count: int
    suggestions: tuple[CodeRecoverySuggestion, ...]
    recovered_markdown: str | None = None


@dataclass(frozen=True, slots=True)
class FactualBaseline:
    """Facts extracted from the pristine original text."""

    normalized_original: str
    original_token_set: frozenset[str]
    original_numbers: tuple[str, ...]
    original_urls: tuple[str, ...]
    original_versions: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FactualGuardResult:
    risk_level: RiskLevel
    similarity: float
    length_delta: float
    missing_numbers: tuple[str, ...]
    added_numbers: tuple[str, ...]
    missing_urls: tuple[str, ...]
    added_urls: tuple[str, ...]
    missing_versions: tuple[str, ...]
    added_versions: tuple[str, ...]
    warnings: tuple[str, ...]
    recommendation: str


@dataclass(frozen=True, slots=True)
class ReviewerResult:
    needs_edit: bool
    review: str
    key_improvements: tuple[str, ...]
    rewrite_plan: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class WorkflowContext:
    """Deterministic pre-computation shared by every stage of one request."""

    route: WorkflowRoute
    structure_signals: StructureSignals
    raw_blocks: RawBlocksResult
    code_recovery: CodeRecoveryResult
    factual_baseline: FactualBaseline


@dataclass(slots=True)
class AgentTokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_input_tokens: int = 0
    calls: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "reasoningTokens": self.reasoning_tokens,
            "cachedInputTokens": self.cached_input_tokens,
            "calls": self.calls,
        }


@dataclass(frozen=True, slots=True)
class StageEvent:
    """Progress notification emitted to the observer callback."""

    agent: AgentName
    status: StageStatus
    message: str
    usage: AgentTokenUsage | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "agent": self.agent,
            "status": self.status,
            "message": self.message,
        }
        if self.usage is not None:
            payload["usage"] = self.usage.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class ToolInsights:
    workflow_route: WorkflowRoute
    structure_recovery_detected: bool
    editor_skipped: bool
    structure_cues: tuple[str, ...]
    raw_block_count: int
    heading_candidate_count: int
    list_candidate_count: int
    code_candidate_count: int
    recovered_code_block_count: int
    factual_risk_level: RiskLevel
    factual_warnings: tuple[str, ...]
    factual_recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflowRoute": self.workflow_route.value,
            "structureRecoveryDetected": self.structure_recovery_detected,
            "editorSkipped": self.editor_skipped,
            "structureCues": list(self.structure_cues),
            "rawBlockCount": self.raw_block_count,
            "headingCandidateCount": self.heading_candidate_count,
            "listCandidateCount": self.list_candidate_count,
            "codeCandidateCount": self.code_candidate_count,
            "recoveredCodeBlockCount": self.recovered_code_block_count,
            "factualRiskLevel": self.factual_risk_level,
            "factualWarnings": list(self.factual_warnings),
            "factualRecommendation": self.factual_recommendation,
        }


@dataclass(frozen=True, slots=True)
class AiReviewPayload:
    """Final result of one review request."""

    review: str
    key_improvements: tuple[str, ...]
    polished_markdown: str
    changed: bool
    token_usage: dict[AgentName, AgentTokenUsage]
    tool_insights: ToolInsights
    factual_guard: FactualGuardResult | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "review": self.review,
            "keyImprovements": list(self.key_improvements),
            "polishedMarkdown": self.polished_markdown,
            "changed": self.changed,
            "tokenUsage": {role: usage.to_dict() for role, usage in self.token_usage.items()},
            "toolInsights": self.tool_insights.to_dict(),
        }
