from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from md_review.agent.cancellation import CancellationToken
from md_review.agent.llm import GenerationRequest, GenerationResult
from md_review.obs.usage import TokenUsageReport

Outcome = GenerationResult | Exception | Callable[[GenerationRequest, Any], GenerationResult]


class ScriptedGenerator:
    """Returns a canned outcome per role and records every request."""

    def __init__(self, outcomes: dict[str, Outcome]) -> None:
        self.outcomes = outcomes
        self.requests: list[GenerationRequest] = []

    @property
    def roles(self) -> list[str]:
        return [request.role for request in self.requests]

    async def generate(
        self, request: GenerationRequest, *, cancel: CancellationToken | None = None
    ) -> GenerationResult:
        self.requests.append(request)
        outcome = self.outcomes[request.role]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request, cancel)
        return outcome


def usage(input_tokens: int = 10, output_tokens: int = 5) -> TokenUsageReport:
    return TokenUsageReport(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
    )


@pytest.fixture
def make_generator() -> Callable[[dict[str, Outcome]], ScriptedGenerator]:
    return ScriptedGenerator


@pytest.fixture
def reviewer_output() -> Callable[..., GenerationResult]:
    def _build(
        needs_edit: bool,
        *,
        review: str = "Looks fine.",
        key_improvements: list[str] | None = None,
        rewrite_plan: list[str] | None = None,
    ) -> GenerationResult:
        output = {
            "needsEdit": needs_edit,
            "review": review,
            "keyImprovements": key_improvements if key_improvements is not None else ["Fix the typo."],
            "rewritePlan": rewrite_plan if rewrite_plan is not None else ["Correct 'it' to 'the tool'."],
        }
        return GenerationResult(text="", output=output, usage=usage(40, 12))

    return _build


@pytest.fixture
def text_output() -> Callable[[str], GenerationResult]:
    def _build(text: str) -> GenerationResult:
        return GenerationResult(text=text, usage=usage(30, 20))

    return _build
