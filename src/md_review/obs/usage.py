"""Token-usage accounting and timing for agent calls."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

from md_review.types import AgentTokenUsage

_BYTES_PER_TOKEN = 3.6


@dataclass(frozen=True, slots=True)
class TokenUsageReport:
    """Usage reported by one model invocation. Missing counts stay `None`."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    reasoning_tokens: int | None = None
    cached_input_tokens: int | None = None


class UsageAccumulator:
    """Per-role usage totals owned by a single request."""

    def __init__(self) -> None:
        self._usage = AgentTokenUsage()

    def record(self, report: TokenUsageReport | None) -> None:
        """Count one call and add whichever token counts the provider reported."""
        self._usage.calls += 1
        if report is None:
            return
        if report.input_tokens is not None:
            self._usage.input_tokens += report.input_tokens
        if report.output_tokens is not None:
            self._usage.output_tokens += report.output_tokens
        if report.total_tokens is not None:
            self._usage.total_tokens += report.total_tokens
        if report.reasoning_tokens is not None:
            self._usage.reasoning_tokens += report.reasoning_tokens
        if report.cached_input_tokens is not None:
            self._usage.cached_input_tokens += report.cached_input_tokens

    def snapshot(self) -> AgentTokenUsage:
        """Copy of the totals with `total_tokens` backfilled from input + output."""
        usage = self._usage
        total = usage.total_tokens
        if total <= 0:
            total = max(0, usage.input_tokens + usage.output_tokens)
        return AgentTokenUsage(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=total,
            reasoning_tokens=usage.reasoning_tokens,
            cached_input_tokens=usage.cached_input_tokens,
            calls=usage.calls,
        )


class Timer:
    """Simple context timer used around agent calls."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_input_tokens(text: str) -> int:
    # UTF-8 bytes track token counts across scripts better than characters.
    return math.ceil(len(text.encode("utf-8")) / _BYTES_PER_TOKEN)
