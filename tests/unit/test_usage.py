import logging

from md_review.obs.logging_config import configure_logging
from md_review.obs.usage import TokenUsageReport, UsageAccumulator, estimate_input_tokens


def test_accumulator_counts_calls_and_tokens() -> None:
    acc = UsageAccumulator()
    acc.record(TokenUsageReport(input_tokens=100, output_tokens=20, total_tokens=120, reasoning_tokens=8))
    acc.record(TokenUsageReport(input_tokens=50, output_tokens=10, cached_input_tokens=30))

    usage = acc.snapshot()

    assert usage.calls == 2
    assert usage.input_tokens == 150
    assert usage.output_tokens == 30
    assert usage.total_tokens == 120
    assert usage.reasoning_tokens == 8
    assert usage.cached_input_tokens == 30


def test_missing_report_still_counts_a_call() -> None:
    acc = UsageAccumulator()
    acc.record(None)

    usage = acc.snapshot()

    assert usage.calls == 1
    assert usage.total_tokens == 0


def test_total_is_backfilled_from_input_and_output() -> None:
    acc = UsageAccumulator()
    acc.record(TokenUsageReport(input_tokens=7, output_tokens=3))

    assert acc.snapshot().total_tokens == 10


def test_snapshot_is_a_copy() -> None:
    acc = UsageAccumulator()
    first = acc.snapshot()
    acc.record(TokenUsageReport(input_tokens=1, output_tokens=1))

    assert first.calls == 0
    assert acc.snapshot().to_dict() == {
        "inputTokens": 1,
        "outputTokens": 1,
        "totalTokens": 2,
        "reasoningTokens": 0,
        "cachedInputTokens": 0,
        "calls": 1,
    }


def test_token_estimate_uses_utf8_bytes() -> None:
    assert estimate_input_tokens("") == 0
    assert estimate_input_tokens("abcd") == 2
    # three CJK characters encode to nine bytes
    assert estimate_input_tokens("中文字") == 3


def test_configure_logging_is_idempotent() -> None:
    logger = configure_logging(logging.DEBUG)
    handlers = list(logger.handlers)

    again = configure_logging("INFO")

    assert again is logger
    assert again.handlers == handlers
    assert again.level == logging.INFO
