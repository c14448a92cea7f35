import pytest

from md_review.analysis.factual_guard import (
    DIVERGENCE_WARNING,
    NUMBER_LOSS_WARNING,
    URL_LOSS_WARNING,
    VERSION_LOSS_WARNING,
    build_factual_baseline,
    diff_items,
    factual_guard_with_baseline,
    unchanged_guard_result,
)


def test_text_compared_with_itself_is_low_risk() -> None:
    text = "Release v1.2.3 ships 15 fixes, see https://example.com/notes for 99.9% uptime."

    result = factual_guard_with_baseline(build_factual_baseline(text), text)

    assert result.risk_level == "low"
    assert result.similarity == 1.0
    assert result.length_delta == 0.0
    assert result.missing_numbers == result.added_numbers == ()
    assert result.missing_urls == result.added_urls == ()
    assert result.missing_versions == result.added_versions == ()
    assert result.warnings == ()


def test_dropped_url_is_high_risk() -> None:
    original = "Contact us at https://example.com/v2.3.1 for support."
    baseline = build_factual_baseline(original)

    result = factual_guard_with_baseline(baseline, "Contact us for support.")

    assert baseline.original_urls == ("https://example.com/v2.3.1",)
    assert result.risk_level == "high"
    assert result.missing_urls == ("https://example.com/v2.3.1",)
    assert URL_LOSS_WARNING in result.warnings
    assert VERSION_LOSS_WARNING in result.warnings


def test_single_missing_number_is_medium_risk() -> None:
    baseline = build_factual_baseline(
        "We shipped 12 features and fixed 40 bugs in the release cycle."
    )

    result = factual_guard_with_baseline(
        baseline, "We shipped 12 features and fixed many bugs in the release cycle."
    )

    assert result.risk_level == "medium"
    assert result.missing_numbers == ("40",)
    assert result.warnings == ()
    assert result.recommendation == "Run a conservative pass to tighten factual consistency."


def test_three_missing_numbers_is_high_risk() -> None:
    baseline = build_factual_baseline("Values 10, 20 and 30 were recorded in the alpha trial.")

    result = factual_guard_with_baseline(baseline, "Values were recorded in the alpha trial.")

    assert result.risk_level == "high"
    assert result.missing_numbers == ("10", "20", "30")
    assert result.warnings == (NUMBER_LOSS_WARNING,)


def test_heavy_divergence_is_high_risk() -> None:
    baseline = build_factual_baseline("The quick brown fox jumps over the lazy dog")

    result = factual_guard_with_baseline(baseline, "Completely unrelated sentence about databases")

    assert result.risk_level == "high"
    assert result.similarity == 0.0
    assert result.warnings == (DIVERGENCE_WARNING,)


def test_added_numbers_and_length_growth_are_medium_risk() -> None:
    original = "The service handles requests for the billing team."
    baseline = build_factual_baseline(original)

    result = factual_guard_with_baseline(
        baseline, original + " It served 100, 200 and 300 requests."
    )

    assert result.added_numbers == ("100", "200", "300")
    assert result.risk_level == "medium"


def test_extraction_dedupes_and_respects_cjk_boundaries() -> None:
    baseline = build_factual_baseline("5 apples, 5 pears. 版本2.0发布，增长50%以上")

    assert baseline.original_numbers == ("5", "2.0", "50")
    assert baseline.original_versions == ("2.0",)


def test_number_list_is_capped() -> None:
    baseline = build_factual_baseline(" ".join(str(i) for i in range(100)))

    assert len(baseline.original_numbers) == 30


def test_diff_items_is_case_insensitive() -> None:
    assert diff_items(("https://Example.com",), ["https://example.com"]) == ()
    assert diff_items(("a", "b"), ["B"]) == ("a",)


def test_unchanged_result_reports_no_risk() -> None:
    result = unchanged_guard_result()

    assert result.risk_level == "low"
    assert result.warnings == ()
    assert result.similarity == pytest.approx(1.0)
