import pytest
from pydantic import ValidationError

from md_review.agent.llm import GenerationResult
from md_review.agent.reviewer import (
    ReviewerOutput,
    extract_reviewer_result,
    fallback_reviewer_result,
    from_raw_json,
    to_reviewer_result,
)


def _payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "needsEdit": True,
        "review": "Needs a clearer intro.",
        "keyImprovements": ["Clarify the intro."],
        "rewritePlan": ["Rewrite the first sentence."],
    }
    payload.update(overrides)
    return payload


def test_structured_output_is_preferred() -> None:
    result = GenerationResult(text='{"needsEdit": false}', output=_payload())

    reviewer = extract_reviewer_result(result)

    assert reviewer.needs_edit is True
    assert reviewer.key_improvements == ("Clarify the intro.",)


def test_raw_json_is_used_when_structured_output_missing() -> None:
    text = '{"needsEdit": false, "review": "Fine.", "keyImprovements": [], "rewritePlan": []}'

    reviewer = extract_reviewer_result(GenerationResult(text=text))

    assert reviewer.needs_edit is False
    assert reviewer.review == "Fine."


def test_raw_json_inside_code_fence_is_accepted() -> None:
    text = '```json\n{"needsEdit": true, "review": "r", "keyImprovements": ["a"], "rewritePlan": ["b"]}\n```'

    reviewer = from_raw_json(GenerationResult(text=text))

    assert reviewer is not None
    assert reviewer.rewrite_plan == ("b",)


def test_unparseable_output_falls_back_to_no_edit() -> None:
    reviewer = extract_reviewer_result(GenerationResult(text="I think it is fine."))

    assert reviewer == fallback_reviewer_result()
    assert reviewer.needs_edit is False
    assert len(reviewer.key_improvements) == 3
    assert len(reviewer.rewrite_plan) == 1


@pytest.mark.parametrize(
    "payload",
    [
        _payload(needsEdit="yes"),
        _payload(review=None),
        _payload(keyImprovements="Clarify."),
        {"needsEdit": True, "review": "r", "keyImprovements": []},
        ["not", "a", "dict"],
    ],
)
def test_malformed_shapes_are_rejected(payload: object) -> None:
    assert to_reviewer_result(payload) is None


def test_blank_items_are_dropped_and_lists_capped() -> None:
    reviewer = to_reviewer_result(
        _payload(
            keyImprovements=["", "  ", *[f"item {i}" for i in range(8)]],
            rewritePlan=[f"step {i}" for i in range(9)],
        )
    )

    assert reviewer is not None
    assert reviewer.key_improvements == tuple(f"item {i}" for i in range(5))
    assert len(reviewer.rewrite_plan) == 6


def test_schema_uses_camel_case_aliases() -> None:
    output = ReviewerOutput.model_validate(_payload())

    dumped = output.model_dump(by_alias=True)

    assert set(dumped) == {"needsEdit", "review", "keyImprovements", "rewritePlan"}
    with pytest.raises(ValidationError):
        ReviewerOutput.model_validate(_payload(extra="nope"))
