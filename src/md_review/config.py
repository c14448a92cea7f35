"""Configuration models for the review pipeline."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_MAX_MARKDOWN_CHARS = 120_000
DEFAULT_MAX_INPUT_TOKENS = 30_000


class AnalysisConfig(BaseModel):
    """Caps applied by the deterministic heuristics."""

    raw_block_limit: int = Field(default=40, ge=1)
    code_suggestion_limit: int = Field(default=12, ge=1)
    preview_chars: int = Field(default=180, ge=4)


class PromptConfig(BaseModel):
    """Bounds on heuristic digests embedded into agent prompts."""

    raw_block_preview_limit: int = Field(default=12, ge=0)
    code_suggestion_preview_limit: int = Field(default=8, ge=0)
    url_constraint_limit: int = Field(default=40, ge=0)
    number_constraint_limit: int = Field(default=60, ge=0)
    version_constraint_limit: int = Field(default=40, ge=0)


class ReviewConfig(BaseModel):
    """Request admission and model selection."""

    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    base_url: str | None = None
    max_markdown_chars: int = Field(default=DEFAULT_MAX_MARKDOWN_CHARS, ge=1)
    max_input_tokens: int = Field(default=DEFAULT_MAX_INPUT_TOKENS, ge=1)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    prompts: PromptConfig = Field(default_factory=PromptConfig)

    @classmethod
    def from_env(cls) -> "ReviewConfig":
        return cls(
            model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            max_input_tokens=_positive_int_env(
                "OPENAI_INPUT_TOKEN_LIMIT", DEFAULT_MAX_INPUT_TOKENS
            ),
        )


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default
