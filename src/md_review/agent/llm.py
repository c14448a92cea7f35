"""Text-generation capability consumed by the orchestrator."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from md_review.agent.cancellation import CancellationToken
from md_review.obs.usage import TokenUsageReport
from md_review.types import AgentRole

logger = logging.getLogger(__name__)

_REASONING_MODEL = re.compile(r"^(gpt-5|o1|o3|o4)", re.IGNORECASE)
_REASONING_EFFORT: dict[AgentRole, str] = {
    "formatter": "minimal",
    "reviewer": "medium",
    "editor": "low",
}
REVIEWER_MAX_OUTPUT_TOKENS = 4096
MIN_OUTPUT_TOKENS = 2048
MAX_OUTPUT_TOKENS = 16384


class GenerationError(RuntimeError):
    """The model call failed or returned something unusable."""


class NoStructuredOutputError(GenerationError):
    """A structured call produced neither a parsed object nor raw text."""


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    role: AgentRole
    system: str
    prompt: str
    max_output_tokens: int
    output_schema: type[BaseModel] | None = None


@dataclass(frozen=True, slots=True)
class GenerationResult:
    text: str
    output: dict[str, Any] | None = None
    usage: TokenUsageReport | None = field(default=None)


class TextGenerator(Protocol):
    async def generate(
        self, request: GenerationRequest, *, cancel: CancellationToken | None = None
    ) -> GenerationResult: ...


def estimate_max_output_tokens(role: AgentRole, input_length: int) -> int:
    """Output budget per role.

    Reasoning tokens count against the budget, so the reviewer gets a fixed
    allowance well above its JSON size. Formatter and editor outputs scale with
    the input (~3 chars per token, 1.5x headroom for added markup).
    """
    if role == "reviewer":
        return REVIEWER_MAX_OUTPUT_TOKENS
    estimated = math.ceil((input_length / 3) * 1.5)
    return max(MIN_OUTPUT_TOKENS, min(MAX_OUTPUT_TOKENS, estimated))


def is_reasoning_model(model: str) -> bool:
    return bool(_REASONING_MODEL.match(model))


def usage_from_metadata(metadata: Any) -> TokenUsageReport | None:
    """Map LangChain `usage_metadata` onto a `TokenUsageReport`."""
    if not isinstance(metadata, dict):
        return None
    input_details = metadata.get("input_token_details") or {}
    output_details = metadata.get("output_token_details") or {}
    return TokenUsageReport(
        input_tokens=metadata.get("input_tokens"),
        output_tokens=metadata.get("output_tokens"),
        total_tokens=metadata.get("total_tokens"),
        reasoning_tokens=output_details.get("reasoning"),
        cached_input_tokens=input_details.get("cache_read"),
    )


def message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return "".join(parts)
    return "" if content is None else str(content)


class LangChainTextGenerator:
    """`TextGenerator` backed by `langchain_openai.ChatOpenAI`."""

    def __init__(self, *, api_key: str, model: str, base_url: str | None = None) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.reasoning = is_reasoning_model(model)

    def _chat_model(self, request: GenerationRequest) -> Any:
        from langchain_openai import ChatOpenAI

        options: dict[str, Any] = {
            "model": self.model,
            "api_key": self.api_key,
            "max_tokens": request.max_output_tokens,
        }
        if self.base_url:
            options["base_url"] = self.base_url
        if self.reasoning:
            options["reasoning_effort"] = _REASONING_EFFORT[request.role]
        else:
            options["temperature"] = 0
        return ChatOpenAI(**options)

    async def generate(
        self, request: GenerationRequest, *, cancel: CancellationToken | None = None
    ) -> GenerationResult:
        messages = [SystemMessage(content=request.system), HumanMessage(content=request.prompt)]
        chat = self._chat_model(request)
        call = (
            self._structured(chat, request, messages)
            if request.output_schema is not None
            else self._plain(chat, messages)
        )
        if cancel is None:
            return await call
        return await cancel.guard(call)

    async def _plain(self, chat: Any, messages: list[Any]) -> GenerationResult:
        try:
            message = await chat.ainvoke(messages)
        except Exception as exc:
            raise GenerationError(str(exc)) from exc
        return GenerationResult(
            text=message_text(message),
            usage=usage_from_metadata(getattr(message, "usage_metadata", None)),
        )

    async def _structured(
        self, chat: Any, request: GenerationRequest, messages: list[Any]
    ) -> GenerationResult:
        runnable = chat.with_structured_output(
            request.output_schema,
            method="json_schema",
            strict=True,
            include_raw=True,
        )
        try:
            result = await runnable.ainvoke(messages)
        except Exception as exc:
            raise GenerationError(str(exc)) from exc

        raw = result.get("raw")
        parsed = result.get("parsed")
        text = message_text(raw) if raw is not None else ""
        if result.get("parsing_error") is not None:
            logger.debug("Structured output parsing failed: %s", result["parsing_error"])
        if parsed is None and not text.strip():
            raise NoStructuredOutputError("No structured output was generated.")
        output = parsed.model_dump(by_alias=True) if isinstance(parsed, BaseModel) else parsed
        return GenerationResult(
            text=text,
            output=output if isinstance(output, dict) else None,
            usage=usage_from_metadata(getattr(raw, "usage_metadata", None)),
        )
