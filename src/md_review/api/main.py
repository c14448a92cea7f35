"""FastAPI entrypoint for the markdown review endpoint."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from md_review.agent.cancellation import CancellationToken, ReviewCancelled
from md_review.agent.llm import LangChainTextGenerator, TextGenerator
from md_review.agent.orchestrator import DualAgentOrchestrator
from md_review.api.streaming import DEFAULT_ERROR_MESSAGE, stream_review
from md_review.config import ReviewConfig
from md_review.obs.logging_config import configure_logging
from md_review.obs.usage import estimate_input_tokens

configure_logging(os.getenv("MD_REVIEW_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Markdown Review Service", version="0.1.0")

DISCONNECT_POLL_SECONDS = 0.5


class ReviewRequest(BaseModel):
    """Body of `POST /ai-review`. `markdown` is checked in the handler, which answers 400."""

    markdown: Any = None


def get_config() -> ReviewConfig:
    return ReviewConfig.from_env()


def get_text_generator(config: ReviewConfig = Depends(get_config)) -> TextGenerator | None:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    return LangChainTextGenerator(api_key=api_key, model=config.model, base_url=config.base_url)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _wants_stream(request: Request) -> bool:
    return (
        "text/event-stream" in request.headers.get("accept", "")
        or request.query_params.get("stream") == "1"
    )


async def _read_review_request(request: Request) -> ReviewRequest:
    try:
        return ReviewRequest.model_validate(await request.json())
    except ValueError:
        # malformed JSON or a non-object body
        return ReviewRequest()


async def _watch_disconnect(
    request: Request, cancel: CancellationToken, interval: float = DISCONNECT_POLL_SECONDS
) -> None:
    """Fire `cancel` once the client goes away."""
    while not cancel.cancelled:
        if await request.is_disconnected():
            cancel.cancel("Client disconnected.")
            return
        await asyncio.sleep(interval)


@app.get("/health")
def health(config: ReviewConfig = Depends(get_config)) -> dict[str, Any]:
    return {
        "status": "ok",
        "model": config.model,
        "llm_configured": bool(os.getenv("OPENAI_API_KEY")),
    }


@app.post("/ai-review", response_model=None)
async def ai_review(
    request: Request,
    config: ReviewConfig = Depends(get_config),
    generator: TextGenerator | None = Depends(get_text_generator),
) -> dict[str, Any] | JSONResponse | StreamingResponse:
    markdown = (await _read_review_request(request)).markdown
    if not isinstance(markdown, str) or not markdown.strip():
        return _error("Missing or empty markdown.", 400)
    if len(markdown) > config.max_markdown_chars:
        return _error(f"Markdown too large (max {config.max_markdown_chars} chars).", 413)
    estimated = estimate_input_tokens(markdown)
    if estimated > config.max_input_tokens:
        return _error(
            f"Markdown too large (estimated {estimated} input tokens; "
            f"limit {config.max_input_tokens}).",
            413,
        )
    if generator is None:
        return _error("Server missing OPENAI_API_KEY.", 500)

    orchestrator = DualAgentOrchestrator(generator=generator, config=config)
    if not _wants_stream(request):
        cancel = CancellationToken()
        watcher = asyncio.create_task(_watch_disconnect(request, cancel))
        try:
            payload = await orchestrator.run(markdown, cancel=cancel)
        except ReviewCancelled:
            logger.info("AI review cancelled: %s", cancel.reason)
            return _error("Request aborted.", 499)
        except Exception:
            logger.exception("AI review failed")
            return _error(DEFAULT_ERROR_MESSAGE, 500)
        finally:
            watcher.cancel()
        return payload.to_dict()

    return StreamingResponse(
        stream_review(markdown, orchestrator=orchestrator, cancel=CancellationToken()),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
    )
