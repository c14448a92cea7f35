"""Server-sent event framing for review progress."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from md_review.agent.cancellation import CancellationToken, ReviewCancelled
from md_review.agent.orchestrator import DualAgentOrchestrator
from md_review.types import StageEvent

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "AI review failed."


def format_sse(event: str, data: Any) -> str:
    """Encode one Server-Sent Events message."""
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


class SseChannel:
    """Ordered frame queue. Sends after `close()` are dropped."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: str, data: Any) -> None:
        if self._closed:
            return
        self._queue.put_nowait(format_sse(event, data))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


async def stream_review(
    markdown: str,
    *,
    orchestrator: DualAgentOrchestrator,
    cancel: CancellationToken,
) -> AsyncIterator[str]:
    """Yield `stage` frames as the review progresses, then `result` or `error`.

    Closing this iterator early (client disconnect) fires `cancel`, which stops
    any in-flight agent call. No error frame is sent after cancellation.
    """
    channel = SseChannel()

    def _on_stage(event: StageEvent) -> None:
        channel.send("stage", event.to_dict())

    async def _produce() -> None:
        try:
            payload = await orchestrator.run(markdown, on_stage=_on_stage, cancel=cancel)
            channel.send("result", payload.to_dict())
        except ReviewCancelled:
            logger.info("Review stream cancelled: %s", cancel.reason)
        except Exception as exc:
            if not cancel.cancelled:
                logger.exception("Review stream failed")
                channel.send("error", {"message": str(exc) or DEFAULT_ERROR_MESSAGE})
        finally:
            channel.close()

    producer = asyncio.create_task(_produce())
    try:
        async for frame in channel.frames():
            yield frame
    finally:
        if channel.closed:
            await producer
        else:
            cancel.cancel("Client disconnected.")
            channel.close()
