"""Cooperative cancellation threaded through every agent call."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class ReviewCancelled(Exception):
    """Raised once the caller has abandoned the request."""


class CancellationToken:
    """One-shot cancellation signal shared by a request and its transport."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Request aborted.") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReviewCancelled(self._reason or "Request aborted.")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token fires first.

        When the token wins, the pending work is cancelled and
        `ReviewCancelled` is raised.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
            self.raise_if_cancelled()
        return work.result()
