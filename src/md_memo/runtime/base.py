"""Interfaces and helpers shared between the process host and its callers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def report_progress(progress: ProgressCallback | None, message: str) -> None:
    """Send an advisory status line; a missing listener is fine."""

    if progress is not None:
        progress(message)


async def finish_in_thread(func: Callable[..., None], *args: object) -> None:
    """Run blocking work in a thread; on cancellation, let it finish before re-raising.

    The caller never observes cancellation while the thread is still writing,
    so files the work touches are either complete or untouched by the time
    ``CancelledError`` arrives.
    """

    work = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        await asyncio.shield(work)
    except asyncio.CancelledError:
        await asyncio.wait([work])
        if not work.cancelled() and work.exception() is not None:
            logger.debug("Blocking work failed after cancellation: %s", work.exception())
        raise


class ProcessHost(Protocol):
    """Runs the CLI for one prompt/stdin exchange."""

    def is_available(self) -> bool:
        """Return whether the runtime and CLI entry exist on disk."""

    async def execute(self, prompt: str, stdin_payload: str) -> str:
        """Run the CLI and return its standard output."""
