"""Transform pipeline: request → prompt → CLI → validated, persisted result."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from md_memo.models import HistoryPaths, TransformMeta, TransformRequest, TransformResult
from md_memo.runtime.base import ProcessHost, finish_in_thread
from md_memo.transform.prompts import build_prompt
from md_memo.transform.validator import (
    MAX_INPUT_CHARS,
    extract_title,
    generate_record_id,
    validate_markdown,
    validate_request,
)

logger = logging.getLogger(__name__)


class HistoryWriter(Protocol):
    """Persistence the pipeline needs from the history store."""

    def get_paths(self, record_id: str) -> HistoryPaths: ...

    def save(
        self,
        record_id: str,
        input_text: str,
        output_markdown: str,
        meta: TransformMeta,
    ) -> None: ...


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TransformService:
    """Runs one transform per call; callers serialize requests if they need to."""

    def __init__(
        self,
        process_host: ProcessHost,
        history: HistoryWriter,
        *,
        max_input_chars: int = MAX_INPUT_CHARS,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._process_host = process_host
        self._history = history
        self._max_input_chars = max_input_chars
        self._clock = clock

    async def transform(self, request: TransformRequest) -> TransformResult:
        """Produce and persist a memo.

        Nothing is written unless the CLI exits with status 0. Persistence
        failures propagate without retry.
        """

        validate_request(request, max_chars=self._max_input_chars)
        prompt = build_prompt(request)

        started = time.monotonic()
        markdown = await self._process_host.execute(prompt, request.text)
        duration_ms = int((time.monotonic() - started) * 1000)

        warnings = validate_markdown(markdown)
        now = self._clock()
        record_id = generate_record_id(now)
        meta = TransformMeta(
            id=record_id,
            created_at=now,
            title=extract_title(markdown, now),
            intent=request.intent.value,
            mode=request.mode.value,
            include_raw=request.include_raw,
            title_hint=request.title_hint,
            input_chars=len(request.text),
            duration_ms=duration_ms,
            warnings=tuple(warnings),
            paths=self._history.get_paths(record_id),
        )

        try:
            await finish_in_thread(self._history.save, record_id, request.text, markdown, meta)
        except asyncio.CancelledError:
            logger.info("Transform %s cancelled after its history record was written", record_id)
            raise
        if warnings:
            logger.warning("Transform %s finished with warnings: %s", record_id, warnings)
        logger.info(
            "Transform %s completed: intent=%s mode=%s chars=%d duration_ms=%d",
            record_id,
            meta.intent,
            meta.mode,
            meta.input_chars,
            duration_ms,
        )
        return TransformResult(markdown=markdown, meta=meta)
