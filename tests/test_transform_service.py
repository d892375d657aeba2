from __future__ import annotations

import asyncio
import threading
from datetime import UTC, datetime
from pathlib import Path

import allure
import pytest

from md_memo.errors import CliFailedError, InputTooLargeError, InvalidRequestError
from md_memo.models import TransformIntent, TransformMode, TransformRequest
from md_memo.storage.history import HistoryStore
from md_memo.transform.service import TransformService

pytestmark = [
    allure.epic("Memo Transform"),
    allure.feature("Transform Pipeline"),
]

FIXED_NOW = datetime(2024, 1, 1, 10, 0, 30, tzinfo=UTC)

COMPLETE_MARKDOWN = (
    "# 2024-01-01 10:00_Test\n"
    "## サマリー\n...\n"
    "## 要点\n...\n"
    "## 詳細\n...\n"
    "## 不明点\n...\n"
)


class SpyHost:
    def __init__(self, output: str = COMPLETE_MARKDOWN, error: Exception | None = None) -> None:
        self.output = output
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return True

    async def execute(self, prompt: str, stdin_payload: str) -> str:
        self.calls.append((prompt, stdin_payload))
        if self.error is not None:
            raise self.error
        return self.output


def _service(host: SpyHost, history_dir: Path, **kwargs) -> TransformService:
    return TransformService(host, HistoryStore(history_dir), clock=lambda: FIXED_NOW, **kwargs)


def test_transform_returns_clean_result_and_persists_record(tmp_path: Path) -> None:
    host = SpyHost()
    service = _service(host, tmp_path)
    request = TransformRequest(
        text="hello",
        intent=TransformIntent.AUTO,
        mode=TransformMode.BALANCED,
        include_raw=True,
    )

    result = asyncio.run(service.transform(request))

    assert result.markdown == COMPLETE_MARKDOWN
    assert result.meta.warnings == ()
    assert result.meta.title == "2024-01-01 10:00_Test"
    assert result.meta.input_chars == 5
    assert result.meta.intent == "auto"
    assert result.meta.mode == "balanced"
    assert result.meta.id.startswith("20240101_100030_")

    input_text, output_markdown, meta = HistoryStore(tmp_path).load(result.meta.id)
    assert input_text == "hello"
    assert output_markdown == COMPLETE_MARKDOWN
    assert meta == result.meta


def test_transform_pipes_input_on_stdin_and_sends_instruction_prompt(tmp_path: Path) -> None:
    host = SpyHost()
    service = _service(host, tmp_path)

    asyncio.run(service.transform(TransformRequest(text="議事録の本文", title_hint="週次定例")))

    assert len(host.calls) == 1
    prompt, stdin_payload = host.calls[0]
    assert stdin_payload == "議事録の本文"
    assert "議事録の本文" not in prompt
    assert "タイトルのヒント: 週次定例" in prompt


def test_transform_reports_missing_section_as_warning(tmp_path: Path) -> None:
    markdown = COMPLETE_MARKDOWN.replace("## 不明点\n...\n", "")
    service = _service(SpyHost(output=markdown), tmp_path)

    result = asyncio.run(service.transform(TransformRequest(text="hello")))

    assert result.meta.warnings == ("Missing required section: 不明点",)
    assert HistoryStore(tmp_path).load_index()[0].warnings == result.meta.warnings


def test_transform_without_heading_uses_fallback_title(tmp_path: Path) -> None:
    service = _service(SpyHost(output="plain text only"), tmp_path)

    result = asyncio.run(service.transform(TransformRequest(text="hello")))

    assert result.meta.title == "2024-01-01 10:00_無題のメモ"
    assert "Missing required section: title (# heading)" in result.meta.warnings


@pytest.mark.parametrize("text", ["", "   \n\t"])
def test_empty_input_is_rejected_before_spawning(tmp_path: Path, text: str) -> None:
    host = SpyHost()
    service = _service(host, tmp_path)

    with pytest.raises(InvalidRequestError):
        asyncio.run(service.transform(TransformRequest(text=text)))

    assert host.calls == []
    assert list(tmp_path.iterdir()) == []


def test_oversized_input_is_rejected_before_spawning(tmp_path: Path) -> None:
    host = SpyHost()
    service = _service(host, tmp_path)

    with pytest.raises(InputTooLargeError) as error_info:
        asyncio.run(service.transform(TransformRequest(text="a" * 20_001)))

    assert error_info.value.length == 20_001
    assert error_info.value.limit == 20_000
    assert host.calls == []


def test_input_at_the_limit_is_accepted(tmp_path: Path) -> None:
    host = SpyHost()
    service = _service(host, tmp_path)

    result = asyncio.run(service.transform(TransformRequest(text="a" * 20_000)))

    assert result.meta.input_chars == 20_000
    assert len(host.calls) == 1


def test_cli_failure_writes_no_history(tmp_path: Path) -> None:
    host = SpyHost(error=CliFailedError(exit_code=1, stderr="boom"))
    service = _service(host, tmp_path)

    with pytest.raises(CliFailedError):
        asyncio.run(service.transform(TransformRequest(text="hello")))

    assert list(tmp_path.iterdir()) == []


def test_custom_input_limit_is_honored(tmp_path: Path) -> None:
    host = SpyHost()
    service = _service(host, tmp_path, max_input_chars=3)

    with pytest.raises(InputTooLargeError):
        asyncio.run(service.transform(TransformRequest(text="hello")))
    assert host.calls == []


class GatedHistoryStore(HistoryStore):
    def __init__(self, root_dir: Path) -> None:
        super().__init__(root_dir)
        self.started = threading.Event()
        self.release = threading.Event()
        self.saved = False

    def save(self, *args, **kwargs) -> None:
        self.started.set()
        self.release.wait(timeout=10)
        super().save(*args, **kwargs)
        self.saved = True


def test_cancellation_during_history_write_waits_for_the_write(tmp_path: Path) -> None:
    history = GatedHistoryStore(tmp_path)
    service = TransformService(SpyHost(), history, clock=lambda: FIXED_NOW)

    async def scenario() -> bool:
        task = asyncio.create_task(service.transform(TransformRequest(text="hello")))
        await asyncio.to_thread(history.started.wait, 10)
        task.cancel()
        await asyncio.sleep(0.1)
        still_running = not task.done()
        history.release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        return still_running

    assert asyncio.run(scenario()) is True
    assert history.saved is True
    assert len(HistoryStore(tmp_path).load_index()) == 1
