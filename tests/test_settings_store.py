from __future__ import annotations

import asyncio
import json
from pathlib import Path

import allure
import pytest

from md_memo.models import AppSettings, TransformIntent, TransformMode
from md_memo.storage.settings import SettingsStore

pytestmark = [
    allure.epic("Local Storage"),
    allure.feature("User Settings"),
]


def test_missing_file_loads_defaults(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == AppSettings()
    assert settings.default_include_raw is False


@pytest.mark.parametrize("content", ["{broken", "[]", json.dumps({"default_mode": "loud"})])
def test_corrupt_file_loads_defaults(tmp_path: Path, content: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(content, "utf-8")

    assert SettingsStore(path).load() == AppSettings()


def test_save_then_load_round_trips_and_leaves_no_temp_files(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "nested" / "settings.json")
    settings = AppSettings(
        default_intent=TransformIntent.DRAFT_ARTICLE,
        default_mode=TransformMode.VERBOSE,
        default_include_raw=True,
    )

    store.save(settings)

    assert store.load() == settings
    assert [path.name for path in store.path.parent.iterdir()] == ["settings.json"]
    assert json.loads(store.path.read_text("utf-8")) == {
        "default_intent": "draftarticle",
        "default_mode": "verbose",
        "default_include_raw": True,
    }


def test_async_variants_use_same_file(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    settings = AppSettings(default_intent=TransformIntent.CHAT_SUMMARY)

    asyncio.run(store.save_async(settings))

    assert asyncio.run(store.load_async()) == settings


def test_partial_document_fills_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"default_mode": "compact"}), "utf-8")

    assert SettingsStore(path).load() == AppSettings(default_mode=TransformMode.COMPACT)
