from __future__ import annotations

from pathlib import Path

import allure
import pytest

from md_memo.app import MemoApp
from md_memo.config import ProcessSettings, Settings
from md_memo.paths import PlatformTarget

pytestmark = [
    allure.epic("Runtime Setup"),
    allure.feature("Configuration"),
]


def test_defaults_match_cli_ceilings(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("MD_MEMO_EXECUTE_TIMEOUT_SECONDS", raising=False)
    settings = Settings.from_env(base_dir=tmp_path)

    assert settings.base_dir == tmp_path
    assert settings.runtime.node_version == "v20.18.1"
    assert settings.runtime.cli_package == "@anthropic-ai/claude-code"
    assert settings.process.execute_timeout_seconds == 120.0
    assert settings.process.login_probe_timeout_seconds == 20.0
    assert settings.process.connectivity_timeout_seconds == 30.0
    assert settings.login.poll_interval_seconds == 10.0
    assert settings.login.max_polls == 60
    assert settings.transform.max_input_chars == 20_000


def test_from_env_reads_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MD_MEMO_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("MD_MEMO_EXECUTE_TIMEOUT_SECONDS", "45")
    monkeypatch.setenv("MD_MEMO_LOGIN_MAX_POLLS", "5")
    monkeypatch.setenv("MD_MEMO_NODE_DIST_URL", "https://mirror.example/node/")
    monkeypatch.setenv("MD_MEMO_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.base_dir == tmp_path / "home"
    assert settings.process.execute_timeout_seconds == 45.0
    assert settings.login.max_polls == 5
    assert settings.runtime.dist_url == "https://mirror.example/node"
    assert settings.logging.level == "DEBUG"


def test_from_env_rejects_malformed_numbers(monkeypatch) -> None:
    monkeypatch.setenv("MD_MEMO_LOGIN_MAX_POLLS", "many")

    with pytest.raises(ValueError, match="MD_MEMO_LOGIN_MAX_POLLS"):
        Settings.from_env()


def test_validate_rejects_non_positive_ceiling(tmp_path: Path) -> None:
    settings = Settings(base_dir=tmp_path, process=ProcessSettings(execute_timeout_seconds=0))

    with pytest.raises(ValueError, match="MD_MEMO_EXECUTE_TIMEOUT_SECONDS"):
        settings.validate()


def test_app_applies_runtime_and_cli_overrides(monkeypatch, tmp_path: Path) -> None:
    runtime = tmp_path / "custom" / "node"
    entry = tmp_path / "custom" / "cli.js"
    monkeypatch.setenv("MD_MEMO_RUNTIME_PATH", str(runtime))
    monkeypatch.setenv("MD_MEMO_CLI_ENTRY_PATH", str(entry))

    app = MemoApp.from_settings(
        Settings.from_env(base_dir=tmp_path / "home"),
        target=PlatformTarget(os_name="linux", arch="x64"),
    )

    assert app.layout.runtime_executable == runtime
    assert app.layout.runtime_bin_dir == runtime.parent
    assert app.layout.cli_entry == entry
    assert app.layout.history_dir == tmp_path / "home" / "history"
    assert app.process_host.timeout_seconds == 120.0
