from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from md_memo.main import md_memo
from md_memo.storage.history import HistoryStore

pytestmark = [
    allure.epic("Memo Transform"),
    allure.feature("Command Line"),
]

FAKE_CLI = """
import json
import sys
from pathlib import Path

sys.stdin.reconfigure(encoding="utf-8")
sys.stdout.reconfigure(encoding="utf-8")
Path(__file__).with_name("last_prompt.txt").write_text(sys.argv[2], "utf-8")
text = sys.stdin.read()
sys.stdout.write("# 2024-05-01 09:30_定例会議\\n## サマリー\\n" + text + "\\n")
sys.stdout.write("## 要点\\n-\\n## 詳細\\n-\\n## 不明点\\n-\\n")
"""


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch) -> None:
    monkeypatch.setattr("md_memo.controllers.configure_logging", lambda *args, **kwargs: None)


@pytest.fixture()
def home(tmp_path: Path, monkeypatch) -> Path:
    home_dir = tmp_path / "home"
    entry = tmp_path / "cli" / "fake_cli.py"
    entry.parent.mkdir(parents=True)
    entry.write_text(textwrap.dedent(FAKE_CLI).strip() + "\n", "utf-8")
    monkeypatch.setenv("MD_MEMO_RUNTIME_PATH", sys.executable)
    monkeypatch.setenv("MD_MEMO_CLI_ENTRY_PATH", str(entry))
    return home_dir


def _last_prompt(home: Path) -> str:
    return (home.parent / "cli" / "last_prompt.txt").read_text("utf-8")


def test_transform_from_stdin_saves_history(home: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        md_memo,
        ["transform", "--home", str(home), "--intent", "meeting"],
        input="来週のリリース判定",
    )

    assert result.exit_code == 0, result.output
    assert "# 2024-05-01 09:30_定例会議" in result.output
    assert "来週のリリース判定" in result.output
    assert "Saved as " in result.output
    assert "文書の種類: 会議メモ" in _last_prompt(home)

    index = HistoryStore(home / "history").load_index()
    assert len(index) == 1
    assert index[0].title == "2024-05-01 09:30_定例会議"
    assert index[0].intent == "meeting"
    assert index[0].include_raw is False

    listed = runner.invoke(md_memo, ["history", "list", "--home", str(home)])
    assert listed.exit_code == 0
    assert index[0].id in listed.output

    shown = runner.invoke(
        md_memo,
        ["history", "show", index[0].id, "--home", str(home), "--part", "input"],
    )
    assert shown.exit_code == 0
    assert "来週のリリース判定" in shown.output


def test_transform_uses_saved_defaults(home: Path) -> None:
    runner = CliRunner()

    saved = runner.invoke(
        md_memo,
        ["settings", "set", "--home", str(home), "--mode", "verbose", "--include-raw"],
    )
    assert saved.exit_code == 0, saved.output
    assert "default_mode: verbose" in saved.output

    result = runner.invoke(md_memo, ["transform", "--home", str(home)], input="memo")

    assert result.exit_code == 0, result.output
    prompt = _last_prompt(home)
    assert "詳細に展開してください。" in prompt
    assert "## 原文" in prompt


def test_transform_reads_input_file_and_writes_output_file(home: Path, tmp_path: Path) -> None:
    source = tmp_path / "memo.txt"
    source.write_text("ファイルからの入力", "utf-8")
    target = tmp_path / "out.md"

    result = CliRunner().invoke(
        md_memo,
        ["transform", "--home", str(home), "--input", str(source), "--output", str(target)],
    )

    assert result.exit_code == 0, result.output
    assert "ファイルからの入力" in target.read_text("utf-8")
    assert f"Written to {target}" in result.output


def test_transform_rejects_empty_input(home: Path) -> None:
    result = CliRunner().invoke(md_memo, ["transform", "--home", str(home)], input="  \n")

    assert result.exit_code == 1
    assert "Error (invalid_request)" in result.output
    assert not (home / "history").exists() or list((home / "history").iterdir()) == []


def test_history_rerun_repeats_stored_request(home: Path) -> None:
    runner = CliRunner()
    first = runner.invoke(
        md_memo,
        ["transform", "--home", str(home), "--mode", "compact", "--title-hint", "定例"],
        input="original",
    )
    assert first.exit_code == 0, first.output
    record_id = HistoryStore(home / "history").load_index()[0].id

    result = runner.invoke(md_memo, ["history", "rerun", record_id, "--home", str(home)])

    assert result.exit_code == 0, result.output
    prompt = _last_prompt(home)
    assert "簡潔にまとめてください。" in prompt
    assert "タイトルのヒント: 定例" in prompt
    assert len(HistoryStore(home / "history").load_index()) == 2


def test_history_show_and_delete(home: Path) -> None:
    runner = CliRunner()
    runner.invoke(md_memo, ["transform", "--home", str(home)], input="memo")
    record_id = HistoryStore(home / "history").load_index()[0].id

    deleted = runner.invoke(md_memo, ["history", "delete", record_id, "--home", str(home)])
    assert deleted.exit_code == 0

    missing = runner.invoke(md_memo, ["history", "show", record_id, "--home", str(home)])
    assert missing.exit_code == 1
    assert "History entry not found" in missing.output


def test_status_reports_missing_install(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("MD_MEMO_RUNTIME_PATH", raising=False)
    monkeypatch.delenv("MD_MEMO_CLI_ENTRY_PATH", raising=False)

    result = CliRunner().invoke(
        md_memo,
        ["status", "--home", str(tmp_path / "empty"), "--no-check-login"],
    )

    assert result.exit_code == 1
    assert "Claude Code CLI: no" in result.output
    assert "Logged in" not in result.output


def test_status_reports_installed_cli(home: Path) -> None:
    result = CliRunner().invoke(md_memo, ["status", "--home", str(home), "--no-check-login"])

    assert result.exit_code == 0, result.output
    assert "Node.js runtime: yes" in result.output
    assert "Claude Code CLI: yes" in result.output


def _saved_record(runner: CliRunner, home: Path) -> tuple[str, Path]:
    first = runner.invoke(md_memo, ["transform", "--home", str(home)], input="memo")
    assert first.exit_code == 0, first.output
    store = HistoryStore(home / "history")
    record_id = store.load_index()[0].id
    return record_id, Path(store.get_paths(record_id).meta)


@pytest.mark.parametrize("command", ["show", "rerun"])
def test_history_commands_report_corrupt_metadata(home: Path, command: str) -> None:
    runner = CliRunner()
    record_id, meta_path = _saved_record(runner, home)
    meta_path.write_text("{not json", "utf-8")

    result = runner.invoke(md_memo, ["history", command, record_id, "--home", str(home)])

    assert result.exit_code == 1
    assert f"History entry {record_id} is unreadable" in result.output


def test_history_rerun_reports_unknown_stored_intent(home: Path) -> None:
    runner = CliRunner()
    record_id, meta_path = _saved_record(runner, home)
    payload = json.loads(meta_path.read_text("utf-8"))
    payload["intent"] = "poem"
    meta_path.write_text(json.dumps(payload), "utf-8")

    result = runner.invoke(md_memo, ["history", "rerun", record_id, "--home", str(home)])

    assert result.exit_code == 1
    assert "is unreadable" in result.output
    assert len(list((home / "history").glob("*.meta.json"))) == 1


def test_transform_output_write_failure_keeps_history_and_names_record(
    home: Path,
    tmp_path: Path,
) -> None:
    target = tmp_path / "missing-dir" / "out.md"

    result = CliRunner().invoke(
        md_memo,
        ["transform", "--home", str(home), "--output", str(target)],
        input="memo",
    )

    assert result.exit_code == 1
    index = HistoryStore(home / "history").load_index()
    assert len(index) == 1
    assert f"Saved as {index[0].id}" in result.output
    assert f"Failed to write {target}" in result.output
