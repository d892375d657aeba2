"""Controllers behind the ``md-memo`` CLI commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from md_memo.app import MemoApp
from md_memo.bootstrap import run_setup
from md_memo.config import Settings
from md_memo.errors import MemoError, report_error
from md_memo.logging_setup import configure_logging
from md_memo.models import AppSettings, TransformIntent, TransformMode, TransformRequest
from md_memo.runtime.base import ProgressCallback

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandResult:
    """Lines to print plus overall success for exit status."""

    lines: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    success: bool = True


@dataclass(slots=True)
class SetupCommand:
    """CLI input for the full setup sequence."""

    home: Path | None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for install/login status."""

    home: Path | None
    check_login: bool = True


@dataclass(slots=True)
class LoginCommand:
    """CLI input for browser login."""

    home: Path | None


@dataclass(slots=True)
class VerifyCommand:
    """CLI input for connectivity verification."""

    home: Path | None


@dataclass(slots=True)
class TransformCommand:
    """CLI input for one transform; ``None`` options fall back to saved defaults."""

    home: Path | None
    text: str
    intent: TransformIntent | None = None
    mode: TransformMode | None = None
    include_raw: bool | None = None
    title_hint: str | None = None
    output_path: Path | None = None


@dataclass(slots=True)
class HistoryListCommand:
    """CLI input for history listing."""

    home: Path | None
    limit: int = 20


@dataclass(slots=True)
class HistoryItemCommand:
    """CLI input addressing one history record."""

    home: Path | None
    record_id: str
    part: str = "output"


@dataclass(slots=True)
class SettingsSetCommand:
    """CLI input for updating saved defaults."""

    home: Path | None
    default_intent: TransformIntent | None = None
    default_mode: TransformMode | None = None
    default_include_raw: bool | None = None


class MemoCliController:
    """Coordinates setup, authentication, transform and history operations."""

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose

    def setup(self, command: SetupCommand, progress: ProgressCallback) -> CommandResult:
        app = self._app(command.home)
        report = asyncio.run(run_setup(app.provisioner, app.auth, progress))
        if report.success:
            return CommandResult(lines=["Setup completed. md-memo is ready."])
        stage = report.stage.value if report.stage is not None else "unknown"
        return CommandResult(
            lines=[f"Setup failed at stage '{stage}': {report.message}"],
            success=False,
        )

    def status(self, command: StatusCommand) -> CommandResult:
        app = self._app(command.home)
        lines = [
            f"Home: {app.layout.base_dir}",
            f"Node.js runtime: {_yes_no(app.provisioner.is_runtime_installed())} "
            f"({app.layout.runtime_executable})",
            f"Claude Code CLI: {_yes_no(app.provisioner.is_cli_installed())} "
            f"({app.layout.cli_entry})",
        ]
        if command.check_login:
            logged_in = asyncio.run(app.auth.is_logged_in())
            lines.append(f"Logged in: {_yes_no(logged_in)}")
        return CommandResult(lines=lines, success=app.process_host.is_available())

    def login(self, command: LoginCommand, progress: ProgressCallback) -> CommandResult:
        app = self._app(command.home)
        try:
            if asyncio.run(app.auth.is_logged_in(progress)):
                return CommandResult(lines=["Already logged in."])
            asyncio.run(app.auth.run_login(progress))
        except MemoError as error:
            return _failure(error)
        return CommandResult(lines=["Logged in."])

    def verify(self, command: VerifyCommand, progress: ProgressCallback) -> CommandResult:
        app = self._app(command.home)
        if asyncio.run(app.auth.verify_connectivity(progress)):
            return CommandResult(lines=["Connection to Claude Code confirmed."])
        return CommandResult(
            lines=["Could not confirm a connection to Claude Code."],
            success=False,
        )

    def transform(self, command: TransformCommand) -> CommandResult:
        app = self._app(command.home)
        defaults = app.settings_store.load()
        request = TransformRequest(
            text=command.text,
            intent=command.intent or defaults.default_intent,
            mode=command.mode or defaults.default_mode,
            include_raw=(
                command.include_raw
                if command.include_raw is not None
                else defaults.default_include_raw
            ),
            title_hint=command.title_hint,
        )
        return self._run_transform(app, request, command.output_path)

    def rerun(self, command: HistoryItemCommand) -> CommandResult:
        """Transform the stored input of a record again with its original options."""

        app = self._app(command.home)
        try:
            input_text, _, meta = app.history.load(command.record_id)
            request = TransformRequest(
                text=input_text,
                intent=TransformIntent(meta.intent),
                mode=TransformMode(meta.mode),
                include_raw=meta.include_raw,
                title_hint=meta.title_hint,
            )
        except FileNotFoundError:
            return _not_found(command.record_id)
        except (OSError, ValueError, TypeError, KeyError) as error:
            return _unreadable(command.record_id, error)
        return self._run_transform(app, request, None)

    def history_list(self, command: HistoryListCommand) -> CommandResult:
        app = self._app(command.home)
        items = app.history.load_index()
        if not items:
            return CommandResult(lines=["No history entries."])
        lines = []
        for meta in items[: command.limit]:
            flag = f" warnings={len(meta.warnings)}" if meta.warnings else ""
            lines.append(
                f"{meta.id}  {meta.created_at:%Y-%m-%d %H:%M}  {meta.intent}/{meta.mode}  "
                f"{meta.title}{flag}",
            )
        return CommandResult(lines=lines)

    def history_show(self, command: HistoryItemCommand) -> CommandResult:
        app = self._app(command.home)
        try:
            input_text, output_markdown, meta = app.history.load(command.record_id)
        except FileNotFoundError:
            return _not_found(command.record_id)
        except (OSError, ValueError, TypeError, KeyError) as error:
            return _unreadable(command.record_id, error)
        if command.part == "input":
            return CommandResult(lines=[input_text])
        if command.part == "meta":
            lines = [f"{key}: {value}" for key, value in meta.to_dict().items()]
            return CommandResult(lines=lines)
        return CommandResult(lines=[output_markdown], warnings=list(meta.warnings))

    def history_delete(self, command: HistoryItemCommand) -> CommandResult:
        app = self._app(command.home)
        app.history.delete(command.record_id)
        return CommandResult(lines=[f"Deleted history entry {command.record_id}."])

    def settings_show(self, home: Path | None) -> CommandResult:
        app = self._app(home)
        current = app.settings_store.load()
        return CommandResult(
            lines=[f"{key}: {value}" for key, value in current.to_dict().items()],
        )

    def settings_set(self, command: SettingsSetCommand) -> CommandResult:
        app = self._app(command.home)
        current = app.settings_store.load()
        updated = AppSettings(
            default_intent=command.default_intent or current.default_intent,
            default_mode=command.default_mode or current.default_mode,
            default_include_raw=(
                command.default_include_raw
                if command.default_include_raw is not None
                else current.default_include_raw
            ),
        )
        app.settings_store.save(updated)
        return CommandResult(
            lines=[f"{key}: {value}" for key, value in updated.to_dict().items()],
        )

    def _run_transform(
        self,
        app: MemoApp,
        request: TransformRequest,
        output_path: Path | None,
    ) -> CommandResult:
        try:
            result = asyncio.run(app.transformer.transform(request))
        except MemoError as error:
            return _failure(error)

        warnings = [f"Warning: {warning}" for warning in result.meta.warnings]
        saved = f"Saved as {result.meta.id}: {result.meta.title}"
        if output_path is not None:
            try:
                output_path.write_text(result.markdown, "utf-8")
            except OSError as error:
                logger.warning("Could not write %s for %s: %s", output_path, result.meta.id, error)
                return CommandResult(
                    lines=[saved, f"Failed to write {output_path}: {error}"],
                    warnings=warnings,
                    success=False,
                )
            return CommandResult(lines=[saved, f"Written to {output_path}"], warnings=warnings)
        return CommandResult(lines=[result.markdown], warnings=[*warnings, saved])

    def _app(self, home: Path | None) -> MemoApp:
        settings = Settings.from_env(base_dir=home)
        app = MemoApp.from_settings(settings)
        configure_logging(settings.logging, app.layout.log_dir, verbose=self.verbose)
        return app


def _failure(error: MemoError) -> CommandResult:
    report = report_error(error)
    logger.info("Command failed: code=%s", report.code.value)
    return CommandResult(lines=[f"Error ({report.code.value}): {report.message}"], success=False)


def _not_found(record_id: str) -> CommandResult:
    return CommandResult(lines=[f"History entry not found: {record_id}"], success=False)


def _unreadable(record_id: str, error: Exception) -> CommandResult:
    logger.warning("History entry %s is unreadable: %s", record_id, error)
    return CommandResult(
        lines=[f"History entry {record_id} is unreadable: {error}"],
        success=False,
    )


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"
