"""CLI entrypoint for md-memo."""

from pathlib import Path

import rich_click as click

from md_memo import __version__
from md_memo.controllers import (
    CommandResult,
    HistoryItemCommand,
    HistoryListCommand,
    LoginCommand,
    MemoCliController,
    SettingsSetCommand,
    SetupCommand,
    StatusCommand,
    TransformCommand,
    VerifyCommand,
)
from md_memo.models import TransformIntent, TransformMode

click.rich_click.USE_MARKDOWN = True
CONTROLLER = MemoCliController()

INTENT_CHOICES = [intent.value for intent in TransformIntent]
MODE_CHOICES = [mode.value for mode in TransformMode]

home_option = click.option(
    "--home",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Data directory (defaults to MD_MEMO_HOME or the per-user data dir).",
)


@click.group()
@click.version_option(version=__version__, prog_name="md-memo")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output to stderr.")
def md_memo(verbose: bool) -> None:
    """Turn rough notes into structured Markdown with the Claude Code CLI."""

    CONTROLLER.verbose = verbose


@md_memo.command("setup")
@home_option
def setup(home: Path | None) -> None:
    """Install Node.js and the Claude Code CLI, log in and verify the connection."""

    result = CONTROLLER.setup(SetupCommand(home=home), _progress)
    _finish(result, "Setup failed.")


@md_memo.command("status")
@home_option
@click.option(
    "--check-login/--no-check-login",
    default=True,
    show_default=True,
    help="Also ask the CLI whether a login session exists.",
)
def status(home: Path | None, check_login: bool) -> None:
    """Show installation and login status."""

    result = CONTROLLER.status(StatusCommand(home=home, check_login=check_login))
    _finish(result, "Claude Code CLI is not installed. Run `md-memo setup`.")


@md_memo.command("login")
@home_option
def login(home: Path | None) -> None:
    """Open the browser login flow and wait for credentials."""

    _finish(CONTROLLER.login(LoginCommand(home=home), _progress), "Login failed.")


@md_memo.command("verify")
@home_option
def verify(home: Path | None) -> None:
    """Send a tiny prompt to confirm the CLI can reach the service."""

    _finish(CONTROLLER.verify(VerifyCommand(home=home), _progress), "Verification failed.")


@md_memo.command("transform")
@home_option
@click.option(
    "--input",
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the memo from a file instead of stdin.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the Markdown to this file.",
)
@click.option("--intent", type=click.Choice(INTENT_CHOICES), default=None, help="Memo intent.")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None, help="Output mode.")
@click.option(
    "--include-raw/--no-include-raw",
    default=None,
    help="Append the original text. Defaults to the saved setting.",
)
@click.option("--title-hint", default=None, help="Hint for the generated title.")
def transform(  # noqa: PLR0913
    home: Path | None,
    input_path: Path | None,
    output_path: Path | None,
    intent: str | None,
    mode: str | None,
    include_raw: bool | None,
    title_hint: str | None,
) -> None:
    """Transform a memo into structured Markdown and save it to history."""

    if input_path is not None:
        text = input_path.read_text("utf-8")
    else:
        text = click.get_text_stream("stdin").read()
    result = CONTROLLER.transform(
        TransformCommand(
            home=home,
            text=text,
            intent=TransformIntent(intent) if intent else None,
            mode=TransformMode(mode) if mode else None,
            include_raw=include_raw,
            title_hint=title_hint,
            output_path=output_path,
        ),
    )
    _finish(result, "Transform failed.")


@md_memo.group()
def history() -> None:
    """Saved transform history."""


@history.command("list")
@home_option
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Maximum number of entries.",
)
def history_list(home: Path | None, limit: int) -> None:
    """List history entries, newest first."""

    _finish(CONTROLLER.history_list(HistoryListCommand(home=home, limit=limit)), "")


@history.command("show")
@home_option
@click.argument("record_id")
@click.option(
    "--part",
    type=click.Choice(["output", "input", "meta"]),
    default="output",
    show_default=True,
    help="Which file of the record to print.",
)
def history_show(home: Path | None, record_id: str, part: str) -> None:
    """Print one history entry."""

    result = CONTROLLER.history_show(
        HistoryItemCommand(home=home, record_id=record_id, part=part),
    )
    _finish(result, "History entry not found.")


@history.command("delete")
@home_option
@click.argument("record_id")
def history_delete(home: Path | None, record_id: str) -> None:
    """Delete one history entry."""

    _finish(CONTROLLER.history_delete(HistoryItemCommand(home=home, record_id=record_id)), "")


@history.command("rerun")
@home_option
@click.argument("record_id")
def history_rerun(home: Path | None, record_id: str) -> None:
    """Transform a saved input again with its original options."""

    result = CONTROLLER.rerun(HistoryItemCommand(home=home, record_id=record_id))
    _finish(result, "Transform failed.")


@md_memo.group()
def settings() -> None:
    """Saved transform defaults."""


@settings.command("show")
@home_option
def settings_show(home: Path | None) -> None:
    """Print saved defaults."""

    _finish(CONTROLLER.settings_show(home), "")


@settings.command("set")
@home_option
@click.option("--intent", type=click.Choice(INTENT_CHOICES), default=None, help="Default intent.")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None, help="Default mode.")
@click.option(
    "--include-raw/--no-include-raw",
    default=None,
    help="Append the original text by default.",
)
def settings_set(
    home: Path | None,
    intent: str | None,
    mode: str | None,
    include_raw: bool | None,
) -> None:
    """Update saved defaults; omitted options keep their current value."""

    result = CONTROLLER.settings_set(
        SettingsSetCommand(
            home=home,
            default_intent=TransformIntent(intent) if intent else None,
            default_mode=TransformMode(mode) if mode else None,
            default_include_raw=include_raw,
        ),
    )
    _finish(result, "")


def _progress(message: str) -> None:
    click.echo(message, err=True)


def _finish(result: CommandResult, failure_message: str) -> None:
    _emit_lines(result.lines)
    for warning in result.warnings:
        click.echo(warning, err=True)
    if not result.success:
        raise click.ClickException(failure_message or "Command failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    md_memo()
