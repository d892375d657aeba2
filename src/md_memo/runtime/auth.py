"""Authentication state for the Claude CLI and the browser login flow.

Login state is never cached: every ``is_logged_in`` call re-reads the
credentials file and, when that is inconclusive, asks the CLI itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from md_memo.errors import CliUnavailableError, LoginTimeoutError
from md_memo.paths import RuntimeLayout
from md_memo.runtime.base import ProgressCallback, report_progress
from md_memo.runtime.host import NON_INTERACTIVE_ENV, cli_argv, cli_env, missing_cli_parts
from md_memo.runtime.process import (
    DEFAULT_TERMINATE_GRACE_SECONDS,
    owned_process,
    run_to_completion,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_MAX_POLLS = 60
DEFAULT_PROBE_TIMEOUT_SECONDS = 20.0
DEFAULT_CONNECTIVITY_TIMEOUT_SECONDS = 30.0

_OAUTH_KEY = "claudeAiOauth"
_TOKEN_KEY = "accessToken"
_NESTED_SESSION_ENV = "CLAUDECODE"


@dataclass(slots=True, frozen=True)
class LoginWaiting:
    polls: int = 0
    elapsed_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class LoginSucceeded:
    polls: int
    elapsed_seconds: float


@dataclass(slots=True, frozen=True)
class LoginTimedOut:
    polls: int
    elapsed_seconds: float


@dataclass(slots=True, frozen=True)
class LoginCancelled:
    polls: int
    elapsed_seconds: float


LoginWaitState = LoginWaiting | LoginSucceeded | LoginTimedOut | LoginCancelled


def advance_login_wait(
    state: LoginWaiting,
    *,
    logged_in: bool,
    interval_seconds: float,
    max_polls: int,
) -> LoginWaitState:
    """Apply one poll result to a waiting login."""

    polls = state.polls + 1
    elapsed = polls * interval_seconds
    if logged_in:
        return LoginSucceeded(polls=polls, elapsed_seconds=elapsed)
    if polls >= max_polls:
        return LoginTimedOut(polls=polls, elapsed_seconds=elapsed)
    return LoginWaiting(polls=polls, elapsed_seconds=elapsed)


def cancel_login_wait(state: LoginWaiting) -> LoginCancelled:
    return LoginCancelled(polls=state.polls, elapsed_seconds=state.elapsed_seconds)


def read_access_token(credentials_path: Path) -> str | None:
    """Return the OAuth access token stored by the CLI, if one is readable.

    Unreadable or malformed files count as "no answer", not as errors.
    """

    try:
        raw = credentials_path.read_text("utf-8")
    except FileNotFoundError:
        return None
    except OSError as error:
        logger.warning("Cannot read credentials file %s: %s", credentials_path, error)
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as error:
        logger.warning("Credentials file %s is not valid JSON: %s", credentials_path, error)
        return None

    oauth = payload.get(_OAUTH_KEY) if isinstance(payload, dict) else None
    token = oauth.get(_TOKEN_KEY) if isinstance(oauth, dict) else None
    if isinstance(token, str) and token:
        return token
    return None


class AuthManager:
    """Checks and establishes the CLI's logged-in state."""

    def __init__(  # noqa: PLR0913
        self,
        layout: RuntimeLayout,
        *,
        credentials_path: Path,
        probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        connectivity_timeout_seconds: float = DEFAULT_CONNECTIVITY_TIMEOUT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_polls: int = DEFAULT_MAX_POLLS,
        grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._layout = layout
        self._credentials_path = credentials_path
        self._probe_timeout_seconds = probe_timeout_seconds
        self._connectivity_timeout_seconds = connectivity_timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._max_polls = max_polls
        self._grace_seconds = grace_seconds
        self._sleep = sleep

    def has_credentials(self) -> bool:
        """Fast path: a non-empty access token in the credentials file."""

        return read_access_token(self._credentials_path) is not None

    async def is_logged_in(self, progress: ProgressCallback | None = None) -> bool:
        if missing_cli_parts(self._layout):
            return False

        report_progress(progress, "Checking Claude Code login state...")
        if self.has_credentials():
            logger.debug("Login check: credentials file has an access token")
            return True

        logger.debug("Login check: no usable credentials file, probing the CLI")
        return await self._probe_cli()

    async def _probe_cli(self) -> bool:
        try:
            output = await run_to_completion(
                cli_argv(self._layout, "config", "get"),
                env=cli_env(self._layout, set_vars=NON_INTERACTIVE_ENV),
                timeout_seconds=self._probe_timeout_seconds,
                stdin_payload="",
                cwd=Path.home(),
                grace_seconds=self._grace_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Login status check did not finish within %.0fs",
                self._probe_timeout_seconds,
            )
            return False
        except OSError as error:
            logger.warning("Login status check failed to start: %s", error)
            return False
        logger.debug("Login status check exit code: %s", output.exit_code)
        return output.exit_code == 0

    async def run_login(self, progress: ProgressCallback | None = None) -> None:
        """Open browser login and poll until the CLI reports a logged-in state.

        Raises ``LoginTimeoutError`` once the poll ceiling is reached. Task
        cancellation stops the wait at the next suspension point. The login
        child is terminated on every path out.
        """

        missing = missing_cli_parts(self._layout)
        if missing:
            raise CliUnavailableError("; ".join(missing) + ". Run `md-memo setup` first.")

        report_progress(progress, "Starting browser authentication...")
        state: LoginWaitState = LoginWaiting()
        async with owned_process(
            cli_argv(self._layout, "auth", "login"),
            env=cli_env(self._layout, unset_vars=(_NESTED_SESSION_ENV,)),
            cwd=Path.home(),
            pipe_stdin=False,
            capture_output=False,
            grace_seconds=self._grace_seconds,
        ) as login_process:
            logger.info("Login process started: pid=%s", login_process.pid)
            try:
                while isinstance(state, LoginWaiting):
                    await self._sleep(self._poll_interval_seconds)
                    state = advance_login_wait(
                        state,
                        logged_in=await self.is_logged_in(),
                        interval_seconds=self._poll_interval_seconds,
                        max_polls=self._max_polls,
                    )
                    if isinstance(state, LoginWaiting):
                        report_progress(
                            progress,
                            "Waiting for authentication to complete... "
                            f"({state.elapsed_seconds:.0f}s elapsed)",
                        )
            except asyncio.CancelledError:
                if isinstance(state, LoginWaiting):
                    state = cancel_login_wait(state)
                logger.info("Login wait cancelled after %d polls", state.polls)
                raise

        if isinstance(state, LoginSucceeded):
            logger.info("Login completed after %d polls", state.polls)
            report_progress(progress, "Authentication completed.")
            return

        logger.warning("Login timed out after %d polls", state.polls)
        raise LoginTimeoutError(waited_seconds=state.elapsed_seconds)

    async def verify_connectivity(self, progress: ProgressCallback | None = None) -> bool:
        """Send a trivial prompt; success means exit code 0, whatever the output."""

        if missing_cli_parts(self._layout):
            return False

        report_progress(progress, "Verifying connection to Claude...")
        try:
            output = await run_to_completion(
                cli_argv(self._layout, "-p", "test"),
                env=cli_env(self._layout, set_vars=NON_INTERACTIVE_ENV),
                timeout_seconds=self._connectivity_timeout_seconds,
                stdin_payload="",
                grace_seconds=self._grace_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Connectivity check did not finish within %.0fs",
                self._connectivity_timeout_seconds,
            )
            return False
        except OSError as error:
            logger.warning("Connectivity check failed to start: %s", error)
            return False
        if output.exit_code != 0:
            logger.warning(
                "Connectivity check exited with code %s: %s",
                output.exit_code,
                output.stderr.strip(),
            )
        return output.exit_code == 0
