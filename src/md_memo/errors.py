"""Error taxonomy shared by setup, authentication and transform stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes surfaced to the presentation layer."""

    INPUT_TOO_LARGE = "input_too_large"
    INVALID_REQUEST = "invalid_request"
    CLI_UNAVAILABLE = "cli_unavailable"
    CLI_FAILED = "cli_failed"
    TIMEOUT = "timeout"
    SETUP_FAILED = "setup_failed"
    LOGIN_REQUIRED = "login_required"
    LOGIN_TIMEOUT = "login_timeout"


class MemoError(RuntimeError):
    """Base class for every failure raised by the core."""

    code: ErrorCode = ErrorCode.CLI_FAILED

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(MemoError, ValueError):
    """Transform input rejected before any process is spawned."""

    code = ErrorCode.INVALID_REQUEST


class InputTooLargeError(InvalidRequestError):
    """Transform input exceeds the character ceiling."""

    code = ErrorCode.INPUT_TOO_LARGE

    def __init__(self, *, length: int, limit: int) -> None:
        super().__init__(f"Input exceeds {limit} characters (got {length}).")
        self.length = length
        self.limit = limit


class CliUnavailableError(MemoError):
    """Runtime executable or CLI entry file is missing on disk."""

    code = ErrorCode.CLI_UNAVAILABLE


class CliFailedError(MemoError):
    """CLI process exited with a non-zero status."""

    code = ErrorCode.CLI_FAILED

    def __init__(self, *, exit_code: int, stderr: str, hint: str | None = None) -> None:
        super().__init__(
            f"Claude CLI exited with code {exit_code}: {stderr.strip()}",
            details=stderr,
        )
        self.exit_code = exit_code
        self.stderr = stderr
        self.hint = hint


class CliTimeoutError(MemoError, TimeoutError):
    """CLI process did not finish within its ceiling."""

    code = ErrorCode.TIMEOUT

    def __init__(self, *, timeout_seconds: float) -> None:
        super().__init__(f"Claude CLI did not respond within {timeout_seconds:g} seconds.")
        self.timeout_seconds = timeout_seconds


class SetupFailedError(MemoError):
    """A provisioning step failed; ``stage`` names which one."""

    code = ErrorCode.SETUP_FAILED

    def __init__(self, message: str, *, stage: str, details: str | None = None) -> None:
        super().__init__(message, details=details)
        self.stage = stage


class LoginRequiredError(MemoError):
    """Authentication could not be established."""

    code = ErrorCode.LOGIN_REQUIRED


class LoginTimeoutError(MemoError, TimeoutError):
    """Browser login did not complete within the poll ceiling."""

    code = ErrorCode.LOGIN_TIMEOUT

    def __init__(self, *, waited_seconds: float) -> None:
        minutes = waited_seconds / 60
        super().__init__(
            f"Authentication timed out after {minutes:g} minutes. Run login again to retry.",
        )
        self.waited_seconds = waited_seconds


_HINT_MESSAGES = {
    "access_or_auth": "The CLI reported an authentication problem. Run `md-memo login`.",
    "billing_or_quota": "The account has run out of quota or credits.",
    "rate_limited": "The service is rate limiting requests. Try again later.",
    "network": "The CLI could not reach the service. Check the network connection.",
}


@dataclass(slots=True, frozen=True)
class ErrorReport:
    """User-facing rendering of a core failure."""

    code: ErrorCode
    message: str
    details: str | None = None


def report_error(error: MemoError) -> ErrorReport:
    """Render a core error with the failing stage kept in the message."""

    message = error.message
    if isinstance(error, SetupFailedError):
        message = f"Setup failed at stage '{error.stage}': {message}"
    elif isinstance(error, CliFailedError) and error.hint in _HINT_MESSAGES:
        message = f"{message}\n{_HINT_MESSAGES[error.hint]}"
    return ErrorReport(code=error.code, message=message, details=error.details)
