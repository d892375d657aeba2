"""First-run setup: runtime, CLI package, login and connectivity, in that order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from md_memo.errors import ErrorCode, LoginRequiredError, MemoError, report_error
from md_memo.runtime.base import ProgressCallback, report_progress

logger = logging.getLogger(__name__)


class SetupStage(str, Enum):
    """Setup steps, in execution order."""

    RUNTIME = "runtime"
    CLI_PACKAGE = "cli_package"
    LOGIN = "login"
    CONNECTIVITY = "connectivity"


class Provisioner(Protocol):
    async def ensure_runtime(self, progress: ProgressCallback | None = None) -> None: ...

    async def ensure_cli_package(self, progress: ProgressCallback | None = None) -> None: ...


class Authenticator(Protocol):
    async def is_logged_in(self, progress: ProgressCallback | None = None) -> bool: ...

    async def run_login(self, progress: ProgressCallback | None = None) -> None: ...

    async def verify_connectivity(self, progress: ProgressCallback | None = None) -> bool: ...


@dataclass(slots=True, frozen=True)
class SetupReport:
    """Outcome of ``run_setup``; ``stage`` names the step that failed."""

    success: bool
    stage: SetupStage | None = None
    code: ErrorCode | None = None
    message: str = ""


async def run_setup(
    provisioner: Provisioner,
    auth: Authenticator,
    progress: ProgressCallback | None = None,
) -> SetupReport:
    """Run every setup step; stop at the first failure.

    Task cancellation is not a failure and propagates to the caller.
    """

    stage = SetupStage.RUNTIME
    try:
        await provisioner.ensure_runtime(progress)

        stage = SetupStage.CLI_PACKAGE
        await provisioner.ensure_cli_package(progress)

        stage = SetupStage.LOGIN
        if not await auth.is_logged_in(progress):
            await auth.run_login(progress)
            if not await auth.is_logged_in():
                raise LoginRequiredError("Login did not complete. Run `md-memo login` to retry.")

        stage = SetupStage.CONNECTIVITY
        if not await auth.verify_connectivity(progress):
            return _failed(
                stage,
                ErrorCode.CLI_FAILED,
                "Could not confirm a connection to Claude Code. Try again later.",
            )
    except MemoError as error:
        report = report_error(error)
        return _failed(stage, report.code, report.message)

    report_progress(progress, "Setup completed.")
    return SetupReport(success=True)


def _failed(stage: SetupStage, code: ErrorCode, message: str) -> SetupReport:
    logger.warning("Setup failed at %s: %s", stage.value, message)
    return SetupReport(success=False, stage=stage, code=code, message=message)
