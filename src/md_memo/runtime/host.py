"""Process host: one CLI child per prompt, with a hard ceiling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping

from md_memo.errors import CliFailedError, CliTimeoutError, CliUnavailableError
from md_memo.paths import RuntimeLayout
from md_memo.runtime.failure_hints import classify_cli_failure
from md_memo.runtime.process import (
    DEFAULT_TERMINATE_GRACE_SECONDS,
    build_child_env,
    communicate,
    owned_process,
)

logger = logging.getLogger(__name__)

DEFAULT_EXECUTE_TIMEOUT_SECONDS = 120.0
NON_INTERACTIVE_ENV = {"CI": "true"}


def cli_argv(layout: RuntimeLayout, *args: str) -> list[str]:
    """Runtime executable invoked with the CLI entry file and ``args``."""

    return [str(layout.runtime_executable), str(layout.cli_entry), *args]


def cli_env(
    layout: RuntimeLayout,
    *,
    set_vars: Mapping[str, str] | None = None,
    unset_vars: Iterable[str] = (),
) -> dict[str, str]:
    return build_child_env(layout.runtime_bin_dir, set_vars=set_vars, unset_vars=unset_vars)


def missing_cli_parts(layout: RuntimeLayout) -> list[str]:
    missing: list[str] = []
    if not layout.runtime_executable.is_file():
        missing.append(f"Node.js runtime not found at {layout.runtime_executable}")
    if not layout.cli_entry.is_file():
        missing.append(f"Claude Code CLI not found at {layout.cli_entry}")
    return missing


class CliProcessHost:
    """Execute ``node cli.js -p <prompt>`` with the request piped on stdin."""

    def __init__(
        self,
        layout: RuntimeLayout,
        *,
        timeout_seconds: float = DEFAULT_EXECUTE_TIMEOUT_SECONDS,
        grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
    ) -> None:
        self._layout = layout
        self._timeout_seconds = timeout_seconds
        self._grace_seconds = grace_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def is_available(self) -> bool:
        """Filesystem check only; never spawns a process."""

        return not missing_cli_parts(self._layout)

    async def execute(self, prompt: str, stdin_payload: str) -> str:
        missing = missing_cli_parts(self._layout)
        if missing:
            raise CliUnavailableError(
                "; ".join(missing) + ". Run `md-memo setup` first.",
            )

        argv = cli_argv(self._layout, "-p", prompt)
        env = cli_env(self._layout, set_vars=NON_INTERACTIVE_ENV)
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            async with asyncio.timeout(self._timeout_seconds):
                async with owned_process(
                    argv,
                    env=env,
                    grace_seconds=self._grace_seconds,
                ) as process:
                    output = await communicate(process, stdin_payload)
        except TimeoutError as error:
            logger.warning(
                "Claude CLI timed out after %.1fs (ceiling %.0fs)",
                loop.time() - started,
                self._timeout_seconds,
            )
            raise CliTimeoutError(timeout_seconds=self._timeout_seconds) from error
        except OSError as error:
            raise CliUnavailableError(f"Claude CLI failed to start: {error}") from error
        except asyncio.CancelledError:
            logger.info("Claude CLI run cancelled after %.1fs", loop.time() - started)
            raise

        if output.exit_code != 0:
            classification = classify_cli_failure(stdout=output.stdout, stderr=output.stderr)
            logger.warning(
                "Claude CLI exited with code %s (hint=%s)",
                output.exit_code,
                classification.hint.value,
            )
            raise CliFailedError(
                exit_code=output.exit_code,
                stderr=output.stderr,
                hint=classification.hint.value,
            )

        logger.info(
            "Claude CLI completed in %.1fs (stdout=%d chars)",
            loop.time() - started,
            len(output.stdout),
        )
        return output.stdout
