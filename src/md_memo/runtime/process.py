"""Owned child processes: spawn, concurrent I/O, and process-tree termination."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TERMINATE_GRACE_SECONDS = 2.0

_IS_WINDOWS = os.name == "nt"
_GROUP_POLL_SECONDS = 0.05


@dataclass(slots=True, frozen=True)
class ChildOutput:
    """Captured result of one finished child process."""

    exit_code: int
    stdout: str
    stderr: str


def build_child_env(
    bin_dir: Path,
    *,
    set_vars: Mapping[str, str] | None = None,
    unset_vars: Iterable[str] = (),
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return a child environment with ``bin_dir`` first on PATH.

    Works on a copy: the parent's ``os.environ`` is left untouched.
    """

    env = dict(os.environ if base_env is None else base_env)
    current_path = env.get("PATH", "")
    env["PATH"] = f"{bin_dir}{os.pathsep}{current_path}" if current_path else str(bin_dir)
    if set_vars:
        env.update(set_vars)
    for name in unset_vars:
        env.pop(name, None)
    return env


async def spawn(
    argv: Sequence[str | os.PathLike[str]],
    *,
    env: Mapping[str, str],
    cwd: Path | None = None,
    pipe_stdin: bool = True,
    capture_output: bool = True,
) -> asyncio.subprocess.Process:
    """Start a child in its own process group so the whole tree can be killed."""

    output = asyncio.subprocess.PIPE if capture_output else asyncio.subprocess.DEVNULL
    kwargs: dict[str, object] = {}
    if _IS_WINDOWS:
        kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
    else:
        kwargs["start_new_session"] = True

    process = await asyncio.create_subprocess_exec(
        *[str(part) for part in argv],
        stdin=asyncio.subprocess.PIPE if pipe_stdin else asyncio.subprocess.DEVNULL,
        stdout=output,
        stderr=output,
        env=dict(env),
        cwd=str(cwd) if cwd is not None else None,
        **kwargs,
    )
    logger.debug("Spawned pid=%s: %s", process.pid, _describe_argv(argv))
    return process


@asynccontextmanager
async def owned_process(
    argv: Sequence[str | os.PathLike[str]],
    *,
    env: Mapping[str, str],
    cwd: Path | None = None,
    pipe_stdin: bool = True,
    capture_output: bool = True,
    grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
) -> AsyncIterator[asyncio.subprocess.Process]:
    """Yield a running child; on exit the child and its descendants are gone.

    Holds on every path out of the block: normal return, exceptions,
    timeouts and task cancellation.
    """

    process = await spawn(
        argv,
        env=env,
        cwd=cwd,
        pipe_stdin=pipe_stdin,
        capture_output=capture_output,
    )
    try:
        yield process
    finally:
        await terminate_process_tree(process, grace_seconds=grace_seconds)


async def communicate(
    process: asyncio.subprocess.Process,
    stdin_payload: str | None = None,
) -> ChildOutput:
    """Write stdin, close it, and drain stdout/stderr while waiting for exit."""

    payload = stdin_payload.encode("utf-8") if stdin_payload is not None else None
    stdout, stderr = await process.communicate(payload)
    return ChildOutput(
        exit_code=process.returncode if process.returncode is not None else -1,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
    )


async def run_to_completion(  # noqa: PLR0913
    argv: Sequence[str | os.PathLike[str]],
    *,
    env: Mapping[str, str],
    timeout_seconds: float,
    stdin_payload: str | None = None,
    cwd: Path | None = None,
    grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
) -> ChildOutput:
    """Run one child to exit under a ceiling.

    Raises ``TimeoutError`` when the ceiling is hit; by then the child tree
    has been terminated. Caller cancellation surfaces as ``CancelledError``.
    """

    async with asyncio.timeout(timeout_seconds):
        async with owned_process(argv, env=env, cwd=cwd, grace_seconds=grace_seconds) as process:
            return await communicate(process, stdin_payload)


async def terminate_process_tree(
    process: asyncio.subprocess.Process,
    *,
    grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
) -> None:
    """Best-effort termination of a child and its descendants, then reap it.

    The whole group is signalled even when the child itself has already
    exited: descendants keep the group alive and may still hold its pipes.
    Failures are logged and swallowed so they never mask the error that
    triggered the cleanup.
    """

    await _signal_tree(process, signal.SIGTERM)
    if await _tree_gone_within(process, grace_seconds):
        return

    logger.debug("pid=%s tree still running after %.1fs, killing", process.pid, grace_seconds)
    await _signal_tree(process, signal.SIGKILL)
    if not await _tree_gone_within(process, grace_seconds):
        logger.warning("pid=%s tree did not exit after kill", process.pid)


async def _signal_tree(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    try:
        if _IS_WINDOWS:
            # taskkill /F is already forceful; the second round only retries it.
            await _taskkill_tree(process.pid)
        else:
            os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass
    except OSError as error:
        logger.warning("Failed to signal pid=%s tree: %s", process.pid, error)


async def _tree_gone_within(process: asyncio.subprocess.Process, seconds: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    if not await _reaped_within(process, seconds):
        return False
    if _IS_WINDOWS:
        return True
    while _group_alive(process.pid):
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(_GROUP_POLL_SECONDS, remaining))
    return True


async def _reaped_within(process: asyncio.subprocess.Process, seconds: float) -> bool:
    try:
        await asyncio.wait_for(process.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


def _group_alive(pgid: int) -> bool:
    try:
        os.killpg(pgid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


async def _taskkill_tree(pid: int) -> None:
    killer = await asyncio.create_subprocess_exec(
        "taskkill",
        "/T",
        "/F",
        "/PID",
        str(pid),
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    await killer.wait()


def _decode(raw: bytes | None) -> str:
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")


def _describe_argv(argv: Sequence[str | os.PathLike[str]]) -> str:
    parts = [str(part) for part in argv]
    return " ".join(part if len(part) <= 80 else f"{part[:77]}..." for part in parts)
