"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import os
import subprocess
import sys
import textwrap
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path

import pytest

from md_memo.paths import PlatformTarget, RuntimeLayout

LINUX_X64 = PlatformTarget(os_name="linux", arch="x64")

FakeCliFactory = Callable[[str], RuntimeLayout]


def layout_with_fake_cli(base_dir: Path, script: str) -> RuntimeLayout:
    """Layout whose "runtime" is this Python interpreter and whose CLI entry is ``script``.

    The host invokes ``<runtime> <cli_entry> args...``, so the fake CLI sees
    the same argv shape as the real one.
    """

    entry = base_dir / "fake_cli.py"
    entry.parent.mkdir(parents=True, exist_ok=True)
    entry.write_text(textwrap.dedent(script).strip() + "\n", "utf-8")
    layout = RuntimeLayout.for_platform(base_dir, LINUX_X64)
    return replace(
        layout,
        runtime_executable=Path(sys.executable),
        runtime_bin_dir=Path(sys.executable).parent,
        cli_entry=entry,
    )


@pytest.fixture()
def fake_cli(tmp_path: Path) -> FakeCliFactory:
    """Factory writing a fake CLI script and returning a layout pointing at it."""

    def _factory(script: str) -> RuntimeLayout:
        return layout_with_fake_cli(tmp_path / "home", script)

    return _factory


@pytest.fixture()
def empty_layout(tmp_path: Path) -> RuntimeLayout:
    """Layout with nothing installed."""

    return RuntimeLayout.for_platform(tmp_path / "home", LINUX_X64)


def _pid_alive(pid: int) -> bool:
    """True while ``pid`` is a live process; exited-but-unreaped zombies count as gone."""

    if os.name == "nt":
        listing = subprocess.run(
            ["tasklist", "/FI", f"PID eq {pid}", "/NH"],
            capture_output=True,
            text=True,
            check=False,
        )
        return str(pid) in listing.stdout
    stat = Path(f"/proc/{pid}/stat")
    if Path("/proc/self").exists():
        try:
            state = stat.read_text().rsplit(")", 1)[1].split()[0]
        except (OSError, IndexError):
            return False
        return state != "Z"
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture()
def pid_alive() -> Callable[[int], bool]:
    return _pid_alive


async def _wait_for_file(path: Path, timeout: float = 10.0) -> None:
    async with asyncio.timeout(timeout):
        while not path.exists() or not path.read_text():
            await asyncio.sleep(0.05)


@pytest.fixture()
def wait_for_file() -> Callable[..., Awaitable[None]]:
    """Await until a fake CLI has written its non-empty marker file."""

    return _wait_for_file
