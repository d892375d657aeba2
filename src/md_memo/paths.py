"""Platform detection and on-disk layout of the local runtime, CLI and data files."""

from __future__ import annotations

import platform
from dataclasses import dataclass, replace
from pathlib import Path

from md_memo.config import Settings

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(slots=True, frozen=True)
class PlatformTarget:
    """Operating system and CPU architecture used to pick the runtime archive."""

    os_name: str
    arch: str

    @property
    def is_windows(self) -> bool:
        return self.os_name == "win"

    @property
    def archive_suffix(self) -> str:
        return "zip" if self.is_windows else "tar.gz"

    def runtime_archive_name(self, version: str) -> str:
        return f"node-{version}-{self.os_name}-{self.arch}.{self.archive_suffix}"

    def runtime_download_url(self, *, dist_url: str, version: str) -> str:
        return f"{dist_url}/{version}/{self.runtime_archive_name(version)}"


def detect_platform(system: str | None = None, machine: str | None = None) -> PlatformTarget:
    """Map ``platform.system()`` / ``platform.machine()`` to a runtime target."""

    system_name = (system or platform.system()).lower()
    machine_name = (machine or platform.machine()).lower()

    if system_name.startswith("win"):
        os_name = "win"
    elif system_name == "darwin":
        os_name = "darwin"
    elif system_name == "linux":
        os_name = "linux"
    else:
        raise ValueError(f"Unsupported operating system: {system_name!r}")

    try:
        arch = _ARCH_ALIASES[machine_name]
    except KeyError as error:
        raise ValueError(f"Unsupported CPU architecture: {machine_name!r}") from error
    return PlatformTarget(os_name=os_name, arch=arch)


@dataclass(slots=True, frozen=True)
class RuntimeLayout:
    """Every path the core reads or writes, resolved once per settings object.

    Install state is never stored here: callers check the filesystem through
    ``runtime_executable`` and ``cli_entry`` each time they need it.
    """

    base_dir: Path
    runtime_dir: Path
    runtime_executable: Path
    runtime_bin_dir: Path
    npm_cli: Path
    npm_prefix: Path
    npm_cache: Path
    cli_entry: Path
    history_dir: Path
    settings_path: Path
    log_dir: Path

    @classmethod
    def for_platform(
        cls,
        base_dir: Path,
        target: PlatformTarget,
        *,
        cli_package: str = "@anthropic-ai/claude-code",
    ) -> RuntimeLayout:
        lib_dir = base_dir / "lib"
        runtime_dir = lib_dir / "nodejs"
        npm_prefix = lib_dir / "npm"
        package_parts = cli_package.split("/")
        if target.is_windows:
            runtime_bin_dir = runtime_dir
            runtime_executable = runtime_dir / "node.exe"
            npm_cli = runtime_dir / "node_modules" / "npm" / "bin" / "npm-cli.js"
            global_modules = npm_prefix / "node_modules"
        else:
            runtime_bin_dir = runtime_dir / "bin"
            runtime_executable = runtime_bin_dir / "node"
            npm_cli = runtime_dir / "lib" / "node_modules" / "npm" / "bin" / "npm-cli.js"
            global_modules = npm_prefix / "lib" / "node_modules"

        return cls(
            base_dir=base_dir,
            runtime_dir=runtime_dir,
            runtime_executable=runtime_executable,
            runtime_bin_dir=runtime_bin_dir,
            npm_cli=npm_cli,
            npm_prefix=npm_prefix,
            npm_cache=lib_dir / "npm-cache",
            cli_entry=global_modules.joinpath(*package_parts, "cli.js"),
            history_dir=base_dir / "history",
            settings_path=base_dir / "settings.json",
            log_dir=base_dir / "logs",
        )

    @classmethod
    def from_settings(cls, settings: Settings, target: PlatformTarget) -> RuntimeLayout:
        """Build the default layout and apply explicit runtime/CLI overrides."""

        layout = cls.for_platform(
            settings.base_dir,
            target,
            cli_package=settings.runtime.cli_package,
        )
        overrides: dict[str, Path] = {}
        if settings.runtime.runtime_path is not None:
            overrides["runtime_executable"] = settings.runtime.runtime_path
            overrides["runtime_bin_dir"] = settings.runtime.runtime_path.parent
        if settings.runtime.cli_entry_path is not None:
            overrides["cli_entry"] = settings.runtime.cli_entry_path
        if settings.logging.log_dir is not None:
            overrides["log_dir"] = settings.logging.log_dir
        if not overrides:
            return layout
        return replace(layout, **overrides)

    def ensure_directories(self) -> None:
        """Create writable roots; the runtime directory itself is created by extraction."""

        for directory in (
            self.runtime_dir.parent,
            self.npm_prefix,
            self.npm_cache,
            self.history_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)
