"""Download and install the local Node.js runtime and the Claude Code CLI package."""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

import httpx

from md_memo.errors import SetupFailedError
from md_memo.paths import PlatformTarget, RuntimeLayout
from md_memo.runtime.base import ProgressCallback, finish_in_thread, report_progress
from md_memo.runtime.process import build_child_env, run_to_completion

logger = logging.getLogger(__name__)

DEFAULT_NODE_VERSION = "v20.18.1"
DEFAULT_DIST_URL = "https://nodejs.org/dist"
DEFAULT_CLI_PACKAGE = "@anthropic-ai/claude-code"
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 300.0
DEFAULT_INSTALL_TIMEOUT_SECONDS = 600.0
DEFAULT_USER_AGENT = "md-memo/0.1 (+https://nodejs.org/dist)"

_CHUNK_SIZE = 1024 * 1024

STAGE_RUNTIME_DOWNLOAD = "runtime_download"
STAGE_RUNTIME_EXTRACT = "runtime_extract"
STAGE_CLI_INSTALL = "cli_install"


class RuntimeProvisioner:
    """Makes sure ``node`` and ``cli.js`` exist under the application directory.

    Installed state is read from the filesystem on every call.
    """

    def __init__(  # noqa: PLR0913
        self,
        layout: RuntimeLayout,
        target: PlatformTarget,
        *,
        node_version: str = DEFAULT_NODE_VERSION,
        dist_url: str = DEFAULT_DIST_URL,
        cli_package: str = DEFAULT_CLI_PACKAGE,
        download_timeout_seconds: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
        install_timeout_seconds: float = DEFAULT_INSTALL_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._layout = layout
        self._target = target
        self._node_version = node_version
        self._dist_url = dist_url.rstrip("/")
        self._cli_package = cli_package
        self._download_timeout = httpx.Timeout(download_timeout_seconds, connect=10.0)
        self._install_timeout_seconds = install_timeout_seconds
        self._transport = transport

    @property
    def runtime_download_url(self) -> str:
        return self._target.runtime_download_url(
            dist_url=self._dist_url,
            version=self._node_version,
        )

    def is_runtime_installed(self) -> bool:
        return self._layout.runtime_executable.is_file()

    def is_cli_installed(self) -> bool:
        return self._layout.cli_entry.is_file()

    async def ensure_runtime(self, progress: ProgressCallback | None = None) -> None:
        """Download and unpack Node.js unless the executable already exists."""

        if self.is_runtime_installed():
            report_progress(progress, "Node.js is already installed.")
            return

        self._layout.ensure_directories()
        url = self.runtime_download_url
        archive_name = self._target.runtime_archive_name(self._node_version)
        with tempfile.TemporaryDirectory(prefix="md-memo-node-") as temp_root:
            archive_path = Path(temp_root) / archive_name
            extract_dir = Path(temp_root) / "extract"

            report_progress(progress, "Downloading Node.js...")
            await self._download(url, archive_path)

            report_progress(progress, "Extracting Node.js...")
            await finish_in_thread(self._install_archive, archive_path, extract_dir)

        logger.info("Node.js %s installed at %s", self._node_version, self._layout.runtime_dir)
        report_progress(progress, "Node.js installation completed.")

    async def _download(self, url: str, destination: Path) -> None:
        logger.info("Downloading %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout,
                headers={"User-Agent": DEFAULT_USER_AGENT},
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with destination.open("wb") as handle:
                        async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                            handle.write(chunk)
        except httpx.HTTPStatusError as error:
            raise SetupFailedError(
                f"Node.js download failed with HTTP {error.response.status_code}: {url}",
                stage=STAGE_RUNTIME_DOWNLOAD,
            ) from error
        except httpx.HTTPError as error:
            raise SetupFailedError(
                f"Node.js download failed: {error}",
                stage=STAGE_RUNTIME_DOWNLOAD,
            ) from error

    def _install_archive(self, archive_path: Path, extract_dir: Path) -> None:
        extract_dir.mkdir(parents=True, exist_ok=True)
        try:
            if self._target.is_windows:
                with zipfile.ZipFile(archive_path) as archive:
                    archive.extractall(extract_dir)
            else:
                with tarfile.open(archive_path, "r:gz") as archive:
                    archive.extractall(extract_dir, filter="data")
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as error:
            raise SetupFailedError(
                f"Failed to extract Node.js archive: {error}",
                stage=STAGE_RUNTIME_EXTRACT,
            ) from error

        top_level = sorted(path for path in extract_dir.iterdir() if path.is_dir())
        if not top_level:
            raise SetupFailedError(
                "Failed to extract Node.js archive: no top-level directory found.",
                stage=STAGE_RUNTIME_EXTRACT,
            )

        runtime_dir = self._layout.runtime_dir
        if runtime_dir.exists():
            shutil.rmtree(runtime_dir)
        runtime_dir.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(top_level[0]), str(runtime_dir))

        if not self.is_runtime_installed():
            raise SetupFailedError(
                f"Node.js archive did not contain {self._layout.runtime_executable.name}.",
                stage=STAGE_RUNTIME_EXTRACT,
            )

    async def ensure_cli_package(self, progress: ProgressCallback | None = None) -> None:
        """Install the CLI package with the bundled npm into an isolated prefix."""

        if self.is_cli_installed():
            report_progress(progress, "Claude Code CLI is already installed.")
            return
        if not self.is_runtime_installed():
            raise SetupFailedError(
                "Node.js is not installed. Install the runtime before the CLI package.",
                stage=STAGE_CLI_INSTALL,
            )

        report_progress(progress, "Installing Claude Code CLI...")
        self._layout.ensure_directories()
        argv = [
            str(self._layout.runtime_executable),
            str(self._layout.npm_cli),
            "install",
            "--global",
            "--prefix",
            str(self._layout.npm_prefix),
            "--cache",
            str(self._layout.npm_cache),
            self._cli_package,
        ]
        try:
            output = await run_to_completion(
                argv,
                env=build_child_env(self._layout.runtime_bin_dir),
                timeout_seconds=self._install_timeout_seconds,
            )
        except TimeoutError as error:
            raise SetupFailedError(
                f"Claude Code CLI installation did not finish within "
                f"{self._install_timeout_seconds:g} seconds.",
                stage=STAGE_CLI_INSTALL,
            ) from error
        except OSError as error:
            raise SetupFailedError(
                f"Failed to start npm: {error}",
                stage=STAGE_CLI_INSTALL,
            ) from error

        if output.exit_code != 0:
            raise SetupFailedError(
                f"Claude Code CLI installation failed (exit {output.exit_code}): "
                f"{output.stderr.strip()}",
                stage=STAGE_CLI_INSTALL,
                details=output.stderr,
            )
        if not self.is_cli_installed():
            raise SetupFailedError(
                f"npm finished but {self._layout.cli_entry} is missing.",
                stage=STAGE_CLI_INSTALL,
                details=output.stdout,
            )

        logger.info("Claude Code CLI installed at %s", self._layout.cli_entry)
        report_progress(progress, "Claude Code CLI installation completed.")
