"""Runtime configuration for provisioning, authentication and transforms."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_APP_DIR_NAME = "md-memo"


@dataclass(slots=True)
class RuntimeSettings:
    """Local Node.js runtime and CLI package provisioning."""

    node_version: str = "v20.18.1"
    dist_url: str = "https://nodejs.org/dist"
    cli_package: str = "@anthropic-ai/claude-code"
    download_timeout_seconds: float = 300.0
    install_timeout_seconds: float = 600.0
    runtime_path: Path | None = None
    cli_entry_path: Path | None = None


@dataclass(slots=True)
class ProcessSettings:
    """Ceilings applied to CLI child processes."""

    execute_timeout_seconds: float = 120.0
    login_probe_timeout_seconds: float = 20.0
    connectivity_timeout_seconds: float = 30.0
    terminate_grace_seconds: float = 2.0


@dataclass(slots=True)
class LoginSettings:
    """Browser login polling."""

    poll_interval_seconds: float = 10.0
    max_polls: int = 60
    credentials_path: Path = field(
        default_factory=lambda: Path.home() / ".claude" / ".credentials.json",
    )


@dataclass(slots=True)
class TransformSettings:
    """Transform request limits."""

    max_input_chars: int = 20_000


@dataclass(slots=True)
class LoggingSettings:
    """Rotating log file configuration."""

    level: str = "INFO"
    log_dir: Path | None = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 10


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    base_dir: Path = field(default_factory=lambda: default_base_dir())
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)
    process: ProcessSettings = field(default_factory=ProcessSettings)
    login: LoginSettings = field(default_factory=LoginSettings)
    transform: TransformSettings = field(default_factory=TransformSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_env(cls, base_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults for a per-user install."""

        return cls(
            base_dir=base_dir or _env_path("MD_MEMO_HOME") or default_base_dir(),
            runtime=RuntimeSettings(
                node_version=os.getenv("MD_MEMO_NODE_VERSION", "v20.18.1"),
                dist_url=os.getenv("MD_MEMO_NODE_DIST_URL", "https://nodejs.org/dist").rstrip("/"),
                cli_package=os.getenv("MD_MEMO_CLI_PACKAGE", "@anthropic-ai/claude-code"),
                download_timeout_seconds=_env_float("MD_MEMO_DOWNLOAD_TIMEOUT_SECONDS", 300.0),
                install_timeout_seconds=_env_float("MD_MEMO_INSTALL_TIMEOUT_SECONDS", 600.0),
                runtime_path=_env_path("MD_MEMO_RUNTIME_PATH"),
                cli_entry_path=_env_path("MD_MEMO_CLI_ENTRY_PATH"),
            ),
            process=ProcessSettings(
                execute_timeout_seconds=_env_float("MD_MEMO_EXECUTE_TIMEOUT_SECONDS", 120.0),
                login_probe_timeout_seconds=_env_float(
                    "MD_MEMO_LOGIN_PROBE_TIMEOUT_SECONDS",
                    20.0,
                ),
                connectivity_timeout_seconds=_env_float(
                    "MD_MEMO_CONNECTIVITY_TIMEOUT_SECONDS",
                    30.0,
                ),
                terminate_grace_seconds=_env_float("MD_MEMO_TERMINATE_GRACE_SECONDS", 2.0),
            ),
            login=LoginSettings(
                poll_interval_seconds=_env_float("MD_MEMO_LOGIN_POLL_INTERVAL_SECONDS", 10.0),
                max_polls=_env_int("MD_MEMO_LOGIN_MAX_POLLS", 60),
                credentials_path=(
                    _env_path("MD_MEMO_CREDENTIALS_PATH")
                    or Path.home() / ".claude" / ".credentials.json"
                ),
            ),
            transform=TransformSettings(
                max_input_chars=_env_int("MD_MEMO_MAX_INPUT_CHARS", 20_000),
            ),
            logging=LoggingSettings(
                level=os.getenv("MD_MEMO_LOG_LEVEL", "INFO").upper(),
                log_dir=_env_path("MD_MEMO_LOG_DIR"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any ceiling or limit is not usable."""

        if self.process.execute_timeout_seconds <= 0:
            raise ValueError("MD_MEMO_EXECUTE_TIMEOUT_SECONDS must be > 0.")
        if self.process.login_probe_timeout_seconds <= 0:
            raise ValueError("MD_MEMO_LOGIN_PROBE_TIMEOUT_SECONDS must be > 0.")
        if self.process.connectivity_timeout_seconds <= 0:
            raise ValueError("MD_MEMO_CONNECTIVITY_TIMEOUT_SECONDS must be > 0.")
        if self.login.poll_interval_seconds <= 0:
            raise ValueError("MD_MEMO_LOGIN_POLL_INTERVAL_SECONDS must be > 0.")
        if self.login.max_polls <= 0:
            raise ValueError("MD_MEMO_LOGIN_MAX_POLLS must be a positive integer.")
        if self.transform.max_input_chars <= 0:
            raise ValueError("MD_MEMO_MAX_INPUT_CHARS must be a positive integer.")
        if not self.runtime.node_version.startswith("v"):
            raise ValueError(
                f"Invalid MD_MEMO_NODE_VERSION: {self.runtime.node_version!r}. "
                "Expected a release tag such as 'v20.18.1'.",
            )


def default_base_dir() -> Path:
    """Per-user data directory: LOCALAPPDATA on Windows, XDG data home elsewhere."""

    if os.name == "nt":
        local_app_data = os.getenv("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data) / DEFAULT_APP_DIR_NAME
        return Path.home() / "AppData" / "Local" / DEFAULT_APP_DIR_NAME
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / DEFAULT_APP_DIR_NAME
    return Path.home() / ".local" / "share" / DEFAULT_APP_DIR_NAME


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {raw!r}") from error


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error
