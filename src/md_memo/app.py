"""Wires settings into the provisioner, auth manager, process host and stores."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from md_memo.config import Settings
from md_memo.paths import PlatformTarget, RuntimeLayout, detect_platform
from md_memo.runtime.auth import AuthManager
from md_memo.runtime.host import CliProcessHost
from md_memo.runtime.provisioner import RuntimeProvisioner
from md_memo.storage.history import HistoryStore
from md_memo.storage.settings import SettingsStore
from md_memo.transform.service import TransformService


@dataclass(slots=True)
class MemoApp:
    """Every collaborator the presentation layer talks to."""

    settings: Settings
    layout: RuntimeLayout
    provisioner: RuntimeProvisioner
    auth: AuthManager
    process_host: CliProcessHost
    history: HistoryStore
    settings_store: SettingsStore
    transformer: TransformService

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        target: PlatformTarget | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> MemoApp:
        settings.validate()
        platform_target = target or detect_platform()
        layout = RuntimeLayout.from_settings(settings, platform_target)
        process = settings.process

        provisioner = RuntimeProvisioner(
            layout,
            platform_target,
            node_version=settings.runtime.node_version,
            dist_url=settings.runtime.dist_url,
            cli_package=settings.runtime.cli_package,
            download_timeout_seconds=settings.runtime.download_timeout_seconds,
            install_timeout_seconds=settings.runtime.install_timeout_seconds,
            transport=transport,
        )
        auth = AuthManager(
            layout,
            credentials_path=settings.login.credentials_path,
            probe_timeout_seconds=process.login_probe_timeout_seconds,
            connectivity_timeout_seconds=process.connectivity_timeout_seconds,
            poll_interval_seconds=settings.login.poll_interval_seconds,
            max_polls=settings.login.max_polls,
            grace_seconds=process.terminate_grace_seconds,
        )
        process_host = CliProcessHost(
            layout,
            timeout_seconds=process.execute_timeout_seconds,
            grace_seconds=process.terminate_grace_seconds,
        )
        history = HistoryStore(layout.history_dir)
        return cls(
            settings=settings,
            layout=layout,
            provisioner=provisioner,
            auth=auth,
            process_host=process_host,
            history=history,
            settings_store=SettingsStore(layout.settings_path),
            transformer=TransformService(
                process_host,
                history,
                max_input_chars=settings.transform.max_input_chars,
            ),
        )
