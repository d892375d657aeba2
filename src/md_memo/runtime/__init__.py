"""Local runtime provisioning, authentication and CLI process hosting."""

from md_memo.runtime.auth import AuthManager
from md_memo.runtime.base import ProcessHost, ProgressCallback
from md_memo.runtime.host import CliProcessHost
from md_memo.runtime.provisioner import RuntimeProvisioner

__all__ = [
    "AuthManager",
    "CliProcessHost",
    "ProcessHost",
    "ProgressCallback",
    "RuntimeProvisioner",
]
