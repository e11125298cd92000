"""Contracts for the external collaborators the reconciliation loop drives.

Both are blocking. Implementations raise ``VCSError`` / ``DeployError`` (or
any other exception) on failure; the detector and executor catch them.
"""

from __future__ import annotations

from typing import Protocol

from gitops_monitor.sync.models import DeploymentTarget, Readiness


class VersionControl(Protocol):
    def fetch_remote_tip(self) -> str: ...

    def diff_paths(self, old_ref: str, new_ref: str) -> set[str]: ...

    def local_head(self) -> str: ...

    def update_worktree(self, ref: str) -> None: ...


class DeployTool(Protocol):
    def apply(self, target: DeploymentTarget) -> None:
        """Idempotent install-or-upgrade of ``target``."""
        ...

    def wait_ready(self, namespace: str, selector: str, timeout: float) -> Readiness: ...

    def pod_status(self, namespace: str, selector: str) -> str: ...
