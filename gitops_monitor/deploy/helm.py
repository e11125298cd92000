"""Helm/kubectl deploy tool.

``apply`` is ``helm upgrade --install``, which is an idempotent upsert:
re-applying an unchanged chart produces a new revision with the same
desired state. Readiness is polled with ``kubectl wait`` until the target's
pods report Ready or the timeout elapses.
"""

from __future__ import annotations

import logging
import math
import time
from pathlib import Path

from gitops_monitor.errors import CommandError, DeployError
from gitops_monitor.sync.models import DeploymentTarget, Readiness
from gitops_monitor.utils.commands import Command, CommandRunner

logger = logging.getLogger(__name__)

# Extra seconds the subprocess may run past kubectl's own --timeout.
PROCESS_GRACE_SECONDS = 15
_NOT_FOUND_MARKERS = ("no matching resources found",)
_TIMEOUT_MARKERS = ("timed out waiting for the condition",)


class HelmDeployTool:
    """Deploys targets with Helm and checks readiness with kubectl."""

    def __init__(
        self,
        repo_path: str | Path,
        runner: CommandRunner | None = None,
        kube_context: str = "",
        apply_timeout: float = 600.0,
        poll_interval: float = 5.0,
    ):
        self.repo_path = Path(repo_path)
        self.runner = runner or CommandRunner(cwd=self.repo_path)
        self.kube_context = kube_context
        self.apply_timeout = apply_timeout
        self.poll_interval = poll_interval

    # ------------------------------------------------------------------
    # Command builders
    # ------------------------------------------------------------------

    def helm_upgrade_command(self, target: DeploymentTarget) -> Command:
        cmd = (
            Command("helm")
            .arg("upgrade", "--install", target.release_name, target.chart_path)
            .option("--namespace", target.namespace)
            .option_if(target.create_namespace, "--create-namespace")
        )
        for key, value in target.values:
            cmd = cmd.option("--set", f"{key}={value}")
        if self.kube_context:
            cmd = cmd.option("--kube-context", self.kube_context)
        return cmd

    def kubectl_command(self, *args: str) -> Command:
        cmd = Command("kubectl").arg(*args)
        if self.kube_context:
            cmd = cmd.option("--context", self.kube_context)
        return cmd

    def wait_command(self, namespace: str, selector: str, timeout_seconds: int) -> Command:
        return (
            self.kubectl_command("wait", "pod")
            .option("--for", "condition=ready")
            .option("--selector", selector)
            .option("--namespace", namespace)
            .option("--timeout", f"{timeout_seconds}s")
        )

    # ------------------------------------------------------------------
    # Deploy contract
    # ------------------------------------------------------------------

    def apply(self, target: DeploymentTarget) -> None:
        try:
            self.runner.check(self.helm_upgrade_command(target), timeout=self.apply_timeout)
        except CommandError as e:
            raise DeployError(f"helm upgrade for {target.name} failed: {e}") from e

    def wait_ready(self, namespace: str, selector: str, timeout: float) -> Readiness:
        """Poll until pods matching ``selector`` are Ready, or ``timeout`` elapses.

        Pods that do not exist yet (right after an upgrade) are retried
        every ``poll_interval`` seconds within the same bound.
        """
        deadline = time.monotonic() + timeout

        while True:
            remaining = math.ceil(deadline - time.monotonic())
            if remaining <= 0:
                return Readiness.TIMEOUT

            result = self.runner.run(
                self.wait_command(namespace, selector, remaining),
                timeout=remaining + PROCESS_GRACE_SECONDS,
            )
            if result.ok:
                return Readiness.READY
            if result.timed_out or _contains(result.stderr, _TIMEOUT_MARKERS):
                return Readiness.TIMEOUT
            if not _contains(result.stderr, _NOT_FOUND_MARKERS):
                raise DeployError(result.describe())

            logger.debug("no pods match %s in %s yet; retrying", selector, namespace)
            time.sleep(min(self.poll_interval, max(deadline - time.monotonic(), 0)))

    def pod_status(self, namespace: str, selector: str) -> str:
        cmd = (
            self.kubectl_command("get", "pods")
            .option("--namespace", namespace)
            .option("--selector", selector)
        )
        try:
            return self.runner.check(cmd, timeout=60).stdout
        except CommandError as e:
            raise DeployError(str(e)) from e


def _contains(text: str, markers: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(m in lowered for m in markers)
