"""Startup checks: external tools on PATH and a reachable cluster."""

from __future__ import annotations

import shutil

from gitops_monitor.errors import PreflightError
from gitops_monitor.utils.commands import Command, CommandRunner

REQUIRED_TOOLS = ("git", "helm", "kubectl")


def missing_tools(tools: tuple[str, ...] = REQUIRED_TOOLS) -> list[str]:
    return [tool for tool in tools if shutil.which(tool) is None]


def run_preflight(
    runner: CommandRunner | None = None,
    tools: tuple[str, ...] = REQUIRED_TOOLS,
    kube_context: str = "",
    check_cluster: bool = True,
) -> None:
    """Raise ``PreflightError`` listing every problem found."""
    runner = runner or CommandRunner(timeout=30)
    missing = missing_tools(tools)
    problems = [f"{tool} is not installed or not in PATH" for tool in missing]

    if check_cluster and "kubectl" not in missing:
        cmd = Command("kubectl").arg("cluster-info")
        if kube_context:
            cmd = cmd.option("--context", kube_context)
        result = runner.run(cmd, timeout=30)
        if not result.ok:
            problems.append(f"Kubernetes cluster is not accessible: {result.describe()}")

    if problems:
        raise PreflightError("Preflight checks failed", problems=problems)
