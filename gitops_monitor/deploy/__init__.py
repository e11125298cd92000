"""Helm/kubectl collaborators and startup preflight checks."""

from gitops_monitor.deploy.helm import HelmDeployTool
from gitops_monitor.deploy.preflight import REQUIRED_TOOLS, run_preflight

__all__ = [
    "HelmDeployTool",
    "REQUIRED_TOOLS",
    "run_preflight",
]
