"""Exceptions raised by the monitor and its external collaborators.

Startup problems (``ConfigError``, ``PreflightError``) are fatal and stop the
process before any scheduling state exists. Collaborator failures
(``VCSError``, ``DeployError``, ``CommandError``) are caught at the detector
and executor boundaries and only surface through the event journal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitops_monitor.utils.commands import CommandResult


class GitOpsError(Exception):
    """Base exception for all monitor errors."""


class ConfigError(GitOpsError):
    """Configuration file is missing, unreadable or malformed."""

    def __init__(self, message: str, issues: list[str] | None = None):
        super().__init__(message)
        self.issues = issues or []

    def __str__(self) -> str:
        base = super().__str__()
        if not self.issues:
            return base
        return base + "\n" + "\n".join(f"  - {issue}" for issue in self.issues)


class PreflightError(GitOpsError):
    """A required external tool or the target cluster is unavailable."""

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or []


class VCSError(GitOpsError):
    """The version-control client could not reach or read the repository."""


class DeployError(GitOpsError):
    """The deploy tool rejected or failed an action."""


class CommandError(GitOpsError):
    """An external command exited with an unexpected status."""

    def __init__(self, message: str, result: CommandResult | None = None):
        super().__init__(message)
        self.result = result
