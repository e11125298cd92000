"""Ordered, immutable set of deployment targets."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from gitops_monitor.errors import ConfigError
from gitops_monitor.sync.models import DeploymentTarget


class TargetRegistry:
    """Deployment targets in registration order.

    Registration order is the dispatch order, so the same change set always
    produces the same task list.
    """

    def __init__(self, targets: Iterable[DeploymentTarget] = ()):
        targets = tuple(targets)
        issues = validate_targets(targets)
        if issues:
            raise ConfigError("Malformed target registry", issues=issues)
        self._targets = targets

    def __iter__(self) -> Iterator[DeploymentTarget]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: object) -> bool:
        return any(t.name == name for t in self._targets)

    def get(self, name: str) -> DeploymentTarget | None:
        for target in self._targets:
            if target.name == name:
                return target
        return None

    @property
    def names(self) -> list[str]:
        return [t.name for t in self._targets]


def validate_targets(targets: Iterable[DeploymentTarget]) -> list[str]:
    """Return a list of problems with the target definitions. Empty means valid."""
    issues: list[str] = []
    seen: set[str] = set()

    for i, target in enumerate(targets):
        label = target.name or f"targets[{i}]"
        if not target.name:
            issues.append(f"targets[{i}]: name is required")
        elif target.name in seen:
            issues.append(f"{label}: duplicate target name")
        seen.add(target.name)

        if not target.path_prefix:
            issues.append(f"{label}: path_prefix is required")
        elif target.path_prefix.startswith("/"):
            issues.append(f"{label}: path_prefix must be relative to the repo root")
        if not target.namespace:
            issues.append(f"{label}: namespace is required")
        if not target.readiness_selector:
            issues.append(f"{label}: readiness_selector is required")
        if target.timeout <= 0:
            issues.append(f"{label}: timeout must be positive (got {target.timeout})")

    return issues
