"""Map a change set onto the deployment targets it affects."""

from __future__ import annotations

from collections.abc import Iterable

from gitops_monitor.sync.models import ChangeSet, DeploymentTarget, DeploymentTask


def dispatch(change_set: ChangeSet, targets: Iterable[DeploymentTarget]) -> list[DeploymentTask]:
    """Build one task per target with at least one changed path under its prefix.

    Tasks follow the order of ``targets``, never the iteration order of the
    change set.
    """
    change_set = frozenset(change_set)
    ordered_paths = sorted(change_set)

    tasks: list[DeploymentTask] = []
    for target in targets:
        matched = tuple(p for p in ordered_paths if target.matches(p))
        if matched:
            tasks.append(DeploymentTask(target=target, change_set=change_set, matched_paths=matched))
    return tasks
