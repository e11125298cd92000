"""Deployment executor — apply each task, wait for readiness, classify.

Tasks run one after another in the order given. A failure in one task is
recorded as that task's result and never stops the tasks after it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from gitops_monitor.sync.interfaces import DeployTool
from gitops_monitor.sync.journal import EventJournal
from gitops_monitor.sync.models import DeploymentResult, DeploymentTask, Outcome, Readiness

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentExecutor:
    """Runs deployment tasks against a deploy tool."""

    def __init__(
        self,
        deploy_tool: DeployTool,
        journal: EventJournal,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.deploy_tool = deploy_tool
        self.journal = journal
        self.clock = clock

    def execute(self, tasks: Iterable[DeploymentTask]) -> list[DeploymentResult]:
        results = []
        for task in tasks:
            result = self.run_task(task)
            self.journal.record(
                f"Deployment of {result.target}: {result.outcome.value} "
                f"({result.duration_ms}ms) {result.detail}".rstrip()
            )
            results.append(result)
        return results

    def run_task(self, task: DeploymentTask) -> DeploymentResult:
        target = task.target
        started_at = self.clock()

        def finish(outcome: Outcome, detail: str) -> DeploymentResult:
            return DeploymentResult(
                target=target.name,
                outcome=outcome,
                started_at=started_at,
                finished_at=self.clock(),
                detail=detail,
            )

        self.journal.record(
            f"Deploying {target.name} to namespace {target.namespace} "
            f"(changed: {', '.join(task.matched_paths) or 'n/a'})"
        )
        try:
            self.deploy_tool.apply(target)
        except Exception as e:
            logger.debug("apply failed for %s", target.name, exc_info=True)
            return finish(Outcome.FAILED, f"apply failed: {e}")

        self.journal.record(
            f"Waiting up to {target.timeout:g}s for {target.name} "
            f"({target.readiness_selector}) to be ready"
        )
        try:
            readiness = self.deploy_tool.wait_ready(
                target.namespace, target.readiness_selector, target.timeout
            )
        except Exception as e:
            logger.debug("readiness check failed for %s", target.name, exc_info=True)
            return finish(Outcome.FAILED, f"readiness check failed: {e}")

        if readiness != Readiness.READY:
            return finish(
                Outcome.TIMED_OUT,
                f"not ready within {target.timeout:g}s",
            )

        return finish(Outcome.SUCCEEDED, self._pod_status(task))

    def _pod_status(self, task: DeploymentTask) -> str:
        """Best-effort pod snapshot; never affects the outcome."""
        target = task.target
        try:
            return self.deploy_tool.pod_status(target.namespace, target.readiness_selector).strip()
        except Exception as e:
            logger.debug("pod status unavailable for %s: %s", target.name, e)
            return ""
