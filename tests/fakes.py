"""In-memory stand-ins for the version-control client and deploy tool."""

from __future__ import annotations

import threading
import time

from gitops_monitor.errors import DeployError
from gitops_monitor.sync.detector import ChangeDetector
from gitops_monitor.sync.executor import DeploymentExecutor
from gitops_monitor.sync.journal import EventJournal
from gitops_monitor.sync.models import DeploymentTarget, MonitorState, Readiness
from gitops_monitor.sync.registry import TargetRegistry
from gitops_monitor.sync.scheduler import Scheduler


def make_target(name: str, prefix: str | None = None, **overrides) -> DeploymentTarget:
    return DeploymentTarget(
        name=name,
        path_prefix=prefix if prefix is not None else f"helm/{name}",
        namespace=overrides.pop("namespace", f"{name}-prod"),
        readiness_selector=overrides.pop("readiness_selector", f"app.kubernetes.io/name={name}"),
        timeout=overrides.pop("timeout", 5.0),
        **overrides,
    )


class FakeVCS:
    """Serves remote tips from a list; the last tip repeats once exhausted."""

    def __init__(self, tips=("a",), paths=None, head="a"):
        self.tips = list(tips)
        self.paths = paths if paths is not None else {"helm/redis/values.yaml"}
        self.head = head
        self.fetch_error: Exception | None = None
        self.diff_error: Exception | None = None
        self.fetch_calls = 0
        self.diffs: list[tuple[str, str]] = []
        self.worktree_updates: list[str] = []
        self.on_fetch = None

    def fetch_remote_tip(self) -> str:
        self.fetch_calls += 1
        if self.on_fetch is not None:
            self.on_fetch()
        if self.fetch_error is not None:
            raise self.fetch_error
        if len(self.tips) > 1:
            return self.tips.pop(0)
        return self.tips[0]

    def diff_paths(self, old_ref: str, new_ref: str) -> set[str]:
        if self.diff_error is not None:
            raise self.diff_error
        self.diffs.append((old_ref, new_ref))
        return set(self.paths)

    def local_head(self) -> str:
        return self.head

    def update_worktree(self, ref: str) -> None:
        self.worktree_updates.append(ref)
        self.head = ref


class FakeDeployTool:
    """Records applies into a fake cluster state; failures keyed by target name or namespace."""

    def __init__(self, apply_delay: float = 0.0):
        self.apply_delay = apply_delay
        self.failing = set()  # target names whose apply raises
        self.readiness = {}  # namespace -> Readiness or Exception
        self.pod_status_error: Exception | None = None
        self.applied: list[str] = []
        self.cluster: dict[str, dict] = {}
        self._active = 0
        self.max_concurrent = 0
        self._lock = threading.Lock()

    def apply(self, target: DeploymentTarget) -> None:
        with self._lock:
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)
        try:
            if self.apply_delay:
                time.sleep(self.apply_delay)
            if target.name in self.failing:
                raise DeployError(f"helm upgrade for {target.name} exited 1")
            self.applied.append(target.name)
            self.cluster[target.name] = {
                "namespace": target.namespace,
                "chart": target.chart_path,
                "values": dict(target.values),
            }
        finally:
            with self._lock:
                self._active -= 1

    def wait_ready(self, namespace: str, selector: str, timeout: float) -> Readiness:
        answer = self.readiness.get(namespace, Readiness.READY)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def pod_status(self, namespace: str, selector: str) -> str:
        if self.pod_status_error is not None:
            raise self.pod_status_error
        return f"NAME READY STATUS\n{namespace}-0 1/1 Running\n"


def make_scheduler(
    targets=None,
    vcs: FakeVCS | None = None,
    deploy: FakeDeployTool | None = None,
    last_known_ref: str | None = None,
    interval_ms: int = 60_000,
):
    journal = EventJournal(echo=False)
    vcs = vcs or FakeVCS()
    deploy = deploy or FakeDeployTool()
    state = MonitorState(interval_ms=interval_ms)
    if last_known_ref is not None:
        state.references.advance(last_known_ref)
    registry = TargetRegistry(targets if targets is not None else [make_target("redis")])
    scheduler = Scheduler(
        state=state,
        detector=ChangeDetector(vcs, journal),
        registry=registry,
        executor=DeploymentExecutor(deploy, journal),
        journal=journal,
    )
    return scheduler, vcs, deploy, journal
