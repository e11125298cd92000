"""Reconciliation data models — targets, tasks, results and monitor state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from gitops_monitor.sync.reference_store import ReferenceStore

CommitRef = str
ChangeSet = frozenset  # frozenset[str] of repository-relative paths


class Outcome(Enum):
    """How a single deployment task ended."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


class Readiness(Enum):
    """Answer from the deploy tool's readiness wait."""

    READY = "ready"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class DeploymentTarget:
    """A named, independently deployable unit mapped from a repo path prefix."""

    name: str
    path_prefix: str
    namespace: str
    readiness_selector: str
    timeout: float = 300.0  # seconds

    # Deploy parameters
    chart: str = ""  # Chart directory relative to the repo root; defaults to path_prefix
    release: str = ""  # Helm release name; defaults to name
    values: tuple[tuple[str, str], ...] = ()  # --set key=value pairs
    create_namespace: bool = True

    @property
    def chart_path(self) -> str:
        return self.chart or self.path_prefix

    @property
    def release_name(self) -> str:
        return self.release or self.name

    def matches(self, path: str) -> bool:
        """Case-sensitive prefix match of a changed path."""
        return path.startswith(self.path_prefix)


@dataclass(frozen=True)
class DeploymentTask:
    """A target selected for this cycle and the change that triggered it."""

    target: DeploymentTarget
    change_set: ChangeSet
    matched_paths: tuple[str, ...] = ()


@dataclass
class DeploymentResult:
    """Outcome of one deployment task."""

    target: str
    outcome: Outcome
    started_at: datetime
    finished_at: datetime
    detail: str = ""

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCEEDED


@dataclass
class Detection:
    """What the change detector saw on one poll.

    ``observed_ref`` is None when the remote could not be read; the cycle then
    ends without touching the reference store.
    """

    previous_ref: CommitRef | None
    observed_ref: CommitRef | None = None
    change_set: ChangeSet = frozenset()
    error: str = ""

    @property
    def is_first_observation(self) -> bool:
        return self.previous_ref is None and self.observed_ref is not None

    @property
    def has_new_ref(self) -> bool:
        return (
            self.observed_ref is not None
            and self.previous_ref is not None
            and self.observed_ref != self.previous_ref
        )


@dataclass
class CycleReport:
    """Everything one reconciliation cycle did."""

    cycle_id: int
    detection: Detection | None = None
    tasks: list[DeploymentTask] = field(default_factory=list)
    results: list[DeploymentResult] = field(default_factory=list)
    advanced_to: CommitRef | None = None
    skipped: bool = False

    @property
    def detection_failed(self) -> bool:
        return self.detection is not None and bool(self.detection.error)

    def outcome_counts(self) -> dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for r in self.results:
            counts[r.outcome.value] += 1
        return counts


@dataclass
class MonitorState:
    """Mutable scheduler state; only the scheduler writes to it."""

    interval_ms: int = 180_000
    running: bool = False
    cycle_in_progress: bool = False
    references: ReferenceStore = field(default_factory=ReferenceStore)

    @property
    def last_known_ref(self) -> CommitRef | None:
        return self.references.last_known_ref

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "last_known_ref": self.last_known_ref,
            "interval_ms": self.interval_ms,
            "cycle_in_progress": self.cycle_in_progress,
        }
