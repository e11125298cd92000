"""Scheduler — drives detect → dispatch → execute cycles on a fixed interval.

Lifecycle is ``Idle → Running → Stopped``; Stopped is terminal. ``start``
runs one cycle synchronously and then arms a repeating timer. Timer fires
happen on timer threads, so the at-most-one-cycle rule is enforced with a
non-blocking lock: a fire that finds a cycle in flight is journaled and
skipped. ``stop`` sets the cancellation token and disarms the timer but
never interrupts a cycle that is already running.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum

from gitops_monitor.sync.detector import ChangeDetector
from gitops_monitor.sync.dispatcher import dispatch
from gitops_monitor.sync.executor import DeploymentExecutor
from gitops_monitor.sync.journal import EventJournal
from gitops_monitor.sync.models import CycleReport, MonitorState
from gitops_monitor.sync.registry import TargetRegistry
from gitops_monitor.utils.git_ops import short_ref

logger = logging.getLogger(__name__)


class SchedulerPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Single control loop for reconciliation cycles.

    All collaborators and the state object are injected; nothing here is
    module-global, so independent schedulers can coexist (e.g. in tests).
    """

    def __init__(
        self,
        state: MonitorState,
        detector: ChangeDetector,
        registry: TargetRegistry,
        executor: DeploymentExecutor,
        journal: EventJournal,
        token: threading.Event | None = None,
        on_cycle_complete: Callable[[CycleReport], None] | None = None,
        on_started: Callable[[], None] | None = None,
    ):
        self.state = state
        self.detector = detector
        self.registry = registry
        self.executor = executor
        self.journal = journal
        self.token = token or threading.Event()
        self.on_cycle_complete = on_cycle_complete
        self.on_started = on_started

        self.phase = SchedulerPhase.IDLE
        self._control_lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._cycle_count = 0

    @property
    def interval_seconds(self) -> float:
        return self.state.interval_ms / 1000

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Run the first cycle now and arm the interval timer.

        Returns False (and journals a warning) if the scheduler is already
        running or has been stopped.
        """
        with self._control_lock:
            if self.phase == SchedulerPhase.RUNNING:
                self.journal.record("Monitor is already running")
                return False
            if self.phase == SchedulerPhase.STOPPED:
                self.journal.record("Monitor has been stopped and cannot be restarted")
                return False
            self.phase = SchedulerPhase.RUNNING
            self.state.running = True

        # Announce Running before the first cycle, which may take minutes.
        if self.on_started is not None:
            self.on_started()

        self.journal.record("Starting GitOps monitor...")
        self.journal.record(f"Check interval: {self.interval_seconds:g} seconds")
        self.journal.record(f"Targets: {', '.join(self.registry.names) or '(none)'}")

        self.run_cycle()
        self._arm()
        if self.state.running:
            self.journal.record("GitOps monitor started")
        return True

    def stop(self) -> bool:
        """Cancel future cycles. An in-flight cycle is allowed to finish."""
        with self._control_lock:
            if self.phase != SchedulerPhase.RUNNING:
                self.journal.record("Monitor is not running")
                return False
            self.phase = SchedulerPhase.STOPPED
            self.state.running = False
            self.token.set()
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

        self.journal.record("GitOps monitor stopped")
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stopped and no cycle is in flight.

        Returns False if ``timeout`` expired before the token was set.
        """
        if not self.token.wait(timeout):
            return False
        with self._cycle_lock:
            return True

    def _arm(self) -> None:
        with self._control_lock:
            if self.phase != SchedulerPhase.RUNNING or self.token.is_set():
                return
            timer = threading.Timer(self.interval_seconds, self._fire)
            timer.daemon = True
            timer.start()
            self._timer = timer

    def _fire(self) -> None:
        if self.token.is_set():
            return
        # Re-arm first so the interval keeps ticking while a slow cycle runs.
        self._arm()
        self.run_cycle(scheduled=True)

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def run_cycle(self, scheduled: bool = False) -> CycleReport:
        """Run one detect → dispatch → execute pass, unless one is already running."""
        if scheduled and self.token.is_set():
            return CycleReport(cycle_id=self._cycle_count, skipped=True)

        if not self._cycle_lock.acquire(blocking=False):
            self.journal.record(
                f"Cycle {self._cycle_count} still in progress; skipping this check"
            )
            return CycleReport(cycle_id=self._cycle_count, skipped=True)

        try:
            # stop() may have landed between the token check and the acquire.
            if scheduled and self.token.is_set():
                return CycleReport(cycle_id=self._cycle_count, skipped=True)

            self._cycle_count += 1
            report = CycleReport(cycle_id=self._cycle_count)
            self.state.cycle_in_progress = True
            try:
                self.journal.record(f"Cycle {report.cycle_id} started")
                self._reconcile(report)
                self.journal.record(f"Cycle {report.cycle_id} finished")
            finally:
                self.state.cycle_in_progress = False

            # Runs under the cycle lock so wait() also covers it.
            if self.on_cycle_complete is not None:
                try:
                    self.on_cycle_complete(report)
                except Exception:
                    logger.exception("cycle completion callback failed")
            return report
        finally:
            self._cycle_lock.release()

    def _reconcile(self, report: CycleReport) -> None:
        detection = self.detector.detect(self.state.last_known_ref)
        report.detection = detection

        if detection.observed_ref is None:
            return

        if detection.is_first_observation:
            self._advance(report, detection.observed_ref)
            return

        if not detection.has_new_ref:
            return

        tasks = dispatch(detection.change_set, self.registry)
        report.tasks = tasks

        if not tasks:
            self.journal.record("Changes observed but no registered target affected")
        else:
            names = ", ".join(t.target.name for t in tasks)
            self.journal.record(f"Dispatching {len(tasks)} deployment task(s): {names}")
            report.results = self.executor.execute(tasks)
            counts = report.outcome_counts()
            self.journal.record(
                "Deployment summary: "
                + ", ".join(f"{count} {name}" for name, count in counts.items())
            )

        # Advances regardless of task outcomes.
        self._advance(report, detection.observed_ref)

    def _advance(self, report: CycleReport, observed_ref: str) -> None:
        self.state.references.advance(observed_ref)
        report.advanced_to = observed_ref
        self.journal.record(f"Last known commit is now {short_ref(observed_ref)}")
