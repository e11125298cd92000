"""gitops-monitor CLI — start, stop, status and check the reconciliation loop."""

from __future__ import annotations

import logging
import signal
import threading

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gitops_monitor import __version__
from gitops_monitor.config import DEFAULT_CONFIG_FILE, MonitorConfig, load_config
from gitops_monitor.deploy import HelmDeployTool, run_preflight
from gitops_monitor.errors import ConfigError, GitOpsError, PreflightError
from gitops_monitor.runtime import RuntimeControl
from gitops_monitor.sync.detector import ChangeDetector
from gitops_monitor.sync.executor import DeploymentExecutor
from gitops_monitor.sync.interfaces import DeployTool, VersionControl
from gitops_monitor.sync.journal import EventJournal, read_journal
from gitops_monitor.sync.models import CycleReport, MonitorState, Outcome
from gitops_monitor.sync.scheduler import Scheduler
from gitops_monitor.utils.git_ops import GitClient, short_ref

console = Console()

EXIT_STATE = 1
EXIT_FATAL = 2
EXIT_DETECTION = 3

_OUTCOME_STYLE = {
    Outcome.SUCCEEDED: "green",
    Outcome.FAILED: "red",
    Outcome.TIMED_OUT: "yellow",
}


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=DEFAULT_CONFIG_FILE,
    envvar="GITOPS_MONITOR_CONFIG",
    show_default=True,
    help="Path to the monitor's YAML config file",
)
@click.option("--verbose", "-v", is_flag=True, help="Show diagnostic logging")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """gitops-monitor — reconcile a Git repository onto a Kubernetes cluster.

    Polls the remote for new commits, works out which deployment targets
    the changed paths belong to, and upgrades each affected target with
    Helm, waiting for its pods to become ready.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.obj = {"config_path": config_path}


# ── Wiring ───────────────────────────────────────────────────────────


def make_vcs(config: MonitorConfig) -> VersionControl:
    return GitClient.from_path(
        config.repo_path,
        remote_url=config.remote_url,
        remote=config.remote,
        branch=config.branch,
    )


def make_deploy_tool(config: MonitorConfig) -> DeployTool:
    return HelmDeployTool(config.repo_path, kube_context=config.kube_context)


def build_scheduler(
    config: MonitorConfig,
    vcs: VersionControl,
    deploy_tool: DeployTool,
    journal: EventJournal,
    state: MonitorState,
    control: RuntimeControl | None = None,
) -> Scheduler:
    def persist(_report: CycleReport | None = None) -> None:
        if control is not None:
            control.write_state(state)

    return Scheduler(
        state=state,
        detector=ChangeDetector(vcs, journal),
        registry=config.registry(),
        executor=DeploymentExecutor(deploy_tool, journal),
        journal=journal,
        on_cycle_complete=persist,
        on_started=persist,
    )


def _load(ctx: click.Context) -> MonitorConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as e:
        console.print("[red]Configuration error:[/]")
        console.print(str(e), markup=False, highlight=False)
        ctx.exit(EXIT_FATAL)


def _preflight(ctx: click.Context, config: MonitorConfig, skip: bool) -> None:
    if skip:
        return
    try:
        run_preflight(kube_context=config.kube_context)
    except PreflightError as e:
        console.print(f"[red]{e}[/]")
        for problem in e.problems:
            console.print(f"  [red]x[/] {problem}")
        ctx.exit(EXIT_FATAL)


def _open_vcs(ctx: click.Context, config: MonitorConfig) -> VersionControl:
    try:
        return make_vcs(config)
    except GitOpsError as e:
        console.print(f"[red]Repository error:[/] {e}")
        ctx.exit(EXIT_FATAL)


# ── Start ────────────────────────────────────────────────────────────


@main.command()
@click.option("--resync", is_flag=True, help="Diff from the working copy HEAD instead of adopting the remote tip")
@click.option("--skip-preflight", is_flag=True, help="Do not check for helm/kubectl or cluster access")
@click.option("--stop-poll", default=1.0, hidden=True, help="Seconds between stop-request checks")
@click.pass_context
def start(ctx: click.Context, resync: bool, skip_preflight: bool, stop_poll: float):
    """Start the monitor in the foreground; runs until stopped."""
    config = _load(ctx)
    control = RuntimeControl(config.runtime_dir)
    journal = EventJournal(config.journal_path, console=console)

    if control.is_running():
        pid = (control.read_state() or {}).get("pid")
        journal.record(f"Monitor is already running (pid {pid})")
        ctx.exit(EXIT_STATE)

    _preflight(ctx, config, skip_preflight)
    vcs = _open_vcs(ctx, config)

    state = MonitorState(interval_ms=config.interval_ms)
    if resync:
        try:
            state.references.advance(vcs.local_head())
        except GitOpsError as e:
            console.print(f"[red]Repository error:[/] {e}")
            ctx.exit(EXIT_FATAL)

    journal.record(f"Repository: {config.repo_path}")
    journal.record(f"Remote: {config.remote_url or config.remote} ({config.branch})")

    control.clear_stop_request()
    scheduler = build_scheduler(config, vcs, make_deploy_tool(config), journal, state, control)

    # The handler only flags; the loop below does the journaling and stopping
    # so no lock is ever taken from inside a signal handler.
    received: list[int] = []
    signalled = threading.Event()

    def handle_signal(signum, _frame):
        received.append(signum)
        signalled.set()

    previous = {
        sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        scheduler.start()
        control.write_state(state)
        while not scheduler.token.wait(stop_poll):
            if signalled.is_set():
                name = signal.Signals(received[-1]).name
                journal.record(f"Received {name}, shutting down gracefully...")
                scheduler.stop()
            elif control.stop_requested():
                journal.record("Stop requested")
                scheduler.stop()
        journal.record("Waiting for the current cycle to finish...")
        scheduler.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        control.write_state(state)
        control.clear_stop_request()


# ── Stop ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def stop(ctx: click.Context):
    """Ask the running monitor to stop after its current cycle."""
    config = _load(ctx)
    control = RuntimeControl(config.runtime_dir)

    if not control.is_running():
        console.print("[yellow]Monitor is not running.[/]")
        ctx.exit(EXIT_STATE)

    control.request_stop()
    pid = (control.read_state() or {}).get("pid")
    console.print(f"[green]Stop requested[/] for monitor pid {pid}")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.option("--lines", "-n", default=20, show_default=True, help="Journal entries to show")
@click.pass_context
def status(ctx: click.Context, lines: int):
    """Show monitor state and the latest journal entries."""
    try:
        config = load_config(ctx.obj["config_path"])
    except ConfigError as e:
        console.print("[red]Configuration error:[/]")
        console.print(str(e), markup=False, highlight=False)
        return

    control = RuntimeControl(config.runtime_dir)
    snapshot = control.read_state() or {}
    running = control.is_running()

    table = Table(title="Monitor Status", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", "[green]Running[/]" if running else "[dim]Stopped[/]")
    if running:
        table.add_row("PID", str(snapshot.get("pid", "")))
    table.add_row("Check interval", f"{config.interval_ms / 1000:g} seconds")
    table.add_row("Repository", str(config.repo_path))
    table.add_row("Remote", f"{config.remote_url or config.remote} ({config.branch})")
    table.add_row("Last known commit", short_ref(snapshot.get("last_known_ref")))
    table.add_row("Cycle in progress", "yes" if running and snapshot.get("cycle_in_progress") else "no")
    table.add_row("Updated", snapshot.get("updated_at", "never"))
    table.add_row("Targets", ", ".join(t.name for t in config.targets) or "(none)")
    console.print(table)

    entries = read_journal(config.journal_path, limit=lines)
    if entries:
        body = "\n".join(e.format() for e in entries)
        console.print(Panel(Text(body), title=f"Last {len(entries)} journal entries"))
    else:
        console.print("[yellow]Journal is empty.[/]")


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.option("--skip-preflight", is_flag=True, help="Do not check for helm/kubectl or cluster access")
@click.pass_context
def check(ctx: click.Context, skip_preflight: bool):
    """Run exactly one reconciliation cycle now.

    Diffs from the last commit the monitor recorded, or from the working
    copy HEAD if it has never run.
    """
    config = _load(ctx)
    control = RuntimeControl(config.runtime_dir)

    if control.is_running():
        console.print("[yellow]Monitor is running; its next cycle will pick up changes.[/]")
        ctx.exit(EXIT_STATE)

    _preflight(ctx, config, skip_preflight)
    vcs = _open_vcs(ctx, config)

    state = MonitorState(interval_ms=config.interval_ms)
    try:
        state.references.advance(control.last_known_ref() or vcs.local_head())
    except GitOpsError as e:
        console.print(f"[red]Repository error:[/] {e}")
        ctx.exit(EXIT_FATAL)

    journal = EventJournal(config.journal_path, console=console)
    scheduler = build_scheduler(config, vcs, make_deploy_tool(config), journal, state, control)
    report = scheduler.run_cycle()

    _print_report(report)
    if report.detection_failed:
        ctx.exit(EXIT_DETECTION)


def _print_report(report: CycleReport) -> None:
    if not report.results:
        return

    table = Table(title=f"Cycle {report.cycle_id} deployments")
    table.add_column("Target", style="cyan")
    table.add_column("Outcome")
    table.add_column("Duration", justify="right")
    table.add_column("Detail")
    for result in report.results:
        style = _OUTCOME_STYLE[result.outcome]
        table.add_row(
            result.target,
            f"[{style}]{result.outcome.value}[/]",
            f"{result.duration_ms}ms",
            Text(result.detail[:60]),
        )
    console.print(table)


if __name__ == "__main__":
    main()
