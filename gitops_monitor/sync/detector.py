"""Change detector — compare the remote tip with the last known ref.

Remote and diff failures are fail-open: the error is journaled and the poll
is reported as "no change" without an observed ref, so the reference store
stays where it was and the next interval simply tries again.
"""

from __future__ import annotations

from gitops_monitor.sync.interfaces import VersionControl
from gitops_monitor.sync.journal import EventJournal
from gitops_monitor.sync.models import CommitRef, Detection
from gitops_monitor.utils.git_ops import short_ref

MAX_LISTED_FILES = 20


class ChangeDetector:
    """Produces a :class:`Detection` for each poll of the remote."""

    def __init__(self, vcs: VersionControl, journal: EventJournal):
        self.vcs = vcs
        self.journal = journal

    def detect(self, last_known_ref: CommitRef | None) -> Detection:
        self.journal.record("Checking for changes in remote repository...")

        try:
            remote_ref = self.vcs.fetch_remote_tip()
        except Exception as e:
            return self._fail(last_known_ref, f"Error checking for changes: {e}")

        self.journal.record(f"Remote commit: {short_ref(remote_ref)}")
        self.journal.record(f"Last known commit: {short_ref(last_known_ref)}")

        # Nothing to diff against yet: adopt the tip without deploying.
        if last_known_ref is None:
            self.journal.record(
                f"No previous reference; adopting {short_ref(remote_ref)} without deploying"
            )
            return Detection(previous_ref=None, observed_ref=remote_ref)

        if remote_ref == last_known_ref:
            self.journal.record("No new changes detected")
            return Detection(previous_ref=last_known_ref, observed_ref=remote_ref)

        self.journal.record("New changes detected")
        try:
            paths = frozenset(self.vcs.diff_paths(last_known_ref, remote_ref))
            self.vcs.update_worktree(remote_ref)
        except Exception as e:
            return self._fail(last_known_ref, f"Error computing changes: {e}")

        self.journal.record(f"Changed files: {_list_paths(paths)}")
        return Detection(previous_ref=last_known_ref, observed_ref=remote_ref, change_set=paths)

    def _fail(self, last_known_ref: CommitRef | None, message: str) -> Detection:
        self.journal.record(message)
        return Detection(previous_ref=last_known_ref, error=message)


def _list_paths(paths: frozenset[str]) -> str:
    if not paths:
        return "(none)"
    ordered = sorted(paths)
    listed = ", ".join(ordered[:MAX_LISTED_FILES])
    if len(ordered) > MAX_LISTED_FILES:
        listed += f" ... and {len(ordered) - MAX_LISTED_FILES} more"
    return listed
