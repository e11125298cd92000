"""Git operations — resolve the working copy, fetch the remote tip, diff refs."""

from __future__ import annotations

import logging
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import BadName, BadObject

from gitops_monitor.errors import ConfigError, VCSError

logger = logging.getLogger(__name__)

_GIT_ERRORS = (GitCommandError, BadName, BadObject, ValueError)


def ensure_local_repo(repo_path: str | Path, remote_url: str = "") -> Repo:
    """Open the working copy at ``repo_path``, cloning ``remote_url`` if it is missing.

    Raises:
        ConfigError: If the path exists but is not a Git repo, or it is
            missing and there is no URL to clone from.
        VCSError: If the clone itself fails.
    """
    path = Path(repo_path)

    if path.is_dir() and any(path.iterdir()):
        try:
            return Repo(path)
        except (InvalidGitRepositoryError, NoSuchPathError):
            raise ConfigError(f"Directory exists but is not a Git repo: {path}")

    if not remote_url:
        raise ConfigError(f"Not a valid repo path and no remote_url to clone: {path}")

    logger.info("cloning %s into %s", remote_url, path)
    try:
        return Repo.clone_from(remote_url, path)
    except GitCommandError as e:
        raise VCSError(f"Could not clone {remote_url}: {e}") from e


def short_ref(ref: str | None) -> str:
    """First 8 characters of a commit ref, for log lines."""
    return ref[:8] if ref else "(none)"


class GitClient:
    """Version-control client backed by GitPython.

    Every public method raises ``VCSError`` on failure so callers only need
    to handle a single exception type.
    """

    def __init__(self, repo: Repo, remote: str = "origin", branch: str = "main"):
        self.repo = repo
        self.remote = remote
        self.branch = branch

    @classmethod
    def from_path(
        cls,
        repo_path: str | Path,
        remote_url: str = "",
        remote: str = "origin",
        branch: str = "main",
    ) -> GitClient:
        return cls(ensure_local_repo(repo_path, remote_url), remote=remote, branch=branch)

    @property
    def tracking_ref(self) -> str:
        return f"{self.remote}/{self.branch}"

    def fetch_remote_tip(self) -> str:
        """Fetch from the remote and return the commit SHA of the tracked branch."""
        try:
            self.repo.remote(self.remote).fetch()
            return self.repo.commit(self.tracking_ref).hexsha
        except _GIT_ERRORS as e:
            raise VCSError(f"Could not fetch {self.tracking_ref}: {e}") from e

    def diff_paths(self, old_ref: str, new_ref: str) -> set[str]:
        """Return every path touched between two commits (both sides of renames)."""
        try:
            old_commit = self.repo.commit(old_ref)
            new_commit = self.repo.commit(new_ref)
            diff_index = old_commit.diff(new_commit, create_patch=False)
        except _GIT_ERRORS as e:
            raise VCSError(f"Could not diff {short_ref(old_ref)}..{short_ref(new_ref)}: {e}") from e

        paths: set[str] = set()
        for diff_item in diff_index:
            if diff_item.a_path:
                paths.add(diff_item.a_path)
            if diff_item.b_path:
                paths.add(diff_item.b_path)
        return paths

    def local_head(self) -> str:
        try:
            return self.repo.head.commit.hexsha
        except _GIT_ERRORS as e:
            raise VCSError(f"Could not read local HEAD: {e}") from e

    def update_worktree(self, ref: str) -> None:
        """Fast-forward the working copy to ``ref`` so deploys see the new files."""
        try:
            self.repo.git.merge("--ff-only", ref)
        except GitCommandError as e:
            raise VCSError(f"Could not fast-forward working copy to {short_ref(ref)}: {e}") from e
