"""Tests for the GitPython-backed version-control client."""

from pathlib import Path

import pytest
from git import Actor, Repo

from gitops_monitor.errors import ConfigError, VCSError
from gitops_monitor.utils.git_ops import GitClient, ensure_local_repo, short_ref

AUTHOR = Actor("GitOps Test", "gitops@example.com")


def _commit(repo: Repo, files: dict[str, str], message: str) -> str:
    root = Path(repo.working_tree_dir)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    repo.index.add(list(files))
    return repo.index.commit(message, author=AUTHOR, committer=AUTHOR).hexsha


@pytest.fixture
def upstream(tmp_path):
    repo = Repo.init(tmp_path / "upstream")
    _commit(repo, {"helm/redis/values.yaml": "replicas: 1\n", "README.md": "demo\n"}, "initial")
    repo.git.branch("-M", "main")
    return repo


@pytest.fixture
def client(upstream, tmp_path):
    return GitClient.from_path(tmp_path / "clone", remote_url=upstream.working_tree_dir)


def test_clone_and_fetch_tip(upstream, client):
    assert client.fetch_remote_tip() == upstream.head.commit.hexsha
    assert client.local_head() == upstream.head.commit.hexsha


def test_fetch_sees_new_commits_and_diffs_paths(upstream, client):
    old = client.fetch_remote_tip()
    new = _commit(
        upstream,
        {"helm/redis/values.yaml": "replicas: 2\n", "helm/mcp-server/Chart.yaml": "name: mcp\n"},
        "scale redis, add mcp-server",
    )

    assert client.fetch_remote_tip() == new
    assert client.diff_paths(old, new) == {"helm/redis/values.yaml", "helm/mcp-server/Chart.yaml"}


def test_update_worktree_fast_forwards(upstream, client):
    client.fetch_remote_tip()
    new = _commit(upstream, {"helm/redis/values.yaml": "replicas: 3\n"}, "scale redis")
    client.fetch_remote_tip()

    client.update_worktree(new)

    assert client.local_head() == new
    content = (Path(client.repo.working_tree_dir) / "helm/redis/values.yaml").read_text()
    assert content == "replicas: 3\n"


def test_unknown_branch_raises_vcs_error(upstream, tmp_path):
    client = GitClient.from_path(tmp_path / "clone", remote_url=upstream.working_tree_dir, branch="nope")
    with pytest.raises(VCSError):
        client.fetch_remote_tip()


def test_bad_ref_diff_raises_vcs_error(client):
    with pytest.raises(VCSError):
        client.diff_paths("0" * 40, client.local_head())


def test_non_repo_directory_is_config_error(tmp_path):
    (tmp_path / "plain").mkdir()
    (tmp_path / "plain" / "file.txt").write_text("x")
    with pytest.raises(ConfigError, match="not a Git repo"):
        ensure_local_repo(tmp_path / "plain")


def test_missing_repo_without_url_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        ensure_local_repo(tmp_path / "missing")


def test_short_ref():
    assert short_ref("0123456789abcdef") == "01234567"
    assert short_ref(None) == "(none)"
