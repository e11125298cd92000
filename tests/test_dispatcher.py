"""Tests for target registry validation and change-set dispatch."""

import pytest

from gitops_monitor.errors import ConfigError
from gitops_monitor.sync.dispatcher import dispatch
from gitops_monitor.sync.registry import TargetRegistry, validate_targets
from tests.fakes import make_target


def _registry():
    return TargetRegistry(
        [
            make_target("redis", "helm/redis"),
            make_target("mcp-server", "helm/mcp-server"),
            make_target("platform", "helm/"),
        ]
    )


def test_single_match_creates_one_task():
    registry = TargetRegistry([make_target("redis", "helm/redis")])
    tasks = dispatch(frozenset({"helm/redis/values.yaml"}), registry)

    assert [t.target.name for t in tasks] == ["redis"]
    assert tasks[0].matched_paths == ("helm/redis/values.yaml",)
    assert tasks[0].change_set == frozenset({"helm/redis/values.yaml"})


def test_empty_change_set_dispatches_nothing():
    assert dispatch(frozenset(), _registry()) == []


def test_unmatched_paths_dispatch_nothing():
    assert dispatch(frozenset({"README.md", "docs/setup.md"}), _registry()) == []


def test_path_can_match_several_targets():
    tasks = dispatch(frozenset({"helm/redis/templates/deployment.yaml"}), _registry())
    assert [t.target.name for t in tasks] == ["redis", "platform"]


def test_tasks_follow_registration_order_not_input_order():
    registry = _registry()
    forward = dispatch(frozenset({"helm/mcp-server/values.yaml", "helm/redis/values.yaml"}), registry)
    backward = dispatch(frozenset({"helm/redis/values.yaml", "helm/mcp-server/values.yaml"}), registry)

    assert [t.target.name for t in forward] == ["redis", "mcp-server", "platform"]
    assert forward == backward


def test_dispatch_is_deterministic():
    registry = _registry()
    change_set = frozenset({"helm/mcp-server/Chart.yaml", "helm/redis/values.yaml", "ci.yaml"})
    assert dispatch(change_set, registry) == dispatch(change_set, registry)


def test_prefix_match_is_case_sensitive():
    registry = TargetRegistry([make_target("redis", "helm/redis")])
    assert dispatch(frozenset({"Helm/Redis/values.yaml"}), registry) == []


def test_registry_lookup():
    registry = _registry()
    assert len(registry) == 3
    assert "redis" in registry
    assert registry.get("mcp-server").path_prefix == "helm/mcp-server"
    assert registry.get("missing") is None
    assert registry.names == ["redis", "mcp-server", "platform"]


def test_registry_rejects_duplicates():
    with pytest.raises(ConfigError) as exc:
        TargetRegistry([make_target("redis"), make_target("redis")])
    assert any("duplicate" in issue for issue in exc.value.issues)


def test_validate_targets_reports_every_problem():
    issues = validate_targets(
        [make_target("", "/abs", namespace="", readiness_selector="", timeout=0)]
    )
    assert "targets[0]: name is required" in issues
    assert any("relative to the repo root" in i for i in issues)
    assert any("namespace is required" in i for i in issues)
    assert any("readiness_selector is required" in i for i in issues)
    assert any("timeout must be positive" in i for i in issues)
