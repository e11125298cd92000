"""Configuration — load and validate the monitor's YAML config file.

Read once at startup; there is no hot-reload. Example::

    repo_path: ./mcp-deploy-repo
    remote_url: https://github.com/example/mcp-deploy-repo.git
    branch: main
    interval_ms: 180000
    targets:
      - name: redis
        path_prefix: helm/redis
        namespace: redis-prod
        readiness_selector: app.kubernetes.io/name=redis
        timeout: 300s
        values:
          namespace: redis-prod
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gitops_monitor.errors import ConfigError
from gitops_monitor.sync.models import DeploymentTarget
from gitops_monitor.sync.registry import TargetRegistry, validate_targets

DEFAULT_CONFIG_FILE = "gitops-monitor.yaml"
DEFAULT_INTERVAL_MS = 180_000
DEFAULT_TARGET_TIMEOUT = 300.0
LOG_FILE_NAME = "gitops-monitor.log"
STATE_DIR_NAME = ".gitops-monitor"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, None: 1}


@dataclass(frozen=True)
class MonitorConfig:
    """Validated, immutable monitor configuration."""

    repo_path: Path
    remote_url: str = ""
    remote: str = "origin"
    branch: str = "main"
    interval_ms: int = DEFAULT_INTERVAL_MS
    kube_context: str = ""
    log_file: Path | None = None
    state_dir: Path | None = None
    targets: tuple[DeploymentTarget, ...] = field(default_factory=tuple)

    @property
    def journal_path(self) -> Path:
        return self.log_file or self.repo_path / LOG_FILE_NAME

    @property
    def runtime_dir(self) -> Path:
        return self.state_dir or self.repo_path / STATE_DIR_NAME

    def registry(self) -> TargetRegistry:
        return TargetRegistry(self.targets)


def load_config(path: str | Path) -> MonitorConfig:
    """Load a monitor config from a YAML file.

    Relative paths inside the file are resolved against the file's directory.

    Raises:
        ConfigError: If the file cannot be read or any field is invalid.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}")

    return parse_config(data, base_dir=path.parent)


def parse_config(data: object, base_dir: str | Path = ".") -> MonitorConfig:
    """Build a :class:`MonitorConfig` from already-parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping", issues=["/: expected a mapping"])

    base_dir = Path(base_dir)
    issues: list[str] = []

    repo_path = data.get("repo_path")
    if not repo_path or not isinstance(repo_path, str):
        issues.append("repo_path: required string")
        repo_path = "."

    interval_ms = data.get("interval_ms", DEFAULT_INTERVAL_MS)
    if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
        issues.append(f"interval_ms: expected a positive integer, got {interval_ms!r}")
        interval_ms = DEFAULT_INTERVAL_MS

    for key in ("remote_url", "remote", "branch", "kube_context", "log_file", "state_dir"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            issues.append(f"{key}: expected a string, got {type(value).__name__}")

    raw_targets = data.get("targets", [])
    if not isinstance(raw_targets, list):
        issues.append("targets: expected a list")
        raw_targets = []
    targets = []
    for i, raw in enumerate(raw_targets):
        target = _parse_target(raw, i, issues)
        if target is not None:
            targets.append(target)
    issues.extend(validate_targets(targets))

    if issues:
        raise ConfigError("Invalid configuration", issues=issues)

    return MonitorConfig(
        repo_path=_resolve(base_dir, repo_path),
        remote_url=data.get("remote_url") or "",
        remote=data.get("remote") or "origin",
        branch=data.get("branch") or "main",
        interval_ms=interval_ms,
        kube_context=data.get("kube_context") or "",
        log_file=_resolve(base_dir, data["log_file"]) if data.get("log_file") else None,
        state_dir=_resolve(base_dir, data["state_dir"]) if data.get("state_dir") else None,
        targets=tuple(targets),
    )


def parse_duration(value: object) -> float:
    """Seconds from a number or a string such as ``"300s"``, ``"5m"``, ``"1500ms"``."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            return float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    raise ValueError(f"invalid duration: {value!r}")


def _parse_target(raw: object, index: int, issues: list[str]) -> DeploymentTarget | None:
    where = f"targets[{index}]"
    if not isinstance(raw, dict):
        issues.append(f"{where}: expected a mapping")
        return None

    try:
        timeout = parse_duration(raw.get("timeout", DEFAULT_TARGET_TIMEOUT))
    except ValueError as e:
        issues.append(f"{where}.timeout: {e}")
        return None

    values = raw.get("values") or {}
    if not isinstance(values, dict):
        issues.append(f"{where}.values: expected a mapping")
        return None

    create_namespace = raw.get("create_namespace", True)
    if not isinstance(create_namespace, bool):
        issues.append(f"{where}.create_namespace: expected true or false, got {create_namespace!r}")
        return None

    return DeploymentTarget(
        name=str(raw.get("name") or ""),
        path_prefix=str(raw.get("path_prefix") or ""),
        namespace=str(raw.get("namespace") or ""),
        readiness_selector=str(raw.get("readiness_selector") or ""),
        timeout=timeout,
        chart=str(raw.get("chart") or ""),
        release=str(raw.get("release") or ""),
        values=tuple((str(k), _scalar(v)) for k, v in values.items()),
        create_namespace=create_namespace,
    )


def _scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _resolve(base_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path
