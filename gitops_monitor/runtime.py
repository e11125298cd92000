"""Runtime control files shared by the CLI processes.

``start`` runs the scheduler in the foreground and keeps ``state.json`` up to
date; ``stop`` drops a ``stop.request`` file that the running loop picks up
between cycles; ``status`` and ``check`` read the state snapshot.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from gitops_monitor.sync.models import MonitorState


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class RuntimeControl:
    """Reads and writes the monitor's runtime state directory."""

    STATE_FILE = "state.json"
    STOP_FILE = "stop.request"

    def __init__(self, state_dir: str | Path):
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / self.STATE_FILE
        self.stop_file = self.state_dir / self.STOP_FILE

    def write_state(self, state: MonitorState, pid: int | None = None) -> dict:
        """Persist a snapshot of ``state`` and return it."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        snapshot = {
            **state.to_dict(),
            "pid": os.getpid() if pid is None else pid,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        # One temp file per write; concurrent writers each replace atomically.
        with tempfile.NamedTemporaryFile(
            "w",
            dir=self.state_dir,
            prefix=".state-",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as fh:
            json.dump(snapshot, fh, indent=2)
        Path(fh.name).replace(self.state_file)
        return snapshot

    def read_state(self) -> dict | None:
        if not self.state_file.exists():
            return None
        try:
            return json.loads(self.state_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None

    def last_known_ref(self) -> str | None:
        snapshot = self.read_state() or {}
        return snapshot.get("last_known_ref") or None

    def is_running(self) -> bool:
        """True when the snapshot says running and its process still exists."""
        snapshot = self.read_state()
        if not snapshot or not snapshot.get("running"):
            return False
        return pid_alive(int(snapshot.get("pid") or 0))

    def request_stop(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.stop_file.write_text(
            datetime.now(timezone.utc).isoformat(), encoding="utf-8"
        )

    def stop_requested(self) -> bool:
        return self.stop_file.exists()

    def clear_stop_request(self) -> None:
        self.stop_file.unlink(missing_ok=True)
