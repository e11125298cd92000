"""Tests for the runtime state directory and reference store."""

import os
import tempfile
import threading

import pytest

from gitops_monitor.runtime import RuntimeControl, pid_alive
from gitops_monitor.sync.models import MonitorState
from gitops_monitor.sync.reference_store import ReferenceStore


def test_state_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        state = MonitorState(interval_ms=5000, running=True)
        state.references.advance("abc123")

        control.write_state(state)
        snapshot = control.read_state()

        assert snapshot["running"] is True
        assert snapshot["last_known_ref"] == "abc123"
        assert snapshot["interval_ms"] == 5000
        assert snapshot["pid"] == os.getpid()
        assert control.last_known_ref() == "abc123"
        assert control.is_running()


def test_not_running_without_state():
    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        assert control.read_state() is None
        assert control.last_known_ref() is None
        assert not control.is_running()


def test_stale_pid_is_not_running():
    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        control.write_state(MonitorState(running=True), pid=0)
        assert not control.is_running()


def test_corrupt_state_file_is_ignored():
    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        control.state_file.write_text("{not json")
        assert control.read_state() is None


def test_stop_request_lifecycle():
    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        assert not control.stop_requested()
        control.request_stop()
        assert control.stop_requested()
        control.clear_stop_request()
        control.clear_stop_request()
        assert not control.stop_requested()


def test_pid_alive():
    assert pid_alive(os.getpid())
    assert not pid_alive(0)


def test_reference_store_refuses_empty_refs():
    store = ReferenceStore()
    assert store.last_known_ref is None
    with pytest.raises(ValueError):
        store.advance("")
    store.advance("abc")
    assert store.is_current("abc")


def test_concurrent_state_writes_do_not_collide():
    errors = []

    with tempfile.TemporaryDirectory() as tmpdir:
        control = RuntimeControl(tmpdir)
        state = MonitorState(running=True)

        def writer():
            try:
                for _ in range(50):
                    control.write_state(state)
            except OSError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert control.read_state()["running"] is True
        assert sorted(p.name for p in control.state_dir.iterdir()) == ["state.json"]
