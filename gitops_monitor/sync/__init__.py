"""Reconciliation core — the detect → dispatch → execute loop.

This package provides:
- Reference store: the last commit observed on the remote
- Change detection: remote tip vs. last known ref, as a set of changed paths
- Target registry and dispatch: changed paths → ordered deployment tasks
- Execution: apply, wait for readiness, classify each task in isolation
- Scheduling: one cycle at a time on a fixed interval
- Event journal: append-only record of every step
"""
