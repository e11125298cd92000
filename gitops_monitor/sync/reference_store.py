"""The last commit observed on the remote."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ReferenceStore:
    """Holds ``last_known_ref``.

    The value only ever moves to a ref that was actually read from the
    remote, so ``advance`` refuses empty values.
    """

    last_known_ref: str | None = None

    def advance(self, observed_ref: str) -> None:
        if not observed_ref:
            raise ValueError("Cannot advance to an empty commit ref")
        self.last_known_ref = observed_ref

    def is_current(self, ref: str) -> bool:
        return self.last_known_ref == ref
