"""Event journal — append-only, timestamped record of every monitor step.

Each entry is written as one ``[<ISO-8601 timestamp>] <message>`` line to
the journal file and mirrored to standard output. The running process never
rewrites or truncates the file; rotation is left to external tooling.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

_LINE_RE = re.compile(r"^\[(?P<timestamp>[^\]]+)\] (?P<message>.*)$")


@dataclass(frozen=True)
class JournalEntry:
    """A single journal line."""

    timestamp: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp}] {self.message}"


def _one_line(message: str) -> str:
    parts = [p.rstrip() for p in str(message).splitlines() if p.strip()]
    return " | ".join(parts)


class EventJournal:
    """Append-only journal with an in-memory copy of this process's entries."""

    def __init__(
        self,
        log_file: str | Path | None = None,
        console: Console | None = None,
        echo: bool = True,
    ) -> None:
        self.log_file = Path(log_file) if log_file else None
        self._console = console or Console()
        self._echo = echo
        self._entries: list[JournalEntry] = []
        self._lock = threading.Lock()

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def record(self, message: str) -> JournalEntry:
        """Append a message and return the created entry."""
        entry = JournalEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            message=_one_line(message),
        )
        line = entry.format()

        with self._lock:
            self._entries.append(entry)
            if self.log_file:
                with self.log_file.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            if self._echo:
                self._console.print(line, markup=False, highlight=False, soft_wrap=True)
        return entry

    @property
    def entries(self) -> tuple[JournalEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def messages(self) -> list[str]:
        return [e.message for e in self.entries]

    def tail(self, limit: int = 20) -> list[JournalEntry]:
        """Latest entries, read back from the file when there is one."""
        if self.log_file:
            return read_journal(self.log_file, limit=limit)
        entries = self.entries
        return list(entries[-limit:]) if limit > 0 else []


def read_journal(path: str | Path, limit: int | None = None) -> list[JournalEntry]:
    """Parse a journal file written by :class:`EventJournal`, oldest first.

    Lines that do not follow the journal format are skipped.
    """
    path = Path(path)
    if not path.exists():
        return []

    entries: list[JournalEntry] = []
    with path.open(encoding="utf-8") as fh:
        for line in fh:
            match = _LINE_RE.match(line.rstrip("\n"))
            if match:
                entries.append(JournalEntry(match["timestamp"], match["message"]))

    if limit is not None:
        return entries[-limit:] if limit > 0 else []
    return entries
