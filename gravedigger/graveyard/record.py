"""Record store: the JSON Lines ledger of buried entries.

Lives at ``<graveyard>/.record.jsonl``, one object per line::

    {"original_path": "/home/user/notes.txt",
     "grave_path": "home/user/notes.txt",
     "entry_kind": "file",
     "buried_at": "2026-10-18T09:30:00.123456+00:00"}

``grave_path`` is stored relative to the graveyard root. Every operation
re-reads the file, so writes from another invocation are picked up and the
last writer wins. Lines that fail to parse are skipped with a warning and
preserved verbatim when the file is rewritten.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from gravedigger.errors import RecordCorrupt, from_os_error
from gravedigger.paths import EntryKind

log = logging.getLogger(__name__)

RECORD_FILENAME = ".record.jsonl"

_REQUIRED_KEYS = ("original_path", "grave_path", "entry_kind", "buried_at")


@dataclass(frozen=True)
class GraveyardEntry:
    """One buried item."""

    original_path: Path
    grave_path: Path
    entry_kind: EntryKind
    buried_at: datetime

    def to_json(self, root: Path) -> str:
        return json.dumps(
            {
                "original_path": str(self.original_path),
                "grave_path": self.grave_path.relative_to(root).as_posix(),
                "entry_kind": self.entry_kind.value,
                "buried_at": self.buried_at.isoformat(),
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, line: str, root: Path) -> GraveyardEntry:
        """Parse one record line. Raises ``ValueError`` on any malformation."""
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        missing = [k for k in _REQUIRED_KEYS if not isinstance(data.get(k), str)]
        if missing:
            raise ValueError(f"missing or non-string fields: {missing}")

        grave_rel = Path(data["grave_path"])
        if grave_rel.is_absolute() or ".." in grave_rel.parts or not grave_rel.parts:
            raise ValueError(f"grave_path escapes the graveyard: {data['grave_path']}")
        original = Path(data["original_path"])
        if not original.is_absolute():
            raise ValueError(f"original_path is not absolute: {data['original_path']}")

        buried_at = datetime.fromisoformat(data["buried_at"])
        if buried_at.tzinfo is None:
            buried_at = buried_at.replace(tzinfo=timezone.utc)

        return cls(
            original_path=original,
            grave_path=root / grave_rel,
            entry_kind=EntryKind(data["entry_kind"]),
            buried_at=buried_at,
        )


def now_utc() -> datetime:
    """Current UTC time, the timestamp stamped on new entries."""
    return datetime.now(timezone.utc)


class RecordStore:
    """Append-only ledger of :class:`GraveyardEntry`, pruned on restore/purge.

    Parameters
    ----------
    root:
        Graveyard root. The record file is ``root / RECORD_FILENAME``.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.path = self.root / RECORD_FILENAME
        self.corrupt: list[RecordCorrupt] = []

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_lines(self) -> list[str]:
        try:
            with open(self.path, encoding="utf-8", errors="surrogateescape") as fh:
                return fh.read().splitlines()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise from_os_error(exc, self.path) from exc

    def _load(self) -> list[tuple[str, GraveyardEntry | None]]:
        """Return every line paired with its parsed entry (None if corrupt)."""
        self.corrupt = []
        parsed: list[tuple[str, GraveyardEntry | None]] = []
        for lineno, line in enumerate(self._read_lines(), start=1):
            if not line.strip():
                continue
            try:
                entry = GraveyardEntry.from_json(line, self.root)
            except (ValueError, TypeError) as exc:
                err = RecordCorrupt(
                    f"Corrupt record at {self.path}:{lineno}: {exc}",
                    self.path,
                    line_number=lineno,
                    line=line,
                )
                log.warning("Skipping corrupt record line %d in %s: %s", lineno, self.path, exc)
                self.corrupt.append(err)
                parsed.append((line, None))
                continue
            parsed.append((line, entry))
        return parsed

    def list(self) -> list[GraveyardEntry]:
        """All live entries, most recently buried first.

        Entries with equal timestamps keep file order reversed, so the
        later line comes first.
        """
        entries = [e for _, e in self._load() if e is not None]
        indexed = sorted(
            enumerate(entries),
            key=lambda pair: (pair[1].buried_at, pair[0]),
            reverse=True,
        )
        return [e for _, e in indexed]

    def lookup(self, grave_path: Path) -> GraveyardEntry | None:
        grave_path = Path(grave_path)
        for entry in self.list():
            if entry.grave_path == grave_path:
                return entry
        return None

    def grave_paths(self) -> set[Path]:
        return {e.grave_path for e in self.list()}

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def append(self, entry: GraveyardEntry) -> None:
        """Append *entry* as one line, repairing a missing trailing newline."""
        line = entry.to_json(self.root) + "\n"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            needs_newline = False
            if self.path.exists() and self.path.stat().st_size > 0:
                with open(self.path, "rb") as fh:
                    fh.seek(-1, os.SEEK_END)
                    needs_newline = fh.read(1) != b"\n"
            with open(self.path, "a", encoding="utf-8", errors="surrogateescape") as fh:
                fh.write(("\n" if needs_newline else "") + line)
        except OSError as exc:
            raise from_os_error(exc, self.path) from exc
        log.debug("Recorded %s -> %s", entry.original_path, entry.grave_path)

    def remove(self, grave_path: Path) -> GraveyardEntry | None:
        """Drop the entry for *grave_path*. Returns it, or None if absent."""
        removed = self.remove_many([grave_path])
        return removed[0] if removed else None

    def remove_many(self, grave_paths: Iterable[Path]) -> list[GraveyardEntry]:
        """Drop every entry whose grave is in *grave_paths* and rewrite the file."""
        targets = {Path(p) for p in grave_paths}
        kept: list[str] = []
        removed: list[GraveyardEntry] = []
        for line, entry in self._load():
            if entry is not None and entry.grave_path in targets:
                removed.append(entry)
            else:
                kept.append(line)
        if removed:
            self._rewrite(kept)
        return removed

    def _rewrite(self, lines: list[str]) -> None:
        """Atomically replace the record file with *lines*."""
        try:
            fd, tmp = tempfile.mkstemp(prefix=".record.", suffix=".tmp", dir=self.root)
            try:
                with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as fh:
                    for line in lines:
                        fh.write(line + "\n")
                os.replace(tmp, self.path)
            except BaseException:
                try:
                    os.unlink(tmp)
                except FileNotFoundError:
                    pass
                raise
        except OSError as exc:
            raise from_os_error(exc, self.path) from exc
