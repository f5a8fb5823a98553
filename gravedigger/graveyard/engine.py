"""Caller-facing graveyard operations.

Every operation takes an explicitly constructed :class:`Graveyard`, so
separate graveyards (tests, multiple roots) never share state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from gravedigger.errors import (
    ContainsGraveyard,
    GraveyardError,
    InsideGraveyard,
    from_os_error,
)
from gravedigger.graveyard.mapper import join_absolute, map_grave
from gravedigger.graveyard.mover import PARTIAL_COPY_POLICIES, move
from gravedigger.graveyard.record import GraveyardEntry, RecordStore, now_utc
from gravedigger.graveyard.restore import RESTORE_CONFLICT_POLICIES, Restoration, restore
from gravedigger.graveyard.selector import Selector
from gravedigger.paths import entry_kind, is_within, resolve

log = logging.getLogger(__name__)


class Graveyard:
    """A graveyard root plus the policies that govern it.

    Parameters
    ----------
    root:
        Directory the buried entries are moved into. Created by
        :meth:`ensure` on first use.
    partial_copy:
        ``remove`` or ``keep`` a half-finished cross-device copy.
    restore_conflict:
        ``fail`` or ``rename`` when a restore destination is occupied.
    """

    def __init__(
        self,
        root: Path | str,
        partial_copy: str = "remove",
        restore_conflict: str = "fail",
    ) -> None:
        if partial_copy not in PARTIAL_COPY_POLICIES:
            raise ValueError(f"Unknown partial_copy policy '{partial_copy}'")
        if restore_conflict not in RESTORE_CONFLICT_POLICIES:
            raise ValueError(f"Unknown restore_conflict policy '{restore_conflict}'")
        self.root = resolve(Path(root).expanduser(), must_exist=False)
        self.partial_copy = partial_copy
        self.restore_conflict = restore_conflict
        self._store = RecordStore(self.root)

    @classmethod
    def from_config(cls, config: dict[str, Any], override: Path | str | None = None) -> Graveyard:
        """Build a graveyard from a loaded config dict."""
        from gravedigger.config import resolve_graveyard_root

        return cls(
            resolve_graveyard_root(config, override),
            partial_copy=config["partial_copy"],
            restore_conflict=config["restore_conflict"],
        )

    @property
    def store(self) -> RecordStore:
        return self._store

    def ensure(self) -> Path:
        """Create the root (mode 0700 on POSIX) if it does not exist."""
        if not self.root.exists():
            log.debug("Creating graveyard at %s", self.root)
            try:
                self.root.mkdir(parents=True)
                if os.name == "posix":
                    os.chmod(self.root, 0o700)
            except OSError as exc:
                raise from_os_error(exc, self.root) from exc
        return self.root

    def __repr__(self) -> str:
        return f"Graveyard({str(self.root)!r})"


@dataclass
class BuryReport:
    """Outcome of a batch bury.

    Items before ``failed_path`` are buried and recorded; ``untouched``
    items after it were never attempted.
    """

    buried: list[GraveyardEntry] = field(default_factory=list)
    failed_path: Path | None = None
    error: GraveyardError | None = None
    untouched: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def bury_one(graveyard: Graveyard, target: Path | str, cwd: Path | None = None) -> GraveyardEntry:
    """Bury a single *target* and record it.

    The record is appended only after the move fully succeeded, so the
    store never points at a grave that does not exist.
    """
    source = resolve(target, cwd=cwd, must_exist=True)
    root = graveyard.root
    if is_within(source, root):
        raise InsideGraveyard(f"{source} is already in the graveyard", source)
    if is_within(root, source):
        raise ContainsGraveyard(f"Cannot bury {source}: it contains the graveyard {root}", source)

    graveyard.ensure()
    kind = entry_kind(source)
    store = graveyard.store
    grave = map_grave(source, root, taken=store.grave_paths())
    log.debug("Burying %s (%s) at %s", source, kind.value, grave)

    move(source, grave, partial_copy=graveyard.partial_copy)
    entry = GraveyardEntry(
        original_path=source,
        grave_path=grave,
        entry_kind=kind,
        buried_at=now_utc(),
    )
    store.append(entry)
    return entry


def bury(
    graveyard: Graveyard,
    targets: Iterable[Path | str],
    cwd: Path | None = None,
) -> BuryReport:
    """Bury *targets* one at a time, stopping at the first failure."""
    pending = [Path(t) for t in targets]
    report = BuryReport()
    for i, target in enumerate(pending):
        try:
            report.buried.append(bury_one(graveyard, target, cwd=cwd))
        except GraveyardError as exc:
            log.debug("Bury of %s failed: %s", target, exc)
            report.failed_path = target
            report.error = exc
            report.untouched = pending[i + 1:]
            break
    return report


def restore_many(graveyard: Graveyard, selectors: Iterable[Selector]) -> list[Restoration]:
    """Restore one entry per selector in order; stops at the first error."""
    return [restore(graveyard, sel) for sel in selectors]


def list_buried(graveyard: Graveyard) -> list[GraveyardEntry]:
    """All live entries, most recent first."""
    return graveyard.store.list()


def seance(graveyard: Graveyard, directory: Path | str | None = None) -> list[GraveyardEntry]:
    """Entries whose original path lies at or under *directory* (default cwd)."""
    base = resolve(directory if directory is not None else Path.cwd(), must_exist=False)
    log.debug("Checking for graves in %s", join_absolute(graveyard.root, base))
    return Selector.under(base).select(graveyard.store.list())


def send_to_trash(targets: Iterable[Path | str], cwd: Path | None = None) -> list[Path]:
    """Hand *targets* to the platform trash. Nothing is recorded."""
    from send2trash import send2trash

    sent: list[Path] = []
    for target in targets:
        source = resolve(target, cwd=cwd, must_exist=True)
        log.debug("Sending %s to the system trash", source)
        try:
            send2trash(os.fspath(source))
        except OSError as exc:
            raise from_os_error(exc, source) from exc
        sent.append(source)
    return sent

