"""Permanent erasure of graves. No confirmation happens here."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from gravedigger.errors import GraveyardOverlap, NotFound, from_os_error
from gravedigger.graveyard.mover import remove_entry
from gravedigger.graveyard.record import GraveyardEntry
from gravedigger.graveyard.restore import prune_empty_parents
from gravedigger.graveyard.selector import Selector
from gravedigger.paths import is_within

if TYPE_CHECKING:
    from gravedigger.graveyard.engine import Graveyard

log = logging.getLogger(__name__)


def _erase(path: Path) -> None:
    try:
        remove_entry(path)
    except FileNotFoundError:
        log.debug("Grave already gone: %s", path)
    except OSError as exc:
        raise from_os_error(exc, path) from exc


def purge(graveyard: Graveyard, selector: Selector) -> list[GraveyardEntry]:
    """Erase the graves matching *selector* and drop their records.

    Records whose content has already vanished are dropped without error.
    Returns the purged entries.
    """
    store = graveyard.store
    entries = selector.select(store.list())
    if not entries:
        raise NotFound(f"Nothing in the graveyard matches selector '{selector.kind}'", selector.path)

    for entry in entries:
        log.debug("Purging %s", entry.grave_path)
        _erase(entry.grave_path)
        store.remove(entry.grave_path)
        prune_empty_parents(entry.grave_path, graveyard.root)
    return entries


def purge_path(graveyard: Graveyard, path: Path) -> list[GraveyardEntry]:
    """Erase an arbitrary *path* inside the graveyard.

    Any records whose grave lies at or below *path* are dropped as well.
    """
    path = Path(path)
    root = graveyard.root
    if path == root or path == graveyard.store.path or not is_within(path, root):
        raise GraveyardOverlap(f"Refusing to purge {path}: not a grave inside {root}", path)
    if not os.path.lexists(path):
        raise NotFound(f"No such grave: {path}", path)

    _erase(path)
    store = graveyard.store
    dropped = [e for e in store.list() if is_within(e.grave_path, path)]
    store.remove_many(e.grave_path for e in dropped)
    prune_empty_parents(path, root)
    return dropped


def decompose(graveyard: Graveyard) -> None:
    """Erase the whole graveyard, record file included."""
    root = graveyard.root
    if not root.exists():
        log.debug("Graveyard %s does not exist, nothing to decompose", root)
        return
    log.debug("Decomposing graveyard %s", root)
    try:
        shutil.rmtree(root)
    except OSError as exc:
        raise from_os_error(exc, root) from exc
