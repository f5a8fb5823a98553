"""Restore buried entries to where they came from."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from gravedigger.errors import DestinationOccupied, NotFound
from gravedigger.graveyard.mapper import next_free
from gravedigger.graveyard.mover import move
from gravedigger.graveyard.record import GraveyardEntry
from gravedigger.graveyard.selector import Selector

if TYPE_CHECKING:
    from gravedigger.graveyard.engine import Graveyard

log = logging.getLogger(__name__)

RESTORE_CONFLICT_POLICIES = ("fail", "rename")


@dataclass(frozen=True)
class Restoration:
    """A completed restore: the entry and where it actually landed."""

    entry: GraveyardEntry
    destination: Path


def prune_empty_parents(path: Path, root: Path) -> None:
    """Remove now-empty directories from *path*'s parent up to (not incl.) *root*."""
    for parent in path.parents:
        if parent == root or root not in parent.parents:
            break
        try:
            parent.rmdir()
        except OSError:
            break
        log.debug("Removed empty grave directory %s", parent)


def restore(graveyard: Graveyard, selector: Selector) -> Restoration:
    """Move the most recent entry matching *selector* back out of the graveyard.

    When several graves share an original path, the most recently buried
    one is restored first.

    Raises
    ------
    NotFound
        No record matches, or the grave's content is gone.
    DestinationOccupied
        The original location is taken and the conflict policy is ``fail``.
        The grave and its record are left untouched.
    """
    store = graveyard.store
    candidates = selector.select(store.list())
    if not candidates:
        raise NotFound(f"Nothing in the graveyard matches {_describe(selector)}", selector.path)
    entry = candidates[0]

    if not os.path.lexists(entry.grave_path):
        raise NotFound(f"Grave content missing: {entry.grave_path}", entry.grave_path)

    destination = entry.original_path
    if os.path.lexists(destination):
        if graveyard.restore_conflict == "fail":
            raise DestinationOccupied(
                f"Cannot restore {entry.grave_path}: {destination} already exists",
                destination,
            )
        destination = next_free(destination)
        log.debug("Original location occupied, restoring to %s", destination)

    log.debug("Restoring %s to %s", entry.grave_path, destination)
    move(entry.grave_path, destination, partial_copy=graveyard.partial_copy)
    store.remove(entry.grave_path)
    prune_empty_parents(entry.grave_path, graveyard.root)
    return Restoration(entry=entry, destination=destination)


def _describe(selector: Selector) -> str:
    if selector.path is None:
        return f"'{selector.kind}'"
    return f"{selector.kind} {selector.path}"
