"""Graveyard engine: bury, restore, list and purge entries.

Buried paths are moved below a graveyard root, mirroring their original
absolute location, and recorded in an append-only JSON Lines ledger so the
move can be reversed later.
"""

from gravedigger.graveyard.engine import (
    BuryReport,
    Graveyard,
    bury,
    bury_one,
    list_buried,
    restore_many,
    seance,
    send_to_trash,
)
from gravedigger.graveyard.mapper import join_absolute, map_grave, next_free
from gravedigger.graveyard.mover import Move, MoveState, move
from gravedigger.graveyard.purge import decompose, purge, purge_path
from gravedigger.graveyard.record import GraveyardEntry, RecordStore
from gravedigger.graveyard.restore import Restoration, restore
from gravedigger.graveyard.selector import Selector

__all__ = [
    "BuryReport",
    "Graveyard",
    "GraveyardEntry",
    "Move",
    "MoveState",
    "RecordStore",
    "Restoration",
    "Selector",
    "bury",
    "bury_one",
    "decompose",
    "join_absolute",
    "list_buried",
    "map_grave",
    "move",
    "next_free",
    "purge",
    "purge_path",
    "restore",
    "restore_many",
    "seance",
    "send_to_trash",
]
