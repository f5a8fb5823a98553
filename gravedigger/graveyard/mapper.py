"""Map an original path to its grave inside the graveyard root.

The grave mirrors the original's absolute path below the root, so
``/home/user/notes.txt`` rests at ``<root>/home/user/notes.txt``. Collisions
get a ``~N`` suffix on the leaf, counting up from 1.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePath
from typing import Collection


def _anchor_parts(path: PurePath) -> list[str]:
    """Rewrite the drive/root of *path* into plain relative components."""
    drive = path.drive
    if not drive:
        return []
    if drive.startswith(("\\\\", "//")):
        # UNC share: \\server\share -> server/share
        return [p for p in drive.replace("\\", "/").split("/") if p]
    return [drive.rstrip(":")]


def join_absolute(root: Path, path: PurePath) -> Path:
    """Join absolute *path* below *root*, dropping its root component."""
    rest = path.parts[1:] if path.anchor else path.parts
    return root.joinpath(*_anchor_parts(path), *rest)


def _is_free(candidate: Path, taken: Collection[Path]) -> bool:
    return candidate not in taken and not os.path.lexists(candidate)


def next_free(path: Path, taken: Collection[Path] = ()) -> Path:
    """Return *path*, or the first ``path~N`` that is free on disk and in *taken*."""
    if _is_free(path, taken):
        return path
    n = 1
    while True:
        candidate = path.with_name(f"{path.name}~{n}")
        if _is_free(candidate, taken):
            return candidate
        n += 1


def _clear_ancestors(grave: Path, root: Path, taken: Collection[Path] = ()) -> Path:
    """Rename any ancestor of *grave* below *root* that is already a grave.

    An ancestor is occupied when it exists as a non-directory (a file was
    buried at ``<root>/a`` and now something from a directory ``/a``
    follows) or when it is the grave of a live record (a directory ``/a``
    was buried and now ``/a/b/f`` follows). A grave must never land inside
    another live grave, or purging or restoring that one would take it along.
    """
    rel = grave.relative_to(root)
    current = root
    for i, part in enumerate(rel.parts[:-1]):
        step = current / part
        if step in taken or step.is_symlink() or (os.path.lexists(step) and not step.is_dir()):
            step = next_free(step, taken)
            return _clear_ancestors(step.joinpath(*rel.parts[i + 1:]), root, taken)
        current = step
    return grave


def map_grave(original: Path, root: Path, taken: Collection[Path] = ()) -> Path:
    """Compute the grave for *original* below *root*.

    Parameters
    ----------
    original:
        Canonical absolute path being buried.
    root:
        Graveyard root.
    taken:
        Grave paths of live records. A grave is also considered taken if
        anything exists there on disk.

    Returns
    -------
    Path
        A grave path that is free both on disk and in *taken*. The result
        depends only on the inputs and the graveyard state.
    """
    grave = _clear_ancestors(join_absolute(root, original), root, taken)
    return next_free(grave, taken)
