"""Path resolution: turn user input into canonical, symlink-aware paths.

All platform string rules (Windows verbatim prefixes, drive letters, UNC
shares) stay in this module. Everything else works on the
:class:`~pathlib.Path` values returned here.
"""

from __future__ import annotations

import enum
import logging
import os
import stat
from pathlib import Path

from gravedigger.errors import NotFound, from_os_error

log = logging.getLogger(__name__)

_VERBATIM_PREFIX = "\\\\?\\"
_VERBATIM_UNC_PREFIX = "\\\\?\\UNC\\"


class EntryKind(str, enum.Enum):
    """What kind of filesystem entry a buried item is."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


def _strip_verbatim(path: Path) -> Path:
    """Drop the ``\\\\?\\`` prefix Windows adds to some resolved paths."""
    raw = str(path)
    if raw.startswith(_VERBATIM_UNC_PREFIX):
        return Path("\\\\" + raw[len(_VERBATIM_UNC_PREFIX):])
    if raw.startswith(_VERBATIM_PREFIX):
        return Path(raw[len(_VERBATIM_PREFIX):])
    return path


def resolve(
    target: Path | str,
    cwd: Path | None = None,
    must_exist: bool = True,
) -> Path:
    """Return the canonical absolute form of *target*.

    Parameters
    ----------
    target:
        User-supplied path, absolute or relative to *cwd*.
    cwd:
        Base for relative targets. Defaults to the process cwd.
    must_exist:
        When True (burial), raise :class:`NotFound` if nothing exists at
        *target*. When False (restore destinations, selectors), a missing
        target yields its best-effort canonical parent plus leaf.

    Returns
    -------
    Path
        Absolute path. If *target* is itself a symlink, only its parent is
        resolved so the link, not what it points to, is the entry.
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    joined = base.absolute() / Path(target).expanduser()

    if not os.path.lexists(joined):
        if must_exist:
            raise NotFound(f"Cannot remove {target}: no such file or directory", joined)
        joined = Path(os.path.abspath(joined))
        return _strip_verbatim(joined.parent.resolve() / joined.name)

    if joined.is_symlink():
        log.debug("Symlink detected, keeping leaf unresolved: %s", joined)
        return _strip_verbatim(joined.parent.resolve() / joined.name)

    try:
        return _strip_verbatim(joined.resolve(strict=True))
    except OSError as exc:
        raise from_os_error(exc, joined) from exc


def entry_kind(path: Path) -> EntryKind:
    """Classify *path* without following a final symlink."""
    try:
        mode = os.lstat(path).st_mode
    except OSError as exc:
        raise from_os_error(exc, path) from exc
    if stat.S_ISLNK(mode):
        return EntryKind.SYMLINK
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    return EntryKind.FILE


def is_within(path: Path, parent: Path) -> bool:
    """True if *path* equals *parent* or lies below it."""
    try:
        path.relative_to(parent)
    except ValueError:
        return False
    return True


def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if os.path.lexists(candidate):
            return candidate
    return path


def same_device(a: Path, b: Path) -> bool:
    """Whether *a* and *b* (or their nearest existing ancestors) share a device."""
    dev_a = os.lstat(_nearest_existing(a)).st_dev
    dev_b = os.lstat(_nearest_existing(b)).st_dev
    return dev_a == dev_b
