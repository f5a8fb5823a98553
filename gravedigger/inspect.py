"""Human-readable summaries of a target, shown before it is buried."""

from __future__ import annotations

import os
import stat
from itertools import islice
from pathlib import Path

_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def humanize_bytes(size: int) -> str:
    """Format *size* with a binary unit, e.g. ``1.5 KiB``."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in _UNITS[1:-1]:
        value /= 1024
        if value < 1024:
            return f"{value:.1f} {unit}"
    return f"{value / 1024:.1f} {_UNITS[-1]}"


def tree_size(path: Path) -> int:
    """Total size of regular files under *path*, not following symlinks."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                st = os.lstat(os.path.join(dirpath, name))
            except OSError:
                continue
            total += st.st_size
    return total


def describe(target: Path | str, source: Path, lines: int = 6, files: int = 6) -> list[str]:
    """Summarize *source* for the inspect prompt.

    Directories get their total size and the first *files* entries;
    files get their size and first *lines* lines. *target* is the path as
    the user typed it.
    """
    out: list[str] = []
    if source.is_dir() and not source.is_symlink():
        out.append(f"{target}: directory, {humanize_bytes(tree_size(source))} including:")
        for entry in islice(sorted(source.iterdir()), files):
            out.append(str(entry))
        return out

    st = os.lstat(source)
    out.append(f"{target}: file, {humanize_bytes(st.st_size)}")
    if source.is_symlink():
        out.append(f"> symlink to {os.readlink(source)}")
        return out
    if not stat.S_ISREG(st.st_mode):
        return out
    try:
        with open(source, errors="replace") as fh:
            for line in islice(fh, lines):
                text = line.rstrip("\n")
                out.append(f"> {text}")
    except OSError:
        out.append(f"Error reading {source}")
    return out
