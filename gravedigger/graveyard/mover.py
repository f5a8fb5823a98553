"""Physical relocation of entries, in either direction.

A move is a plain ``os.rename`` when source and destination share a
device. Across devices it falls back to copy, verify, then delete the
source, tracked by :class:`MoveState` so a failure names the step it
stopped at:

    pending -> renaming -> done
    pending -> renaming -> copying -> verifying -> deleting_source -> done

Any step may end in ``failed``. The source is only deleted after the copy
has been verified, so a failed fallback never loses the source.
"""

from __future__ import annotations

import enum
import errno
import logging
import os
import shutil
import stat
from pathlib import Path

from gravedigger.errors import (
    CrossDeviceCopyFailed,
    DestinationOccupied,
    GraveIOError,
    GraveyardError,
    from_os_error,
)

log = logging.getLogger(__name__)

PARTIAL_COPY_POLICIES = ("remove", "keep")


class MoveState(str, enum.Enum):
    PENDING = "pending"
    RENAMING = "renaming"
    COPYING = "copying"
    VERIFYING = "verifying"
    DELETING_SOURCE = "deleting_source"
    DONE = "done"
    FAILED = "failed"


class Move:
    """One relocation of *source* to *dest*.

    Parameters
    ----------
    source:
        Existing entry to relocate.
    dest:
        Destination path. Must not exist yet; parents are created.
    partial_copy:
        ``remove`` deletes a half-written destination when the copy
        fallback fails; ``keep`` leaves it for manual inspection.
    """

    def __init__(self, source: Path, dest: Path, partial_copy: str = "remove") -> None:
        if partial_copy not in PARTIAL_COPY_POLICIES:
            raise ValueError(
                f"Unknown partial_copy policy '{partial_copy}'; expected one of {PARTIAL_COPY_POLICIES}"
            )
        self.source = Path(source)
        self.dest = Path(dest)
        self.partial_copy = partial_copy
        self.state = MoveState.PENDING
        self.copied = False
        self.failed_in: MoveState | None = None

    def _enter(self, state: MoveState) -> None:
        log.debug("Move %s -> %s: %s", self.source, self.dest, state.value)
        self.state = state

    def run(self) -> Move:
        """Perform the move. Returns self with ``state == DONE``."""
        if os.path.lexists(self.dest):
            self._enter(MoveState.FAILED)
            raise DestinationOccupied(f"Destination already exists: {self.dest}", self.dest)

        try:
            self.dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._enter(MoveState.FAILED)
            raise from_os_error(exc, self.dest.parent) from exc

        self._enter(MoveState.RENAMING)
        try:
            os.rename(self.source, self.dest)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                self._enter(MoveState.FAILED)
                raise from_os_error(exc, self.source) from exc
            log.info("Cross-device move, copying %s to %s", self.source, self.dest)
            self._copy_fallback()
        self._enter(MoveState.DONE)
        return self

    # ------------------------------------------------------------------
    # Copy fallback
    # ------------------------------------------------------------------

    def _copy_fallback(self) -> None:
        self.copied = True
        self._enter(MoveState.COPYING)
        try:
            copy_entry(self.source, self.dest)
            self._enter(MoveState.VERIFYING)
            verify_copy(self.source, self.dest)
        except (OSError, GraveyardError) as exc:
            self._fail_partial(exc)

        self._enter(MoveState.DELETING_SOURCE)
        try:
            remove_entry(self.source)
        except OSError as exc:
            failed_in = self.state
            self.failed_in = failed_in
            self._enter(MoveState.FAILED)
            raise CrossDeviceCopyFailed(
                f"Copied {self.source} to {self.dest} but could not remove the source",
                self.source,
                state=failed_in,
                cause=from_os_error(exc, exc.filename or self.source),
            ) from exc

    def _fail_partial(self, exc: Exception) -> None:
        failed_in = self.state
        self.failed_in = failed_in
        self._enter(MoveState.FAILED)
        if isinstance(exc, GraveyardError):
            cause = exc
        else:
            cause = from_os_error(exc, exc.filename or self.source)  # type: ignore[arg-type]

        if self.partial_copy == "remove" and os.path.lexists(self.dest):
            log.info("Removing partial copy at %s", self.dest)
            try:
                remove_entry(self.dest)
            except OSError as cleanup_exc:
                log.warning("Could not remove partial copy %s: %s", self.dest, cleanup_exc)
        else:
            log.warning("Partial copy left at %s", self.dest)

        raise CrossDeviceCopyFailed(
            f"Copy from {self.source} to {self.dest} failed while {failed_in.value}; source kept",
            self.source,
            state=failed_in,
            cause=cause,
        ) from exc


def move(source: Path, dest: Path, partial_copy: str = "remove") -> Move:
    """Move *source* to *dest*, falling back to copy across devices."""
    return Move(source, dest, partial_copy).run()


def copy_file(source: Path, dest: Path) -> None:
    """Copy one non-directory entry, preserving its type."""
    st = os.lstat(source)
    mode = st.st_mode
    if stat.S_ISLNK(mode):
        os.symlink(os.readlink(source), dest)
    elif stat.S_ISREG(mode):
        shutil.copy2(source, dest, follow_symlinks=False)
    elif stat.S_ISFIFO(mode):
        os.mkfifo(dest, stat.S_IMODE(mode))
    else:
        raise GraveIOError(f"Cannot copy special file: {source}", source)


def copy_entry(source: Path, dest: Path) -> None:
    """Recursively copy *source* to *dest*; directories keep their structure."""
    if not source.is_dir() or source.is_symlink():
        copy_file(source, dest)
        return
    dest.mkdir()
    with os.scandir(source) as it:
        children = sorted(it, key=lambda e: e.name)
    for child in children:
        copy_entry(Path(child.path), dest / child.name)
    shutil.copystat(source, dest, follow_symlinks=False)


def verify_copy(source: Path, dest: Path) -> None:
    """Raise :class:`GraveIOError` unless *dest* mirrors *source*."""
    src_st = os.lstat(source)
    try:
        dst_st = os.lstat(dest)
    except FileNotFoundError:
        raise GraveIOError(f"Copy is missing {dest}", dest) from None

    if stat.S_IFMT(src_st.st_mode) != stat.S_IFMT(dst_st.st_mode):
        raise GraveIOError(f"Copy of {source} has a different type", dest)
    if stat.S_ISLNK(src_st.st_mode):
        if os.readlink(source) != os.readlink(dest):
            raise GraveIOError(f"Copy of link {source} points elsewhere", dest)
    elif stat.S_ISREG(src_st.st_mode):
        if src_st.st_size != dst_st.st_size:
            raise GraveIOError(
                f"Copy of {source} is {dst_st.st_size} bytes, expected {src_st.st_size}", dest
            )
    elif stat.S_ISDIR(src_st.st_mode):
        for name in os.listdir(source):
            verify_copy(source / name, dest / name)


def remove_entry(path: Path) -> None:
    """Delete *path* whatever its kind; a symlink is unlinked, not followed."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
