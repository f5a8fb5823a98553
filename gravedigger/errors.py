"""Typed errors raised by the graveyard engine.

Every failure surfaces as a :class:`GraveyardError` subclass carrying the
path it concerns. Rendering messages for humans is the CLI's job; these
values only describe what went wrong.
"""

from __future__ import annotations

import errno
from pathlib import Path


class GraveyardError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class NotFound(GraveyardError):
    """Source path, grave content, or record is missing."""


class PermissionDenied(GraveyardError):
    """The filesystem refused access."""


class DeviceFull(GraveyardError):
    """No space (or quota) left on the destination device."""


class DestinationOccupied(GraveyardError):
    """Something already exists where an entry would be moved to."""


class GraveIOError(GraveyardError):
    """Any other OS-level failure."""


class CrossDeviceCopyFailed(GraveyardError):
    """The copy fallback stopped before completing.

    ``state`` names the :class:`~gravedigger.graveyard.mover.MoveState` the
    move was in, and ``cause`` is the translated underlying error.
    """

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        state: object = None,
        cause: GraveyardError | None = None,
    ) -> None:
        super().__init__(message, path)
        self.state = state
        self.cause = cause


class RecordCorrupt(GraveyardError):
    """A single record line could not be parsed. Never fatal."""

    def __init__(self, message: str, path: Path | str | None, line_number: int, line: str) -> None:
        super().__init__(message, path)
        self.line_number = line_number
        self.line = line


class GraveyardOverlap(GraveyardError):
    """The target and the graveyard root overlap."""


class InsideGraveyard(GraveyardOverlap):
    """The target already lives inside the graveyard."""


class ContainsGraveyard(GraveyardOverlap):
    """The target is the graveyard root or one of its ancestors."""


_ERRNO_MAP: dict[int, type[GraveyardError]] = {
    errno.ENOENT: NotFound,
    errno.EACCES: PermissionDenied,
    errno.EPERM: PermissionDenied,
    errno.ENOSPC: DeviceFull,
    errno.EEXIST: DestinationOccupied,
    errno.ENOTEMPTY: DestinationOccupied,
}
if hasattr(errno, "EDQUOT"):
    _ERRNO_MAP[errno.EDQUOT] = DeviceFull


def from_os_error(exc: OSError, path: Path | str | None = None) -> GraveyardError:
    """Translate an ``OSError`` into the matching engine error.

    The caller is expected to ``raise ... from exc`` so the original
    traceback stays attached.
    """
    cls = _ERRNO_MAP.get(exc.errno or 0, GraveIOError)
    where = path if path is not None else exc.filename
    detail = exc.strerror or str(exc)
    message = f"{detail}: {where}" if where is not None else detail
    return cls(message, where)
