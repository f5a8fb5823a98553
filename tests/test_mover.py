"""Tests for gravedigger.graveyard.mover: rename and the copy fallback."""

from __future__ import annotations

import errno
import os
from pathlib import Path

import pytest

from gravedigger.errors import (
    CrossDeviceCopyFailed,
    DestinationOccupied,
    DeviceFull,
    GraveIOError,
    PermissionDenied,
)
from gravedigger.graveyard import mover
from gravedigger.graveyard.mover import Move, MoveState, move

needs_symlinks = pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")


def _exdev(src, dst, *args, **kwargs):
    raise OSError(errno.EXDEV, "Invalid cross-device link", str(src))


@pytest.fixture
def src(tmp_path: Path) -> Path:
    d = tmp_path / "src"
    d.mkdir()
    return d


@pytest.fixture
def dst(tmp_path: Path) -> Path:
    return tmp_path / "dst"


@pytest.fixture
def tree(src: Path) -> Path:
    """A small directory tree: two files, a nested dir, and a symlink."""
    top = src / "project"
    (top / "nested").mkdir(parents=True)
    (top / "a.txt").write_text("alpha")
    (top / "nested" / "b.txt").write_text("bravo")
    if os.name != "nt":
        (top / "link").symlink_to("a.txt")
    return top


@pytest.fixture
def cross_device(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(mover.os, "rename", _exdev)


# ---------------------------------------------------------------------------
# Same-device rename
# ---------------------------------------------------------------------------

class TestRename:
    def test_moves_file_and_creates_parents(self, src: Path, dst: Path) -> None:
        (src / "f.txt").write_text("data")
        result = move(src / "f.txt", dst / "deep" / "f.txt")
        assert result.state is MoveState.DONE
        assert not result.copied
        assert not (src / "f.txt").exists()
        assert (dst / "deep" / "f.txt").read_text() == "data"

    def test_moves_directory(self, tree: Path, dst: Path) -> None:
        move(tree, dst / "project")
        assert not tree.exists()
        assert (dst / "project" / "nested" / "b.txt").read_text() == "bravo"

    @needs_symlinks
    def test_symlink_moved_unresolved(self, src: Path, dst: Path) -> None:
        (src / "l").symlink_to("../somewhere/else")
        move(src / "l", dst / "l")
        assert (dst / "l").is_symlink()
        assert os.readlink(dst / "l") == "../somewhere/else"

    def test_occupied_destination_refused(self, src: Path, dst: Path) -> None:
        (src / "f.txt").write_text("new")
        dst.mkdir()
        (dst / "f.txt").write_text("old")
        with pytest.raises(DestinationOccupied):
            move(src / "f.txt", dst / "f.txt")
        assert (src / "f.txt").read_text() == "new"
        assert (dst / "f.txt").read_text() == "old"

    def test_rename_error_translated(self, src: Path, dst: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def denied(a, b):
            raise PermissionError(errno.EACCES, "Permission denied", str(a))

        monkeypatch.setattr(mover.os, "rename", denied)
        (src / "f.txt").write_text("x")
        with pytest.raises(PermissionDenied):
            move(src / "f.txt", dst / "f.txt")
        assert (src / "f.txt").exists()

    def test_unknown_policy_rejected(self, src: Path, dst: Path) -> None:
        with pytest.raises(ValueError, match="partial_copy"):
            Move(src, dst, partial_copy="shred")


# ---------------------------------------------------------------------------
# Cross-device copy fallback
# ---------------------------------------------------------------------------

@pytest.mark.usefixtures("cross_device")
class TestCopyFallback:
    def test_file_copied_then_source_removed(self, src: Path, dst: Path) -> None:
        (src / "f.txt").write_bytes(b"\x00bytes\xff")
        result = move(src / "f.txt", dst / "f.txt")
        assert result.copied
        assert result.state is MoveState.DONE
        assert not (src / "f.txt").exists()
        assert (dst / "f.txt").read_bytes() == b"\x00bytes\xff"

    def test_directory_structure_preserved(self, tree: Path, dst: Path) -> None:
        move(tree, dst / "project")
        assert not tree.exists()
        assert (dst / "project" / "a.txt").read_text() == "alpha"
        assert (dst / "project" / "nested" / "b.txt").read_text() == "bravo"
        if os.name != "nt":
            assert (dst / "project" / "link").is_symlink()
            assert os.readlink(dst / "project" / "link") == "a.txt"

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="no FIFOs on this platform")
    def test_fifo_recreated(self, src: Path, dst: Path) -> None:
        os.mkfifo(src / "pipe")
        move(src / "pipe", dst / "pipe")
        assert not (src / "pipe").exists()
        assert (dst / "pipe").is_fifo()

    def test_mid_copy_failure_keeps_source_and_removes_partial(
        self, tree: Path, dst: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_copy = mover.copy_file

        def flaky_copy(source: Path, dest: Path) -> None:
            if source.name == "b.txt":
                raise OSError(errno.ENOSPC, "No space left on device", str(dest))
            real_copy(source, dest)

        monkeypatch.setattr(mover, "copy_file", flaky_copy)
        with pytest.raises(CrossDeviceCopyFailed) as excinfo:
            move(tree, dst / "project")

        assert excinfo.value.state is MoveState.COPYING
        assert isinstance(excinfo.value.cause, DeviceFull)
        assert (tree / "nested" / "b.txt").read_text() == "bravo"
        assert not (dst / "project").exists()

    def test_keep_policy_leaves_partial_copy(
        self, tree: Path, dst: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_copy = mover.copy_file

        def flaky_copy(source: Path, dest: Path) -> None:
            if source.name == "b.txt":
                raise OSError(errno.EIO, "I/O error", str(dest))
            real_copy(source, dest)

        monkeypatch.setattr(mover, "copy_file", flaky_copy)
        with pytest.raises(CrossDeviceCopyFailed):
            move(tree, dst / "project", partial_copy="keep")

        assert (dst / "project" / "a.txt").read_text() == "alpha"
        assert not (dst / "project" / "nested" / "b.txt").exists()
        assert (tree / "a.txt").exists()

    def test_verify_failure_names_state(
        self, src: Path, dst: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def bad_verify(source: Path, dest: Path) -> None:
            raise GraveIOError("size mismatch", dest)

        monkeypatch.setattr(mover, "verify_copy", bad_verify)
        (src / "f.txt").write_text("data")
        with pytest.raises(CrossDeviceCopyFailed) as excinfo:
            move(src / "f.txt", dst / "f.txt")
        assert excinfo.value.state is MoveState.VERIFYING
        assert (src / "f.txt").read_text() == "data"
        assert not (dst / "f.txt").exists()

    def test_source_delete_failure_keeps_complete_copy(
        self, src: Path, dst: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def undeletable(path: Path) -> None:
            raise PermissionError(errno.EACCES, "Permission denied", str(path))

        monkeypatch.setattr(mover, "remove_entry", undeletable)
        (src / "f.txt").write_text("data")
        with pytest.raises(CrossDeviceCopyFailed) as excinfo:
            move(src / "f.txt", dst / "f.txt")
        assert excinfo.value.state is MoveState.DELETING_SOURCE
        assert isinstance(excinfo.value.cause, PermissionDenied)
        assert (dst / "f.txt").read_text() == "data"
        assert (src / "f.txt").read_text() == "data"


class TestVerifyCopy:
    def test_size_mismatch_detected(self, src: Path, dst: Path) -> None:
        (src / "f").write_text("12345")
        dst.mkdir()
        (dst / "f").write_text("123")
        with pytest.raises(GraveIOError, match="expected 5"):
            mover.verify_copy(src / "f", dst / "f")

    def test_missing_child_detected(self, tree: Path, dst: Path) -> None:
        (dst / "project" / "nested").mkdir(parents=True)
        (dst / "project" / "a.txt").write_text("alpha")
        with pytest.raises(GraveIOError, match="missing"):
            mover.verify_copy(tree, dst / "project")
