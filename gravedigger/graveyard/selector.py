"""Selectors choose which records a restore or purge acts on."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from gravedigger.graveyard.record import GraveyardEntry
from gravedigger.paths import is_within

SELECTOR_KINDS = ("latest", "original", "grave", "under", "all")


@dataclass(frozen=True)
class Selector:
    """Which entries to act on.

    ``latest`` matches only the most recent entry; ``original`` and
    ``grave`` match an exact path; ``under`` matches originals at or below
    a directory; ``all`` matches everything.
    """

    kind: str
    path: Path | None = None

    def __post_init__(self) -> None:
        if self.kind not in SELECTOR_KINDS:
            raise ValueError(f"Unknown selector kind '{self.kind}'; expected one of {SELECTOR_KINDS}")
        if self.kind in ("original", "grave", "under") and self.path is None:
            raise ValueError(f"Selector '{self.kind}' needs a path")

    @classmethod
    def latest(cls) -> Selector:
        return cls("latest")

    @classmethod
    def everything(cls) -> Selector:
        return cls("all")

    @classmethod
    def original(cls, path: Path) -> Selector:
        return cls("original", Path(path))

    @classmethod
    def grave(cls, path: Path) -> Selector:
        return cls("grave", Path(path))

    @classmethod
    def under(cls, directory: Path) -> Selector:
        return cls("under", Path(directory))

    def matches(self, entry: GraveyardEntry) -> bool:
        if self.kind in ("latest", "all"):
            return True
        if self.kind == "original":
            return entry.original_path == self.path
        if self.kind == "grave":
            return entry.grave_path == self.path
        return is_within(entry.original_path, self.path)  # type: ignore[arg-type]

    def select(self, entries: list[GraveyardEntry]) -> list[GraveyardEntry]:
        """Filter *entries* (most recent first) down to the matches."""
        matched = [e for e in entries if self.matches(e)]
        if self.kind == "latest":
            return matched[:1]
        return matched
