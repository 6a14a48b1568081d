"""Source-control client contract consumed by the workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol


@dataclass(frozen=True)
class PickResult:
    """Outcome of a cherry-pick or a cherry-pick continuation."""

    success: bool
    empty: bool = False
    conflict_files: list[str] = field(default_factory=list)
    message: str = ""


@dataclass(frozen=True)
class CloneResult:
    success: bool
    message: str = ""
    missing_paths: list[str] = field(default_factory=list)


class SourceControlClient(Protocol):
    """Operations on one working tree."""

    path: Path

    def has_uncommitted_changes(self) -> bool: ...

    def stage_all(self) -> bool: ...

    def stage_file(self, rel_path: str) -> bool: ...

    def commit(self, message: str, allow_empty: bool = False) -> bool: ...

    def remotes(self) -> list[str]: ...

    def add_remote(self, name: str, url: str) -> bool: ...

    def fetch(self, remote: str) -> tuple[bool, str]: ...

    def cherry_pick(self, commit: str, allow_empty: bool = True) -> PickResult: ...

    def list_conflicted_files(self) -> list[str]: ...

    def checkout_side(self, rel_path: str, side: str) -> bool: ...

    def continue_cherry_pick(self) -> PickResult: ...

    def skip_cherry_pick(self) -> bool: ...

    def abort_cherry_pick(self) -> bool: ...


class Cloner(Protocol):
    def __call__(
        self,
        url: str,
        dest: Path,
        *,
        ref: str | None = None,
        depth: int | None = None,
        partial: bool = False,
    ) -> CloneResult: ...


ClientFactory = Callable[[Path], SourceControlClient]
