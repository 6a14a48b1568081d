"""Domain models for source trees, patches and substitution rules."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any


CONFLICT_STRATEGIES = {"ours", "theirs", "both", "manual"}
MATCH_KINDS = {"literal", "word"}
PHASES = ("sync", "patch", "substitute", "steps")

PATCH_STATUSES = {"applied", "already_applied", "skipped", "failed"}
CLONE_STATUSES = {"cloned", "failed", "planned"}

# Patch outcome reasons.
MISSING_DIRECTORY = "missing-directory"
FETCH_ERROR = "fetch-error"
UNRESOLVABLE = "unresolvable"
APPLY_ERROR = "apply-error"
DRY_RUN = "dry-run"

NAME_TOKEN_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def normalize_relative_path(raw: str) -> Path:
    """Normalize a root-relative path and reject path escapes."""
    value = raw.strip().replace("\\", "/")
    if value in {"", "."}:
        raise ValueError(f"Path must name a directory below the root: {raw!r}")

    posix_path = PurePosixPath(value)
    if posix_path.is_absolute():
        raise ValueError(f"Path must be relative: {raw}")

    parts: list[str] = []
    for part in posix_path.parts:
        if part in {"", "."}:
            continue
        if part == "..":
            raise ValueError(f"Path cannot escape the workspace root: {raw}")
        parts.append(part)
    return Path(*parts)


def validate_name_token(name: str) -> str:
    if not NAME_TOKEN_RE.match(name):
        raise ValueError(f"Invalid naming token {name!r}: expected letters, digits, '_' or '-'")
    return name


@dataclass(frozen=True)
class SourceSpec:
    """One directory to materialize from a remote."""

    path: Path
    url: str
    ref: str | None = None
    depth: int | None = None
    partial: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.as_posix(),
            "url": self.url,
            "ref": self.ref,
            "depth": self.depth,
            "partial": self.partial,
        }


@dataclass(frozen=True)
class PatchSpec:
    """One upstream commit to layer onto an already cloned tree."""

    path: Path
    commit: str
    remote: str | None = None
    url: str | None = None
    strategy: str = "ours"

    def __post_init__(self) -> None:
        if self.strategy not in CONFLICT_STRATEGIES:
            raise ValueError(f"Unknown conflict strategy: {self.strategy}")
        if (self.remote is None) != (self.url is None):
            raise ValueError(f"Patch {self.commit}: 'remote' and 'url' must be given together")

    @property
    def label(self) -> str:
        return f"{self.path.as_posix()}@{self.commit[:12]}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.as_posix(),
            "commit": self.commit,
            "remote": self.remote,
            "url": self.url,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class SubstitutionRule:
    """Token mapping applied to file contents and, for literal rules, to names.

    Literal rules match the token as an exact substring anywhere. Word rules
    match the token only between word boundaries and only inside files whose
    basename matches one of ``files``.
    """

    source: str
    target: str
    match: str = "literal"
    files: tuple[str, ...] = ()
    rename: bool = True

    def __post_init__(self) -> None:
        if not self.source:
            raise ValueError("Substitution rule source token must not be empty")
        if self.match not in MATCH_KINDS:
            raise ValueError(f"Unknown match kind: {self.match}")
        if self.match == "word" and not self.files:
            raise ValueError(f"Word rule {self.source!r} needs at least one file pattern")

    @property
    def renames(self) -> bool:
        return self.match == "literal" and self.rename

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "match": self.match,
            "files": list(self.files),
            "rename": self.rename,
        }


@dataclass(frozen=True)
class StepSpec:
    """Post-processing step; ``options`` holds the kind specific fields."""

    kind: str
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, **self.options}


@dataclass(frozen=True)
class CloneOutcome:
    spec: SourceSpec
    status: str
    reason: str | None = None
    missing_paths: int = 0

    def __post_init__(self) -> None:
        if self.status not in CLONE_STATUSES:
            raise ValueError(f"Unknown clone status: {self.status}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.spec.path.as_posix(),
            "status": self.status,
            "reason": self.reason,
            "missing_paths": self.missing_paths,
        }


@dataclass(frozen=True)
class PatchOutcome:
    spec: PatchSpec
    status: str
    reason: str | None = None
    detail: str | None = None
    resolved_files: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.status not in PATCH_STATUSES:
            raise ValueError(f"Unknown patch status: {self.status}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "patch": self.spec.label,
            "status": self.status,
            "reason": self.reason,
            "detail": self.detail,
            "resolved_files": list(self.resolved_files),
        }


@dataclass
class SubstitutionReport:
    """Per-run counters of the rename/substitution engine."""

    files_changed: list[str] = field(default_factory=list)
    renamed: list[tuple[str, str]] = field(default_factory=list)
    skipped_roots: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_changed": sorted(set(self.files_changed)),
            "renamed": [{"from": src, "to": dst} for src, dst in self.renamed],
            "skipped_roots": list(self.skipped_roots),
            "failures": list(self.failures),
        }
