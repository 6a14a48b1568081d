"""Run configuration built from a validated manifest."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from romprep.domain.models import (
    PHASES,
    PatchSpec,
    SourceSpec,
    StepSpec,
    SubstitutionRule,
    normalize_relative_path,
    validate_name_token,
)
from romprep.domain.schemas import validate_manifest


DEFAULT_NAME = "euclid"
STATE_DIR = ".romprep"
NAME_PLACEHOLDER = "{name}"

# Step fields holding root-relative paths or globs.
_STEP_PATH_FIELDS = ("path", "dest", "cwd", "glob")


@dataclass(frozen=True)
class RunConfig:
    root: Path
    name: str
    dry_run: bool = False
    skip: frozenset[str] = frozenset()
    sources: list[SourceSpec] = field(default_factory=list)
    patches: list[PatchSpec] = field(default_factory=list)
    roots: list[Path] = field(default_factory=list)
    rules: list[SubstitutionRule] = field(default_factory=list)
    steps: list[StepSpec] = field(default_factory=list)

    @property
    def report_dir(self) -> Path:
        return self.root / STATE_DIR

    def runs(self, phase: str) -> bool:
        return phase not in self.skip

    def phases(self) -> list[str]:
        return [phase for phase in PHASES if self.runs(phase)]


def load_manifest(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileNotFoundError(f"Manifest not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Manifest {path} is not valid JSON: {exc}") from exc
    validate_manifest(data)
    return data


def expand(value: Any, name: str) -> Any:
    """Replace the naming placeholder in every string of a JSON value."""
    if isinstance(value, str):
        return value.replace(NAME_PLACEHOLDER, name)
    if isinstance(value, list):
        return [expand(item, name) for item in value]
    if isinstance(value, dict):
        return {key: expand(item, name) for key, item in value.items()}
    return value


def _source(raw: dict[str, Any]) -> SourceSpec:
    return SourceSpec(
        path=normalize_relative_path(raw["path"]),
        url=raw["url"],
        ref=raw.get("ref") or None,
        depth=raw.get("depth"),
        partial=bool(raw.get("partial", False)),
    )


def _patch(raw: dict[str, Any]) -> PatchSpec:
    return PatchSpec(
        path=normalize_relative_path(raw["path"]),
        commit=raw["commit"],
        remote=raw.get("remote"),
        url=raw.get("url"),
        strategy=raw.get("strategy", "ours"),
    )


def _rule(raw: dict[str, Any]) -> SubstitutionRule:
    match = raw.get("match", "literal")
    return SubstitutionRule(
        source=raw["source"],
        target=raw["target"],
        match=match,
        files=tuple(raw.get("files", ())),
        rename=bool(raw.get("rename", match == "literal")),
    )


def _step(raw: dict[str, Any]) -> StepSpec:
    options = {key: value for key, value in raw.items() if key != "kind"}
    for key in _STEP_PATH_FIELDS:
        if key in options:
            options[key] = normalize_relative_path(options[key]).as_posix()
    return StepSpec(kind=raw["kind"], options=options)


def build_run_config(
    manifest: dict[str, Any],
    *,
    root: Path,
    name: str | None = None,
    dry_run: bool = False,
    skip: set[str] | frozenset[str] = frozenset(),
) -> RunConfig:
    token = validate_name_token(name or manifest.get("name") or DEFAULT_NAME)
    unknown = set(skip) - set(PHASES)
    if unknown:
        raise ValueError(f"Unknown phase(s): {', '.join(sorted(unknown))}")

    data = expand(manifest, token)
    sources = [_source(item) for item in data.get("sources", [])]
    substitution = data.get("substitution", {})
    if "roots" in substitution:
        roots = [normalize_relative_path(item) for item in substitution["roots"]]
    else:
        roots = [spec.path for spec in sources]
    return RunConfig(
        root=root.resolve(),
        name=token,
        dry_run=dry_run,
        skip=frozenset(skip),
        sources=sources,
        patches=[_patch(item) for item in data.get("patches", [])],
        roots=roots,
        rules=[_rule(item) for item in substitution.get("rules", [])],
        steps=[_step(item) for item in data.get("steps", [])],
    )
