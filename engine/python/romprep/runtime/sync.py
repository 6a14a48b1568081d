"""Materialize the declared source directories from their remotes."""

from __future__ import annotations

import logging
from pathlib import Path

from romprep.domain.models import CloneOutcome, SourceSpec
from romprep.io.files import clear_tree
from romprep.runtime.reporting import RunReport
from romprep.vcs.client import Cloner
from romprep.vcs.git import git_clone


logger = logging.getLogger(__name__)

_MISSING_PREVIEW = 5


class TreeSynchronizer:
    """Recreate every SourceSpec directory from scratch, one at a time.

    An existing directory is always removed before cloning. A failed clone is
    recorded and the next spec is processed; the failed path is left absent
    so later phases skip it.
    """

    def __init__(
        self,
        root: Path,
        report: RunReport,
        *,
        dry_run: bool = False,
        cloner: Cloner = git_clone,
    ) -> None:
        self.root = root
        self.report = report
        self.dry_run = dry_run
        self.cloner = cloner

    def sync(self, specs: list[SourceSpec]) -> list[CloneOutcome]:
        return [self.sync_one(spec) for spec in specs]

    def sync_one(self, spec: SourceSpec) -> CloneOutcome:
        dest = self.root / spec.path
        unit = spec.path.as_posix()
        ref_text = f" -b {spec.ref}" if spec.ref else ""

        if self.dry_run:
            if dest.exists():
                self.report.skip(unit, f"would delete existing {unit}")
            self.report.skip(unit, f"would clone{ref_text} {spec.url}")
            return CloneOutcome(spec, "planned")

        if dest.exists() or dest.is_symlink():
            logger.info("%s: deleting existing directory", unit)
            try:
                clear_tree(dest)
            except OSError as exc:
                self.report.failed_clone(unit, f"could not remove existing directory: {exc}")
                return CloneOutcome(spec, "failed", f"remove failed: {exc}")

        logger.info("%s: cloning%s %s", unit, ref_text, spec.url)
        result = self.cloner(spec.url, dest, ref=spec.ref, depth=spec.depth, partial=spec.partial)
        if not result.success:
            if dest.exists():
                try:
                    clear_tree(dest)
                except OSError as exc:
                    logger.warning("%s: could not remove partial clone: %s", unit, exc)
            self.report.failed_clone(unit, f"clone failed: {_error_line(result.message)}")
            return CloneOutcome(spec, "failed", result.message or "clone failed")

        if result.missing_paths:
            preview = ", ".join(result.missing_paths[:_MISSING_PREVIEW])
            more = len(result.missing_paths) - _MISSING_PREVIEW
            suffix = f" (+{more} more)" if more > 0 else ""
            self.report.warning(
                unit,
                f"partial checkout: {len(result.missing_paths)} path(s) missing: {preview}{suffix}",
            )
        self.report.success(unit, f"cloned{ref_text} {spec.url}")
        return CloneOutcome(spec, "cloned", missing_paths=len(result.missing_paths))


def _error_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if line.startswith(("fatal:", "error:")):
            return line
    return lines[-1] if lines else "unknown error"
