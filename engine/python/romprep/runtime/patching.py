"""Layer upstream commits onto cloned trees."""

from __future__ import annotations

import logging
from pathlib import Path

from romprep.domain.models import (
    APPLY_ERROR,
    DRY_RUN,
    FETCH_ERROR,
    MISSING_DIRECTORY,
    UNRESOLVABLE,
    PatchOutcome,
    PatchSpec,
)
from romprep.io.files import is_binary
from romprep.runtime.conflicts import ResolutionError, ResolutionRefused, resolve_file, residual_markers
from romprep.runtime.reporting import RunReport
from romprep.vcs.client import ClientFactory, SourceControlClient
from romprep.vcs.git import GitClient


logger = logging.getLogger(__name__)

CHECKPOINT_MESSAGE = "romprep: checkpoint local changes before {commit}"

# Strategies that can take a whole side of a file without markers.
_WHOLE_FILE_SIDES = ("ours", "theirs")


def _carries_markers(path: Path) -> bool:
    """True for a text file with conflict markers; binaries and deleted paths have none."""
    if not path.is_file():
        return False
    data = path.read_bytes()
    return not is_binary(data) and bool(residual_markers(data.splitlines(keepends=True)))


class PatchApplier:
    """Apply one PatchSpec at a time; every outcome is also written to the report."""

    def __init__(
        self,
        root: Path,
        report: RunReport,
        *,
        dry_run: bool = False,
        client_factory: ClientFactory = GitClient,
        planned: frozenset[Path] = frozenset(),
    ) -> None:
        self.root = root
        self.report = report
        self.dry_run = dry_run
        self.client_factory = client_factory
        # Paths a dry-run sync would have cloned; treated as present.
        self.planned = planned

    def apply(self, patch: PatchSpec) -> PatchOutcome:
        target = self.root / patch.path
        unit = patch.label
        if not target.is_dir() and not (self.dry_run and patch.path in self.planned):
            self.report.skip(unit, f"directory {patch.path.as_posix()} not found, skipping cherry-pick")
            return PatchOutcome(patch, "skipped", MISSING_DIRECTORY)

        if self.dry_run:
            if patch.remote is not None:
                self.report.skip(unit, f"would add remote {patch.remote} ({patch.url}) and fetch it")
            self.report.skip(unit, f"would cherry-pick {patch.commit} (conflicts: {patch.strategy})")
            return PatchOutcome(patch, "skipped", DRY_RUN)

        client = self.client_factory(target)
        try:
            return self._apply(client, patch)
        except OSError as exc:
            self.report.error(unit, f"cannot work in {target}: {exc}")
            return PatchOutcome(patch, "failed", APPLY_ERROR, detail=str(exc))

    def _checkpoint(self, client: SourceControlClient, patch: PatchSpec) -> None:
        if not client.has_uncommitted_changes():
            return
        message = CHECKPOINT_MESSAGE.format(commit=patch.commit)
        if client.stage_all() and client.commit(message):
            self.report.warning(patch.label, "committed uncommitted local changes as a checkpoint")
        else:
            self.report.warning(patch.label, "could not checkpoint local changes; applying on a dirty tree")

    def _ensure_remote(self, client: SourceControlClient, unit: str, remote: str, url: str) -> bool:
        if remote in client.remotes():
            logger.info("%s: remote %s already exists", unit, remote)
            return True
        logger.info("%s: adding remote %s", unit, remote)
        return client.add_remote(remote, url)

    def _apply(self, client: SourceControlClient, patch: PatchSpec) -> PatchOutcome:
        unit = patch.label
        self._checkpoint(client, patch)

        if patch.remote is not None and patch.url is not None:
            if not self._ensure_remote(client, unit, patch.remote, patch.url):
                self.report.error(unit, f"failed to add remote {patch.remote}")
                return PatchOutcome(patch, "failed", FETCH_ERROR, detail="remote add failed")
            fetched, output = client.fetch(patch.remote)
            if not fetched:
                self.report.error(unit, f"failed to fetch from {patch.remote}")
                return PatchOutcome(patch, "failed", FETCH_ERROR, detail=output)

        logger.info("%s: cherry-picking %s", unit, patch.commit)
        picked = client.cherry_pick(patch.commit, allow_empty=True)
        if picked.success:
            self.report.success(unit, "cherry-pick applied")
            return PatchOutcome(patch, "applied")

        if picked.empty:
            return self._already_applied(client, patch)

        if not picked.conflict_files:
            client.abort_cherry_pick()
            self.report.error(unit, "cherry-pick failed without conflicts")
            return PatchOutcome(patch, "failed", APPLY_ERROR, detail=picked.message)

        return self._resolve_and_continue(client, patch, picked.conflict_files)

    def _already_applied(self, client: SourceControlClient, patch: PatchSpec) -> PatchOutcome:
        if not client.skip_cherry_pick():
            client.abort_cherry_pick()
        self.report.success(patch.label, "already applied (empty cherry-pick skipped)")
        return PatchOutcome(patch, "already_applied")

    def _take_side(self, client: SourceControlClient, rel: str, strategy: str) -> str:
        path = client.path / rel
        if strategy not in _WHOLE_FILE_SIDES:
            raise ResolutionRefused(path, f"no conflict markers, '{strategy}' cannot pick a whole side")
        if not client.checkout_side(rel, strategy):
            raise ResolutionError(path, f"could not take the '{strategy}' side")
        return f"took the '{strategy}' side whole"

    def _resolve_and_continue(
        self,
        client: SourceControlClient,
        patch: PatchSpec,
        conflict_files: list[str],
    ) -> PatchOutcome:
        unit = patch.label
        self.report.warning(unit, f"conflicts in {len(conflict_files)} file(s): {', '.join(conflict_files)}")
        resolved: list[str] = []
        for rel in conflict_files:
            path = client.path / rel
            try:
                if _carries_markers(path):
                    blocks = resolve_file(path, patch.strategy)
                    note = f"{blocks} block(s) resolved with '{patch.strategy}'"
                else:
                    note = self._take_side(client, rel, patch.strategy)
            except (ResolutionError, OSError) as exc:
                client.abort_cherry_pick()
                self.report.error(unit, f"could not resolve {rel}: {exc}")
                return PatchOutcome(patch, "failed", UNRESOLVABLE, detail=str(exc))
            if (path.exists() or path.is_symlink()) and not client.stage_file(rel):
                client.abort_cherry_pick()
                self.report.error(unit, f"could not stage {rel}")
                return PatchOutcome(patch, "failed", UNRESOLVABLE, detail=f"stage failed: {rel}")
            resolved.append(rel)
            self.report.conflict_resolved(unit, f"{rel}: {note}")

        continued = client.continue_cherry_pick()
        if continued.success:
            self.report.success(unit, "cherry-pick completed after conflict resolution")
            return PatchOutcome(patch, "applied", resolved_files=tuple(resolved))
        if continued.empty:
            outcome = self._already_applied(client, patch)
            return PatchOutcome(patch, outcome.status, resolved_files=tuple(resolved))

        client.abort_cherry_pick()
        self.report.error(unit, "failed to complete cherry-pick, aborted")
        return PatchOutcome(
            patch,
            "failed",
            UNRESOLVABLE,
            detail=continued.message,
            resolved_files=tuple(resolved),
        )
