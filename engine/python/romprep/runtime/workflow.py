"""Sequential run: sync, patch, substitute, post-process."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from romprep.domain.models import (
    MISSING_DIRECTORY,
    CloneOutcome,
    PatchOutcome,
    SubstitutionReport,
)
from romprep.io.fetch import FileFetcher
from romprep.runtime.config import RunConfig
from romprep.runtime.patching import PatchApplier
from romprep.runtime.reporting import RunReport, save_report
from romprep.runtime.substitute import SubstitutionEngine
from romprep.runtime.sync import TreeSynchronizer
from romprep.steps.runner import StepRunner
from romprep.vcs.client import ClientFactory, Cloner
from romprep.vcs.git import GitClient, git_clone


logger = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    config: RunConfig
    report: RunReport
    clones: list[CloneOutcome] = field(default_factory=list)
    patches: list[PatchOutcome] = field(default_factory=list)
    substitution: SubstitutionReport | None = None
    report_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.report.status(),
            "name": self.config.name,
            "dry_run": self.config.dry_run,
            "phases": self.config.phases(),
            "counts": self.report.counts(),
            "clones": [outcome.to_dict() for outcome in self.clones],
            "patches": [outcome.to_dict() for outcome in self.patches],
            "substitution": self.substitution.to_dict() if self.substitution is not None else None,
            "report": self.report.to_dict(),
            "report_path": str(self.report_path) if self.report_path is not None else None,
        }


def run_workflow(
    config: RunConfig,
    *,
    client_factory: ClientFactory = GitClient,
    cloner: Cloner = git_clone,
    fetcher: FileFetcher | None = None,
    persist: bool = True,
) -> WorkflowResult:
    """Run every enabled phase in order; no phase starts before the previous one ends."""
    report = RunReport()
    result = WorkflowResult(config=config, report=report)
    failed: set[Path] = set()
    planned: frozenset[Path] = frozenset()
    logger.info("name=%s dry_run=%s phases=%s", config.name, config.dry_run, ",".join(config.phases()))

    if config.runs("sync"):
        synchronizer = TreeSynchronizer(config.root, report, dry_run=config.dry_run, cloner=cloner)
        result.clones = synchronizer.sync(config.sources)
        failed = {outcome.spec.path for outcome in result.clones if outcome.status == "failed"}
        planned = frozenset(outcome.spec.path for outcome in result.clones if outcome.status == "planned")

    if config.runs("patch"):
        applier = PatchApplier(
            config.root,
            report,
            dry_run=config.dry_run,
            client_factory=client_factory,
            planned=planned,
        )
        for patch in config.patches:
            if patch.path in failed:
                report.skip(patch.label, "clone failed earlier, skipping cherry-pick")
                result.patches.append(PatchOutcome(patch, "skipped", MISSING_DIRECTORY))
                continue
            result.patches.append(applier.apply(patch))

    if config.runs("substitute"):
        roots: list[Path] = []
        for root in config.roots:
            if root in failed:
                report.skip(root.as_posix(), "clone failed earlier, skipping rename and replacements")
                continue
            if root in planned and not (config.root / root).is_dir():
                report.skip(root.as_posix(), "would rename and replace tokens after cloning")
                continue
            roots.append(root)
        engine = SubstitutionEngine(config.root, report, dry_run=config.dry_run)
        result.substitution = engine.apply(roots, config.rules)

    if config.runs("steps"):
        StepRunner(config.root, report, dry_run=config.dry_run, fetcher=fetcher).run(config.steps)

    if persist and not config.dry_run:
        meta = {"name": config.name, "phases": config.phases()}
        try:
            result.report_path = save_report(config.report_dir, report, meta)
        except OSError as exc:
            report.warning("report", f"could not save run report: {exc}")
    return result
