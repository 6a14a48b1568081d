"""Run report accumulation, rendering and persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from romprep.io.files import ensure_dir, write_json
from romprep.runtime.time import utc_now_iso, utc_stamp


logger = logging.getLogger(__name__)

CATEGORIES = (
    "successes",
    "warnings",
    "errors",
    "failed_clones",
    "conflict_resolutions",
    "skipped",
)

_LEVELS = {
    "successes": logging.INFO,
    "skipped": logging.INFO,
    "warnings": logging.WARNING,
    "failed_clones": logging.WARNING,
    "conflict_resolutions": logging.WARNING,
    "errors": logging.ERROR,
}

EXIT_OK = 0
EXIT_FAILED = 10


@dataclass(frozen=True)
class ReportEntry:
    category: str
    unit: str
    message: str
    at: str

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category, "unit": self.unit, "message": self.message, "at": self.at}


@dataclass
class RunReport:
    """Categorized, append-only record of everything a run did.

    Every entry is echoed through logging the moment it is recorded.
    """

    entries: list[ReportEntry] = field(default_factory=list)

    def _record(self, category: str, unit: str, message: str) -> ReportEntry:
        entry = ReportEntry(category=category, unit=unit, message=message, at=utc_now_iso())
        self.entries.append(entry)
        logger.log(_LEVELS[category], "%s: %s", unit, message)
        return entry

    def success(self, unit: str, message: str) -> ReportEntry:
        return self._record("successes", unit, message)

    def warning(self, unit: str, message: str) -> ReportEntry:
        return self._record("warnings", unit, message)

    def error(self, unit: str, message: str) -> ReportEntry:
        return self._record("errors", unit, message)

    def failed_clone(self, unit: str, message: str) -> ReportEntry:
        return self._record("failed_clones", unit, message)

    def conflict_resolved(self, unit: str, message: str) -> ReportEntry:
        return self._record("conflict_resolutions", unit, message)

    def skip(self, unit: str, message: str) -> ReportEntry:
        return self._record("skipped", unit, message)

    def category(self, name: str) -> list[ReportEntry]:
        if name not in CATEGORIES:
            raise KeyError(name)
        return [entry for entry in self.entries if entry.category == name]

    def counts(self) -> dict[str, int]:
        return {name: len(self.category(name)) for name in CATEGORIES}

    def status(self) -> str:
        counts = self.counts()
        if counts["errors"]:
            return "failed"
        if counts["warnings"] or counts["failed_clones"]:
            return "warnings"
        return "ok"

    def exit_code(self) -> int:
        return EXIT_FAILED if self.status() == "failed" else EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status(),
            "counts": self.counts(),
            **{name: [entry.to_dict() for entry in self.category(name)] for name in CATEGORIES},
        }


_TITLES = {
    "successes": "SUCCESS",
    "conflict_resolutions": "CONFLICTS RESOLVED",
    "warnings": "WARNINGS",
    "failed_clones": "FAILED CLONES",
    "errors": "ERRORS",
    "skipped": "SKIPPED",
}


def render_summary(report: RunReport) -> str:
    counts = report.counts()
    lines = [
        "SUMMARY:",
        " ".join(f"{name}={counts[name]}" for name in CATEGORIES),
        f"status={report.status()}",
    ]
    for name in ("errors", "failed_clones", "warnings", "conflict_resolutions", "skipped", "successes"):
        entries = report.category(name)
        if not entries:
            continue
        lines.append("")
        lines.append(f"{_TITLES[name]}:")
        lines.extend(f"- {entry.unit}: {entry.message}" for entry in entries)
    return "\n".join(lines) + "\n"


def save_report(report_dir: Path, report: RunReport, meta: dict[str, Any]) -> Path:
    """Write the full report as JSON and append a one-line record to history.jsonl."""
    ensure_dir(report_dir / "reports")
    out = report_dir / "reports" / f"run-{utc_stamp()}.json"
    write_json(out, {**meta, **report.to_dict()})

    record = {
        "at": utc_now_iso(),
        "status": report.status(),
        "counts": report.counts(),
        "report": str(out),
        **meta,
    }
    with (report_dir / "history.jsonl").open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, ensure_ascii=False, sort_keys=True) + "\n")
    return out
