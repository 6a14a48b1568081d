"""Post-processing steps run after substitution."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable

from romprep.domain.models import StepSpec
from romprep.io.fetch import FileFetcher
from romprep.io.files import write_bytes, write_text
from romprep.io.runner import run_argv
from romprep.runtime.reporting import RunReport


DEFAULT_SCRIPT_ARGV = ["bash", "{script}"]


class StepRunner:
    """Execute declared steps in order, each one best-effort."""

    def __init__(
        self,
        root: Path,
        report: RunReport,
        *,
        dry_run: bool = False,
        fetcher: FileFetcher | None = None,
    ) -> None:
        self.root = root
        self.report = report
        self.dry_run = dry_run
        self.fetcher = fetcher or FileFetcher()
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "ensure_lines": self.ensure_lines,
            "replace_in_file": self.replace_in_file,
            "fetch_file": self.fetch_file,
            "run_scripts": self.run_scripts,
            "run_command": self.run_command,
        }

    def run(self, steps: list[StepSpec]) -> None:
        for step in steps:
            handler = self._handlers.get(step.kind)
            if handler is None:
                self.report.error(step.kind, "unknown step kind")
                continue
            try:
                handler(step.options)
            except (OSError, UnicodeError) as exc:
                self.report.error(step.kind, f"{exc}")

    def ensure_lines(self, options: dict[str, Any]) -> None:
        rel = str(options["path"])
        path = self.root / rel
        existing = path.read_text(encoding="utf-8").splitlines() if path.is_file() else []
        missing = [line for line in options["lines"] if line not in existing]
        if not missing:
            self.report.skip(rel, "all lines already present")
            return
        if self.dry_run:
            self.report.skip(rel, f"would append {len(missing)} line(s)")
            return
        body = "\n".join(existing)
        if body:
            body += "\n"
        write_text(path, body + "\n".join(missing) + "\n")
        self.report.success(rel, f"appended {len(missing)} line(s)")

    def replace_in_file(self, options: dict[str, Any]) -> None:
        rel = str(options["path"])
        path = self.root / rel
        if not path.is_file():
            self.report.warning(rel, "not found, skipping replacement")
            return
        old, new = str(options["old"]), str(options["new"])
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
        if options.get("regex", False):
            try:
                updated, count = re.subn(old, new, text)
            except re.error as exc:
                self.report.error(rel, f"invalid pattern {old!r}: {exc}")
                return
        else:
            count = text.count(old)
            updated = text.replace(old, new)
        if count == 0:
            self.report.skip(rel, f"no {old!r} references found")
            return
        if self.dry_run:
            self.report.skip(rel, f"would replace {count} occurrence(s) of {old!r}")
            return
        write_bytes(path, updated.encode("utf-8", errors="surrogateescape"))
        self.report.success(rel, f"replaced {count} occurrence(s) of {old!r}")

    def fetch_file(self, options: dict[str, Any]) -> None:
        rel = str(options["dest"])
        dest = self.root / rel
        url = str(options["url"])
        if options.get("require_dir", True) and not dest.parent.is_dir():
            self.report.warning(rel, f"{dest.parent.relative_to(self.root).as_posix()} not found, skipping download")
            return
        if dest.exists() and not options.get("overwrite", False):
            self.report.skip(rel, "already exists, skipping download")
            return
        if self.dry_run:
            self.report.skip(rel, f"would download {url}")
            return
        result = self.fetcher.fetch(url, dest)
        if result.ok:
            self.report.success(rel, f"downloaded {url} ({result.size} bytes)")
        else:
            self.report.error(rel, f"failed to download {url}: {result.error}")

    def _run_in(self, unit: str, argv: list[str], cwd: Path) -> None:
        if self.dry_run:
            self.report.skip(unit, f"would run {' '.join(argv)} in {cwd.relative_to(self.root).as_posix() or '.'}")
            return
        result = run_argv(argv, cwd=cwd)
        if result.ok:
            self.report.success(unit, f"ran {' '.join(argv)}")
        else:
            self.report.error(unit, f"{' '.join(argv)} exited {result.returncode}: {result.output[-500:]}")

    def run_scripts(self, options: dict[str, Any]) -> None:
        pattern = str(options["glob"])
        try:
            scripts = sorted(path for path in self.root.glob(pattern) if path.is_file())
        except (ValueError, NotImplementedError) as exc:
            self.report.error(pattern or "run_scripts", f"invalid glob: {exc}")
            return
        if not scripts:
            self.report.skip(pattern, "no matching scripts found")
            return
        template = list(options.get("argv") or DEFAULT_SCRIPT_ARGV)
        for script in scripts:
            argv = [part.replace("{script}", script.name) for part in template]
            self._run_in(script.relative_to(self.root).as_posix(), argv, script.parent)

    def run_command(self, options: dict[str, Any]) -> None:
        rel = str(options["cwd"])
        cwd = self.root / rel
        if not cwd.is_dir():
            self.report.warning(rel, "not found, skipping command")
            return
        self._run_in(rel, [str(part) for part in options["argv"]], cwd)
