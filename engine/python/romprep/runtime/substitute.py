"""Token substitution in file contents and file/directory names."""

from __future__ import annotations

import fnmatch
import logging
import re
from pathlib import Path

from romprep.domain.models import SubstitutionReport, SubstitutionRule
from romprep.io.files import is_binary, walk_entries_deepest_first, walk_files, write_bytes
from romprep.runtime.reporting import RunReport


logger = logging.getLogger(__name__)


def substitute_literal(data: bytes, rules: list[SubstitutionRule]) -> bytes:
    for rule in rules:
        data = data.replace(rule.source.encode("utf-8"), rule.target.encode("utf-8"))
    return data


def _word_pattern(token: str) -> re.Pattern[bytes]:
    return re.compile(rb"\b" + re.escape(token.encode("utf-8")) + rb"\b")


def matches_any(name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


class SubstitutionEngine:
    """Rewrite tokens inside the given roots.

    Per root the passes run in this order: literal content substitution,
    the deepest-first rename pass for literal rules, then word-bounded
    substitution restricted to files matching each word rule's patterns.
    Rules keep their declared order inside every pass. Nothing is rolled
    back: a failing file or rename is recorded and the pass moves on.
    """

    def __init__(self, root: Path, report: RunReport, *, dry_run: bool = False) -> None:
        self.root = root
        self.report = report
        self.dry_run = dry_run

    def apply(self, roots: list[Path], rules: list[SubstitutionRule]) -> SubstitutionReport:
        result = SubstitutionReport()
        for rel_root in roots:
            base = self.root / rel_root
            unit = rel_root.as_posix()
            if not base.is_dir():
                self.report.skip(unit, "not found, skipping rename and replacements")
                result.skipped_roots.append(unit)
                continue
            changed_before = len(result.files_changed)
            renamed_before = len(result.renamed)
            self._content_pass(base, [rule for rule in rules if rule.match == "literal"], result)
            self._rename_pass(base, [rule for rule in rules if rule.renames], result)
            self._word_pass(base, [rule for rule in rules if rule.match == "word"], result)
            changed = len(set(result.files_changed[changed_before:]))
            renamed = len(result.renamed) - renamed_before
            verb = "would update" if self.dry_run else "updated"
            self.report.success(unit, f"{verb} {changed} file(s), {renamed} rename(s)")
        return result

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _rewrite(self, path: Path, data: bytes, result: SubstitutionReport) -> None:
        rel = self._rel(path)
        if self.dry_run:
            logger.info("would rewrite %s", rel)
            result.files_changed.append(rel)
            return
        try:
            write_bytes(path, data)
        except OSError as exc:
            result.failures.append(rel)
            self.report.error(rel, f"failed to rewrite: {exc}")
            return
        result.files_changed.append(rel)

    def _read(self, path: Path, result: SubstitutionReport) -> bytes | None:
        try:
            data = path.read_bytes()
        except OSError as exc:
            rel = self._rel(path)
            result.failures.append(rel)
            self.report.error(rel, f"failed to read: {exc}")
            return None
        if is_binary(data):
            return None
        return data

    def _content_pass(self, base: Path, rules: list[SubstitutionRule], result: SubstitutionReport) -> None:
        if not rules:
            return
        for path in walk_files(base):
            data = self._read(path, result)
            if data is None:
                continue
            updated = substitute_literal(data, rules)
            if updated != data:
                self._rewrite(path, updated, result)

    def _rename_pass(self, base: Path, rules: list[SubstitutionRule], result: SubstitutionReport) -> None:
        for rule in rules:
            for entry in walk_entries_deepest_first(base):
                if rule.source not in entry.name:
                    continue
                new_name = entry.name.replace(rule.source, rule.target)
                if not new_name or new_name == entry.name:
                    continue
                target = entry.with_name(new_name)
                src_rel, dst_rel = self._rel(entry), self._rel(target)
                if target.exists():
                    result.failures.append(src_rel)
                    self.report.error(src_rel, f"cannot rename, {dst_rel} already exists")
                    continue
                if self.dry_run:
                    logger.info("would rename %s -> %s", src_rel, dst_rel)
                else:
                    try:
                        entry.rename(target)
                    except OSError as exc:
                        result.failures.append(src_rel)
                        self.report.error(src_rel, f"rename failed: {exc}")
                        continue
                    logger.info("renamed %s -> %s", src_rel, dst_rel)
                result.renamed.append((src_rel, dst_rel))

    def _word_pass(self, base: Path, rules: list[SubstitutionRule], result: SubstitutionReport) -> None:
        if not rules:
            return
        compiled = [(rule, _word_pattern(rule.source), rule.target.encode("utf-8")) for rule in rules]
        for path in walk_files(base):
            applicable = [item for item in compiled if matches_any(path.name, item[0].files)]
            if not applicable:
                continue
            data = self._read(path, result)
            if data is None:
                continue
            updated = data
            for _rule, pattern, replacement in applicable:
                updated = pattern.sub(lambda _match, value=replacement: value, updated)
            if updated != data:
                self._rewrite(path, updated, result)
