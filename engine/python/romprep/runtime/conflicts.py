"""Conflict marker resolution.

Files are processed as bytes so encodings and line endings survive the
rewrite. The scanner is a small state machine:

    OUTSIDE --start--> IN_OURS --separator--> IN_THEIRS --end--> OUTSIDE
                          |                      ^
                          +--base--> IN_BASE ----+ (separator)

Any other transition (a start marker inside a block, an end marker before
the separator, end of file inside a block) means the input is malformed and
the file is left untouched.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from pathlib import Path

from romprep.domain.models import CONFLICT_STRATEGIES
from romprep.io.files import write_bytes


logger = logging.getLogger(__name__)

OUTSIDE = "outside"
IN_OURS = "in_ours"
IN_BASE = "in_base"
IN_THEIRS = "in_theirs"

_START = re.compile(rb"^<{7}(?:[ \t]|\r?\n|$)")
_BASE = re.compile(rb"^\|{7}(?:[ \t]|\r?\n|$)")
_SEPARATOR = re.compile(rb"^={7}\r?\n?$")
_END = re.compile(rb"^>{7}(?:[ \t]|\r?\n|$)")

# Sections each strategy keeps, besides lines outside any block.
_KEEP: dict[str, frozenset[str]] = {
    "ours": frozenset({IN_OURS}),
    "theirs": frozenset({IN_THEIRS}),
    "both": frozenset({IN_OURS, IN_THEIRS}),
}


class ResolutionError(Exception):
    """Base class for conflict resolution failures."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ResolutionIncomplete(ResolutionError):
    """Markers were malformed or survived the rewrite; the original is restored."""


class ResolutionRefused(ResolutionError):
    """The strategy requires a human to resolve the file."""


def _marker(line: bytes) -> str | None:
    if _START.match(line):
        return "start"
    if _SEPARATOR.match(line):
        return "separator"
    if _END.match(line):
        return "end"
    if _BASE.match(line):
        return "base"
    return None


def resolve_lines(lines: list[bytes], strategy: str) -> list[bytes]:
    """Return ``lines`` with every conflict block reduced per ``strategy``.

    Raises ValueError on malformed or nested markers.
    """
    keep = _KEEP[strategy]
    state = OUTSIDE
    out: list[bytes] = []
    for number, line in enumerate(lines, start=1):
        marker = _marker(line)
        if state == OUTSIDE:
            if marker == "start":
                state = IN_OURS
            elif marker in {"end", "base"}:
                raise ValueError(f"line {number}: {marker} marker outside a conflict block")
            else:
                out.append(line)
            continue

        if marker == "start":
            raise ValueError(f"line {number}: nested conflict start marker")
        if state == IN_OURS and marker == "base":
            state = IN_BASE
        elif state in {IN_OURS, IN_BASE} and marker == "separator":
            state = IN_THEIRS
        elif state == IN_THEIRS and marker == "end":
            state = OUTSIDE
        elif marker is not None:
            raise ValueError(f"line {number}: unexpected {marker} marker while {state}")
        elif state in keep:
            out.append(line)

    if state != OUTSIDE:
        raise ValueError(f"end of file while {state}")
    return out


def residual_markers(lines: list[bytes]) -> list[int]:
    """Line numbers still carrying start, base or end markers."""
    return [
        number
        for number, line in enumerate(lines, start=1)
        if _START.match(line) or _END.match(line) or _BASE.match(line)
    ]


def has_conflict_markers(path: Path) -> bool:
    return bool(residual_markers(path.read_bytes().splitlines(keepends=True)))


def resolve_file(path: Path, strategy: str) -> int:
    """Rewrite ``path`` in place and return the number of conflict blocks removed.

    The original bytes are copied aside first and restored if the rewrite
    leaves residual markers. The caller stages the result.
    """
    if strategy not in CONFLICT_STRATEGIES:
        raise ValueError(f"Unknown conflict strategy: {strategy}")
    if strategy == "manual":
        raise ResolutionRefused(path, "manual strategy: resolve by hand")

    original = path.read_bytes()
    lines = original.splitlines(keepends=True)
    blocks = sum(1 for line in lines if _START.match(line))
    try:
        resolved = resolve_lines(lines, strategy)
    except ValueError as exc:
        raise ResolutionIncomplete(path, str(exc)) from exc

    with tempfile.TemporaryDirectory(prefix="romprep-resolve-") as backup_dir:
        backup = Path(backup_dir) / path.name
        shutil.copy2(path, backup)
        write_bytes(path, b"".join(resolved))
        leftover = residual_markers(path.read_bytes().splitlines(keepends=True))
        if leftover:
            shutil.copy2(backup, path)
            raise ResolutionIncomplete(path, f"residual markers at lines {leftover}")
    logger.debug("resolved %d conflict block(s) in %s using %s", blocks, path, strategy)
    return blocks
